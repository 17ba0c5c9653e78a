# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Keyed, cancelable debouncing of coroutine work on an asyncio loop.

Rapid triggers for the same key collapse into one call:
- schedule() cancels a not-yet-fired timer for the key and replaces it
- Callers of superseded schedules share the same future and receive the
  result of the call that finally runs
- cancel() before the timer fires performs no work

At most one call per key runs at a time. Once a call has fired it runs to
completion; a schedule() for the same key meanwhile creates a fresh pending
call with its own future, which waits for the running call to finish before
it starts. Further schedules supersede that pending call as usual, so
overlapping triggers are coalesced rather than queued.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional

logger = logging.getLogger(__name__)

DEFAULT_DELAY_SECONDS = 0.5

# Factory producing the coroutine to run once the delay expires
WorkFactory = Callable[[], Awaitable[Any]]


@dataclass
class _PendingCall:
    handle: asyncio.TimerHandle
    future: "asyncio.Future[Any]"
    factory: WorkFactory
    # Delay expired while another call for the key was still running
    ready: bool = False


class Debouncer:
    """Debounce coroutine factories by key.

    Must be used from the thread running the event loop.

    Usage:
        debouncer = Debouncer(delay=0.5)
        future = debouncer.schedule("/src/index.js", lambda: update(...))
        result = await future  # optional
    """

    def __init__(self, delay: float = DEFAULT_DELAY_SECONDS):
        self.delay = delay
        self._pending: Dict[Hashable, _PendingCall] = {}
        self._running: Dict[Hashable, "asyncio.Task[Any]"] = {}

    def schedule(self, key: Hashable, factory: WorkFactory) -> "asyncio.Future[Any]":
        """Schedule factory to run after the delay, superseding any pending call.

        Returns:
            Future resolved with the factory's result (shared with superseded
            callers for the same key).
        """
        loop = asyncio.get_running_loop()

        pending = self._pending.pop(key, None)
        if pending is not None:
            pending.handle.cancel()
            future = pending.future
            logger.debug(f"Superseded pending call for {key!r}")
        else:
            future = loop.create_future()
            future.add_done_callback(_consume_outcome)

        handle = loop.call_later(self.delay, self._fire, key)
        self._pending[key] = _PendingCall(handle=handle, future=future, factory=factory)
        return future

    def cancel(self, key: Hashable) -> bool:
        """Cancel a pending call for key.

        Returns:
            True if a pending call was canceled, False if none was waiting.
        """
        pending = self._pending.pop(key, None)
        if pending is None:
            return False
        pending.handle.cancel()
        pending.future.cancel()
        logger.debug(f"Canceled pending call for {key!r}")
        return True

    def cancel_all(self) -> None:
        for key in list(self._pending):
            self.cancel(key)

    def is_pending(self, key: Hashable) -> bool:
        return key in self._pending

    def is_running(self, key: Hashable) -> bool:
        return key in self._running

    async def wait_idle(self) -> None:
        """Wait until no call is running.

        Calls whose delay expired while waiting for a running call are awaited
        too; calls still inside their delay are not.
        """
        while self._running:
            await asyncio.gather(*self._running.values(), return_exceptions=True)

    def _fire(self, key: Hashable) -> None:
        pending = self._pending.get(key)
        if pending is None:
            return
        if key in self._running:
            # Started by _forget_running once the current call finishes
            pending.ready = True
            logger.debug(f"Call for {key!r} waiting for the running one")
            return

        del self._pending[key]
        task = asyncio.ensure_future(self._run(pending))
        self._running[key] = task
        task.add_done_callback(lambda done: self._forget_running(key, done))

    def _forget_running(self, key: Hashable, task: "asyncio.Task[Any]") -> None:
        if self._running.get(key) is not task:
            return
        del self._running[key]
        pending = self._pending.get(key)
        if pending is not None and pending.ready:
            self._fire(key)

    async def _run(self, pending: _PendingCall) -> None:
        try:
            result = await pending.factory()
        except asyncio.CancelledError:
            if not pending.future.done():
                pending.future.cancel()
            raise
        except Exception as e:
            if not pending.future.done():
                pending.future.set_exception(e)
            return
        if not pending.future.done():
            pending.future.set_result(result)


def _consume_outcome(future: "asyncio.Future[Any]") -> None:
    # Marks the exception as retrieved so unawaited failures are logged once here
    if future.cancelled():
        return
    error: Optional[BaseException] = future.exception()
    if error is not None:
        logger.error(f"Debounced call failed: {error}", exc_info=error)
