# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for keyed debouncing."""

import asyncio

import pytest

from depwatch.debounce import Debouncer

DELAY = 0.02


class TestDebouncer:
    """Tests for Debouncer scheduling, superseding and cancellation."""

    @pytest.mark.asyncio
    async def test_runs_after_delay(self):
        debouncer = Debouncer(delay=DELAY)

        async def work():
            return "done"

        future = debouncer.schedule("a", work)
        assert debouncer.is_pending("a")
        assert await future == "done"
        assert not debouncer.is_pending("a")

    @pytest.mark.asyncio
    async def test_burst_collapses_to_last_call(self):
        debouncer = Debouncer(delay=DELAY)
        calls = []

        def make(value):
            async def work():
                calls.append(value)
                return value

            return work

        futures = [debouncer.schedule("file.js", make(i)) for i in range(5)]
        results = await asyncio.gather(*futures)

        assert calls == [4]
        assert results == [4, 4, 4, 4, 4]

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        debouncer = Debouncer(delay=DELAY)
        calls = []

        def make(value):
            async def work():
                calls.append(value)

            return work

        first = debouncer.schedule("a.js", make("a"))
        second = debouncer.schedule("b.js", make("b"))
        await asyncio.gather(first, second)

        assert sorted(calls) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_cancel_before_fire_does_no_work(self):
        debouncer = Debouncer(delay=DELAY)
        calls = []

        async def work():
            calls.append(1)

        future = debouncer.schedule("a", work)
        assert debouncer.cancel("a") is True
        await asyncio.sleep(DELAY * 3)

        assert calls == []
        assert future.cancelled()
        assert debouncer.cancel("a") is False

    @pytest.mark.asyncio
    async def test_failure_surfaces_on_future(self):
        debouncer = Debouncer(delay=DELAY)

        async def work():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await debouncer.schedule("a", work)

    @pytest.mark.asyncio
    async def test_unawaited_failure_is_logged(self, caplog):
        debouncer = Debouncer(delay=0)

        async def work():
            raise RuntimeError("boom")

        future = debouncer.schedule("a", work)
        await asyncio.sleep(DELAY)
        await debouncer.wait_idle()

        assert future.done()
        assert "Debounced call failed" in caplog.text

    @pytest.mark.asyncio
    async def test_schedule_while_running_waits_for_running_call(self):
        """Only one call per key runs at a time."""
        debouncer = Debouncer(delay=0)
        release = asyncio.Event()
        calls = []

        async def slow():
            calls.append("slow started")
            await release.wait()
            calls.append("slow finished")
            return "slow"

        async def fast():
            calls.append("fast")
            return "fast"

        first = debouncer.schedule("a", slow)
        await asyncio.sleep(DELAY)
        assert debouncer.is_running("a")

        second = debouncer.schedule("a", fast)
        assert second is not first
        await asyncio.sleep(DELAY * 3)

        # The delay has expired but the running call has not finished
        assert calls == ["slow started"]
        assert debouncer.is_pending("a")

        release.set()
        assert await first == "slow"
        assert await second == "fast"
        assert calls == ["slow started", "slow finished", "fast"]

    @pytest.mark.asyncio
    async def test_triggers_during_running_call_coalesce(self):
        debouncer = Debouncer(delay=0)
        release = asyncio.Event()
        calls = []

        async def slow():
            await release.wait()
            calls.append("slow")

        def make(value):
            async def work():
                calls.append(value)
                return value

            return work

        debouncer.schedule("a", slow)
        await asyncio.sleep(DELAY)
        futures = [debouncer.schedule("a", make(i)) for i in range(3)]
        await asyncio.sleep(DELAY)
        release.set()

        assert await asyncio.gather(*futures) == [2, 2, 2]
        assert calls == ["slow", 2]

    @pytest.mark.asyncio
    async def test_wait_idle_covers_running_and_waiting_calls(self):
        debouncer = Debouncer(delay=0)
        release = asyncio.Event()
        done = []

        async def slow():
            await release.wait()
            done.append("slow")

        async def fast():
            done.append("fast")

        debouncer.schedule("a", slow)
        await asyncio.sleep(DELAY)
        debouncer.schedule("a", fast)
        await asyncio.sleep(DELAY)

        asyncio.get_running_loop().call_later(DELAY, release.set)
        await debouncer.wait_idle()

        assert done == ["slow", "fast"]
        assert not debouncer.is_running("a")
        assert not debouncer.is_pending("a")

    @pytest.mark.asyncio
    async def test_cancel_all(self):
        debouncer = Debouncer(delay=DELAY)

        async def work():
            return 1

        futures = [debouncer.schedule(key, work) for key in ("a", "b")]
        debouncer.cancel_all()

        assert all(f.cancelled() for f in futures)
        assert not debouncer.is_pending("a")
