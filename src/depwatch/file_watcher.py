# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""File system watcher feeding on-disk edits into the dependency engine.

- Watchdog library for cross-platform file watching
- Same filtering as the full scan: hidden entries and the dependency install
  directory are ignored, only source files and the manifest are reported
- Content is read on the watcher thread; the callback receives the full text
  (or None for a deletion) and is responsible for marshalling to its loop

No debouncing happens here: bursts are collapsed by the engine's Debouncer.

Known Limitations:
- A file deleted between the event and the read is reported as deleted
- Symlinks are followed by watchdog; no validation that resolved paths stay
  within project_root
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional

from watchdog.events import FileMovedEvent, FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from depwatch.scanner import is_source_file

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

logger = logging.getLogger(__name__)

# Callback signature: (absolute_path, content or None when deleted) -> None
ChangeCallback = Callable[[str, Optional[str]], None]


class FileWatcher:
    """Watches a project for source and manifest changes.

    Thread Safety:
    - on_change is invoked from the watchdog observer thread

    Usage:
        watcher = FileWatcher(project_root="/path/to/project", on_change=handler)
        watcher.start()
        # ...
        watcher.stop()
    """

    def __init__(
        self,
        project_root: str,
        on_change: ChangeCallback,
        install_dir: str = "node_modules",
        manifest_filename: str = "package.json",
    ):
        """Initialize FileWatcher.

        Args:
            project_root: Root directory to watch recursively.
            on_change: Callback for relevant file events.
            install_dir: Dependency install directory name to ignore.
            manifest_filename: Manifest file name at the project root.
        """
        self.project_root = Path(project_root).resolve()
        self.on_change = on_change
        self.install_dir = install_dir
        self.manifest_path = self.project_root / manifest_filename

        self._observer: Optional["BaseObserver"] = None
        self._event_handler = _FileEventHandler(self)

        logger.info(f"FileWatcher initialized for {self.project_root}")

    def should_ignore(self, file_path: str) -> bool:
        """Check if a path is outside the project or in a skipped directory."""
        path = Path(file_path)
        try:
            rel_path = path.relative_to(self.project_root)
        except ValueError:
            return True

        for part in rel_path.parts:
            if part.startswith(".") or part == self.install_dir:
                return True
        return False

    def is_relevant(self, file_path: str) -> bool:
        """Check if a path is the manifest or a watched source file."""
        if Path(file_path) == self.manifest_path:
            return True
        return not self.should_ignore(file_path) and is_source_file(file_path)

    def handle_change(self, file_path: str) -> None:
        """Read a changed file and report its content."""
        try:
            content = Path(file_path).read_text(encoding="utf-8")
        except FileNotFoundError:
            self.handle_delete(file_path)
            return
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read changed file {file_path}: {e}")
            return
        self._notify(file_path, content)

    def handle_delete(self, file_path: str) -> None:
        self._notify(file_path, None)

    def _notify(self, file_path: str, content: Optional[str]) -> None:
        try:
            self.on_change(file_path, content)
        except Exception as e:
            # Keep the observer thread alive whatever the consumer does
            logger.error(f"Change callback failed for {file_path}: {e}")

    def start(self) -> None:
        """Start watching file system.

        Raises:
            RuntimeError: If watcher is already running
        """
        if self._observer is not None and self._observer.is_alive():
            raise RuntimeError("FileWatcher is already running")

        self._observer = Observer()
        self._observer.schedule(  # type: ignore  # watchdog types vary by version
            self._event_handler, str(self.project_root), recursive=True
        )
        self._observer.start()  # type: ignore  # watchdog types vary by version

        logger.info(f"FileWatcher started, monitoring {self.project_root}")

    def stop(self) -> None:
        """Stop watching file system.

        Blocks until observer thread terminates (with timeout).
        """
        if self._observer is not None and self._observer.is_alive():
            self._observer.stop()  # type: ignore  # watchdog types vary by version
            self._observer.join(timeout=5.0)
            logger.info("FileWatcher stopped")

    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()


class _FileEventHandler(FileSystemEventHandler):
    """Internal event handler for watchdog.

    Delegates to FileWatcher for filtering and reading.
    """

    def __init__(self, watcher: FileWatcher):
        super().__init__()
        self.watcher = watcher

    def _accept(self, event: FileSystemEvent) -> Optional[str]:
        if event.is_directory:
            return None
        # Convert path from Union[bytes, str] to str
        file_path = str(event.src_path)
        if not self.watcher.is_relevant(file_path):
            return None
        return file_path

    def on_created(self, event: FileSystemEvent) -> None:
        file_path = self._accept(event)
        if file_path is not None:
            logger.debug(f"Event: created - {file_path}")
            self.watcher.handle_change(file_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        file_path = self._accept(event)
        if file_path is not None:
            logger.debug(f"Event: modified - {file_path}")
            self.watcher.handle_change(file_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        file_path = self._accept(event)
        if file_path is not None:
            logger.debug(f"Event: deleted - {file_path}")
            self.watcher.handle_delete(file_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Treated as Delete (old path) + Create (new path)."""
        if event.is_directory or not isinstance(event, FileMovedEvent):
            return

        src_path = str(event.src_path)
        dest_path = str(event.dest_path)

        if self.watcher.is_relevant(src_path):
            logger.debug(f"Event: moved_from - {src_path}")
            self.watcher.handle_delete(src_path)

        if self.watcher.is_relevant(dest_path):
            logger.debug(f"Event: moved_to - {dest_path}")
            self.watcher.handle_change(dest_path)
