# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for FileWatcher."""

import time

import pytest
from watchdog.events import (
    DirModifiedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from depwatch.file_watcher import FileWatcher


class Recorder:
    """Collects (path, content) callbacks."""

    def __init__(self):
        self.events = []

    def __call__(self, path, content):
        self.events.append((path, content))


@pytest.fixture
def recorder():
    return Recorder()


class TestFiltering:
    """Tests for path filtering."""

    def test_initialization(self, tmp_path, recorder):
        watcher = FileWatcher(project_root=str(tmp_path), on_change=recorder)

        assert watcher.project_root == tmp_path.resolve()
        assert watcher.manifest_path == tmp_path.resolve() / "package.json"
        assert not watcher.is_running()

    def test_should_ignore(self, tmp_path, recorder):
        root = tmp_path.resolve()
        watcher = FileWatcher(project_root=str(root), on_change=recorder)

        assert watcher.should_ignore(str(root / "node_modules" / "x" / "index.js"))
        assert watcher.should_ignore(str(root / ".git" / "HEAD"))
        assert watcher.should_ignore(str(root / "src" / ".cache" / "a.js"))
        assert watcher.should_ignore("/somewhere/else/a.js")
        assert not watcher.should_ignore(str(root / "src" / "a.js"))

    def test_custom_install_dir(self, tmp_path, recorder):
        root = tmp_path.resolve()
        watcher = FileWatcher(project_root=str(root), on_change=recorder, install_dir="vendor")

        assert watcher.should_ignore(str(root / "vendor" / "a.js"))
        assert not watcher.should_ignore(str(root / "node_modules" / "a.js"))

    def test_is_relevant(self, tmp_path, recorder):
        root = tmp_path.resolve()
        watcher = FileWatcher(project_root=str(root), on_change=recorder)

        assert watcher.is_relevant(str(root / "package.json"))
        assert watcher.is_relevant(str(root / "src" / "a.tsx"))
        assert not watcher.is_relevant(str(root / "src" / "package.json"))
        assert not watcher.is_relevant(str(root / "README.md"))
        assert not watcher.is_relevant(str(root / "node_modules" / "a.js"))


class TestEventHandling:
    """Tests for watchdog event dispatch, without a live observer."""

    def test_modified_source_reports_content(self, tmp_path, recorder):
        root = tmp_path.resolve()
        source = root / "a.js"
        source.write_text("require('left-pad');\n")
        watcher = FileWatcher(project_root=str(root), on_change=recorder)

        watcher._event_handler.on_modified(FileModifiedEvent(str(source)))

        assert recorder.events == [(str(source), "require('left-pad');\n")]

    def test_created_manifest_reports_content(self, tmp_path, recorder):
        root = tmp_path.resolve()
        manifest = root / "package.json"
        manifest.write_text("{}")
        watcher = FileWatcher(project_root=str(root), on_change=recorder)

        watcher._event_handler.on_created(FileCreatedEvent(str(manifest)))

        assert recorder.events == [(str(manifest), "{}")]

    def test_deleted_reports_none(self, tmp_path, recorder):
        root = tmp_path.resolve()
        watcher = FileWatcher(project_root=str(root), on_change=recorder)

        watcher._event_handler.on_deleted(FileDeletedEvent(str(root / "gone.ts")))

        assert recorder.events == [(str(root / "gone.ts"), None)]

    def test_vanished_file_reported_as_deleted(self, tmp_path, recorder):
        root = tmp_path.resolve()
        watcher = FileWatcher(project_root=str(root), on_change=recorder)

        watcher._event_handler.on_modified(FileModifiedEvent(str(root / "missing.js")))

        assert recorder.events == [(str(root / "missing.js"), None)]

    def test_irrelevant_events_dropped(self, tmp_path, recorder):
        root = tmp_path.resolve()
        (root / "notes.md").write_text("x")
        watcher = FileWatcher(project_root=str(root), on_change=recorder)

        watcher._event_handler.on_modified(FileModifiedEvent(str(root / "notes.md")))
        watcher._event_handler.on_modified(DirModifiedEvent(str(root / "src")))
        watcher._event_handler.on_deleted(
            FileDeletedEvent(str(root / "node_modules" / "a.js"))
        )

        assert recorder.events == []

    def test_move_is_delete_plus_create(self, tmp_path, recorder):
        root = tmp_path.resolve()
        dest = root / "new.js"
        dest.write_text("import x from 'react';\n")
        watcher = FileWatcher(project_root=str(root), on_change=recorder)

        watcher._event_handler.on_moved(FileMovedEvent(str(root / "old.js"), str(dest)))

        assert recorder.events == [
            (str(root / "old.js"), None),
            (str(dest), "import x from 'react';\n"),
        ]

    def test_move_to_non_source_only_deletes(self, tmp_path, recorder):
        root = tmp_path.resolve()
        (root / "old.txt").write_text("x")
        watcher = FileWatcher(project_root=str(root), on_change=recorder)

        watcher._event_handler.on_moved(
            FileMovedEvent(str(root / "old.js"), str(root / "old.txt"))
        )

        assert recorder.events == [(str(root / "old.js"), None)]

    def test_callback_failure_is_contained(self, tmp_path):
        root = tmp_path.resolve()
        source = root / "a.js"
        source.write_text("")

        def broken(path, content):
            raise RuntimeError("consumer bug")

        watcher = FileWatcher(project_root=str(root), on_change=broken)

        watcher._event_handler.on_modified(FileModifiedEvent(str(source)))


class TestObserver:
    """Tests for starting and stopping the watchdog observer."""

    def test_start_and_stop(self, tmp_path, recorder):
        watcher = FileWatcher(project_root=str(tmp_path), on_change=recorder)

        watcher.start()
        assert watcher.is_running()

        watcher.stop()
        time.sleep(0.1)  # Give observer time to stop
        assert not watcher.is_running()

    def test_start_already_running(self, tmp_path, recorder):
        watcher = FileWatcher(project_root=str(tmp_path), on_change=recorder)

        watcher.start()
        try:
            with pytest.raises(RuntimeError, match="already running"):
                watcher.start()
        finally:
            watcher.stop()

    @pytest.mark.integration
    def test_file_create_event(self, tmp_path, recorder):
        root = tmp_path.resolve()
        watcher = FileWatcher(project_root=str(root), on_change=recorder)
        watcher.start()

        try:
            source = root / "new_file.js"
            source.write_text("require('left-pad');\n")

            # Wait for event to be processed
            time.sleep(0.5)

            assert (str(source), "require('left-pad');\n") in recorder.events
        finally:
            watcher.stop()

    @pytest.mark.integration
    def test_ignored_directories_not_reported(self, tmp_path, recorder):
        root = tmp_path.resolve()
        (root / "node_modules").mkdir()
        watcher = FileWatcher(project_root=str(root), on_change=recorder)
        watcher.start()

        try:
            (root / "node_modules" / "dep.js").write_text("require('x');\n")
            (root / "notes.md").write_text("require('x');\n")
            time.sleep(0.5)

            assert recorder.events == []
        finally:
            watcher.stop()
