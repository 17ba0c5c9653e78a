# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""DependencyUsageService - per-project engine for dependency usage tracking.

One instance owns everything for one project root:
- Declared dependency snapshot (from package.json)
- DependencyTree (built by a full scan or loaded from cache)
- TreeStore (persisted snapshot)
- Debouncer for edit bursts and refresh requests
- An asyncio.Lock serializing full scans and incremental updates

Workflows:
- Cold start: load manifest, load cache; scan the project if no usable cache
- Warm path: a file edit is debounced, then patched into the tree with
  tree_updater.apply_edit and the snapshot is saved
- Manifest edit: reload the declared set; rescan if new names appear
- Clear cache: delete snapshot, drop the in-memory tree
- Refresh cache: clear, then a debounced full rebuild (awaitable)

Listeners registered with add_listener() receive the new UnusedReport after
every rebuild and update (None when no result is available).
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Pattern, Set

from depwatch.config import Config
from depwatch.debounce import Debouncer
from depwatch.file_watcher import FileWatcher
from depwatch.manifest import ManifestError, load_manifest, parse_manifest
from depwatch.models import (
    DeclaredDependencySet,
    DependencyTree,
    ReferenceRecord,
    ScanResult,
    UnusedReport,
)
from depwatch.report import DeclarationLocation, locate_declarations
from depwatch.resolver import compile_ignore_patterns, considered_names, find_unused
from depwatch.scanner import is_source_file
from depwatch.storage import JsonTreeStore, TreeStore
from depwatch.tree_updater import apply_edit, remove_file
from depwatch.tree_walker import ProgressCallback, TreeWalker, to_tree_path

logger = logging.getLogger(__name__)

# Debounce key for full rebuilds, distinct from any file path
REBUILD_KEY = ("depwatch", "rebuild")

ReportListener = Callable[[Optional[UnusedReport]], None]


class DependencyUsageService:
    """Business logic coordinator for one project's dependency usage."""

    def __init__(
        self,
        project_root: str,
        config: Optional[Config] = None,
        store: Optional[TreeStore] = None,
    ):
        """Initialize the service.

        Args:
            project_root: Project directory containing the manifest.
            config: Configuration. If None, loads .depwatch.yml from project_root.
            store: Cache backend. If None, uses a JSON snapshot in the project.
        """
        self.project_root = Path(project_root).resolve()
        if config is None:
            config = Config.for_project(self.project_root)
        self.config = config

        if store is None:
            store = JsonTreeStore(
                str(self.project_root),
                cache_dir=config.cache_dir,
                cache_file=config.cache_file,
            )
        self.store = store

        self.manifest_path = self.project_root / config.manifest_filename
        self.ignore_patterns: List[Pattern[str]] = compile_ignore_patterns(
            config.module_ignore_list
        )

        self._declared: Optional[DeclaredDependencySet] = None
        self._tree: Optional[DependencyTree] = None
        self._last_scan: Optional[ScanResult] = None
        self._lock = asyncio.Lock()
        self._debouncer = Debouncer(delay=config.debounce_seconds)
        self._listeners: List[ReportListener] = []
        self._watcher: Optional[FileWatcher] = None

        logger.info(f"DependencyUsageService initialized for {self.project_root}")

    @property
    def declared(self) -> Optional[DeclaredDependencySet]:
        return self._declared

    @property
    def tree(self) -> Optional[DependencyTree]:
        return self._tree

    @property
    def debouncer(self) -> Debouncer:
        return self._debouncer

    def tracked_names(self) -> Set[str]:
        """Declared names not excluded by the ignore list."""
        if self._declared is None:
            return set()
        return considered_names(self._declared.names, self.ignore_patterns)

    def _untracked_names(self) -> Set[str]:
        """Tracked names the current tree has never looked for."""
        if self._tree is None:
            return set()
        return {name for name in self.tracked_names() if name not in self._tree}

    # Lifecycle

    async def start(self) -> Optional[UnusedReport]:
        """Load manifest and cache, scanning the project if the cache is stale.

        The cache is stale when missing or when it does not track every
        declared name.

        Returns:
            Current report, or None if no valid manifest exists yet.
        """
        declared = await asyncio.to_thread(load_manifest, self.manifest_path)
        async with self._lock:
            self._declared = declared
            if self._tree is None:
                self._tree = await asyncio.to_thread(self.store.load)
            untracked = self._untracked_names()

        if untracked:
            # The manifest changed while the engine was stopped
            logger.info(f"Cached tree does not track {sorted(untracked)}, rescanning")
        if self._tree is None or untracked:
            await self.rebuild()
        else:
            self._notify_listeners()
        return self.get_report()

    async def shutdown(self) -> None:
        """Stop watching, drop pending work and wait for running updates."""
        self.stop_watching()
        self._debouncer.cancel_all()
        await self._debouncer.wait_idle()
        logger.info("DependencyUsageService shut down")

    # Full scan

    async def rebuild(self, progress: Optional[ProgressCallback] = None) -> Optional[ScanResult]:
        """Run a full scan and replace the tree.

        Incremental updates wait for the scan to finish. Without a valid
        manifest the scan is deferred and None is returned.
        """
        async with self._lock:
            if self._declared is None:
                logger.info("No valid manifest available, deferring dependency scan")
                return None

            walker = TreeWalker(
                str(self.project_root),
                install_dir=self.config.install_dir,
                max_concurrent_reads=self.config.max_concurrent_reads,
                progress=progress,
            )
            result = await walker.scan(self._declared.names, self.ignore_patterns)
            self._tree = result.tree
            self._last_scan = result
            await self._save()

        self._notify_listeners()
        return result

    async def ensure_tree(self) -> Optional[DependencyTree]:
        """Get the tree, scanning the project first if none is loaded."""
        if self._tree is None:
            await self.rebuild()
        return self._tree

    # Cache commands

    async def clear_cache(self) -> None:
        """Delete the persisted snapshot and forget the in-memory tree."""
        async with self._lock:
            await asyncio.to_thread(self.store.invalidate)
            self._tree = None
            self._last_scan = None
        logger.info("Dependency cache cleared")
        self._notify_listeners()

    async def refresh_cache(
        self, progress: Optional[ProgressCallback] = None
    ) -> Optional[UnusedReport]:
        """Clear the cache and rebuild it.

        The rebuild is debounced: a second refresh before it starts supersedes
        the first, and every caller receives the report of the rebuild that ran.
        """
        await self.clear_cache()
        return await self._debouncer.schedule(
            REBUILD_KEY, lambda: self._rebuild_and_report(progress)
        )

    async def _rebuild_and_report(
        self, progress: Optional[ProgressCallback] = None
    ) -> Optional[UnusedReport]:
        await self.rebuild(progress=progress)
        return self.get_report()

    # Edits

    def schedule_file_change(
        self, file_path: str, content: str, key: Optional[str] = None
    ) -> "asyncio.Future[Any]":
        """Debounce an edit; only the last content within the window is applied.

        Args:
            file_path: Absolute path, or path relative to the project root.
            content: Full new text of the file.
            key: Debounce key; defaults to file_path.

        Returns:
            Future resolved with the ReferenceRecord (or None) once applied.
        """
        return self._debouncer.schedule(
            key or file_path, lambda: self.apply_file_change(file_path, content)
        )

    def schedule_file_deleted(self, file_path: str) -> "asyncio.Future[Any]":
        return self._debouncer.schedule(file_path, lambda: self.apply_file_deleted(file_path))

    async def apply_file_change(self, file_path: str, content: str) -> Optional[ReferenceRecord]:
        """Apply one file's new content immediately.

        Manifest edits reload the declared set instead of scanning. Files
        outside the project, in skipped directories or without a source
        extension are ignored.

        Returns:
            ReferenceRecord for source files, None otherwise.
        """
        path = self._resolve(file_path)
        if path is None:
            return None

        if path == self.manifest_path:
            await self._reload_manifest(content)
            return None

        tree_path = self._tree_path_for(path)
        if tree_path is None:
            return None

        async with self._lock:
            if self._tree is None or self._declared is None:
                logger.debug(f"No dependency tree yet, ignoring edit to {tree_path}")
                return None
            record = apply_edit(self._tree, tree_path, content, self.tracked_names())
            self._last_scan = None
            await self._save()

        if record.changed:
            logger.info(
                f"References changed in {tree_path}: added {sorted(record.added)}, "
                f"removed {sorted(record.removed)}",
                extra={
                    "extra_fields": {
                        "event": "incremental_update",
                        "file_path": tree_path,
                        "added": sorted(record.added),
                        "removed": sorted(record.removed),
                    }
                },
            )
        self._notify_listeners()
        return record

    async def apply_file_deleted(self, file_path: str) -> Optional[ReferenceRecord]:
        """Drop a deleted source file's references."""
        path = self._resolve(file_path)
        if path is None or path == self.manifest_path:
            return None

        tree_path = self._tree_path_for(path)
        if tree_path is None:
            return None

        async with self._lock:
            if self._tree is None:
                return None
            record = remove_file(self._tree, tree_path)
            self._last_scan = None
            await self._save()

        self._notify_listeners()
        return record

    async def _reload_manifest(self, content: str) -> None:
        try:
            declared = parse_manifest(content)
        except ManifestError as e:
            logger.warning(f"Manifest edit is not valid yet, keeping previous declarations: {e}")
            return

        async with self._lock:
            self._declared = declared
            has_tree = self._tree is not None
            untracked = self._untracked_names()
        logger.info(f"Reloaded manifest: {len(declared)} declared dependencies")

        if not has_tree or untracked:
            # Names the tree has never looked for need a full scan
            if untracked:
                logger.info(f"New dependencies declared {sorted(untracked)}, scheduling rescan")
            self._debouncer.schedule(REBUILD_KEY, self._rebuild_and_report)
        else:
            self._notify_listeners()

    # Queries

    def get_report(self) -> Optional[UnusedReport]:
        """Compute unused declared dependencies from the current tree.

        Returns:
            UnusedReport, or None when no manifest or tree is available.
        """
        if self._declared is None or self._tree is None:
            return None

        unused = find_unused(self._tree, self._declared.names, self.ignore_patterns)
        scan = self._last_scan
        return UnusedReport(
            unused=sorted(unused),
            files_processed=scan.files_processed if scan else 0,
            elapsed_seconds=scan.elapsed_seconds if scan else 0.0,
            from_cache=scan is None,
        )

    def get_dependency_tree(self) -> Optional[Dict[str, List[str]]]:
        if self._tree is None:
            return None
        return self._tree.to_dict()

    def locate_unused_declarations(
        self, manifest_text: Optional[str] = None
    ) -> List[DeclarationLocation]:
        """Positions of unused dependency keys in the manifest text.

        Args:
            manifest_text: Current manifest text (e.g. an unsaved buffer).
                If None, reads the manifest from disk.
        """
        report = self.get_report()
        if report is None or not report.unused:
            return []
        if manifest_text is None:
            try:
                manifest_text = self.manifest_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Failed to read manifest {self.manifest_path}: {e}")
                return []
        return locate_declarations(manifest_text, report.unused)

    # Listeners

    def add_listener(self, listener: ReportListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: ReportListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify_listeners(self) -> None:
        report = self.get_report()
        for listener in self._listeners:
            try:
                listener(report)
            except Exception as e:
                # One failing consumer must not break the engine or other consumers
                logger.error(f"Report listener failed: {e}")

    # File watching

    def start_watching(self) -> None:
        """Watch the project directory and feed changes through the debouncer.

        Must be called from the event loop thread.
        """
        if self._watcher is not None and self._watcher.is_running():
            return

        loop = asyncio.get_running_loop()

        def _on_change(path: str, content: Optional[str]) -> None:
            # Called on the watchdog thread
            loop.call_soon_threadsafe(self._dispatch_disk_change, path, content)

        self._watcher = FileWatcher(
            project_root=str(self.project_root),
            on_change=_on_change,
            install_dir=self.config.install_dir,
            manifest_filename=self.config.manifest_filename,
        )
        self._watcher.start()

    def stop_watching(self) -> None:
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None

    def _dispatch_disk_change(self, path: str, content: Optional[str]) -> None:
        if content is None:
            self.schedule_file_deleted(path)
        else:
            self.schedule_file_change(path, content)

    # Helpers

    async def _save(self) -> None:
        """Persist the tree; a failed write is logged, never raised."""
        if self._tree is None:
            return
        try:
            await asyncio.to_thread(self.store.save, self._tree)
        except OSError as e:
            logger.error(f"Failed to save dependency cache: {e}")

    def _resolve(self, file_path: str) -> Optional[Path]:
        """Resolve file_path against the project root, rejecting outside paths."""
        path = Path(file_path)
        if not path.is_absolute():
            path = self.project_root / path
        path = path.resolve()
        try:
            path.relative_to(self.project_root)
        except ValueError:
            logger.warning(f"Ignoring change to file outside project root: {file_path}")
            return None
        return path

    def _tree_path_for(self, path: Path) -> Optional[str]:
        """Tree path for an eligible source file, or None if the walk would skip it."""
        if not is_source_file(path):
            return None
        relative_parts = path.relative_to(self.project_root).parts
        for part in relative_parts:
            if part.startswith(".") or part == self.config.install_dir:
                return None
        return to_tree_path(self.project_root, path)
