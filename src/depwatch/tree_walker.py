# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Full project scan building a DependencyTree from scratch.

The walk is a structured fan-out/fan-in recursion:
- Each directory lists its entries in a worker thread
- All children (files and sub-directories) are visited concurrently
- The directory completes only after asyncio.gather joins every child

Filtering:
- Entries whose name starts with "." are skipped (hidden files, .git, cache)
- The dependency install directory ("node_modules") is skipped
- Only files with a recognized source extension are read

Failure Isolation:
- A listing, stat, read or decode failure on one entry is logged and the
  entry contributes nothing; siblings and the overall scan continue

Thread Safety:
- File I/O runs in worker threads via asyncio.to_thread
- Tree mutations happen only on the event loop thread after the read
  completes, so the loop is the single owner of the tree
"""

import asyncio
import logging
import os
import stat
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Iterable, List, Optional, Pattern, Sequence, Set, Tuple

from depwatch.models import DependencyTree, ScanResult
from depwatch.resolver import considered_names
from depwatch.scanner import extract_references, is_source_file

logger = logging.getLogger(__name__)

DEFAULT_INSTALL_DIR = "node_modules"

# Progress callback signature: (files_processed, tree_path) -> awaitable
ProgressCallback = Callable[[int, str], Awaitable[None]]


def to_tree_path(project_root: Path, path: Path) -> str:
    """Convert an absolute path to the tree's "/relative/posix" form.

    Raises:
        ValueError: If path is not inside project_root.
    """
    relative = Path(path).relative_to(project_root)
    return "/" + relative.as_posix()


@dataclass
class _WalkState:
    """Mutable state shared by one scan's concurrent branches."""

    tree: DependencyTree
    names: Set[str]
    unused: Set[str]
    semaphore: asyncio.Semaphore
    files_processed: int = 0
    visited_dirs: Set[Tuple[int, int]] = field(default_factory=set)


class TreeWalker:
    """Recursive, filtered walk of a project tree.

    Usage:
        walker = TreeWalker(project_root="/path/to/project")
        result = await walker.scan({"left-pad", "react"}, ignore_patterns=[])
    """

    def __init__(
        self,
        project_root: str,
        install_dir: str = DEFAULT_INSTALL_DIR,
        max_concurrent_reads: int = 64,
        progress: Optional[ProgressCallback] = None,
    ):
        """Initialize TreeWalker.

        Args:
            project_root: Directory to walk; tree paths are relative to it.
            install_dir: Name of the dependency install directory to skip.
            max_concurrent_reads: Upper bound on in-flight file reads.
            progress: Optional coroutine called after each source file.
        """
        self.project_root = Path(project_root).resolve()
        self.install_dir = install_dir
        self.max_concurrent_reads = max_concurrent_reads
        self.progress = progress

    def should_skip(self, name: str) -> bool:
        """Check if a directory entry is excluded from the walk."""
        return name.startswith(".") or name == self.install_dir

    async def scan(
        self,
        declared_names: Iterable[str],
        ignore_patterns: Sequence[Pattern[str]] = (),
    ) -> ScanResult:
        """Walk the whole project and record which declared modules are used.

        Args:
            declared_names: Declared dependency names to look for.
            ignore_patterns: Compiled ignore list; matching names are not tracked.

        Returns:
            ScanResult with the new tree (one entry per tracked name, empty
            when unused) and the names never referenced.
        """
        start_time = time.time()
        names = considered_names(declared_names, ignore_patterns)

        tree = DependencyTree()
        for name in sorted(names):
            tree.track(name)

        state = _WalkState(
            tree=tree,
            names=names,
            unused=set(names),
            semaphore=asyncio.Semaphore(self.max_concurrent_reads),
        )
        try:
            root_stat = os.stat(self.project_root)
            state.visited_dirs.add((root_stat.st_dev, root_stat.st_ino))
        except OSError as e:
            logger.warning(f"Project root is not accessible {self.project_root}: {e}")
        await self._walk_directory(self.project_root, state)

        elapsed = time.time() - start_time
        logger.info(
            f"Scanned {state.files_processed} files in {elapsed * 1000:.1f}ms: "
            f"{len(names) - len(state.unused)} used, {len(state.unused)} unused",
            extra={
                "extra_fields": {
                    "event": "full_scan",
                    "project_root": str(self.project_root),
                    "files_processed": state.files_processed,
                    "elapsed_ms": round(elapsed * 1000, 1),
                    "tracked": len(names),
                    "unused": sorted(state.unused),
                }
            },
        )
        return ScanResult(
            tree=tree,
            unused=state.unused,
            files_processed=state.files_processed,
            elapsed_seconds=elapsed,
        )

    async def _walk_directory(self, directory: Path, state: _WalkState) -> None:
        try:
            entries = await asyncio.to_thread(_list_directory, directory)
        except OSError as e:
            logger.debug(f"Skipping unlistable directory {directory}: {e}")
            return

        await asyncio.gather(
            *(
                self._visit_entry(directory / name, state)
                for name in entries
                if not self.should_skip(name)
            )
        )

    async def _visit_entry(self, path: Path, state: _WalkState) -> None:
        try:
            st = await asyncio.to_thread(os.stat, path)
        except OSError as e:
            logger.debug(f"Skipping entry that cannot be stat'ed {path}: {e}")
            return

        if stat.S_ISDIR(st.st_mode):
            # Symlinked directories can form cycles
            key = (st.st_dev, st.st_ino)
            if key in state.visited_dirs:
                return
            state.visited_dirs.add(key)
            await self._walk_directory(path, state)
        elif stat.S_ISREG(st.st_mode) and is_source_file(path):
            await self._scan_file(path, state)

    async def _scan_file(self, path: Path, state: _WalkState) -> None:
        try:
            async with state.semaphore:
                content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Skipping unreadable file {path}: {e}")
            return

        tree_path = to_tree_path(self.project_root, path)
        state.files_processed += 1

        for name in extract_references(content) & state.names:
            state.tree.add_reference(name, tree_path)
            state.unused.discard(name)

        if self.progress is not None:
            await self.progress(state.files_processed, tree_path)


def _list_directory(directory: Path) -> List[str]:
    return sorted(os.listdir(directory))


async def scan(
    project_root: str,
    declared_names: Iterable[str],
    ignore_patterns: Sequence[Pattern[str]] = (),
    install_dir: str = DEFAULT_INSTALL_DIR,
) -> ScanResult:
    """Walk project_root once with default settings."""
    walker = TreeWalker(project_root, install_dir=install_dir)
    return await walker.scan(declared_names, ignore_patterns)
