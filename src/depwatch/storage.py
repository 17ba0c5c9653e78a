# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Storage abstraction for dependency tree persistence.

Components:
- TreeStore: Abstract interface for cache backends
- JsonTreeStore: One JSON snapshot per project under a hidden directory
- InMemoryTreeStore: Non-persistent store for tests and embedding

Cache lifecycle:
- load(): None when the snapshot is absent, empty or corrupt (forces a scan)
- save(tree): Overwrite the whole snapshot
- invalidate(): Delete the snapshot
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from depwatch.models import DependencyTree

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = ".depcheck"
DEFAULT_CACHE_FILE = "cache.json"


class TreeStore(ABC):
    """Abstract storage interface for a project's dependency tree.

    Enables swapping the cache backend without changing the service layer.
    """

    @abstractmethod
    def load(self) -> Optional[DependencyTree]:
        """Read the persisted tree.

        Returns:
            The tree, or None if there is no usable snapshot.
        """
        pass

    @abstractmethod
    def save(self, tree: DependencyTree) -> None:
        """Replace the persisted snapshot with tree.

        Raises:
            OSError: If the snapshot cannot be written.
        """
        pass

    @abstractmethod
    def invalidate(self) -> None:
        """Delete the persisted snapshot (no-op if absent)."""
        pass


class JsonTreeStore(TreeStore):
    """Dependency tree snapshot stored as a JSON object.

    Format: {"module-name": ["/src/a.js", "/src/b.ts"], "unused-lib": []}
    Location: {project_root}/.depcheck/cache.json by default
    """

    def __init__(
        self,
        project_root: str,
        cache_dir: str = DEFAULT_CACHE_DIR,
        cache_file: str = DEFAULT_CACHE_FILE,
    ):
        self.project_root = Path(project_root).resolve()
        self.cache_path = self.project_root / cache_dir / cache_file

    def load(self) -> Optional[DependencyTree]:
        if not self.cache_path.exists():
            logger.debug(f"No dependency cache at {self.cache_path}")
            return None

        try:
            content = self.cache_path.read_text(encoding="utf-8")
            if not content.strip():
                return None
            data = json.loads(content)
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            tree = DependencyTree.from_dict(data)
        except (OSError, UnicodeDecodeError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning(f"Ignoring unreadable dependency cache {self.cache_path}: {e}")
            return None

        if not len(tree):
            return None

        logger.info(f"Loaded dependency cache with {len(tree)} modules from {self.cache_path}")
        return tree

    def save(self, tree: DependencyTree) -> None:
        self.cache_path.parent.mkdir(parents=True, exist_ok=True)

        # Write to a temp file and rename so readers never see a partial snapshot
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.cache_path.parent), prefix=".cache-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(tree.to_dict(), f, indent=2)
            os.replace(tmp_name, self.cache_path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

        logger.debug(f"Saved dependency cache ({len(tree)} modules) to {self.cache_path}")

    def invalidate(self) -> None:
        try:
            self.cache_path.unlink()
            logger.info(f"Deleted dependency cache {self.cache_path}")
        except FileNotFoundError:
            pass


class InMemoryTreeStore(TreeStore):
    """Non-persistent store keeping a private copy of the last saved tree."""

    def __init__(self) -> None:
        self._snapshot: Optional[DependencyTree] = None

    def load(self) -> Optional[DependencyTree]:
        if self._snapshot is None or not len(self._snapshot):
            return None
        return self._snapshot.copy()

    def save(self, tree: DependencyTree) -> None:
        self._snapshot = tree.copy()

    def invalidate(self) -> None:
        self._snapshot = None
