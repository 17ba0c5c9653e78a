# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Core data models for dependency usage tracking.

This module defines the fixed-shape records passed between components:
- DependencyTree: module name -> ordered set of referencing files
- DeclaredDependencySet: merged runtime + development declarations
- ReferenceRecord: before/after references of one file during an update
- ScanResult: outcome of a full tree walk
- UnusedReport: what a consumer needs to decorate unused declarations

All models serialize to JSON-compatible primitives.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Set

logger = logging.getLogger(__name__)

# Message shown when the report was produced without walking the tree
CACHED_HOVER_MESSAGE = "Using cached value"


class DependencyTree:
    """Mapping of module name to the files that reference it.

    File paths are project-root-relative, forward-slash separated and start
    with "/" (e.g. "/src/index.js"). Each module's paths keep insertion order
    and never contain duplicates, so repeated adds are idempotent.

    An empty file set is meaningful: the module is tracked (declared) but no
    file references it.

    Thread Safety:
    - NOT thread-safe: mutate from a single owner (the event loop thread)
    """

    def __init__(self, entries: Optional[Mapping[str, Iterable[str]]] = None) -> None:
        # dict keys give us an insertion-ordered set
        self._modules: Dict[str, Dict[str, None]] = {}
        if entries:
            for name, paths in entries.items():
                self.track(name)
                for path in paths:
                    self.add_reference(name, path)

    def track(self, module_name: str) -> None:
        """Ensure an entry exists for module_name (possibly empty)."""
        if not module_name:
            raise ValueError("Module name cannot be empty")
        self._modules.setdefault(module_name, {})

    def add_reference(self, module_name: str, file_path: str) -> bool:
        """Record that file_path references module_name.

        Returns:
            True if the path was newly added, False if it was already present.
        """
        self.track(module_name)
        paths = self._modules[module_name]
        if file_path in paths:
            return False
        paths[file_path] = None
        return True

    def remove_reference(self, module_name: str, file_path: str) -> bool:
        """Forget that file_path references module_name.

        The module entry itself is kept, even when it becomes empty.

        Returns:
            True if the path was removed, False if it was not recorded.
        """
        paths = self._modules.get(module_name)
        if paths is None or file_path not in paths:
            return False
        del paths[file_path]
        return True

    def modules_referenced_by(self, file_path: str) -> Set[str]:
        """Get the names of all modules whose file set contains file_path."""
        return {name for name, paths in self._modules.items() if file_path in paths}

    def files_for(self, module_name: str) -> List[str]:
        """Get referencing files for a module (empty list if untracked)."""
        return list(self._modules.get(module_name, ()))

    def is_used(self, module_name: str) -> bool:
        return bool(self._modules.get(module_name))

    def module_names(self) -> List[str]:
        return list(self._modules)

    def to_dict(self) -> Dict[str, List[str]]:
        """Serialize to JSON-compatible dict."""
        return {name: list(paths) for name, paths in self._modules.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DependencyTree":
        """Deserialize from JSON-compatible dict.

        Raises:
            ValueError: If data does not have the {name: [paths]} shape.
        """
        tree = cls()
        for name, paths in data.items():
            if not isinstance(name, str) or not isinstance(paths, list):
                raise ValueError(f"Invalid dependency tree entry: {name!r}")
            tree.track(name)
            for path in paths:
                if not isinstance(path, str):
                    raise ValueError(f"Invalid file path for {name!r}: {path!r}")
                tree.add_reference(name, path)
        return tree

    def copy(self) -> "DependencyTree":
        return DependencyTree.from_dict(self.to_dict())

    def __contains__(self, module_name: object) -> bool:
        return module_name in self._modules

    def __iter__(self) -> Iterator[str]:
        return iter(self._modules)

    def __len__(self) -> int:
        return len(self._modules)

    def __eq__(self, other: object) -> bool:
        # Order-insensitive comparison of file sets
        if not isinstance(other, DependencyTree):
            return NotImplemented
        if set(self._modules) != set(other._modules):
            return False
        return all(set(paths) == set(other._modules[name]) for name, paths in self._modules.items())

    def __repr__(self) -> str:
        return f"DependencyTree({self.to_dict()!r})"


@dataclass
class DeclaredDependencySet:
    """Dependencies declared by a project manifest.

    Holds the runtime and development groups separately so callers can tell
    them apart; ``versions`` merges both with runtime specs taking precedence.
    """

    dependencies: Dict[str, str] = field(default_factory=dict)
    dev_dependencies: Dict[str, str] = field(default_factory=dict)

    @property
    def versions(self) -> Dict[str, str]:
        merged = dict(self.dev_dependencies)
        merged.update(self.dependencies)
        return merged

    @property
    def names(self) -> Set[str]:
        return set(self.dependencies) | set(self.dev_dependencies)

    def __contains__(self, name: object) -> bool:
        return name in self.dependencies or name in self.dev_dependencies

    def __len__(self) -> int:
        return len(self.names)


@dataclass
class ReferenceRecord:
    """References of one file before and after an edit.

    ``added`` only contains names that are declared dependencies, since
    undeclared references (relative paths, builtins) never enter the tree.
    """

    file_path: str
    previous: Set[str]
    current: Set[str]
    declared: Set[str] = field(default_factory=set)

    @property
    def removed(self) -> Set[str]:
        return self.previous - self.current

    @property
    def added(self) -> Set[str]:
        return (self.current - self.previous) & self.declared

    @property
    def unchanged(self) -> Set[str]:
        return self.previous & self.current

    @property
    def changed(self) -> bool:
        return bool(self.removed or self.added)


@dataclass
class ScanResult:
    """Result of a full tree walk."""

    tree: DependencyTree
    unused: Set[str]
    files_processed: int = 0
    elapsed_seconds: float = 0.0


@dataclass
class UnusedReport:
    """Unused declared dependencies for a project.

    Attributes:
        unused: Sorted names of declared dependencies with no references
        files_processed: Source files read by the scan that produced the tree
            (0 when the tree came from cache or incremental updates)
        elapsed_seconds: Duration of that scan
        from_cache: True if no full scan ran for this report
    """

    unused: List[str]
    files_processed: int = 0
    elapsed_seconds: float = 0.0
    from_cache: bool = True

    @property
    def hover_message(self) -> str:
        """Message a consumer shows next to each unused declaration."""
        if self.from_cache or not self.files_processed:
            return CACHED_HOVER_MESSAGE
        return (
            f"This module is not used (searched {self.files_processed} files "
            f"in {self.elapsed_seconds:.3f}s)"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for MCP response."""
        return {
            "unused": list(self.unused),
            "files_processed": self.files_processed,
            "elapsed_seconds": self.elapsed_seconds,
            "from_cache": self.from_cache,
            "hover_message": self.hover_message,
        }
