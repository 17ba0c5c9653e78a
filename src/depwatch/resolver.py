# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Unused dependency resolution.

Given a DependencyTree and the declared dependency names, computes which
declared names have no referencing files. Type-only declarations
(``@types/<name>``) are satisfied by their runtime package when that package
is itself declared.
"""

import logging
import re
from typing import Iterable, List, Pattern, Sequence, Set

from depwatch.models import DependencyTree

logger = logging.getLogger(__name__)

TYPES_PREFIX = "@types/"


def compile_ignore_patterns(patterns: Iterable[str]) -> List[Pattern[str]]:
    """Compile ignore-list entries into regular expressions.

    Invalid expressions are logged and skipped rather than failing the caller.

    Args:
        patterns: Regular expression strings, in configuration order.

    Returns:
        Compiled patterns, preserving order.
    """
    compiled: List[Pattern[str]] = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            logger.warning(f"Invalid module ignore pattern {pattern!r}: {e}, skipping")
    return compiled


def is_ignored(name: str, ignore_patterns: Sequence[Pattern[str]]) -> bool:
    """Check if a module name matches any ignore pattern (search semantics)."""
    return any(pattern.search(name) for pattern in ignore_patterns)


def considered_names(
    declared_names: Iterable[str], ignore_patterns: Sequence[Pattern[str]]
) -> Set[str]:
    """Declared names that are not excluded by the ignore list."""
    return {name for name in declared_names if not is_ignored(name, ignore_patterns)}


def runtime_counterpart(name: str) -> str:
    """Map "@types/node" to "node"; other names map to themselves."""
    if name.startswith(TYPES_PREFIX):
        return name[len(TYPES_PREFIX) :]
    return name


def find_unused(
    tree: DependencyTree,
    declared_names: Iterable[str],
    ignore_patterns: Sequence[Pattern[str]],
) -> Set[str]:
    """Compute declared dependencies with zero referencing files.

    Args:
        tree: Current dependency tree.
        declared_names: Merged runtime + development dependency names.
        ignore_patterns: Compiled ignore list; matching names are never reported.

    Returns:
        Set of unused module names.
    """
    declared = set(declared_names)
    unused: Set[str] = set()
    for name in declared:
        if is_ignored(name, ignore_patterns):
            continue
        if name.startswith(TYPES_PREFIX) and runtime_counterpart(name) in declared:
            continue
        if not tree.is_used(name):
            unused.add(name)
    return unused
