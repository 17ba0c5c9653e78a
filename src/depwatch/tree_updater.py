# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Incremental dependency tree updates for single-file edits.

On a file content change, only that file is re-scanned:
1. Collect modules whose file set currently contains the file
2. Scan the new content
3. Remove the file from modules it no longer references
4. Add the file to newly referenced modules, if they are declared
5. Leave modules referenced both before and after untouched

The cost is independent of project size; no other file is read.
"""

import logging
import time
from typing import Iterable

from depwatch.models import DependencyTree, ReferenceRecord
from depwatch.scanner import extract_references

logger = logging.getLogger(__name__)


def apply_edit(
    tree: DependencyTree,
    file_path: str,
    new_content: str,
    declared_names: Iterable[str],
) -> ReferenceRecord:
    """Patch tree in place for one file's new content.

    Applying the same content twice leaves the tree unchanged the second time.

    Args:
        tree: Dependency tree to mutate.
        file_path: Project-root-relative path ("/src/index.js").
        new_content: Full text of the file after the edit.
        declared_names: Names eligible for new references.

    Returns:
        ReferenceRecord describing the diff that was applied.
    """
    start_time = time.time()

    record = ReferenceRecord(
        file_path=file_path,
        previous=tree.modules_referenced_by(file_path),
        current=extract_references(new_content),
        declared=set(declared_names),
    )

    for name in record.removed:
        tree.remove_reference(name, file_path)
    for name in record.added:
        tree.add_reference(name, file_path)

    elapsed = time.time() - start_time
    logger.debug(
        f"Updated references for {file_path} in {elapsed * 1000:.1f}ms: "
        f"+{sorted(record.added)} -{sorted(record.removed)}"
    )
    return record


def remove_file(tree: DependencyTree, file_path: str) -> ReferenceRecord:
    """Drop every reference recorded for a deleted file."""
    return apply_edit(tree, file_path, "", ())
