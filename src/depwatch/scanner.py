# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Lexical extraction of module references from JavaScript/TypeScript source.

Recognized reference shapes:
- import x from 'module'   (clause may span several lines)
- import { a, b } from "module/sub/path"
- require('module')

Known Limitations:
- Comment stripping is naive: "//" or "/*" inside string literals are treated
  as comments, e.g. a URL in a string truncates the rest of that line
- Dynamic import('module') and re-exports (export ... from) are not matched
- Side-effect imports (import 'module') are not matched
"""

import re
from pathlib import PurePath
from typing import Set, Union

# Recognized source extensions (two script, two typed-script variants)
SOURCE_EXTENSIONS = frozenset({".js", ".jsx", ".ts", ".tsx"})

_LINE_COMMENT = re.compile(r"//[^\n]*")
_BLOCK_COMMENT = re.compile(r"/\*[\s\S]*?\*/")

_IMPORT_PATTERN = re.compile(r"""import\s*[\s\S]*?\s*from\s*['"](.*?)['"]""")
_REQUIRE_PATTERN = re.compile(r"""require\s*\(\s*['"](.*?)['"]\s*\)""")


def strip_comments(content: str) -> str:
    """Remove line comments, then block comments (non-nested)."""
    return _BLOCK_COMMENT.sub("", _LINE_COMMENT.sub("", content))


def normalize_module_name(spec: str) -> str:
    """Reduce an import specifier to its top-level package name.

    Examples:
        "@scope/pkg/sub/path" -> "@scope/pkg"
        "lodash/fp" -> "lodash"
        "./local" -> "."
        "left-pad" -> "left-pad"
    """
    if spec.startswith("@"):
        parts = spec.split("/", 2)
        return "/".join(parts[:2])
    index = spec.find("/")
    if index != -1:
        return spec[:index]
    return spec


def extract_references(content: str) -> Set[str]:
    """Extract the set of top-level module names referenced by source text.

    Args:
        content: Full text of a source file.

    Returns:
        Normalized module names. Relative specifiers are included (as "."
        or "..") and are expected to be filtered out by the caller.
    """
    stripped = strip_comments(content)
    names: Set[str] = set()
    for pattern in (_IMPORT_PATTERN, _REQUIRE_PATTERN):
        for spec in pattern.findall(stripped):
            # Absolute paths ("/abs/path") normalize to ""
            name = normalize_module_name(spec)
            if name:
                names.add(name)
    return names


def is_source_file(path: Union[str, PurePath]) -> bool:
    """Check if path has one of the recognized source extensions."""
    return PurePath(path).suffix in SOURCE_EXTENSIONS
