# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Locating unused declarations in manifest text for decoration.

A consumer (editor, report printer) renders a grey marker over the quoted
key of each unused dependency. This module only computes positions; it never
touches a UI.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Tuple


@dataclass
class DeclarationLocation:
    """Position of a dependency key in manifest text.

    Lines and columns are 0-based; the range covers the key including its
    quotes, with end_column exclusive.
    """

    name: str
    line: int
    start_column: int
    end_column: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "line": self.line,
            "start_column": self.start_column,
            "end_column": self.end_column,
        }


def _position_at(text: str, offset: int) -> Tuple[int, int]:
    line = text.count("\n", 0, offset)
    line_start = text.rfind("\n", 0, offset) + 1
    return line, offset - line_start


def locate_declarations(manifest_text: str, names: Iterable[str]) -> List[DeclarationLocation]:
    """Find every `"name": "<version>"` entry for the given names.

    A name declared in both dependency groups yields one location per entry.

    Returns:
        Locations ordered by position in the text.
    """
    locations: List[DeclarationLocation] = []
    for name in names:
        pattern = re.compile(r'"' + re.escape(name) + r'"\s*:\s*".*?"')
        for match in pattern.finditer(manifest_text):
            line, column = _position_at(manifest_text, match.start())
            locations.append(
                DeclarationLocation(
                    name=name,
                    line=line,
                    start_column=column,
                    end_column=column + len(name) + 2,
                )
            )
    locations.sort(key=lambda loc: (loc.line, loc.start_column))
    return locations
