# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Reading declared dependencies from a package.json manifest.

Only the "dependencies" and "devDependencies" mappings are read. A manifest
that fails to parse means "no declared dependencies available yet": loaders
return None and callers defer producing results until a valid manifest is seen.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from depwatch.models import DeclaredDependencySet

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST_FILENAME = "package.json"


class ManifestError(Exception):
    """Raised when manifest content cannot be interpreted."""

    pass


def _read_group(data: Dict[str, Any], key: str) -> Dict[str, str]:
    group = data.get(key)
    if group is None:
        return {}
    if not isinstance(group, dict):
        raise ManifestError(f'"{key}" must be an object, got {type(group).__name__}')
    # Version specs are usually strings; keep other JSON values as text
    return {str(name): str(spec) for name, spec in group.items() if name}


def parse_manifest(text: str) -> DeclaredDependencySet:
    """Parse manifest text into a DeclaredDependencySet.

    Raises:
        ManifestError: If text is not a JSON object or a group is malformed.
    """
    try:
        data = json.loads(text)
    except ValueError as e:
        raise ManifestError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError(f"Manifest must be a JSON object, got {type(data).__name__}")

    return DeclaredDependencySet(
        dependencies=_read_group(data, "dependencies"),
        dev_dependencies=_read_group(data, "devDependencies"),
    )


def load_manifest(path: Path) -> Optional[DeclaredDependencySet]:
    """Load declared dependencies from a manifest file.

    Returns:
        DeclaredDependencySet, or None if the file is missing or malformed.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info(f"No manifest found at {path}")
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Failed to read manifest {path}: {e}")
        return None

    try:
        declared = parse_manifest(text)
    except ManifestError as e:
        logger.warning(f"Ignoring malformed manifest {path}: {e}")
        return None

    logger.debug(f"Loaded {len(declared)} declared dependencies from {path}")
    return declared
