# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures: small JavaScript/TypeScript projects on disk."""

import json
from pathlib import Path
from typing import Dict, Optional

import pytest


def write_project(
    root: Path,
    dependencies: Optional[Dict[str, str]] = None,
    dev_dependencies: Optional[Dict[str, str]] = None,
    files: Optional[Dict[str, str]] = None,
) -> Path:
    """Write a package.json and source files under root."""
    root.mkdir(parents=True, exist_ok=True)
    manifest: Dict[str, object] = {"name": "sample", "version": "1.0.0"}
    if dependencies is not None:
        manifest["dependencies"] = dependencies
    if dev_dependencies is not None:
        manifest["devDependencies"] = dev_dependencies
    (root / "package.json").write_text(json.dumps(manifest, indent=2), encoding="utf-8")

    for rel_path, content in (files or {}).items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def scenario_project(tmp_path: Path) -> Path:
    """One source file requiring left-pad; unused-lib declared but unused."""
    return write_project(
        tmp_path / "project",
        dependencies={"left-pad": "1.0.0", "unused-lib": "2.0.0"},
        files={"src/index.js": "const leftPad = require('left-pad');\n"},
    )


@pytest.fixture
def sample_project(tmp_path: Path) -> Path:
    """A representative project with nested dirs, scoped packages and noise.

    Layout:
    - src/app.tsx          imports react, @scope/ui/button, ./local
    - src/util/index.ts    imports lodash/fp, types-only @types/node usage
    - src/legacy.jsx       require('express') inside a comment only
    - lib/server.js        require("express")
    - node_modules/...     references everything (must be skipped)
    - .hidden/x.js         references everything (must be skipped)
    - README.md            not a source file
    """
    return write_project(
        tmp_path / "sample",
        dependencies={
            "react": "^18.0.0",
            "@scope/ui": "1.2.3",
            "lodash": "^4.17.0",
            "express": "^4.0.0",
            "moment": "^2.0.0",
        },
        dev_dependencies={
            "@types/node": "^20.0.0",
            "@types/react": "^18.0.0",
            "jest": "^29.0.0",
        },
        files={
            "src/app.tsx": (
                "import React from 'react';\n"
                "import { Button } from \"@scope/ui/button\";\n"
                "import helper from './local';\n"
            ),
            "src/util/index.ts": (
                "import {\n  map,\n  filter,\n} from 'lodash/fp';\n"
                "export const x = map(filter([]));\n"
            ),
            "src/legacy.jsx": "// const express = require('express');\nmodule.exports = {};\n",
            "lib/server.js": 'const express = require("express");\n',
            "node_modules/moment/index.js": "require('moment'); require('jest');\n",
            ".hidden/x.js": "require('moment'); require('jest');\n",
            "README.md": "require('moment')\n",
        },
    )
