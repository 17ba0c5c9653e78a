# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""depwatch: incremental tracking of used and unused declared dependencies."""

from .config import Config
from .debounce import Debouncer
from .manifest import ManifestError, load_manifest, parse_manifest
from .models import (
    DeclaredDependencySet,
    DependencyTree,
    ReferenceRecord,
    ScanResult,
    UnusedReport,
)
from .report import DeclarationLocation, locate_declarations
from .resolver import compile_ignore_patterns, find_unused
from .scanner import extract_references, normalize_module_name, strip_comments
from .service import DependencyUsageService
from .storage import InMemoryTreeStore, JsonTreeStore, TreeStore
from .tree_updater import apply_edit, remove_file
from .tree_walker import TreeWalker, scan

__version__ = "0.1.0"

__all__ = [
    "Config",
    "Debouncer",
    "DeclarationLocation",
    "DeclaredDependencySet",
    "DependencyTree",
    "DependencyUsageService",
    "InMemoryTreeStore",
    "JsonTreeStore",
    "ManifestError",
    "ReferenceRecord",
    "ScanResult",
    "TreeStore",
    "TreeWalker",
    "UnusedReport",
    "apply_edit",
    "compile_ignore_patterns",
    "extract_references",
    "find_unused",
    "load_manifest",
    "locate_declarations",
    "normalize_module_name",
    "parse_manifest",
    "remove_file",
    "scan",
    "strip_comments",
]

# Conditional import for MCP server (requires Python 3.10+ and mcp package)
try:
    from .mcp_server import DepwatchMCPServer

    __all__.append("DepwatchMCPServer")
except ImportError:
    # MCP package not available
    pass
