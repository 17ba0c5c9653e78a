# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""MCP Server Protocol Layer for depwatch.

This module exposes the engine's commands to a host (editor, agent) over MCP
and contains no business logic: every tool delegates to
DependencyUsageService.
"""

import argparse
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.session import ServerSession

from depwatch.config import Config
from depwatch.logging_setup import setup_logging
from depwatch.service import DependencyUsageService

logger = logging.getLogger(__name__)


class DepwatchMCPServer:
    """MCP Protocol Layer for dependency usage tracking.

    Responsibilities:
    - Initialize the MCP server and register tools
    - Start the engine (cache load or cold scan, file watching) on first use
    - Translate tool invocations into service calls
    - Shut the engine down with the server
    """

    def __init__(
        self,
        project_root: Optional[Path] = None,
        config: Optional[Config] = None,
        service: Optional[DependencyUsageService] = None,
    ):
        """Initialize MCP server.

        Args:
            project_root: Project to analyze. If None, uses the current directory.
            config: Configuration object. If None, loads from the project root.
            service: Service layer instance. If None, creates one for project_root.
        """
        if project_root is None:
            project_root = Path.cwd()
        project_root = Path(project_root).resolve()

        if config is None:
            config = Config.for_project(project_root)
        self.config = config

        if service is None:
            service = DependencyUsageService(str(project_root), config=config)
        self.service = service

        self._started = False
        self.mcp = FastMCP(name="depwatch", lifespan=self._lifespan)
        self._register_tools()

        logger.info("DepwatchMCPServer initialized")

    @asynccontextmanager
    async def _lifespan(self, _server: FastMCP) -> AsyncIterator[Dict[str, Any]]:
        await self.ensure_started()
        try:
            yield {}
        finally:
            await self.shutdown()

    async def ensure_started(self) -> None:
        """Start the engine once: load manifest and cache, then watch files."""
        if self._started:
            return
        self._started = True
        await self.service.start()
        if self.config.watch_files:
            self.service.start_watching()

    def _register_tools(self) -> None:
        """Register MCP tools with the server.

        Registers:
        - get_unused_dependencies: Unused declared dependencies + manifest positions
        - get_dependency_tree: Module -> referencing files mapping
        - notify_file_changed: Per-edit event from the host
        - clear_cache: Delete the cache and forget the tree
        - refresh_cache: Clear and rebuild with progress reporting
        """

        @self.mcp.tool()
        async def get_unused_dependencies(
            ctx: Context[ServerSession, None],
        ) -> Dict[str, Any]:
            """List declared dependencies that no source file references.

            Returns:
                Dictionary with:
                - available: False when no valid package.json has been seen
                - unused, files_processed, elapsed_seconds, from_cache, hover_message
                - locations: positions of unused keys in package.json
            """
            await self.ensure_started()
            await self.service.ensure_tree()
            report = self.service.get_report()
            if report is None:
                await ctx.info("No valid manifest available yet")
                return {"available": False, "unused": [], "locations": []}

            response: Dict[str, Any] = {"available": True}
            response.update(report.to_dict())
            response["locations"] = [
                loc.to_dict() for loc in self.service.locate_unused_declarations()
            ]
            return response

        @self.mcp.tool()
        async def get_dependency_tree(
            ctx: Context[ServerSession, None],
        ) -> Dict[str, Any]:
            """Export the mapping of each tracked dependency to the files using it."""
            await self.ensure_started()
            tree = await self.service.ensure_tree()
            if tree is None:
                await ctx.info("No dependency tree available yet")
                return {"available": False, "tree": {}}
            return {"available": True, "tree": tree.to_dict()}

        @self.mcp.tool()
        async def notify_file_changed(
            file_path: str,
            content: str,
            ctx: Context[ServerSession, None],
            wait: bool = False,
        ) -> Dict[str, Any]:
            """Report an edited file's full content (e.g. an unsaved buffer).

            Edits are debounced per file; package.json edits reload the
            declared dependencies.

            Args:
                file_path: Absolute path or path relative to the project root
                content: Full new text of the file
                wait: Wait for the debounced update and return its result
            """
            await self.ensure_started()
            future = self.service.schedule_file_change(file_path, content)
            if not wait:
                return {"scheduled": True}

            record = await future
            if record is None:
                return {"scheduled": True, "applied": False}
            return {
                "scheduled": True,
                "applied": True,
                "added": sorted(record.added),
                "removed": sorted(record.removed),
            }

        @self.mcp.tool()
        async def clear_cache(ctx: Context[ServerSession, None]) -> Dict[str, Any]:
            """Delete the dependency cache without rebuilding it."""
            await self.ensure_started()
            await self.service.clear_cache()
            await ctx.info("Dependency cache cleared")
            return {"cleared": True}

        @self.mcp.tool()
        async def refresh_cache(ctx: Context[ServerSession, None]) -> Dict[str, Any]:
            """Clear the dependency cache and rebuild it from a full project scan."""
            await self.ensure_started()
            await ctx.info("Refreshing the dependency cache.")

            async def _progress(files_processed: int, _tree_path: str) -> None:
                await ctx.report_progress(files_processed)

            report = await self.service.refresh_cache(progress=_progress)
            if report is None:
                return {"available": False, "unused": []}
            response: Dict[str, Any] = {"available": True}
            response.update(report.to_dict())
            return response

        logger.info(
            "MCP tools registered: get_unused_dependencies, get_dependency_tree, "
            "notify_file_changed, clear_cache, refresh_cache"
        )

    def run(self, transport: str = "stdio") -> None:
        """Run the MCP server.

        Args:
            transport: "stdio" (default), "streamable-http" or "sse".
        """
        logger.info(f"Starting MCP server with {transport} transport")
        self.mcp.run(transport=transport)  # type: ignore[arg-type]

    async def shutdown(self) -> None:
        """Shutdown the engine and cleanup resources."""
        logger.info("Shutting down MCP server")
        await self.service.shutdown()
        self._started = False


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="depwatch: track which declared dependencies a project uses",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--project-root",
        type=Path,
        default=Path.cwd(),
        help="Project directory containing package.json. Default: current directory",
    )
    parser.add_argument(
        "--transport",
        type=str,
        choices=["stdio", "streamable-http", "sse"],
        default="stdio",
        help="Transport type for MCP server. Default: stdio",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Write structured JSON logs to this directory",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list] = None) -> None:
    """Main entry point for the MCP server."""
    args = parse_args(argv)
    log_level = logging.DEBUG if args.verbose else logging.INFO

    if args.log_dir is not None:
        setup_logging(log_dir=args.log_dir, log_level=log_level)
    else:
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

    server = DepwatchMCPServer(project_root=args.project_root)
    logger.info(f"Starting MCP server for project_root={server.service.project_root}")
    server.run(transport=args.transport)


if __name__ == "__main__":
    main()
