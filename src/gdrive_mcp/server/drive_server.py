"""Google Drive MCP server for Claude Desktop integration.

Serves the Drive tool table over stdio. The DriveClient is built once at
startup from tokens.json and handed to the dispatcher; renewed access tokens
are merged back into tokens.json by the client's refresh observer.
"""

import asyncio
import logging
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from gdrive_mcp.__version__ import __version__
from gdrive_mcp.server.dispatcher import ToolDispatcher
from gdrive_mcp.server.drive_client import DriveClient, get_authenticated_client

logger = logging.getLogger(__name__)

SERVER_NAME = "gdrive"


class DriveMCPServer:
    """MCP server exposing the Drive tools.

    Attributes:
        server: MCP Server instance.
        drive: Drive API client shared by all tools.
        dispatcher: Validates and runs tool calls.
    """

    def __init__(self, drive: DriveClient) -> None:
        """Initialize the server.

        Args:
            drive: Authenticated Drive client (see get_authenticated_client).
        """
        self.server = Server(SERVER_NAME, version=__version__)
        self.drive = drive
        self.dispatcher = ToolDispatcher(drive)
        self._setup_handlers()

    def _setup_handlers(self) -> None:
        """Register MCP tool handlers."""

        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            """Return list of available tools."""
            return self.dispatcher.list_tools()

        @self.server.call_tool()
        async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
            """Handle tool calls.

            Failures are re-raised so the MCP runtime reports them as an
            error result.
            """
            try:
                return await self.dispatcher.dispatch(name, arguments)
            except Exception:
                logger.exception(f"Error calling tool {name}")
                raise

    async def close(self) -> None:
        await self.drive.close()

    async def run(self) -> None:
        """Run the MCP server using stdio transport."""
        try:
            async with stdio_server() as (read_stream, write_stream):
                logger.info("Server started successfully.")
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(),
                )
        finally:
            await self.close()


def main() -> None:
    """Entry point for the Google Drive MCP server."""
    server = DriveMCPServer(get_authenticated_client())
    asyncio.run(server.run())


if __name__ == "__main__":
    main()
