"""MCP server implementation for Google Drive.

Provides 13 tools:

Read Tools (5):
- Search files with Drive query syntax
- List a folder
- Read a file (Docs as Markdown, Sheets as CSV, Slides as text)
- Read several files at once
- Get file metadata

Write Tools (8):
- Create files (optionally as Docs/Sheets/Slides) and folders
- Overwrite file content
- Rename, move, copy
- Move to trash (never permanent deletion)
- Share with a user

Transport: Stdio (for Claude Desktop)
Authentication: OAuth 2.0 with automatic token refresh
"""

from gdrive_mcp.server.dispatcher import ToolDispatcher
from gdrive_mcp.server.drive_client import DriveClient, get_authenticated_client
from gdrive_mcp.server.drive_server import DriveMCPServer, main


def create_server() -> DriveMCPServer:
    """Create a Drive MCP server from the stored credentials.

    Raises:
        ConfigurationError: If the client secret file is missing/invalid.
        AuthenticationRequiredError: If no token file exists.

    Example:
        >>> server = create_server()
        >>> asyncio.run(server.run())
    """
    return DriveMCPServer(get_authenticated_client())


__all__ = [
    "create_server",
    "DriveMCPServer",
    "DriveClient",
    "ToolDispatcher",
    "get_authenticated_client",
    "main",
]
