"""Google Drive MCP Server.

Exposes Google Drive file operations (search, read, create, move, share, ...)
as MCP tools over stdio, authenticated with a local OAuth setup flow.
"""

from gdrive_mcp.__version__ import __version__

__all__ = ["__version__"]
