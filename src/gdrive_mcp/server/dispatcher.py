"""Tool dispatcher: validate arguments, call the handler, wrap the result."""

import asyncio
import logging
from typing import Any

from mcp.types import TextContent, Tool
from pydantic import ValidationError

from gdrive_mcp.errors import InvalidToolArgumentsError, UnknownToolError
from gdrive_mcp.server.drive_client import DriveClient
from gdrive_mcp.server.tools import DRIVE_TOOLS, ToolSpec, build_registry

logger = logging.getLogger(__name__)


class ToolDispatcher:
    """Runs tool invocations against one DriveClient.

    Invocations are processed one at a time: a call waits for the previous
    one to finish before its handler starts.

    Attributes:
        drive: The Drive API client every handler receives.
    """

    def __init__(self, drive: DriveClient, tools: tuple[ToolSpec, ...] = DRIVE_TOOLS) -> None:
        self.drive = drive
        self._tools = build_registry(tools)
        self._lock = asyncio.Lock()

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    def list_tools(self) -> list[Tool]:
        """Describe all tools without invoking any handler."""
        return [spec.to_tool() for spec in self._tools.values()]

    async def dispatch(self, name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
        """Run one tool.

        Args:
            name: Tool name.
            arguments: Raw arguments from the caller.

        Returns:
            A single text content block.

        Raises:
            UnknownToolError: If the tool is not registered.
            InvalidToolArgumentsError: If arguments fail validation. No
                remote call is made in that case.
            RemoteApiError: If the Drive API call fails.
        """
        spec = self._tools.get(name)
        if spec is None:
            raise UnknownToolError(name)

        try:
            args = spec.arguments.model_validate(arguments or {})
        except ValidationError as e:
            raise InvalidToolArgumentsError(name, str(e)) from e

        async with self._lock:
            logger.debug(f"Calling tool {name}")
            text = await spec.handler(self.drive, args)

        return [TextContent(type="text", text=text)]
