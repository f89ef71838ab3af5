"""Drive tool table.

Each tool is a (name, description, arguments model, handler) entry. The
arguments model is a pydantic model whose JSON schema is what list_tools
advertises, so the table can be enumerated without calling any handler.
Handlers receive the DriveClient and the validated arguments and return the
text of the single content block sent back to the caller.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal

from mcp.types import Tool
from pydantic import BaseModel, ConfigDict, Field, field_validator

from gdrive_mcp.server.drive_client import DriveClient

# Standard file fields returned by most tools
FILE_FIELDS = "id, name, mimeType, modifiedTime, size, webViewLink, parents"
LIST_FIELDS = f"nextPageToken, files({FILE_FIELDS})"
METADATA_FIELDS = (
    "id, name, mimeType, modifiedTime, createdTime, size, webViewLink, parents, "
    "shared, sharingUser, owners, permissions"
)

MAX_PAGE_SIZE = 100
MAX_FILES_PER_READ = 20

# Google Workspace MIME types
GOOGLE_DOC = "application/vnd.google-apps.document"
GOOGLE_SHEET = "application/vnd.google-apps.spreadsheet"
GOOGLE_SLIDE = "application/vnd.google-apps.presentation"
GOOGLE_FOLDER = "application/vnd.google-apps.folder"

# Native types are exported instead of downloaded
EXPORT_MIME_TYPES = {
    GOOGLE_DOC: "text/markdown",
    GOOGLE_SHEET: "text/csv",
    GOOGLE_SLIDE: "text/plain",
}

CONVERT_TO_MIME_TYPES = {
    "document": GOOGLE_DOC,
    "spreadsheet": GOOGLE_SHEET,
    "presentation": GOOGLE_SLIDE,
}


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def escape_query_value(value: str) -> str:
    """Escape a value for use inside a quoted Drive query string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


# =============================================================================
# Argument models
# =============================================================================


class ToolArguments(BaseModel):
    """Base for tool argument models: camelCase on the wire."""

    model_config = ConfigDict(populate_by_name=True)


class PagedArguments(ToolArguments):
    page_size: int = Field(
        default=20,
        alias="pageSize",
        ge=1,
        description=f"Number of results (maximum {MAX_PAGE_SIZE})",
    )

    @field_validator("page_size")
    @classmethod
    def _clamp_page_size(cls, value: int) -> int:
        return min(value, MAX_PAGE_SIZE)


class SearchArguments(PagedArguments):
    query: str = Field(
        description="Drive query, e.g. \"name contains 'report'\" or \"fullText contains 'keyword'\""
    )


class ListArguments(PagedArguments):
    folder_id: str = Field(
        default="root", alias="folderId", description="Folder ID (default: root = My Drive)"
    )
    page_size: int = Field(
        default=30,
        alias="pageSize",
        ge=1,
        description=f"Number of results (maximum {MAX_PAGE_SIZE})",
    )


class FileIdArguments(ToolArguments):
    file_id: str = Field(alias="fileId", description="File ID")


class ReadMultipleArguments(ToolArguments):
    file_ids: list[str] = Field(
        alias="fileIds",
        min_length=1,
        max_length=MAX_FILES_PER_READ,
        description=f"File IDs to read (1-{MAX_FILES_PER_READ}), returned in this order",
    )


class CreateFileArguments(ToolArguments):
    name: str = Field(description="File name")
    content: str = Field(description="File content (text, Markdown, CSV, ...)")
    folder_id: str | None = Field(
        default=None, alias="folderId", description="Parent folder ID (default: My Drive root)"
    )
    convert_to: Literal["document", "spreadsheet", "presentation"] | None = Field(
        default=None,
        alias="convertTo",
        description="Create as a Google Docs/Sheets/Slides file instead of a plain file",
    )
    mime_type: str = Field(
        default="text/plain", alias="mimeType", description="MIME type of the uploaded content"
    )


class CreateFolderArguments(ToolArguments):
    name: str = Field(description="Folder name")
    parent_id: str | None = Field(
        default=None, alias="parentId", description="Parent folder ID (default: My Drive root)"
    )


class UpdateFileArguments(ToolArguments):
    file_id: str = Field(alias="fileId", description="ID of the file to overwrite")
    content: str = Field(description="New file content")
    mime_type: str = Field(
        default="text/plain", alias="mimeType", description="MIME type of the content"
    )


class RenameArguments(ToolArguments):
    file_id: str = Field(alias="fileId", description="File or folder ID")
    new_name: str = Field(alias="newName", description="New name")


class MoveArguments(ToolArguments):
    file_id: str = Field(alias="fileId", description="File or folder ID to move")
    destination_folder_id: str = Field(
        alias="destinationFolderId", description="Destination folder ID"
    )


class CopyArguments(ToolArguments):
    file_id: str = Field(alias="fileId", description="Source file ID")
    new_name: str | None = Field(
        default=None, alias="newName", description="Name of the copy (default: Drive's 'Copy of ...')"
    )
    folder_id: str | None = Field(
        default=None, alias="folderId", description="Destination folder ID"
    )


class ShareArguments(ToolArguments):
    file_id: str = Field(alias="fileId", description="File or folder ID to share")
    email: str = Field(description="Email address to share with")
    role: Literal["reader", "commenter", "writer", "organizer"] = Field(
        default="reader", description="Permission role"
    )
    send_notification: bool = Field(
        default=True, alias="sendNotification", description="Send a notification email"
    )


# =============================================================================
# Handlers
# =============================================================================


async def _list_result(drive: DriveClient, query: str, page_size: int, order_by: str) -> str:
    response = await drive.list_files(query, page_size, LIST_FIELDS, order_by)
    files = response.get("files", [])
    return _to_json({"files": files, "count": len(files)})


async def search_files(drive: DriveClient, args: SearchArguments) -> str:
    return await _list_result(drive, args.query, args.page_size, "modifiedTime desc")


async def list_folder(drive: DriveClient, args: ListArguments) -> str:
    query = f"'{escape_query_value(args.folder_id)}' in parents and trashed = false"
    return await _list_result(drive, query, args.page_size, "folder, name")


async def _read_one(drive: DriveClient, file_id: str) -> str:
    """Read a file as text, exporting native Google files.

    Docs become Markdown, Sheets CSV, Slides plain text; everything else is
    downloaded as-is.
    """
    meta = await drive.get_file(file_id, FILE_FIELDS)
    mime_type = meta.get("mimeType", "")
    name = meta.get("name", "unknown")

    export_mime = EXPORT_MIME_TYPES.get(mime_type)
    if export_mime:
        content = await drive.export_file(file_id, export_mime)
    else:
        content = await drive.download_file(file_id)

    return f"--- File: {name} ({mime_type}) ---\n\n{content}"


async def read_file(drive: DriveClient, args: FileIdArguments) -> str:
    return await _read_one(drive, args.file_id)


async def read_multiple_files(drive: DriveClient, args: ReadMultipleArguments) -> str:
    # gather keeps input order regardless of completion order
    sections = await asyncio.gather(*(_read_one(drive, file_id) for file_id in args.file_ids))
    return "\n\n".join(sections)


async def get_metadata(drive: DriveClient, args: FileIdArguments) -> str:
    return _to_json(await drive.get_file(args.file_id, METADATA_FIELDS))


async def create_file(drive: DriveClient, args: CreateFileArguments) -> str:
    metadata: dict[str, Any] = {"name": args.name}
    if args.folder_id:
        metadata["parents"] = [args.folder_id]
    if args.convert_to:
        metadata["mimeType"] = CONVERT_TO_MIME_TYPES[args.convert_to]

    result = await drive.create_file(
        metadata, FILE_FIELDS, content=args.content, content_mime_type=args.mime_type
    )
    return f"Created file:\n{_to_json(result)}"


async def create_folder(drive: DriveClient, args: CreateFolderArguments) -> str:
    metadata: dict[str, Any] = {"name": args.name, "mimeType": GOOGLE_FOLDER}
    if args.parent_id:
        metadata["parents"] = [args.parent_id]

    result = await drive.create_file(metadata, FILE_FIELDS)
    return f"Created folder:\n{_to_json(result)}"


async def update_file(drive: DriveClient, args: UpdateFileArguments) -> str:
    result = await drive.update_file_content(args.file_id, args.content, args.mime_type, FILE_FIELDS)
    return f"Updated file:\n{_to_json(result)}"


async def rename_file(drive: DriveClient, args: RenameArguments) -> str:
    result = await drive.update_file(args.file_id, FILE_FIELDS, metadata={"name": args.new_name})
    return f"Renamed:\n{_to_json(result)}"


async def move_file(drive: DriveClient, args: MoveArguments) -> str:
    # Files can have several parents; all of them are replaced
    current = await drive.get_file(args.file_id, "parents")
    previous_parents = ",".join(current.get("parents", []))

    result = await drive.update_file(
        args.file_id,
        FILE_FIELDS,
        add_parents=args.destination_folder_id,
        remove_parents=previous_parents,
    )
    return f"Moved file:\n{_to_json(result)}"


async def copy_file(drive: DriveClient, args: CopyArguments) -> str:
    metadata: dict[str, Any] = {}
    if args.new_name:
        metadata["name"] = args.new_name
    if args.folder_id:
        metadata["parents"] = [args.folder_id]

    result = await drive.copy_file(args.file_id, metadata, FILE_FIELDS)
    return f"Copied file:\n{_to_json(result)}"


async def trash_file(drive: DriveClient, args: FileIdArguments) -> str:
    # Trash only; permanent deletion is never exposed
    result = await drive.update_file(args.file_id, FILE_FIELDS, metadata={"trashed": True})
    return f"Moved to trash:\n{_to_json(result)}"


async def share_file(drive: DriveClient, args: ShareArguments) -> str:
    permission = {"type": "user", "role": args.role, "emailAddress": args.email}
    result = await drive.create_permission(args.file_id, permission, args.send_notification)
    return (
        "Sharing permission added:\n"
        f"  File: {args.file_id}\n"
        f"  Shared with: {args.email}\n"
        f"  Role: {args.role}\n"
        f"  Permission ID: {result.get('id')}"
    )


# =============================================================================
# Table
# =============================================================================

ToolHandler = Callable[[DriveClient, Any], Awaitable[str]]


@dataclass(frozen=True)
class ToolSpec:
    """One entry of the tool table."""

    name: str
    description: str
    arguments: type[ToolArguments]
    handler: ToolHandler

    def to_tool(self) -> Tool:
        schema = self.arguments.model_json_schema(by_alias=True)
        schema.pop("title", None)
        return Tool(name=self.name, description=self.description, inputSchema=schema)


def build_registry(specs: tuple[ToolSpec, ...]) -> dict[str, ToolSpec]:
    """Index tool specs by name.

    Raises:
        ValueError: On duplicate tool names.
    """
    registry: dict[str, ToolSpec] = {}
    for spec in specs:
        if spec.name in registry:
            raise ValueError(f"Duplicate tool name: {spec.name}")
        registry[spec.name] = spec
    return registry


DRIVE_TOOLS: tuple[ToolSpec, ...] = (
    # Read tools
    ToolSpec(
        "gdrive_search",
        "Search files in Google Drive. Accepts Drive query syntax.",
        SearchArguments,
        search_files,
    ),
    ToolSpec(
        "gdrive_list",
        "List the files and folders inside a folder.",
        ListArguments,
        list_folder,
    ),
    ToolSpec(
        "gdrive_read",
        "Read a file's content. Google Docs are returned as Markdown, Sheets as CSV, "
        "Slides as plain text.",
        FileIdArguments,
        read_file,
    ),
    ToolSpec(
        "gdrive_read_multiple",
        "Read several files at once. Results are concatenated in the order given.",
        ReadMultipleArguments,
        read_multiple_files,
    ),
    ToolSpec(
        "gdrive_get_metadata",
        "Get metadata of a file or folder (name, size, timestamps, sharing, owners).",
        FileIdArguments,
        get_metadata,
    ),
    # Write tools
    ToolSpec(
        "gdrive_create_file",
        "Create a new file. Can create it as a Google Docs/Sheets/Slides file.",
        CreateFileArguments,
        create_file,
    ),
    ToolSpec(
        "gdrive_create_folder",
        "Create a new folder.",
        CreateFolderArguments,
        create_folder,
    ),
    ToolSpec(
        "gdrive_update_file",
        "Overwrite the content of an existing file.",
        UpdateFileArguments,
        update_file,
    ),
    ToolSpec(
        "gdrive_rename",
        "Rename a file or folder.",
        RenameArguments,
        rename_file,
    ),
    ToolSpec(
        "gdrive_move",
        "Move a file or folder to another folder.",
        MoveArguments,
        move_file,
    ),
    ToolSpec(
        "gdrive_copy",
        "Copy a file.",
        CopyArguments,
        copy_file,
    ),
    ToolSpec(
        "gdrive_delete",
        "Move a file or folder to the trash.",
        FileIdArguments,
        trash_file,
    ),
    ToolSpec(
        "gdrive_share",
        "Share a file or folder with a user by email.",
        ShareArguments,
        share_file,
    ),
)
