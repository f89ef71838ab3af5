"""Shared pytest fixtures for gdrive-mcp tests.

This module provides reusable fixtures for testing OAuth authentication,
token storage, and Drive API mocks.
"""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from gdrive_mcp.auth.models import ClientSecret, TokenSet

# =============================================================================
# Token Fixtures
# =============================================================================


@pytest.fixture
def valid_tokens() -> TokenSet:
    """Create a valid, non-expired token set."""
    return TokenSet(
        access_token="test_access_token_abc123",
        refresh_token="test_refresh_token_xyz789",
        expiry=datetime.now(timezone.utc) + timedelta(hours=1),
        scope="https://www.googleapis.com/auth/drive",
        token_type="Bearer",
    )


@pytest.fixture
def expired_tokens() -> TokenSet:
    """Create an expired token set."""
    return TokenSet(
        access_token="expired_access_token",
        refresh_token="test_refresh_token",
        expiry=datetime.now(timezone.utc) - timedelta(hours=1),
        scope="https://www.googleapis.com/auth/drive",
    )


@pytest.fixture
def client_secret() -> ClientSecret:
    return ClientSecret(client_id="test-client-id", client_secret="test-client-secret")


# =============================================================================
# Credentials Directory Fixtures
# =============================================================================


@pytest.fixture
def credentials_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point GDRIVE_MCP_DIR at an empty temporary directory."""
    creds_dir = tmp_path / ".gdrive-mcp"
    monkeypatch.setenv("GDRIVE_MCP_DIR", str(creds_dir))
    return creds_dir


@pytest.fixture
def client_secret_file(credentials_dir: Path) -> Path:
    """Write an 'installed' client secret file into the credentials directory."""
    credentials_dir.mkdir(parents=True, exist_ok=True)
    path = credentials_dir / "gcp-oauth.keys.json"
    path.write_text(
        json.dumps(
            {
                "installed": {
                    "client_id": "test-client-id",
                    "client_secret": "test-client-secret",  # pragma: allowlist secret
                    "redirect_uris": ["http://localhost:3333/callback"],
                }
            }
        )
    )
    return path


@pytest.fixture
def token_file(credentials_dir: Path, valid_tokens: TokenSet) -> Path:
    """Write a valid tokens.json into the credentials directory."""
    credentials_dir.mkdir(parents=True, exist_ok=True)
    path = credentials_dir / "tokens.json"
    path.write_text(json.dumps(valid_tokens.to_file_dict()))
    return path


# =============================================================================
# Token Storage Fixtures
# =============================================================================


class MemoryBackend:
    """In-memory token record for storage tests."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self.data = data
        self.writes: list[dict[str, Any]] = []

    @property
    def location(self) -> str:
        return "memory://tokens"

    def read(self) -> dict[str, Any] | None:
        return dict(self.data) if self.data is not None else None

    def write(self, data: dict[str, Any]) -> None:
        self.data = dict(data)
        self.writes.append(dict(data))


@pytest.fixture
def memory_backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def temp_token_path(tmp_path: Path) -> Path:
    """Get the path for a temporary tokens.json file."""
    return tmp_path / "creds" / "tokens.json"


@pytest.fixture
def token_storage(temp_token_path: Path):
    """Create a TokenStorage instance with temporary storage."""
    from gdrive_mcp.auth.token_storage import TokenStorage

    return TokenStorage(token_path=temp_token_path)


# =============================================================================
# Mock Drive Client
# =============================================================================


@pytest.fixture
def mock_drive() -> MagicMock:
    """Create a mock DriveClient with async endpoint methods.

    Each endpoint returns a minimal Drive file resource by default.
    """
    from gdrive_mcp.server.drive_client import DriveClient

    drive = MagicMock(spec=DriveClient)
    file_resource = {"id": "file1", "name": "Test File", "mimeType": "text/plain"}

    drive.list_files = AsyncMock(return_value={"files": [file_resource]})
    drive.get_file = AsyncMock(return_value=file_resource)
    drive.export_file = AsyncMock(return_value="exported content")
    drive.download_file = AsyncMock(return_value="raw content")
    drive.create_file = AsyncMock(return_value={"id": "new_file_id", "name": "New File"})
    drive.update_file = AsyncMock(return_value=file_resource)
    drive.update_file_content = AsyncMock(return_value=file_resource)
    drive.copy_file = AsyncMock(return_value={"id": "copy_id", "name": "Copy of Test File"})
    drive.create_permission = AsyncMock(return_value={"id": "perm_123"})
    drive.close = AsyncMock()
    return drive


# =============================================================================
# CLI Test Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
