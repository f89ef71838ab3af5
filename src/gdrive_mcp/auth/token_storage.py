"""Token persistence for gdrive-mcp.

Storage Location: $GDRIVE_MCP_DIR/tokens.json (default ~/.gdrive-mcp/tokens.json)

The token file is the only mutable shared resource of the server. It is
written in full once by the authorization flow and afterwards only patched:
every silent access-token renewal reads the current file, overlays the new
fields, and writes the result back. There is no file locking; a single
server process per token file is assumed.
"""

import json
import logging
from pathlib import Path
from typing import Any, Protocol

from gdrive_mcp.auth.models import TokenSet, TokenStatus
from gdrive_mcp.config import get_token_path
from gdrive_mcp.errors import AuthenticationRequiredError

logger = logging.getLogger(__name__)


class TokenFileBackend(Protocol):
    """Raw read/write access to the token record."""

    @property
    def location(self) -> str: ...

    def read(self) -> dict[str, Any] | None:
        """Return the stored record, or None if nothing is stored."""
        ...

    def write(self, data: dict[str, Any]) -> None: ...


class JsonFileBackend:
    """Token record stored as a JSON file with owner-only permissions."""

    def __init__(self, path: Path) -> None:
        self.path = path

    @property
    def location(self) -> str:
        return str(self.path)

    def read(self) -> dict[str, Any] | None:
        """Load the JSON record.

        Raises:
            ValueError: If the file is not a JSON object.
        """
        if not self.path.exists():
            return None

        with open(self.path) as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not contain a JSON object")
        return data

    def write(self, data: dict[str, Any]) -> None:
        creds_dir = self.path.parent
        if not creds_dir.exists():
            creds_dir.mkdir(parents=True, mode=0o700)

        with open(self.path, "w") as f:
            json.dump(data, f, indent=2, default=str)

        # Owner read/write only (600)
        self.path.chmod(0o600)


class TokenStorage:
    """Load, save, and patch the OAuth token record.

    Attributes:
        backend: Where the record lives. Defaults to tokens.json in the
            resolved credentials directory.

    Example:
        ```python
        storage = TokenStorage()
        tokens = storage.load()

        # after google-auth renewed the access token
        storage.apply_patch({"access_token": "new", "expiry": "2026-01-01T00:00:00+00:00"})
        ```
    """

    def __init__(
        self,
        token_path: Path | None = None,
        backend: TokenFileBackend | None = None,
    ) -> None:
        """Initialize token storage.

        Args:
            token_path: Custom path for tokens.json. Ignored when a backend
                is given.
            backend: Custom record backend (tests use an in-memory one).
        """
        self.backend: TokenFileBackend = backend or JsonFileBackend(
            token_path or get_token_path()
        )

    @property
    def location(self) -> str:
        return self.backend.location

    def load(self) -> TokenSet:
        """Load the stored tokens.

        Raises:
            AuthenticationRequiredError: If no token record exists or it
                cannot be parsed.
        """
        try:
            data = self.backend.read()
        except (OSError, ValueError) as e:
            raise AuthenticationRequiredError(
                f"Token file is unreadable: {self.location} ({e})\n"
                "Re-run authentication: gdrive-mcp auth"
            ) from e

        if data is None:
            raise AuthenticationRequiredError(
                f"Token file not found: {self.location}\n"
                "Run authentication first: gdrive-mcp auth"
            )

        try:
            return TokenSet.model_validate(data)
        except ValueError as e:
            raise AuthenticationRequiredError(
                f"Token file is invalid: {self.location}\n"
                "Re-run authentication: gdrive-mcp auth"
            ) from e

    def save(self, tokens: TokenSet) -> None:
        """Write a complete token record, replacing any previous one."""
        self.backend.write(tokens.to_file_dict())
        logger.info(f"Tokens saved to {self.location}")

    def apply_patch(self, patch: dict[str, Any]) -> dict[str, Any]:
        """Merge fields into the stored record.

        The current record is re-read first, so fields changed on disk by
        someone else and not named in the patch are preserved. None values in
        the patch never erase existing fields.

        Args:
            patch: Fields to overlay.

        Returns:
            The merged record as written.
        """
        current = self.backend.read() or {}
        merged = {**current, **{k: v for k, v in patch.items() if v is not None}}
        self.backend.write(merged)
        return merged

    def get_status(self) -> TokenStatus:
        """Get the status of the stored token record."""
        try:
            data = self.backend.read()
        except (OSError, ValueError):
            return TokenStatus.INVALID

        if data is None:
            return TokenStatus.MISSING

        try:
            tokens = TokenSet.model_validate(data)
        except ValueError:
            return TokenStatus.INVALID

        if tokens.is_expired():
            return TokenStatus.EXPIRED

        return TokenStatus.VALID
