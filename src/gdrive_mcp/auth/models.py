"""Data models for OAuth credentials.

ClientSecret is the operator-supplied half of the credential record
(gcp-oauth.keys.json); TokenSet is the system-managed half (tokens.json).
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, field_validator

from gdrive_mcp.errors import ConfigurationError

if TYPE_CHECKING:
    from google.oauth2.credentials import Credentials


class TokenStatus(str, Enum):
    """State of the token file on disk."""

    VALID = "valid"
    EXPIRED = "expired"
    MISSING = "missing"
    INVALID = "invalid"


class ClientSecret(BaseModel):
    """OAuth client credentials downloaded from the GCP Console."""

    client_id: str
    client_secret: str

    @classmethod
    def from_file_data(cls, data: Any) -> "ClientSecret":
        """Parse the downloaded client JSON.

        Both "Desktop app" (``installed``) and "Web application" (``web``)
        downloads are accepted; ``installed`` wins when both are present.

        Raises:
            ConfigurationError: If neither section is present or usable.
        """
        section = None
        if isinstance(data, dict):
            section = data.get("installed") or data.get("web")
        if not isinstance(section, dict):
            raise ConfigurationError(
                "Invalid gcp-oauth.keys.json: an 'installed' or 'web' section is required"
            )
        try:
            return cls.model_validate(section)
        except ValueError as e:
            raise ConfigurationError(f"Invalid gcp-oauth.keys.json: {e}") from e


class TokenSet(BaseModel):
    """Tokens persisted in tokens.json.

    Unknown fields are kept so that anything written to the file by another
    tool survives a load/save cycle.
    """

    model_config = ConfigDict(extra="allow")

    access_token: str
    refresh_token: str | None = None
    expiry: datetime | None = None
    scope: str | None = None
    token_type: str | None = "Bearer"

    @field_validator("expiry")
    @classmethod
    def _ensure_aware(cls, value: datetime | None) -> datetime | None:
        # google-auth hands out naive UTC datetimes
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def is_expired(self, buffer_seconds: int = 60) -> bool:
        """Check if the access token is expired or about to expire.

        Tokens without an expiry are treated as not expired.
        """
        if self.expiry is None:
            return False
        return datetime.now(timezone.utc) + timedelta(seconds=buffer_seconds) >= self.expiry

    @property
    def scopes(self) -> list[str]:
        return self.scope.split() if self.scope else []

    def to_file_dict(self) -> dict[str, Any]:
        """JSON-ready dict as written to tokens.json (None fields omitted)."""
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def from_credentials(cls, credentials: "Credentials") -> "TokenSet":
        """Build a TokenSet from google-auth credentials."""
        scopes = credentials.granted_scopes or credentials.scopes
        return cls(
            access_token=credentials.token,
            refresh_token=credentials.refresh_token,
            expiry=credentials.expiry,
            scope=" ".join(scopes) if scopes else None,
        )
