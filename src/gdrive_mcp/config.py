"""Configuration for gdrive-mcp.

Environment Variables:
    GDRIVE_MCP_DIR: Directory holding gcp-oauth.keys.json and tokens.json
        (default: ~/.gdrive-mcp).
    GDRIVE_MCP_LOG_LEVEL: Logging level name (default: INFO).

Values are resolved at call time, never at import time.
"""

import json
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from gdrive_mcp.errors import ConfigurationError

if TYPE_CHECKING:
    from gdrive_mcp.auth.models import ClientSecret

CREDENTIALS_DIR_ENV = "GDRIVE_MCP_DIR"
LOG_LEVEL_ENV = "GDRIVE_MCP_LOG_LEVEL"

DEFAULT_DIR_NAME = ".gdrive-mcp"
CLIENT_SECRET_FILENAME = "gcp-oauth.keys.json"
TOKEN_FILENAME = "tokens.json"


def resolve_credentials_dir() -> Path:
    """Return the credentials directory.

    Returns:
        ``$GDRIVE_MCP_DIR`` when set, otherwise ``~/.gdrive-mcp``.
    """
    override = os.environ.get(CREDENTIALS_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / DEFAULT_DIR_NAME


def get_client_secret_path(credentials_dir: Path | None = None) -> Path:
    """Path of the operator-supplied OAuth client file."""
    return (credentials_dir or resolve_credentials_dir()) / CLIENT_SECRET_FILENAME


def get_token_path(credentials_dir: Path | None = None) -> Path:
    """Path of the system-managed token file."""
    return (credentials_dir or resolve_credentials_dir()) / TOKEN_FILENAME


def load_client_secret(credentials_dir: Path | None = None) -> "ClientSecret":
    """Load the OAuth client ID and secret.

    Args:
        credentials_dir: Directory to read from. Resolved from the
            environment when not provided.

    Returns:
        ClientSecret taken from the ``installed`` or ``web`` section.

    Raises:
        ConfigurationError: If the file is absent, is not valid JSON, or has
            neither recognized section.
    """
    from gdrive_mcp.auth.models import ClientSecret

    path = get_client_secret_path(credentials_dir)
    if not path.exists():
        raise ConfigurationError(
            f"OAuth keys file not found: {path}\n"
            f"Download the OAuth client JSON from the GCP Console and save it as "
            f"{CLIENT_SECRET_FILENAME}."
        )

    try:
        with open(path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not read {path}: {e}") from e

    return ClientSecret.from_file_data(data)


def configure_logging() -> None:
    """Configure root logging on stderr.

    stdout carries the MCP message channel, so nothing may log there.
    """
    level_name = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
