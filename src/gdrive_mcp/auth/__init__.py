"""OAuth authentication for gdrive-mcp.

Quick Start:
    ```python
    from gdrive_mcp.auth import OAuthManager

    manager = OAuthManager()

    # One-time browser authorization, writes tokens.json
    tokens = await manager.authenticate()

    # Credentials for API use (refreshable)
    credentials = manager.get_credentials()
    ```
"""

from gdrive_mcp.auth.models import ClientSecret, TokenSet, TokenStatus
from gdrive_mcp.auth.oauth_manager import (
    DRIVE_SCOPES,
    AuthorizationFlow,
    FlowState,
    OAuthManager,
)
from gdrive_mcp.auth.token_storage import JsonFileBackend, TokenFileBackend, TokenStorage

__all__ = [
    "OAuthManager",
    "AuthorizationFlow",
    "FlowState",
    "TokenStorage",
    "TokenFileBackend",
    "JsonFileBackend",
    "ClientSecret",
    "TokenSet",
    "TokenStatus",
    "DRIVE_SCOPES",
]
