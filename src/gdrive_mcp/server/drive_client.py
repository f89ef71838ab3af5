"""Async client for the Google Drive v3 REST API.

One method per Drive endpoint the tools need. The client owns the
google-auth credentials: before each request it renews an expired access
token and reports the renewed fields to a refresh observer, which the
server wires to TokenStorage.apply_patch so tokens.json stays current.
"""

import asyncio
import json
import logging
from collections.abc import Callable
from datetime import timezone
from typing import Any

import httpx
from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from gdrive_mcp.auth import OAuthManager
from gdrive_mcp.errors import AuthenticationRequiredError, RemoteApiError

logger = logging.getLogger(__name__)

DRIVE_API_BASE = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_BASE = "https://www.googleapis.com/upload/drive/v3"

RefreshObserver = Callable[[dict[str, Any]], object]


def credentials_patch(
    credentials: Credentials, previous_refresh_token: str | None = None
) -> dict[str, Any]:
    """Token fields to persist after google-auth renewed the credentials.

    google-auth keeps the old refresh token in memory when the response
    carries none, so refresh_token is only reported when it differs from
    previous_refresh_token. scope is None when the response omitted it.
    None fields leave the stored values untouched.
    """
    expiry = credentials.expiry
    refresh_token = credentials.refresh_token
    return {
        "access_token": credentials.token,
        "expiry": expiry.replace(tzinfo=timezone.utc).isoformat() if expiry else None,
        "refresh_token": refresh_token if refresh_token != previous_refresh_token else None,
        "scope": " ".join(credentials.granted_scopes) if credentials.granted_scopes else None,
    }


class DriveClient:
    """Authenticated Drive API client.

    Attributes:
        credentials: google-auth credentials, renewed in place.
        on_refresh: Called with the renewed token fields after each refresh.
    """

    def __init__(
        self,
        credentials: Credentials,
        on_refresh: RefreshObserver | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.credentials = credentials
        self.on_refresh = on_refresh
        self._http_client = http_client

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create shared HTTP client with connection pooling."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                http2=True,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
                timeout=httpx.Timeout(30.0, connect=10.0),
            )
        return self._http_client

    async def close(self) -> None:
        """Close the shared HTTP client and release resources."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _get_access_token(self) -> str:
        """Return a valid access token, renewing it if necessary.

        Raises:
            AuthenticationRequiredError: If the token cannot be renewed.
        """
        if self.credentials.valid:
            return self.credentials.token

        previous_refresh_token = self.credentials.refresh_token
        if not previous_refresh_token:
            raise AuthenticationRequiredError(
                "Access token expired and no refresh token is stored. "
                "Re-run authentication: gdrive-mcp auth"
            )

        # google-auth refresh is blocking
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.credentials.refresh, Request())
        except RefreshError as e:
            raise AuthenticationRequiredError(
                f"Token refresh failed: {e}. Re-run authentication: gdrive-mcp auth"
            ) from e

        if self.on_refresh is not None:
            self.on_refresh(credentials_patch(self.credentials, previous_refresh_token))
        logger.info("Access token refreshed")
        return self.credentials.token

    async def _request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
        content: bytes | str | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
    ) -> httpx.Response:
        """Make an authenticated request to the Drive API.

        Raises:
            RemoteApiError: On non-2xx responses and transport failures.
        """
        access_token = await self._get_access_token()
        client = await self._get_http_client()

        request_headers = {"Authorization": f"Bearer {access_token}"}
        if headers:
            request_headers.update(headers)

        try:
            response = await client.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
                content=content,
                headers=request_headers,
                timeout=timeout,
            )
        except httpx.HTTPError as e:
            raise RemoteApiError(f"Drive API request failed: {e}") from e

        if response.is_error:
            raise RemoteApiError(
                f"Drive API error {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
                body=response.text,
            )
        return response

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._request(method, url, **kwargs)
        result: dict[str, Any] = response.json()
        return result

    # =========================================================================
    # Files
    # =========================================================================

    async def list_files(
        self, query: str, page_size: int, fields: str, order_by: str
    ) -> dict[str, Any]:
        """files.list"""
        params = {"q": query, "pageSize": page_size, "fields": fields, "orderBy": order_by}
        return await self._request_json("GET", f"{DRIVE_API_BASE}/files", params=params)

    async def get_file(self, file_id: str, fields: str) -> dict[str, Any]:
        """files.get (metadata)"""
        return await self._request_json(
            "GET", f"{DRIVE_API_BASE}/files/{file_id}", params={"fields": fields}
        )

    async def export_file(self, file_id: str, mime_type: str) -> str:
        """files.export: convert a native Google file to mime_type."""
        response = await self._request(
            "GET",
            f"{DRIVE_API_BASE}/files/{file_id}/export",
            params={"mimeType": mime_type},
            timeout=60.0,
        )
        return response.text

    async def download_file(self, file_id: str) -> str:
        """files.get with alt=media: raw file content as text."""
        response = await self._request(
            "GET",
            f"{DRIVE_API_BASE}/files/{file_id}",
            params={"alt": "media"},
            timeout=60.0,
        )
        return response.text

    async def create_file(
        self,
        metadata: dict[str, Any],
        fields: str,
        content: str | None = None,
        content_mime_type: str = "text/plain",
    ) -> dict[str, Any]:
        """files.create

        With content, a multipart upload is sent: the metadata part (whose
        mimeType is the declared type of the new file) and the media part
        (whose Content-Type is content_mime_type) are independent.
        """
        if content is None:
            return await self._request_json(
                "POST", f"{DRIVE_API_BASE}/files", params={"fields": fields}, json_data=metadata
            )

        boundary = "gdrive_mcp_boundary"
        body_parts = [
            f"--{boundary}",
            "Content-Type: application/json; charset=UTF-8",
            "",
            json.dumps(metadata),
            f"--{boundary}",
            f"Content-Type: {content_mime_type}",
            "",
            content,
            f"--{boundary}--",
        ]
        body = "\r\n".join(body_parts)

        return await self._request_json(
            "POST",
            f"{DRIVE_UPLOAD_BASE}/files",
            params={"uploadType": "multipart", "fields": fields},
            content=body.encode("utf-8"),
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
            timeout=60.0,
        )

    async def update_file(
        self,
        file_id: str,
        fields: str,
        metadata: dict[str, Any] | None = None,
        add_parents: str | None = None,
        remove_parents: str | None = None,
    ) -> dict[str, Any]:
        """files.update (metadata only)"""
        params: dict[str, Any] = {"fields": fields}
        if add_parents:
            params["addParents"] = add_parents
        if remove_parents:
            params["removeParents"] = remove_parents

        return await self._request_json(
            "PATCH", f"{DRIVE_API_BASE}/files/{file_id}", params=params, json_data=metadata or {}
        )

    async def update_file_content(
        self, file_id: str, content: str, mime_type: str, fields: str
    ) -> dict[str, Any]:
        """files.update with a media upload, replacing the file body."""
        return await self._request_json(
            "PATCH",
            f"{DRIVE_UPLOAD_BASE}/files/{file_id}",
            params={"uploadType": "media", "fields": fields},
            content=content.encode("utf-8"),
            headers={"Content-Type": mime_type},
            timeout=60.0,
        )

    async def copy_file(self, file_id: str, metadata: dict[str, Any], fields: str) -> dict[str, Any]:
        """files.copy"""
        return await self._request_json(
            "POST",
            f"{DRIVE_API_BASE}/files/{file_id}/copy",
            params={"fields": fields},
            json_data=metadata,
        )

    # =========================================================================
    # Permissions
    # =========================================================================

    async def create_permission(
        self, file_id: str, permission: dict[str, Any], send_notification_email: bool
    ) -> dict[str, Any]:
        """permissions.create"""
        return await self._request_json(
            "POST",
            f"{DRIVE_API_BASE}/files/{file_id}/permissions",
            params={"sendNotificationEmail": str(send_notification_email).lower()},
            json_data=permission,
        )


def _error_message(response: httpx.Response) -> str:
    """Pull the human-readable message out of a Google error body."""
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        return str(payload["error"].get("message", payload["error"]))
    return response.text


def get_authenticated_client(manager: OAuthManager | None = None) -> DriveClient:
    """Build a DriveClient from the files in the credentials directory.

    Renewed tokens are merged into tokens.json as they happen.

    Raises:
        ConfigurationError: If the client secret file is missing/invalid.
        AuthenticationRequiredError: If no token file exists.
    """
    manager = manager or OAuthManager()
    credentials = manager.get_credentials()

    def persist_refreshed_tokens(patch: dict[str, Any]) -> None:
        manager.storage.apply_patch(patch)
        logger.info("Tokens refreshed and saved.")

    return DriveClient(credentials, on_refresh=persist_refreshed_tokens)
