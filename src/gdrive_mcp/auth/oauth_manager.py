"""OAuth authorization-code flow and credential access for Google Drive.

The browser flow is a one-shot state machine:

    IDLE -> AWAITING_REDIRECT -> EXCHANGING_CODE -> COMPLETED | FAILED

A local HTTP listener on localhost:3333 waits for the identity provider to
redirect the browser to /callback. Only that request moves the machine; any
other path gets a 404. The listener is closed on every terminal transition.
There is no timeout on the wait.
"""

import asyncio
import logging
import webbrowser
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timezone
from enum import Enum
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from urllib.parse import parse_qs, urlparse

from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from gdrive_mcp.auth.models import ClientSecret, TokenSet, TokenStatus
from gdrive_mcp.auth.token_storage import TokenStorage
from gdrive_mcp.config import get_token_path, load_client_secret, resolve_credentials_dir
from gdrive_mcp.errors import (
    AuthenticationRequiredError,
    AuthorizationFlowError,
    MissingAuthorizationCodeError,
    OAuthDeniedError,
    TokenExchangeError,
)

logger = logging.getLogger(__name__)

# Full read/write Drive access
DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive"]

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"  # nosec B105 - public endpoint

# Callback listener
DEFAULT_OAUTH_HOST = "localhost"
DEFAULT_OAUTH_PORT = 3333
CALLBACK_PATH = "/callback"
DEFAULT_REDIRECT_URI = f"http://{DEFAULT_OAUTH_HOST}:{DEFAULT_OAUTH_PORT}{CALLBACK_PATH}"

SUCCESS_PAGE = (
    "<html><body><h1>Authentication Successful!</h1>"
    "<p>You can close this tab and return to the terminal.</p>"
    "<script>setTimeout(() => window.close(), 2000)</script>"
    "</body></html>"
)


class FlowState(str, Enum):
    """States of the authorization flow."""

    IDLE = "idle"
    AWAITING_REDIRECT = "awaiting_redirect"
    EXCHANGING_CODE = "exchanging_code"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (FlowState.COMPLETED, FlowState.FAILED)


@dataclass
class CallbackResponse:
    """HTTP response the listener sends back to the browser."""

    status: int
    body: str
    content_type: str = "text/plain; charset=utf-8"


def build_client_config(client_secret: ClientSecret, redirect_uri: str) -> dict:
    """Client config in the shape google-auth-oauthlib expects."""
    return {
        "installed": {
            "client_id": client_secret.client_id,
            "client_secret": client_secret.client_secret,
            "auth_uri": GOOGLE_AUTH_URI,
            "token_uri": GOOGLE_TOKEN_URI,
            "redirect_uris": [redirect_uri],
        }
    }


class AuthorizationFlow:
    """One-shot browser authorization that ends with tokens on disk.

    Example:
        ```python
        flow = AuthorizationFlow(load_client_secret(), TokenStorage())
        tokens = flow.run()  # blocks until the browser redirect arrives
        ```
    """

    def __init__(
        self,
        client_secret: ClientSecret,
        storage: TokenStorage,
        scopes: list[str] | None = None,
        host: str = DEFAULT_OAUTH_HOST,
        port: int = DEFAULT_OAUTH_PORT,
        open_browser: Callable[[str], object] = webbrowser.open,
    ) -> None:
        """Initialize the flow.

        Args:
            client_secret: OAuth client used for the code exchange.
            storage: Where the resulting tokens are saved.
            scopes: Scopes to request. Defaults to DRIVE_SCOPES.
            host: Listener host.
            port: Listener port. The redirect URI registered with Google must
                match, so this is fixed outside of tests.
            open_browser: Called with the authorization URL once the listener
                is bound.
        """
        self.storage = storage
        self.scopes = scopes or DRIVE_SCOPES
        self.host = host
        self.port = port
        self.redirect_uri = f"http://{host}:{port}{CALLBACK_PATH}"
        self._open_browser = open_browser
        self._flow = Flow.from_client_config(
            build_client_config(client_secret, self.redirect_uri),
            scopes=self.scopes,
            redirect_uri=self.redirect_uri,
        )

        self.state = FlowState.IDLE
        self.error: AuthorizationFlowError | None = None
        self.tokens: TokenSet | None = None
        self.server_port: int | None = None

    def _transition(self, state: FlowState) -> None:
        logger.debug(f"Authorization flow: {self.state.value} -> {state.value}")
        self.state = state

    def start(self) -> str:
        """Build the authorization URL and begin waiting for the redirect.

        Offline access plus forced consent make Google issue a refresh token
        every time.

        Returns:
            The URL the operator must open.
        """
        auth_url, _ = self._flow.authorization_url(
            access_type="offline",
            prompt="consent",
        )
        self._transition(FlowState.AWAITING_REDIRECT)
        return auth_url

    def handle_request(self, path: str) -> CallbackResponse:
        """Apply one inbound listener request to the state machine.

        Args:
            path: Request path including the query string.

        Returns:
            The response to send to the browser.
        """
        parsed = urlparse(path)
        # Trailing slash tolerated: /callback and /callback/ are the same route
        if parsed.path.rstrip("/") != CALLBACK_PATH:
            return CallbackResponse(404, "Not Found")

        if self.state is not FlowState.AWAITING_REDIRECT:
            return CallbackResponse(409, f"Authorization flow is {self.state.value}")

        params = parse_qs(parsed.query)

        if "error" in params:
            error = params["error"][0]
            self._fail(OAuthDeniedError(error))
            return CallbackResponse(400, f"Authentication error: {error}")

        code = params.get("code", [""])[0]
        if not code:
            self._fail(MissingAuthorizationCodeError())
            return CallbackResponse(400, "No authorization code received.")

        self._transition(FlowState.EXCHANGING_CODE)
        try:
            tokens = self._exchange_code(code)
            self.storage.save(tokens)
        except Exception as e:
            logger.debug("Token exchange failed", exc_info=True)
            failure = TokenExchangeError(f"Token exchange failed: {e}")
            failure.__cause__ = e
            self._fail(failure)
            return CallbackResponse(500, "Failed to obtain tokens.")

        self.tokens = tokens
        self._transition(FlowState.COMPLETED)
        return CallbackResponse(200, SUCCESS_PAGE, "text/html; charset=utf-8")

    def _fail(self, error: AuthorizationFlowError) -> None:
        self.error = error
        self._transition(FlowState.FAILED)

    def _exchange_code(self, code: str) -> TokenSet:
        """Trade the authorization code for access and refresh tokens."""
        self._flow.fetch_token(code=code)
        return TokenSet.from_credentials(self._flow.credentials)

    def _make_handler(self) -> type[BaseHTTPRequestHandler]:
        flow = self

        class OAuthCallbackHandler(BaseHTTPRequestHandler):
            """HTTP handler for the OAuth callback."""

            def log_message(self, format: str, *args) -> None:
                """Suppress HTTP server logs."""
                pass

            def do_GET(self) -> None:
                response = flow.handle_request(self.path)
                body = response.body.encode("utf-8")
                self.send_response(response.status)
                self.send_header("Content-Type", response.content_type)
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

        return OAuthCallbackHandler

    def run(self) -> TokenSet:
        """Run the whole flow (blocking).

        Returns:
            The tokens that were saved.

        Raises:
            OSError: If the listener port is already in use.
            AuthorizationFlowError: If the flow ends in FAILED.
        """
        auth_url = self.start()

        server = HTTPServer((self.host, self.port), self._make_handler())
        try:
            self.server_port = server.server_address[1]
            logger.info(f"Callback server listening on http://{self.host}:{self.server_port}")
            print("Opening browser for Google authorization...")
            print(f"If the browser doesn't open, visit: {auth_url}")
            self._open_browser(auth_url)

            while not self.state.is_terminal:
                server.handle_request()
        finally:
            server.server_close()

        if self.tokens is None:
            raise self.error or AuthorizationFlowError("Authorization flow ended without tokens")
        return self.tokens


class OAuthManager:
    """Entry point for authenticating and for building API credentials.

    Attributes:
        credentials_dir: Directory holding the client secret and token files.
        storage: Token storage for that directory.
    """

    def __init__(
        self,
        storage: TokenStorage | None = None,
        credentials_dir: Path | None = None,
    ) -> None:
        """Initialize OAuth manager.

        Args:
            storage: Token storage instance. Creates default if not provided.
            credentials_dir: Credentials directory. Resolved from the
                environment if not provided.
        """
        self.credentials_dir = credentials_dir or resolve_credentials_dir()
        self.storage = storage or TokenStorage(token_path=get_token_path(self.credentials_dir))

    @property
    def token_location(self) -> str:
        return self.storage.location

    async def authenticate(
        self,
        open_browser: Callable[[str], object] = webbrowser.open,
        host: str = DEFAULT_OAUTH_HOST,
        port: int = DEFAULT_OAUTH_PORT,
    ) -> TokenSet:
        """Run the browser authorization flow and save the resulting tokens.

        Existing tokens are overwritten.

        Args:
            open_browser: Opens the authorization URL.
            host: Callback listener host.
            port: Callback listener port; must match the redirect URI
                registered for the OAuth client.

        Raises:
            ConfigurationError: If the client secret file is missing/invalid.
            AuthorizationFlowError: If the user denies access or the code
                exchange fails.
        """
        client_secret = load_client_secret(self.credentials_dir)
        flow = AuthorizationFlow(
            client_secret, self.storage, host=host, port=port, open_browser=open_browser
        )

        # The listener blocks, so run it in the executor
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, flow.run)

    def get_status(self) -> TokenStatus:
        return self.storage.get_status()

    def get_credentials(self) -> Credentials:
        """Build google-auth credentials able to refresh themselves.

        Raises:
            ConfigurationError: If the client secret file is missing/invalid.
            AuthenticationRequiredError: If no token file exists.
        """
        client_secret = load_client_secret(self.credentials_dir)
        tokens = self.storage.load()
        if not tokens.access_token and not tokens.refresh_token:
            raise AuthenticationRequiredError("Token file holds no usable token")

        expiry = tokens.expiry
        if expiry is not None:
            # google-auth compares against naive UTC
            expiry = expiry.astimezone(timezone.utc).replace(tzinfo=None)

        return Credentials(  # nosec B106 - token_uri is public Google OAuth endpoint
            token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_uri=GOOGLE_TOKEN_URI,
            client_id=client_secret.client_id,
            client_secret=client_secret.client_secret,
            scopes=tokens.scopes or DRIVE_SCOPES,
            expiry=expiry,
        )
