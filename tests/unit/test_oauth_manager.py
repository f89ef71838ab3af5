"""Unit tests for the authorization flow and OAuthManager.

Tests cover the callback state machine, the listener lifecycle, and
credential construction.
"""

import json
import socket
import threading
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from gdrive_mcp.auth.models import ClientSecret, TokenSet, TokenStatus
from gdrive_mcp.auth.oauth_manager import (
    CALLBACK_PATH,
    DEFAULT_REDIRECT_URI,
    DRIVE_SCOPES,
    AuthorizationFlow,
    FlowState,
    OAuthManager,
)
from gdrive_mcp.auth.token_storage import TokenStorage
from gdrive_mcp.errors import (
    AuthenticationRequiredError,
    AuthorizationFlowError,
    ConfigurationError,
    MissingAuthorizationCodeError,
    OAuthDeniedError,
    TokenExchangeError,
)

EXCHANGED_TOKENS = TokenSet(
    access_token="exchanged_access",
    refresh_token="exchanged_refresh",
    scope="https://www.googleapis.com/auth/drive",
)


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _browser_visiting(*queries: str, statuses: list[int] | None = None):
    """Fake browser: follows the redirect_uri from the auth URL with each query."""

    def open_browser(auth_url: str) -> None:
        redirect_uri = parse_qs(urlparse(auth_url).query)["redirect_uri"][0]
        base = redirect_uri.rsplit(CALLBACK_PATH, 1)[0]

        def visit() -> None:
            for query in queries:
                response = httpx.get(f"{base}{query}", timeout=10)
                if statuses is not None:
                    statuses.append(response.status_code)

        threading.Thread(target=visit, daemon=True).start()

    return open_browser


@pytest.fixture
def flow(client_secret: ClientSecret, token_storage: TokenStorage) -> AuthorizationFlow:
    """A flow that has been started and waits for the redirect."""
    flow = AuthorizationFlow(client_secret, token_storage, open_browser=MagicMock())
    flow.start()
    return flow


@pytest.mark.unit
class TestAuthorizationUrl:
    """Tests for AuthorizationFlow.start()."""

    def test_should_request_offline_access_with_consent(
        self, client_secret: ClientSecret, token_storage: TokenStorage
    ) -> None:
        """Verify a refresh token is always requested."""
        flow = AuthorizationFlow(client_secret, token_storage)
        assert flow.state is FlowState.IDLE

        params = parse_qs(urlparse(flow.start()).query)

        assert params["access_type"] == ["offline"]
        assert params["prompt"] == ["consent"]
        assert params["redirect_uri"] == [DEFAULT_REDIRECT_URI]
        assert params["scope"] == [" ".join(DRIVE_SCOPES)]
        assert params["client_id"] == ["test-client-id"]
        assert flow.state is FlowState.AWAITING_REDIRECT


@pytest.mark.unit
class TestCallbackStateMachine:
    """Tests for AuthorizationFlow.handle_request()."""

    def test_should_return_404_for_other_paths(self, flow: AuthorizationFlow) -> None:
        """Verify unrelated requests do not change the state."""
        response = flow.handle_request("/favicon.ico")

        assert response.status == 404
        assert flow.state is FlowState.AWAITING_REDIRECT

    def test_should_accept_callback_with_trailing_slash(self, flow: AuthorizationFlow) -> None:
        with patch.object(flow, "_exchange_code", return_value=EXCHANGED_TOKENS):
            response = flow.handle_request("/callback/?code=ABC")

        assert response.status == 200
        assert flow.state is FlowState.COMPLETED

    def test_should_not_treat_longer_paths_as_callback(self, flow: AuthorizationFlow) -> None:
        response = flow.handle_request("/callbacks?code=ABC")

        assert response.status == 404
        assert flow.state is FlowState.AWAITING_REDIRECT

    def test_should_fail_when_user_denies_access(self, flow: AuthorizationFlow) -> None:
        response = flow.handle_request("/callback?error=access_denied")

        assert response.status == 400
        assert flow.state is FlowState.FAILED
        assert isinstance(flow.error, OAuthDeniedError)
        assert flow.error.error == "access_denied"

    def test_should_fail_without_code(self, flow: AuthorizationFlow) -> None:
        response = flow.handle_request("/callback?state=xyz")

        assert response.status == 400
        assert flow.state is FlowState.FAILED
        assert isinstance(flow.error, MissingAuthorizationCodeError)

    def test_should_exchange_code_and_save_tokens(
        self, flow: AuthorizationFlow, token_storage: TokenStorage
    ) -> None:
        with patch.object(flow, "_exchange_code", return_value=EXCHANGED_TOKENS) as exchange:
            response = flow.handle_request("/callback?code=ABC")

        exchange.assert_called_once_with("ABC")
        assert response.status == 200
        assert "text/html" in response.content_type
        assert flow.state is FlowState.COMPLETED
        assert flow.tokens == EXCHANGED_TOKENS
        assert token_storage.load().access_token == "exchanged_access"

    def test_should_return_500_when_exchange_fails(
        self, flow: AuthorizationFlow, token_storage: TokenStorage
    ) -> None:
        """Verify the underlying error is kept as the cause."""
        cause = RuntimeError("invalid_grant")
        with patch.object(flow, "_exchange_code", side_effect=cause):
            response = flow.handle_request("/callback?code=ABC")

        assert response.status == 500
        assert flow.state is FlowState.FAILED
        assert isinstance(flow.error, TokenExchangeError)
        assert flow.error.__cause__ is cause
        assert token_storage.get_status() == TokenStatus.MISSING

    def test_should_ignore_callbacks_after_terminal_state(self, flow: AuthorizationFlow) -> None:
        flow.handle_request("/callback?error=access_denied")

        response = flow.handle_request("/callback?code=ABC")

        assert response.status == 409
        assert flow.state is FlowState.FAILED


@pytest.mark.unit
class TestAuthorizationFlowRun:
    """Tests for AuthorizationFlow.run() with a real local listener."""

    def test_should_complete_after_callback(
        self, client_secret: ClientSecret, token_storage: TokenStorage
    ) -> None:
        """Verify 404s are served until the callback arrives, then the flow ends."""
        statuses: list[int] = []
        flow = AuthorizationFlow(
            client_secret,
            token_storage,
            host="127.0.0.1",
            port=_free_port(),
            open_browser=_browser_visiting("/favicon.ico", "/callback?code=ABC", statuses=statuses),
        )

        with patch.object(flow, "_exchange_code", return_value=EXCHANGED_TOKENS):
            tokens = flow.run()

        assert statuses[0] == 404
        assert tokens == EXCHANGED_TOKENS
        assert flow.state is FlowState.COMPLETED
        assert token_storage.load().refresh_token == "exchanged_refresh"

    def test_should_raise_and_close_listener_on_denial(
        self, client_secret: ClientSecret, token_storage: TokenStorage
    ) -> None:
        """Verify the port is released after a failed flow."""
        port = _free_port()
        flow = AuthorizationFlow(
            client_secret,
            token_storage,
            host="127.0.0.1",
            port=port,
            open_browser=_browser_visiting("/callback?error=access_denied"),
        )

        with pytest.raises(OAuthDeniedError):
            flow.run()

        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(("127.0.0.1", port))

    def test_should_raise_flow_error_when_ending_without_tokens(
        self, client_secret: ClientSecret, token_storage: TokenStorage
    ) -> None:
        flow = AuthorizationFlow(client_secret, token_storage, host="127.0.0.1", port=_free_port())
        flow._open_browser = lambda url: setattr(flow, "state", FlowState.COMPLETED)

        with pytest.raises(AuthorizationFlowError, match="without tokens"):
            flow.run()

    def test_should_fail_to_bind_when_port_in_use(
        self, client_secret: ClientSecret, token_storage: TokenStorage
    ) -> None:
        """Verify a second concurrent flow fails at the bind step."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            sock.listen(1)
            busy_port = sock.getsockname()[1]
            open_browser = MagicMock()
            flow = AuthorizationFlow(
                client_secret,
                token_storage,
                host="127.0.0.1",
                port=busy_port,
                open_browser=open_browser,
            )

            with pytest.raises(OSError):
                flow.run()

        open_browser.assert_not_called()


@pytest.mark.unit
class TestOAuthManagerAuthenticate:
    """Tests for OAuthManager.authenticate() method."""

    @pytest.mark.asyncio
    async def test_should_require_client_secret_file(self, credentials_dir: Path) -> None:
        manager = OAuthManager()
        with pytest.raises(ConfigurationError):
            await manager.authenticate(open_browser=MagicMock())

    @pytest.mark.asyncio
    async def test_should_write_token_file_and_overwrite_on_second_run(
        self, client_secret_file: Path, credentials_dir: Path
    ) -> None:
        """Verify running auth twice succeeds and replaces the tokens."""
        manager = OAuthManager()
        second_tokens = TokenSet(access_token="second_access", refresh_token="second_refresh")

        with patch.object(
            AuthorizationFlow,
            "_exchange_code",
            side_effect=[EXCHANGED_TOKENS, second_tokens],
        ):
            await manager.authenticate(
                open_browser=_browser_visiting("/callback?code=ABC"),
                host="127.0.0.1",
                port=_free_port(),
            )
            first = json.loads((credentials_dir / "tokens.json").read_text())

            await manager.authenticate(
                open_browser=_browser_visiting("/callback?code=DEF"),
                host="127.0.0.1",
                port=_free_port(),
            )
            second = json.loads((credentials_dir / "tokens.json").read_text())

        assert first["access_token"] == "exchanged_access"
        assert second["access_token"] == "second_access"


@pytest.mark.unit
class TestOAuthManagerCredentials:
    """Tests for OAuthManager.get_credentials() and get_status()."""

    def test_should_build_refreshable_credentials(
        self, client_secret_file: Path, token_file: Path
    ) -> None:
        credentials = OAuthManager().get_credentials()

        assert credentials.token == "test_access_token_abc123"
        assert credentials.refresh_token == "test_refresh_token_xyz789"
        assert credentials.client_id == "test-client-id"
        assert credentials.client_secret == "test-client-secret"
        assert credentials.scopes == DRIVE_SCOPES
        assert credentials.expiry.tzinfo is None
        assert credentials.valid is True

    def test_should_convert_expiry_to_naive_utc(
        self, client_secret_file: Path, credentials_dir: Path
    ) -> None:
        (credentials_dir / "tokens.json").write_text(
            json.dumps({"access_token": "a", "expiry": "2030-01-01T09:00:00+09:00"})
        )

        credentials = OAuthManager().get_credentials()

        assert credentials.expiry == datetime(2030, 1, 1, 0, 0, 0)

    def test_should_require_authentication_without_token_file(
        self, client_secret_file: Path
    ) -> None:
        with pytest.raises(AuthenticationRequiredError):
            OAuthManager().get_credentials()

    def test_should_report_token_status(self, token_file: Path) -> None:
        assert OAuthManager().get_status() == TokenStatus.VALID

    def test_should_use_token_file_in_credentials_dir(self, credentials_dir: Path) -> None:
        manager = OAuthManager()
        assert manager.credentials_dir == credentials_dir
        assert manager.token_location == str(credentials_dir / "tokens.json")
