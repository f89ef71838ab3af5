"""Exception hierarchy for gdrive-mcp.

Every error raised on purpose by this package derives from GDriveMCPError so
the CLI can turn it into a one-line message and exit code 1.
"""

from typing import Any


class GDriveMCPError(Exception):
    """Base class for all gdrive-mcp errors."""


class ConfigurationError(GDriveMCPError):
    """A required credential/config file is missing or malformed."""


class AuthenticationRequiredError(GDriveMCPError):
    """No usable token file exists; the operator must run the auth flow."""


class AuthorizationFlowError(GDriveMCPError):
    """Base class for failures that terminate the browser authorization flow."""


class OAuthDeniedError(AuthorizationFlowError):
    """The identity provider redirected back with an ``error`` parameter."""

    def __init__(self, error: str) -> None:
        super().__init__(f"OAuth error: {error}")
        self.error = error


class MissingAuthorizationCodeError(AuthorizationFlowError):
    """The callback carried neither ``code`` nor ``error``."""

    def __init__(self) -> None:
        super().__init__("No authorization code received")


class TokenExchangeError(AuthorizationFlowError):
    """Exchanging the authorization code for tokens (or saving them) failed."""


class RemoteApiError(GDriveMCPError):
    """The Drive API returned a non-2xx response or could not be reached.

    Attributes:
        status_code: HTTP status, or None for transport failures.
        body: Raw response body as returned by Google, if any.
    """

    def __init__(self, message: str, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class UnknownToolError(GDriveMCPError):
    """The requested tool name is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class InvalidToolArgumentsError(GDriveMCPError):
    """Tool arguments failed schema validation."""

    def __init__(self, name: str, details: str) -> None:
        super().__init__(f"Invalid arguments for {name}: {details}")
        self.name = name
        self.details = details


class UnauthorizedError(GDriveMCPError):
    """A registry mutation was attempted without an authenticated identity."""

    def __init__(self) -> None:
        super().__init__("Unauthorized")
