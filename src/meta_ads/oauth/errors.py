"""Error taxonomy for the OAuth login flow.

Every failure of an authentication run is terminal and surfaces as one of
these; the CLI reports it and exits non-zero.
"""

from __future__ import annotations


class OAuthError(Exception):
    """OAuth-related error."""

    def __init__(self, message: str, error_code: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class ConfigurationError(OAuthError):
    """No profile found, or the profile lacks client credentials."""

    def __init__(self, message: str):
        super().__init__(message, error_code="not_configured")


class PortInUseError(OAuthError):
    """The local callback listener could not bind its port."""

    def __init__(self, port: int):
        super().__init__(
            f"Port {port} is already in use. Please close the application using it and try again.",
            error_code="port_in_use",
            details={"port": port},
        )
        self.port = port


class AuthorizationDeniedError(OAuthError):
    """The provider redirected back with an ``error`` parameter."""

    def __init__(self, error: str, description: str | None = None):
        reason = f"{error}: {description}" if description else error
        super().__init__(
            f"Authorization failed: {reason}",
            error_code=error,
            details={"error_description": description} if description else None,
        )
        self.reason = error


class MissingCodeError(OAuthError):
    """The redirect carried neither ``code`` nor ``error``."""

    def __init__(self):
        super().__init__("No authorization code received", error_code="missing_code")


class AuthorizationTimeoutError(OAuthError):
    """No redirect arrived before the deadline."""

    def __init__(self, timeout: float):
        minutes = timeout / 60
        window = f"{minutes:g} minutes" if timeout >= 60 else f"{timeout:g} seconds"
        super().__init__(
            f"OAuth flow timed out after {window}. Please try again.",
            error_code="timeout",
            details={"timeout": timeout},
        )
        self.timeout = timeout


class ExchangeFailedError(OAuthError):
    """A token endpoint returned a non-success response.

    The raw response body is kept on ``response_body`` for diagnostics.
    """

    def __init__(self, message: str, response_body: str = "", status_code: int | None = None):
        super().__init__(
            message,
            error_code="exchange_failed",
            details={"status_code": status_code, "response": response_body[:500]},
        )
        self.response_body = response_body
        self.status_code = status_code
