"""OAuth Tooling Error Taxonomy.

This module defines the error hierarchy shared by the token acquisition
engine, the token-info client and the request authorization pipeline.
Every error carries a stable ``oauth:<area>/<reason>`` code plus a
details dict, so callers can branch on codes and log structured context.
"""
from __future__ import annotations

from typing import Any, Sequence


class OAuthToolingError(Exception):
    """Base exception for all oauth_tooling errors.

    Attributes:
        code: Error code following the oauth:<area>/<reason> pattern
        message: Human-readable error message
        details: Optional additional error context
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class CredentialsUnavailableError(OAuthToolingError):
    """Raised when client or user credentials cannot be read.

    Covers a missing or unreadable credentials directory, a missing
    credentials file, and files that are not valid JSON objects with the
    expected string fields.

    Attributes:
        directory: The credentials directory that was read
        reason: Short description of what went wrong
    """

    def __init__(self, directory: str, reason: str, details: dict[str, Any] | None = None) -> None:
        message = f"Credentials unavailable in '{directory}': {reason}"
        super().__init__(
            code="oauth:credentials/unavailable",
            message=message,
            details={"directory": directory, "reason": reason, **(details or {})},
        )
        self.directory = directory
        self.reason = reason


class UnsupportedGrantTypeError(OAuthToolingError):
    """Raised when a token request names a grant kind this library cannot build.

    Checked before any credentials are loaded or any request is sent.
    """

    def __init__(self, grant_type: str, details: dict[str, Any] | None = None) -> None:
        message = f"Unsupported grant type: {grant_type!r}"
        super().__init__(
            code="oauth:grant/unsupported",
            message=message,
            details={"grant_type": grant_type, **(details or {})},
        )
        self.grant_type = grant_type


class InvalidGrantRequestError(OAuthToolingError):
    """Raised when a field required by the selected grant kind is absent.

    Attributes:
        grant_type: The grant kind being built
        missing: Names of the absent fields
    """

    def __init__(
        self,
        grant_type: str,
        missing: Sequence[str],
        details: dict[str, Any] | None = None,
    ) -> None:
        message = f"Grant type {grant_type!r} requires: {', '.join(missing)}"
        super().__init__(
            code="oauth:grant/invalid_request",
            message=message,
            details={"grant_type": grant_type, "missing": list(missing), **(details or {})},
        )
        self.grant_type = grant_type
        self.missing = list(missing)


class TokenRequestRejectedError(OAuthToolingError):
    """Raised when the token endpoint answers with a non-2xx status or no token.

    Attributes:
        status_code: HTTP status returned by the token endpoint
    """

    def __init__(
        self,
        status_code: int,
        reason: str = "token endpoint rejected the request",
        details: dict[str, Any] | None = None,
    ) -> None:
        message = f"Token request rejected (status {status_code}): {reason}"
        super().__init__(
            code="oauth:token/rejected",
            message=message,
            details={"status_code": status_code, **(details or {})},
        )
        self.status_code = status_code


class TokenRequestFailedError(OAuthToolingError):
    """Raised when the token request fails without a usable response.

    Covers DNS and connect errors, timeouts, undecodable bodies and redirect loops.
    """

    def __init__(self, endpoint: str, reason: str, details: dict[str, Any] | None = None) -> None:
        message = f"Token request to {endpoint} failed: {reason}"
        super().__init__(
            code="oauth:token/transport_failed",
            message=message,
            details={"endpoint": endpoint, **(details or {})},
        )
        self.endpoint = endpoint


class TokenInvalidError(OAuthToolingError):
    """Raised when token introspection fails or returns unusable data.

    Attributes:
        status_code: HTTP status returned by the token-info endpoint, or None
            when the endpoint could not be reached
    """

    def __init__(
        self,
        reason: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        message = f"Invalid access token: {reason}"
        super().__init__(
            code="oauth:tokeninfo/invalid",
            message=message,
            details={"status_code": status_code, **(details or {})},
        )
        self.status_code = status_code


class MissingAccessTokenError(OAuthToolingError):
    """Raised when an inbound request carries no usable Bearer token."""

    def __init__(self, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="oauth:request/missing_token",
            message="Missing or malformed Bearer token in Authorization header",
            details=details or {},
        )


class InsufficientScopeError(OAuthToolingError):
    """Raised when the granted scopes do not cover the scopes a route requires.

    Attributes:
        required: Scopes the route requires
        granted: Scopes granted to the token
    """

    def __init__(
        self,
        required: Sequence[str],
        granted: Sequence[str],
        details: dict[str, Any] | None = None,
    ) -> None:
        missing = sorted(set(required) - set(granted))
        message = f"Insufficient scope: missing {', '.join(missing) or 'nothing'}"
        super().__init__(
            code="oauth:request/insufficient_scope",
            message=message,
            details={
                "required": sorted(set(required)),
                "granted": sorted(set(granted)),
                **(details or {}),
            },
        )
        self.required = list(required)
        self.granted = list(granted)
