"""Shared utilities for the oauth_tooling auth module."""

from __future__ import annotations

from typing import Any, Mapping

import httpx

from oauth_tooling.observability import sanitize_for_logging

AUTHORIZATION_HEADER_FIELD_NAME = "authorization"
BEARER_SCHEME = "bearer"


def parse_scope(claim: Any) -> list[str]:
    """Normalize scope claim to a list of strings.

    OAuth2 scope can be a space-separated string (RFC 6749) or a list.

    Args:
        claim: Raw scope value from a token-info response.

    Returns:
        List of scope strings (empty if claim is None or invalid).
    """
    if claim is None:
        return []
    if isinstance(claim, (list, tuple, set, frozenset)):
        return [str(s) for s in claim]
    if isinstance(claim, str):
        return [s.strip() for s in claim.split() if s.strip()]
    return []


def get_header_value(headers: Mapping[str, str], name: str) -> str | None:
    """Look up a header by name, ignoring case.

    Works on any mapping, not only on case-insensitive header containers.
    """
    value = headers.get(name)
    if value is not None:
        return value
    wanted = name.lower()
    for key, candidate in headers.items():
        if key.lower() == wanted:
            return candidate
    return None


def extract_bearer_token(header_value: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` value.

    The scheme is matched case-insensitively (RFC 6750). Returns None for a
    missing header, another scheme, or an empty token.
    """
    if not header_value:
        return None
    scheme, _, token = header_value.strip().partition(" ")
    if scheme.lower() != BEARER_SCHEME:
        return None
    return token.strip() or None


def loggable_response_body(resp: httpx.Response) -> Any:
    """Return an upstream response body safe to put in a debug log event.

    JSON bodies are redacted with sanitize_for_logging, so echoed tokens
    and secrets never reach the log sink. Non-JSON bodies are returned as text.
    """
    try:
        body = resp.json()
    except ValueError:
        return resp.text
    return sanitize_for_logging({"body": body})["body"]
