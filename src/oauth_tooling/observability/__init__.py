"""Observability module for oauth_tooling.

Structured logging (structlog) with JSON output for production and
colored console output for development. Importing oauth_tooling leaves
logging untouched; call ``configure_logging`` to install handlers.

Example:
    >>> from oauth_tooling.observability import get_logger
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info("oauth.request.authorized", path="/orders")
"""

from oauth_tooling.observability.logging import (
    configure_logging,
    get_logger,
    is_debug_mode,
    sanitize_for_logging,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "is_debug_mode",
    "sanitize_for_logging",
]
