"""Structured logging configuration for oauth_tooling.

Configures structlog on top of the standard library logging module, with
a colored console renderer for development and a JSON renderer for
production. Log events use dotted names (``oauth.token.acquired``) and
never carry secrets: tokens, passwords and client secrets are either left
out of events or redacted with ``sanitize_for_logging``.

Environment Variables:
    OAUTH_TOOLING_LOG_FORMAT: "json" for JSON output, "console" for colored output
    OAUTH_TOOLING_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR)
    OAUTH_TOOLING_SERVICE_NAME: Service name bound to every log event
    OAUTH_TOOLING_DEBUG: "true"/"1" to include upstream response bodies in failure logs

Example:
    >>> from oauth_tooling.observability.logging import get_logger, configure_logging
    >>> configure_logging(log_format="json", log_level="INFO")
    >>> logger = get_logger("oauth_tooling.auth.oauth2")
    >>> logger.info("oauth.token.acquired", grant_type="password")
"""

import logging
import os
import sys
from typing import Any

import structlog
from structlog.typing import Processor

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "console"
DEFAULT_SERVICE_NAME = "oauth-tooling"

ENV_LOG_FORMAT = "OAUTH_TOOLING_LOG_FORMAT"
ENV_LOG_LEVEL = "OAUTH_TOOLING_LOG_LEVEL"
ENV_SERVICE_NAME = "OAUTH_TOOLING_SERVICE_NAME"
ENV_DEBUG = "OAUTH_TOOLING_DEBUG"

REDACTED_PLACEHOLDER = "***REDACTED***"

# Key substrings (case-insensitive) whose values must never reach a log sink
_SENSITIVE_KEY_PATTERNS = frozenset({"password", "token", "secret", "authorization", "credential"})

# Exact key names that are sensitive but too short to match as substrings
_SENSITIVE_KEYS = frozenset({"code"})

_logging_configured = False


def _is_sensitive_key(key: str) -> bool:
    lower = key.lower()
    if lower in _SENSITIVE_KEYS:
        return True
    return any(pattern in lower for pattern in _SENSITIVE_KEY_PATTERNS)


def sanitize_for_logging(data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` with sensitive values redacted.

    Keys containing password, token, secret, authorization or credential
    (case-insensitive), and the key "code", get REDACTED_PLACEHOLDER as
    value. Nested dicts and lists of dicts are sanitized recursively.

    Example:
        >>> sanitize_for_logging({"grant_type": "password", "password": "s3cret"})
        {'grant_type': 'password', 'password': '***REDACTED***'}
    """
    if not data:
        return {}
    result: dict[str, Any] = {}
    for k, v in data.items():
        if _is_sensitive_key(k):
            result[k] = REDACTED_PLACEHOLDER
        elif isinstance(v, dict):
            result[k] = sanitize_for_logging(v)
        elif isinstance(v, list):
            result[k] = [
                sanitize_for_logging(item) if isinstance(item, dict) else item for item in v
            ]
        else:
            result[k] = v
    return result


def is_debug_mode() -> bool:
    """Return True if OAUTH_TOOLING_DEBUG is set to a truthy value."""
    value = os.environ.get(ENV_DEBUG, "").strip().lower()
    return value in ("true", "1", "yes", "on")


def _get_log_level() -> str:
    return os.environ.get(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL).upper()


def _get_log_format() -> str:
    return os.environ.get(ENV_LOG_FORMAT, DEFAULT_LOG_FORMAT).lower()


def _get_service_name() -> str:
    return os.environ.get(ENV_SERVICE_NAME, DEFAULT_SERVICE_NAME)


def _get_shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(
    log_format: str | None = None,
    log_level: str | None = None,
    service_name: str | None = None,
    force: bool = False,
) -> None:
    """Configure structured logging for the process.

    Args:
        log_format: "json" or "console". Defaults to env var or "console"
        log_level: Minimum log level. Defaults to env var or "INFO"
        service_name: Service name for log context. Defaults to env var or "oauth-tooling"
        force: If True, reconfigure even if already configured
    """
    global _logging_configured

    if _logging_configured and not force:
        return

    log_format = log_format or _get_log_format()
    log_level = log_level or _get_log_level()
    service_name = service_name or _get_service_name()

    shared_processors = _get_shared_processors()

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level))

    structlog.contextvars.bind_contextvars(service=service_name)

    _logging_configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger.

    Never configures logging: the host application (or the CLI, through
    configure_logging) owns handlers and levels.

    Args:
        name: Logger name (typically __name__ of the module)
    """
    return structlog.stdlib.get_logger(name)
