"""Scope-based authorization.

``authorize`` is the pure subset check. ``ScopeGate`` enforces a route's
required scopes against the TokenInfo attached by OAuth2Middleware, with an
optional precedence hook that may waive the check. Use it as a FastAPI
dependency through ``require_scopes``:

    @app.get("/orders", dependencies=[Depends(require_scopes("orders.read"))])
    async def list_orders() -> list[dict[str, str]]: ...

A failing precedence hook never propagates: its error handler runs (and
is itself isolated, failures only logged) and the request is denied.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Protocol

from fastapi import HTTPException, Request

from oauth_tooling.auth.middleware import RequestContext, get_request_context
from oauth_tooling.errors import InsufficientScopeError
from oauth_tooling.observability import get_logger

logger = get_logger(__name__)

HTTP_FORBIDDEN = 403
ERROR_INSUFFICIENT_SCOPE = "Insufficient scope"

DEFAULT_PRECEDENCE_TIMEOUT_SECONDS = 10.0

PRECEDENCE_CHECK_FAILED = "precedence_check_failed"


class PrecedenceFunction(Protocol):
    """Returns True to skip scope checking for this request."""

    def __call__(self, context: RequestContext) -> Awaitable[bool]: ...


PrecedenceErrorHandler = Callable[[Exception, Any], Any]
ScopeValidator = Callable[[Iterable[str], Iterable[str]], bool]


def authorize(required_scopes: Iterable[str] | None, granted_scopes: Iterable[str] | None) -> bool:
    """Return True iff every required scope is granted.

    Both arguments are treated as sets; None behaves like an empty set.
    """
    return set(required_scopes or ()) <= set(granted_scopes or ())


@dataclass
class PrecedenceOptions:
    """Override evaluated before scope checking.

    Attributes:
        precedence_function: Async callable receiving the RequestContext;
            True skips the scope check.
        precedence_error_handler: Called as ``handler(exc, logger)`` when the
            precedence function raises or times out. Awaitable results are
            awaited. Its own failures are logged and swallowed.
        logger: Logger handed to the error handler; defaults to this module's.
        timeout: Seconds to wait for the precedence function; None waits forever.
    """

    precedence_function: PrecedenceFunction
    precedence_error_handler: PrecedenceErrorHandler | None = None
    logger: Any = None
    timeout: float | None = DEFAULT_PRECEDENCE_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if not callable(self.precedence_function):
            raise ValueError("precedence_function must be callable")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive or None")


class ScopeGate:
    """Enforces required scopes for one route.

    Example:
        >>> gate = ScopeGate(["orders.read"])
        >>> await gate.check(context)  # raises InsufficientScopeError if not granted
    """

    def __init__(
        self,
        scopes: Iterable[str],
        precedence: PrecedenceOptions | None = None,
        *,
        validator: ScopeValidator = authorize,
    ) -> None:
        """Initialize the gate.

        Args:
            scopes: Scopes the route requires.
            precedence: Optional override evaluated before the scope check.
            validator: Subset check; replaceable for testing.
        """
        self._scopes = tuple(dict.fromkeys(scopes))
        self._precedence = precedence
        self._validator = validator

    @property
    def scopes(self) -> tuple[str, ...]:
        return self._scopes

    async def check(self, context: RequestContext) -> None:
        """Allow the request or raise.

        Raises:
            InsufficientScopeError: Granted scopes do not cover the required
                ones, or the precedence hook failed.
        """
        if self._precedence is not None:
            try:
                overridden = await self._run_precedence(context)
            except Exception as exc:
                await self._handle_precedence_error(exc, context)
                raise InsufficientScopeError(
                    self._scopes,
                    context.granted_scopes,
                    details={"reason": PRECEDENCE_CHECK_FAILED},
                ) from exc
            if overridden:
                logger.debug("oauth.scope.precedence_granted", path=context.path)
                return

        granted = context.granted_scopes
        if not self._validator(self._scopes, granted):
            logger.info(
                "oauth.scope.insufficient",
                path=context.path,
                required=list(self._scopes),
                has_scopes=granted,
            )
            raise InsufficientScopeError(self._scopes, granted)

    async def _run_precedence(self, context: RequestContext) -> bool:
        assert self._precedence is not None
        result = await asyncio.wait_for(
            self._precedence.precedence_function(context),
            timeout=self._precedence.timeout,
        )
        return bool(result)

    async def _handle_precedence_error(self, exc: Exception, context: RequestContext) -> None:
        assert self._precedence is not None
        hook_logger = self._precedence.logger or logger
        logger.warning(
            "oauth.scope.precedence_failed",
            path=context.path,
            error=repr(exc),
        )
        handler = self._precedence.precedence_error_handler
        if handler is None:
            return
        try:
            outcome = handler(exc, hook_logger)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as handler_exc:
            logger.error(
                "oauth.scope.precedence_error_handler_failed",
                path=context.path,
                error=repr(handler_exc),
            )

    async def __call__(self, request: Request) -> RequestContext:
        """FastAPI dependency: return the request's context or raise 403."""
        context = get_request_context(request)
        try:
            await self.check(context)
        except InsufficientScopeError as exc:
            raise HTTPException(
                status_code=HTTP_FORBIDDEN,
                detail=ERROR_INSUFFICIENT_SCOPE,
            ) from exc
        return context


def require_scopes(*scopes: str, precedence: PrecedenceOptions | None = None) -> ScopeGate:
    """FastAPI dependency factory: require all of ``scopes``.

    Use as ``Depends(require_scopes("orders.read", "orders.write"))``. The
    dependency value is the request's RequestContext.
    """
    return ScopeGate(scopes, precedence)
