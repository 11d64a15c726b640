"""Unit tests for scope-based authorization.

Covers the subset check, ScopeGate with and without a precedence hook
(override, fall-through, failure isolation, timeout), and the FastAPI
dependency returned by require_scopes (403 vs 200).
"""

from __future__ import annotations

import asyncio
from typing import Any, Iterable

import pytest
from fastapi import Depends, FastAPI
from starlette.testclient import TestClient

from oauth_tooling.auth.introspection import TokenInfo, TokenInfoClient
from oauth_tooling.auth.middleware import AuthorizerConfig, OAuth2Middleware, RequestContext
from oauth_tooling.auth.scopes import (
    PRECEDENCE_CHECK_FAILED,
    PrecedenceOptions,
    ScopeGate,
    authorize,
    require_scopes,
)
from oauth_tooling.errors import InsufficientScopeError
from oauth_tooling.testing.mocks import MockAuthorizationServer


def _context(*scopes: str) -> RequestContext:
    return RequestContext(path="/orders", token_info=TokenInfo(scope=list(scopes)))


class _ValidatorSpy:
    def __init__(self) -> None:
        self.calls: list[tuple[list[str], list[str]]] = []

    def __call__(self, required: Iterable[str], granted: Iterable[str]) -> bool:
        self.calls.append((list(required), list(granted)))
        return authorize(required, granted)


class TestAuthorize:
    """Pure subset check."""

    @pytest.mark.parametrize(
        ("required", "granted", "expected"),
        [
            ([], [], True),
            ([], ["a"], True),
            (["a"], ["a"], True),
            (["a"], ["a", "b"], True),
            (["a", "b"], ["b", "a"], True),
            (["a", "b"], ["a"], False),
            (["a"], [], False),
            (["a", "a"], ["a"], True),
            (None, None, True),
            (["a"], None, False),
        ],
    )
    def test_subset(self, required: Any, granted: Any, expected: bool) -> None:
        assert authorize(required, granted) is expected

    def test_order_and_duplicates_do_not_matter(self) -> None:
        assert authorize(["b", "a", "b"], ["a", "b"]) == authorize(["a", "b"], ["b", "a", "a"])


class TestScopeGate:
    """Scope enforcement for a single route."""

    async def test_granted_scopes_pass(self) -> None:
        gate = ScopeGate(["orders.read"])

        await gate.check(_context("orders.read", "uid"))

    async def test_missing_scope_raises(self) -> None:
        gate = ScopeGate(["orders.read", "orders.write"])

        with pytest.raises(InsufficientScopeError) as exc_info:
            await gate.check(_context("orders.read"))

        assert exc_info.value.details["required"] == ["orders.read", "orders.write"]
        assert exc_info.value.details["granted"] == ["orders.read"]
        assert "orders.write" in exc_info.value.message

    async def test_no_required_scopes_allows_context_without_token_info(self) -> None:
        await ScopeGate([]).check(RequestContext(path="/health"))

    async def test_required_scopes_deny_context_without_token_info(self) -> None:
        with pytest.raises(InsufficientScopeError):
            await ScopeGate(["orders.read"]).check(RequestContext(path="/health"))

    def test_scopes_are_deduplicated(self) -> None:
        assert ScopeGate(["a", "b", "a"]).scopes == ("a", "b")

    async def test_precedence_true_skips_validator(self) -> None:
        """Verify a precedence hook returning True allows without scope evaluation."""
        spy = _ValidatorSpy()

        async def is_admin(context: RequestContext) -> bool:
            return True

        gate = ScopeGate(
            ["orders.write"],
            PrecedenceOptions(precedence_function=is_admin),
            validator=spy,
        )

        await gate.check(_context())

        assert spy.calls == []

    async def test_precedence_false_falls_back_to_validator(self) -> None:
        spy = _ValidatorSpy()
        seen: list[RequestContext] = []

        async def never(context: RequestContext) -> bool:
            seen.append(context)
            return False

        gate = ScopeGate(
            ["orders.write"], PrecedenceOptions(precedence_function=never), validator=spy
        )
        context = _context("orders.read")

        with pytest.raises(InsufficientScopeError):
            await gate.check(context)

        assert seen == [context]
        assert spy.calls == [(["orders.write"], ["orders.read"])]

    async def test_precedence_false_with_granted_scopes_allows(self) -> None:
        async def never(context: RequestContext) -> bool:
            return False

        gate = ScopeGate(["orders.read"], PrecedenceOptions(precedence_function=never))

        await gate.check(_context("orders.read"))

    async def test_precedence_failure_runs_handler_then_denies(self) -> None:
        """Verify a raising hook calls the error handler with its logger, then denies."""
        handled: list[tuple[Exception, Any]] = []
        hook_logger = object()
        spy = _ValidatorSpy()

        async def broken(context: RequestContext) -> bool:
            raise RuntimeError("database down")

        def on_error(exc: Exception, log: Any) -> None:
            handled.append((exc, log))

        gate = ScopeGate(
            ["orders.read"],
            PrecedenceOptions(
                precedence_function=broken,
                precedence_error_handler=on_error,
                logger=hook_logger,
            ),
            validator=spy,
        )

        with pytest.raises(InsufficientScopeError) as exc_info:
            await gate.check(_context("orders.read"))

        assert exc_info.value.details["reason"] == PRECEDENCE_CHECK_FAILED
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert len(handled) == 1
        assert str(handled[0][0]) == "database down"
        assert handled[0][1] is hook_logger
        assert spy.calls == []

    async def test_async_error_handler_is_awaited(self) -> None:
        handled: list[Exception] = []

        async def broken(context: RequestContext) -> bool:
            raise RuntimeError("boom")

        async def on_error(exc: Exception, log: Any) -> None:
            await asyncio.sleep(0)
            handled.append(exc)

        gate = ScopeGate(
            ["orders.read"],
            PrecedenceOptions(precedence_function=broken, precedence_error_handler=on_error),
        )

        with pytest.raises(InsufficientScopeError):
            await gate.check(_context("orders.read"))

        assert len(handled) == 1

    async def test_raising_error_handler_is_isolated(self) -> None:
        """Verify an error handler that raises never escapes the gate."""

        async def broken(context: RequestContext) -> bool:
            raise RuntimeError("boom")

        def bad_handler(exc: Exception, log: Any) -> None:
            raise ValueError("handler exploded")

        gate = ScopeGate(
            ["orders.read"],
            PrecedenceOptions(precedence_function=broken, precedence_error_handler=bad_handler),
        )

        with pytest.raises(InsufficientScopeError):
            await gate.check(_context("orders.read"))

    async def test_precedence_failure_without_handler_denies(self) -> None:
        async def broken(context: RequestContext) -> bool:
            raise RuntimeError("boom")

        gate = ScopeGate([], PrecedenceOptions(precedence_function=broken))

        with pytest.raises(InsufficientScopeError):
            await gate.check(_context())

    async def test_precedence_timeout_is_treated_as_failure(self) -> None:
        handled: list[Exception] = []

        async def slow(context: RequestContext) -> bool:
            await asyncio.sleep(5)
            return True

        gate = ScopeGate(
            ["orders.read"],
            PrecedenceOptions(
                precedence_function=slow,
                precedence_error_handler=lambda exc, log: handled.append(exc),
                timeout=0.01,
            ),
        )

        with pytest.raises(InsufficientScopeError):
            await gate.check(_context("orders.read"))

        assert len(handled) == 1
        assert isinstance(handled[0], asyncio.TimeoutError)

    def test_precedence_options_validation(self) -> None:
        with pytest.raises(ValueError, match="callable"):
            PrecedenceOptions(precedence_function="not callable")  # type: ignore[arg-type]

        async def hook(context: RequestContext) -> bool:
            return False

        with pytest.raises(ValueError, match="timeout"):
            PrecedenceOptions(precedence_function=hook, timeout=0)


def _guarded_app(server: MockAuthorizationServer, gate: ScopeGate) -> FastAPI:
    app = FastAPI()

    @app.get("/orders")
    async def orders(context: RequestContext = Depends(gate)) -> dict[str, Any]:
        return {"scope": context.granted_scopes}

    app.add_middleware(
        OAuth2Middleware,
        config=AuthorizerConfig(token_info_endpoint=server.token_info_endpoint),
        token_info_client=TokenInfoClient(transport=server.transport),
    )
    return app


class TestRequireScopes:
    """FastAPI integration through require_scopes."""

    @pytest.fixture
    def server(self) -> MockAuthorizationServer:
        server = MockAuthorizationServer()
        server.add_token("reader", scopes=["orders.read"])
        server.add_token("nobody", scopes=[])
        return server

    def test_granted_scope_returns_200(self, server: MockAuthorizationServer) -> None:
        with TestClient(_guarded_app(server, require_scopes("orders.read"))) as client:
            response = client.get("/orders", headers={"Authorization": "Bearer reader"})

        assert response.status_code == 200
        assert response.json() == {"scope": ["orders.read"]}

    def test_missing_scope_returns_403(self, server: MockAuthorizationServer) -> None:
        with TestClient(_guarded_app(server, require_scopes("orders.read"))) as client:
            response = client.get("/orders", headers={"Authorization": "Bearer nobody"})

        assert response.status_code == 403
        assert response.json() == {"detail": "Insufficient scope"}

    def test_precedence_override_returns_200(self, server: MockAuthorizationServer) -> None:
        async def always(context: RequestContext) -> bool:
            return True

        gate = require_scopes("orders.write", precedence=PrecedenceOptions(always))
        with TestClient(_guarded_app(server, gate)) as client:
            response = client.get("/orders", headers={"Authorization": "Bearer nobody"})

        assert response.status_code == 200

    def test_failing_precedence_returns_403(self, server: MockAuthorizationServer) -> None:
        async def broken(context: RequestContext) -> bool:
            raise RuntimeError("boom")

        gate = require_scopes("orders.read", precedence=PrecedenceOptions(broken))
        with TestClient(_guarded_app(server, gate)) as client:
            response = client.get("/orders", headers={"Authorization": "Bearer reader"})

        assert response.status_code == 403

    def test_unauthenticated_request_never_reaches_gate(
        self, server: MockAuthorizationServer
    ) -> None:
        with TestClient(_guarded_app(server, require_scopes("orders.read"))) as client:
            response = client.get("/orders")

        assert response.status_code == 401
