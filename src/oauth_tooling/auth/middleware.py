"""Bearer token validation for inbound requests.

``RequestAuthorizer`` is the framework-neutral pipeline: skip public paths,
extract the bearer token, look it up at the token-info endpoint and return
a ``RequestContext`` carrying the resulting TokenInfo. ``OAuth2Middleware``
plugs it into Starlette/FastAPI: it stores the context on
``request.state.oauth_context`` and answers 401 when the token is missing
or invalid. Downstream handlers read the context with
``get_request_context(request)``.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Sequence

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from oauth_tooling.auth.introspection import (
    DEFAULT_HTTP_TIMEOUT,
    TOKEN_LOCATIONS,
    TokenInfo,
    TokenInfoClient,
    TokenLocation,
)
from oauth_tooling.auth.utils import (
    AUTHORIZATION_HEADER_FIELD_NAME,
    extract_bearer_token,
    get_header_value,
)
from oauth_tooling.errors import MissingAccessTokenError, OAuthToolingError
from oauth_tooling.observability import get_logger

logger = get_logger(__name__)

HTTP_UNAUTHORIZED = 401
ERROR_AUTH_REQUIRED = "Authentication required"
ERROR_INVALID_TOKEN = "Invalid authentication token"

REQUEST_CONTEXT_STATE_KEY = "oauth_context"

ENV_TOKENINFO_URL = "OAUTH_TOOLING_TOKENINFO_URL"
ENV_PUBLIC_ENDPOINTS = "OAUTH_TOOLING_PUBLIC_ENDPOINTS"
ENV_TOKEN_LOCATION = "OAUTH_TOOLING_TOKEN_LOCATION"


@dataclass(frozen=True)
class RequestContext:
    """Per-request authorization state passed along the interceptor chain.

    Attributes:
        path: Request path (no query string).
        method: HTTP method.
        headers: Request headers.
        token_info: Token-info for the bearer token; None until the request
            has been authorized (and always None on public paths).
    """

    path: str
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict, repr=False)
    token_info: TokenInfo | None = None

    @property
    def granted_scopes(self) -> list[str]:
        if self.token_info is None:
            return []
        return list(self.token_info.scope)

    def with_token_info(self, token_info: TokenInfo) -> RequestContext:
        return dataclasses.replace(self, token_info=token_info)

    @classmethod
    def from_request(cls, request: Request) -> RequestContext:
        return cls(path=request.url.path, method=request.method, headers=request.headers)


@dataclass
class AuthorizerConfig:
    """Configuration for RequestAuthorizer / OAuth2Middleware.

    Attributes:
        token_info_endpoint: URL of the token-info endpoint (required).
        public_endpoints: Path prefixes that skip token validation, checked in order.
        token_location: How the token is sent to the token-info endpoint:
            "query" (``?access_token=``) or "header" (``Authorization: Bearer``).
        timeout: Timeout in seconds for the token-info call.
    """

    token_info_endpoint: str
    public_endpoints: Sequence[str] = ()
    token_location: TokenLocation = "query"
    timeout: float = DEFAULT_HTTP_TIMEOUT

    def __post_init__(self) -> None:
        if not self.token_info_endpoint:
            raise ValueError("token_info_endpoint must be defined")
        if isinstance(self.public_endpoints, str):
            raise ValueError("public_endpoints must be a sequence of path prefixes, not a string")
        self.public_endpoints = tuple(self.public_endpoints)
        if self.token_location not in TOKEN_LOCATIONS:
            raise ValueError(
                f"token_location must be one of {TOKEN_LOCATIONS}, got {self.token_location!r}"
            )
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AuthorizerConfig:
        """Build a config from OAUTH_TOOLING_* environment variables.

        OAUTH_TOOLING_PUBLIC_ENDPOINTS is a comma-separated list of prefixes.
        """
        env = os.environ if environ is None else environ
        raw_public = env.get(ENV_PUBLIC_ENDPOINTS, "")
        return cls(
            token_info_endpoint=env.get(ENV_TOKENINFO_URL, ""),
            public_endpoints=tuple(p.strip() for p in raw_public.split(",") if p.strip()),
            token_location=env.get(ENV_TOKEN_LOCATION, "query"),  # type: ignore[arg-type]
        )


class RequestAuthorizer:
    """Validates the bearer token of an inbound request.

    Example:
        >>> authorizer = RequestAuthorizer(
        ...     AuthorizerConfig(
        ...         token_info_endpoint="https://auth.example.com/oauth2/tokeninfo",
        ...         public_endpoints=("/health", "/metrics"),
        ...     )
        ... )
        >>> context = await authorizer.authorize(RequestContext(path="/orders", headers=headers))
        >>> context.granted_scopes
        ['orders.read']
    """

    def __init__(
        self,
        config: AuthorizerConfig,
        *,
        token_info_client: TokenInfoClient | None = None,
    ) -> None:
        self._config = config
        self._client = token_info_client or TokenInfoClient(
            token_location=config.token_location,
            timeout=config.timeout,
        )

    @property
    def config(self) -> AuthorizerConfig:
        return self._config

    def is_public(self, path: str) -> bool:
        """Return True if ``path`` starts with a configured public prefix."""
        return any(path.startswith(prefix) for prefix in self._config.public_endpoints)

    async def authorize(self, context: RequestContext) -> RequestContext:
        """Resolve the bearer token of ``context`` into TokenInfo.

        Public paths are returned unchanged, without a token-info call.

        Returns:
            A copy of ``context`` with token_info set, or ``context`` itself
            for a public path.

        Raises:
            MissingAccessTokenError: No Authorization header, another scheme,
                or an empty token. No token-info call is made.
            TokenInvalidError: The token-info lookup failed.
        """
        if self.is_public(context.path):
            return context

        token = extract_bearer_token(
            get_header_value(context.headers, AUTHORIZATION_HEADER_FIELD_NAME)
        )
        if not token:
            logger.warning("oauth.request.missing_token", path=context.path)
            raise MissingAccessTokenError(details={"path": context.path})

        info = await self._client.introspect(self._config.token_info_endpoint, token)
        logger.debug("oauth.request.authorized", path=context.path, scope=info.scope)
        return context.with_token_info(info)


def _unauthorized(detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=HTTP_UNAUTHORIZED,
        content={"detail": detail},
        headers={"WWW-Authenticate": "Bearer"},
    )


class OAuth2Middleware(BaseHTTPMiddleware):
    """Middleware that authorizes every non-public request by token-info lookup.

    Sets ``request.state.oauth_context`` on success. Returns 401 when the
    token is missing or the lookup fails; the route is not invoked.
    """

    def __init__(
        self,
        app: Any,
        config: AuthorizerConfig,
        *,
        token_info_client: TokenInfoClient | None = None,
    ) -> None:
        """Initialize OAuth2 middleware.

        Args:
            app: ASGI application.
            config: Authorizer configuration (validated on construction).
            token_info_client: Optional client, e.g. one with a mock transport.
        """
        super().__init__(app)
        self._authorizer = RequestAuthorizer(config, token_info_client=token_info_client)

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Authorize the request; return 401 or pass to next."""
        if self._authorizer.is_public(request.url.path):
            return await call_next(request)

        try:
            context = await self._authorizer.authorize(RequestContext.from_request(request))
        except MissingAccessTokenError:
            return _unauthorized(ERROR_AUTH_REQUIRED)
        except OAuthToolingError as e:
            logger.warning(
                "oauth.request.invalid_token",
                path=request.url.path,
                code=e.code,
                upstream_status=e.details.get("status_code"),
            )
            return _unauthorized(ERROR_INVALID_TOKEN)
        except Exception as e:
            # host frameworks must never see raw errors from authorization
            logger.exception(
                "oauth.request.authorization_error",
                path=request.url.path,
                error=repr(e),
            )
            return _unauthorized(ERROR_INVALID_TOKEN)

        setattr(request.state, REQUEST_CONTEXT_STATE_KEY, context)
        return await call_next(request)


def get_request_context(request: Request) -> RequestContext:
    """Return the RequestContext stored by OAuth2Middleware.

    Falls back to a context without token info when the middleware did not
    authorize the request (public path or middleware not installed).
    """
    context = getattr(request.state, REQUEST_CONTEXT_STATE_KEY, None)
    if isinstance(context, RequestContext):
        return context
    return RequestContext.from_request(request)
