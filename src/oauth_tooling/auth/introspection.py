"""Token-info lookup for bearer tokens.

Asks the authorization server's token-info endpoint what a bearer token
is worth (granted scopes plus any other claims). The token is sent either
as the ``access_token`` query parameter (default) or in an
``Authorization: Bearer`` header. Every failure surfaces as
TokenInvalidError carrying the upstream status, if there was one.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

import httpx
from pydantic import Field, ValidationError, field_validator

from oauth_tooling.auth.utils import loggable_response_body, parse_scope
from oauth_tooling.errors import TokenInvalidError
from oauth_tooling.models.base import OAuthPassthroughModel
from oauth_tooling.observability import get_logger, is_debug_mode

logger = get_logger(__name__)

DEFAULT_HTTP_TIMEOUT = 10.0
ACCESS_TOKEN_QUERY_PARAM = "access_token"

TokenLocation = Literal["query", "header"]
TOKEN_LOCATIONS: tuple[str, ...] = ("query", "header")


class TokenInfo(OAuthPassthroughModel):
    """Token metadata returned by the token-info endpoint.

    Attributes:
        scope: Granted scopes; the endpoint may send a list or a
            space-separated string.
        uid: Resource owner identifier, when the endpoint returns one.
            Numeric ids are kept as strings.

    Every other claim is kept as an extra field, e.g. ``info.realm``.
    """

    scope: list[str] = Field(default_factory=list)
    uid: Optional[str] = None

    @field_validator("scope", mode="before")
    @classmethod
    def _normalize_scope(cls, value: Any) -> list[str]:
        return parse_scope(value)

    @field_validator("uid", mode="before")
    @classmethod
    def _coerce_uid(cls, value: Any) -> Any:
        # some servers send numeric user ids
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def claims(self) -> dict[str, Any]:
        """All claims, declared and passthrough."""
        return self.model_dump()


class TokenInfoClient:
    """Client for a token-info endpoint.

    Example:
        >>> client = TokenInfoClient()
        >>> info = await client.introspect("https://auth.example.com/oauth2/tokeninfo", token)
        >>> "orders.read" in info.scope
        True
    """

    def __init__(
        self,
        *,
        token_location: TokenLocation = "query",
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ) -> None:
        """Initialize the token-info client.

        Args:
            token_location: "query" sends ``?access_token=<token>``, "header"
                sends ``Authorization: Bearer <token>``.
            transport: Optional httpx transport for testing.
            timeout: Timeout in seconds for the token-info call.
        """
        if token_location not in TOKEN_LOCATIONS:
            raise ValueError(
                f"token_location must be one of {TOKEN_LOCATIONS}, got {token_location!r}"
            )
        self._token_location = token_location
        self._transport = transport
        self._timeout = timeout

    async def introspect(self, token_info_endpoint: str, access_token: str) -> TokenInfo:
        """Look up ``access_token`` at ``token_info_endpoint``.

        Raises:
            TokenInvalidError: Request failed (unreachable, undecodable body,
                redirect loop), non-2xx status, body not a
                JSON object, or token reported inactive.
        """
        params: dict[str, str] = {}
        headers = {"Accept": "application/json"}
        if self._token_location == "query":
            params[ACCESS_TOKEN_QUERY_PARAM] = access_token
        else:
            headers["Authorization"] = f"Bearer {access_token}"

        kwargs: dict[str, Any] = {"timeout": httpx.Timeout(self._timeout)}
        if self._transport is not None:
            kwargs["transport"] = self._transport

        try:
            async with httpx.AsyncClient(**kwargs) as client:
                resp = await client.get(token_info_endpoint, params=params, headers=headers)
        except httpx.RequestError as exc:
            logger.error(
                "oauth.tokeninfo.request_failed",
                token_info_endpoint=token_info_endpoint,
                error=str(exc),
            )
            raise TokenInvalidError(f"token-info request failed: {exc}") from exc

        if not resp.is_success:
            log_fields: dict[str, Any] = {}
            if is_debug_mode():
                log_fields["response_body"] = loggable_response_body(resp)
            logger.info(
                "oauth.tokeninfo.rejected",
                token_info_endpoint=token_info_endpoint,
                status_code=resp.status_code,
                **log_fields,
            )
            raise TokenInvalidError("token-info endpoint rejected the token", resp.status_code)

        try:
            body = resp.json()
        except ValueError as exc:
            raise TokenInvalidError("token-info response is not JSON", resp.status_code) from exc
        if not isinstance(body, dict):
            raise TokenInvalidError("token-info response is not a JSON object", resp.status_code)
        # RFC 7662 style endpoints report revoked or expired tokens with active=false
        if body.get("active") is False:
            raise TokenInvalidError("token is not active", resp.status_code)

        try:
            info = TokenInfo.model_validate(body)
        except ValidationError as exc:
            raise TokenInvalidError(
                "token-info response has malformed claims", resp.status_code
            ) from exc
        logger.debug(
            "oauth.tokeninfo.resolved",
            token_info_endpoint=token_info_endpoint,
            scope=info.scope,
        )
        return info
