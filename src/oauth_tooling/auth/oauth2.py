"""OAuth2 token acquisition.

Obtains access tokens from an OAuth2 token endpoint on behalf of a client
application, for three grant kinds:

- password: resource owner password credentials (RFC 6749 section 4.3)
- authorization_code: exchange of an authorization code (section 4.1)
- refresh_token: refresh of an expired access token (section 6)

Client credentials come from a credentials directory (see
``oauth_tooling.auth.credentials``) and are sent as HTTP Basic auth.
Form bodies and authorization URIs are built with Authlib's RFC 6749
parameter helpers; the exchange itself goes through httpx so that every
failure can be classified by status code. No retries: callers own retry
policy.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, Sequence

import httpx
from authlib.common.urls import add_params_to_uri
from authlib.oauth2.rfc6749.parameters import prepare_grant_uri, prepare_token_request
from pydantic import Field, ValidationError

from oauth_tooling.auth.credentials import (
    USER_CREDENTIALS_FILE,
    CredentialStore,
    Credentials,
    get_credential_store,
)
from oauth_tooling.auth.utils import loggable_response_body
from oauth_tooling.errors import (
    CredentialsUnavailableError,
    InvalidGrantRequestError,
    TokenRequestFailedError,
    TokenRequestRejectedError,
    UnsupportedGrantTypeError,
)
from oauth_tooling.models.base import OAuthBaseModel, OAuthPassthroughModel
from oauth_tooling.observability import get_logger, is_debug_mode

logger = get_logger(__name__)

PASSWORD_CREDENTIALS_GRANT = "password"
AUTHORIZATION_CODE_GRANT = "authorization_code"
REFRESH_TOKEN_GRANT = "refresh_token"

GRANT_TYPES = frozenset(
    {PASSWORD_CREDENTIALS_GRANT, AUTHORIZATION_CODE_GRANT, REFRESH_TOKEN_GRANT}
)

DEFAULT_HTTP_TIMEOUT = 10.0
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# Request fields each grant kind cannot be built without
_REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    PASSWORD_CREDENTIALS_GRANT: (),
    AUTHORIZATION_CODE_GRANT: ("code", "redirect_uri"),
    REFRESH_TOKEN_GRANT: ("refresh_token",),
}


class AccessTokenRequest(OAuthBaseModel):
    """Everything needed to request an access token.

    Only the fields legal for ``grant_type`` are sent; the others are
    ignored when the form body is built.

    Attributes:
        grant_type: One of GRANT_TYPES. Kept as a plain string so that an
            unknown kind surfaces as UnsupportedGrantTypeError.
        access_token_endpoint: URL of the token endpoint.
        credentials_dir: Directory holding client.json (and user.json).
        scopes: Scopes to request (password and authorization_code grants).
        query_params: Extra query parameters for the token endpoint URL
            (e.g. ``{"realm": "/services"}``), sent for every grant kind.
        code: Authorization code (authorization_code grant).
        redirect_uri: Redirect URI used to obtain the code (authorization_code grant).
        refresh_token: Refresh token (refresh_token grant).
    """

    grant_type: str
    access_token_endpoint: str = Field(..., min_length=1)
    credentials_dir: str = Field(..., min_length=1)
    scopes: list[str] = Field(default_factory=list)
    query_params: Optional[dict[str, str]] = None
    code: Optional[str] = Field(default=None, repr=False)
    redirect_uri: Optional[str] = None
    refresh_token: Optional[str] = Field(default=None, repr=False)


class TokenResponse(OAuthPassthroughModel):
    """Parsed token endpoint response.

    ``access_token`` is guaranteed; every other field the endpoint returned
    (token_type, expires_in, refresh_token, ...) is kept verbatim and shows
    up in ``model_dump()``.
    """

    access_token: str = Field(..., min_length=1)


def _password_grant_params(request: AccessTokenRequest, credentials: Credentials) -> dict[str, Any]:
    if not credentials.has_user_credentials:
        raise CredentialsUnavailableError(
            request.credentials_dir,
            f"{USER_CREDENTIALS_FILE} is required for the password grant",
        )
    return {
        "username": credentials.user,
        "password": credentials.password,
        "scope": request.scopes,
    }


def _authorization_code_grant_params(
    request: AccessTokenRequest, credentials: Credentials
) -> dict[str, Any]:
    return {
        "code": request.code,
        "redirect_uri": request.redirect_uri,
        "scope": request.scopes or None,
    }


def _refresh_token_grant_params(
    request: AccessTokenRequest, credentials: Credentials
) -> dict[str, Any]:
    return {"refresh_token": request.refresh_token}


_GRANT_PARAM_BUILDERS: dict[str, Callable[[AccessTokenRequest, Credentials], dict[str, Any]]] = {
    PASSWORD_CREDENTIALS_GRANT: _password_grant_params,
    AUTHORIZATION_CODE_GRANT: _authorization_code_grant_params,
    REFRESH_TOKEN_GRANT: _refresh_token_grant_params,
}


def validate_grant_request(request: AccessTokenRequest) -> None:
    """Check the grant kind and its required fields without any I/O.

    Raises:
        UnsupportedGrantTypeError: grant_type is not one of GRANT_TYPES.
        InvalidGrantRequestError: A field required by the grant kind is empty.
    """
    if request.grant_type not in GRANT_TYPES:
        raise UnsupportedGrantTypeError(request.grant_type)
    missing = [name for name in _REQUIRED_FIELDS[request.grant_type] if not getattr(request, name)]
    if missing:
        raise InvalidGrantRequestError(request.grant_type, missing)


def build_token_request_body(request: AccessTokenRequest, credentials: Credentials) -> str:
    """Build the form-encoded body for ``request.grant_type``.

    Scopes are joined with a single space. Empty fields are left out.
    """
    validate_grant_request(request)
    params = _GRANT_PARAM_BUILDERS[request.grant_type](request, credentials)
    return prepare_token_request(request.grant_type, **params)


def build_token_endpoint_url(request: AccessTokenRequest) -> str:
    """Return the token endpoint URL with ``query_params`` appended."""
    if not request.query_params:
        return request.access_token_endpoint
    return add_params_to_uri(request.access_token_endpoint, list(request.query_params.items()))


def create_auth_code_request_uri(
    authorization_endpoint: str,
    client_id: str,
    redirect_uri: str,
    *,
    scopes: Sequence[str] | None = None,
    state: str | None = None,
    query_params: Mapping[str, str] | None = None,
) -> str:
    """Build the URI that starts an authorization-code flow.

    Example:
        >>> create_auth_code_request_uri(
        ...     "https://auth.example.com/oauth2/authorize",
        ...     "my-client",
        ...     "https://app.example.com/callback",
        ... )  # .../authorize?response_type=code&client_id=my-client&redirect_uri=...
    """
    return prepare_grant_uri(
        authorization_endpoint,
        client_id,
        "code",
        redirect_uri=redirect_uri,
        scope=list(scopes) if scopes else None,
        state=state,
        **dict(query_params or {}),
    )


def _parse_token_response(resp: httpx.Response) -> TokenResponse:
    try:
        body = resp.json()
    except ValueError as exc:
        raise TokenRequestRejectedError(resp.status_code, "response is not JSON") from exc
    if not isinstance(body, dict):
        raise TokenRequestRejectedError(resp.status_code, "response is not a JSON object")
    try:
        return TokenResponse.model_validate(body)
    except ValidationError as exc:
        raise TokenRequestRejectedError(resp.status_code, "response has no access_token") from exc


class OAuth2TokenClient:
    """Token acquisition engine for the password, authorization_code and refresh_token grants.

    Example:
        >>> client = OAuth2TokenClient()
        >>> token = await client.acquire_token(
        ...     AccessTokenRequest(
        ...         grant_type=PASSWORD_CREDENTIALS_GRANT,
        ...         access_token_endpoint="https://auth.example.com/oauth2/access_token",
        ...         credentials_dir="/meta/credentials",
        ...         scopes=["orders.read"],
        ...     )
        ... )
        >>> headers = {"Authorization": f"Bearer {token.access_token}"}
    """

    def __init__(
        self,
        credential_store: CredentialStore | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ) -> None:
        """Initialize the client.

        Args:
            credential_store: Store used to load client credentials. Defaults
                to the process-wide store.
            transport: Optional httpx transport for testing (e.g. MockTransport).
            timeout: Timeout in seconds for the token endpoint call.
        """
        self._store = credential_store or get_credential_store()
        self._transport = transport
        self._timeout = timeout

    async def acquire_token(self, request: AccessTokenRequest) -> TokenResponse:
        """Request an access token from ``request.access_token_endpoint``.

        Raises:
            UnsupportedGrantTypeError: Unknown grant kind (no I/O performed).
            InvalidGrantRequestError: Missing grant field (no I/O performed).
            CredentialsUnavailableError: Credentials could not be loaded.
            TokenRequestRejectedError: Non-2xx status or no access_token in the body.
            TokenRequestFailedError: The request failed before a usable response
                arrived (connect error, timeout, undecodable body, redirect loop).
        """
        validate_grant_request(request)
        credentials = await self._store.load(request.credentials_dir)
        body = build_token_request_body(request, credentials)
        url = build_token_endpoint_url(request)

        kwargs: dict[str, Any] = {"timeout": httpx.Timeout(self._timeout)}
        if self._transport is not None:
            kwargs["transport"] = self._transport

        try:
            async with httpx.AsyncClient(**kwargs) as client:
                resp = await client.post(
                    url,
                    content=body,
                    headers={"Content-Type": FORM_CONTENT_TYPE, "Accept": "application/json"},
                    auth=httpx.BasicAuth(credentials.client_id, credentials.client_secret),
                )
        except httpx.RequestError as exc:
            logger.error(
                "oauth.token.request_failed",
                grant_type=request.grant_type,
                token_endpoint=request.access_token_endpoint,
                error=str(exc),
            )
            raise TokenRequestFailedError(request.access_token_endpoint, str(exc)) from exc

        if not resp.is_success:
            log_fields: dict[str, Any] = {}
            if is_debug_mode():
                log_fields["response_body"] = loggable_response_body(resp)
            logger.warning(
                "oauth.token.rejected",
                grant_type=request.grant_type,
                token_endpoint=request.access_token_endpoint,
                status_code=resp.status_code,
                **log_fields,
            )
            raise TokenRequestRejectedError(resp.status_code)

        token = _parse_token_response(resp)
        logger.info(
            "oauth.token.acquired",
            grant_type=request.grant_type,
            token_endpoint=request.access_token_endpoint,
            client_id=credentials.client_id,
        )
        return token


async def get_access_token(
    request: AccessTokenRequest | Mapping[str, Any],
    *,
    credential_store: CredentialStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
) -> TokenResponse:
    """Acquire an access token with a one-off OAuth2TokenClient.

    ``request`` may be an AccessTokenRequest or a plain mapping of its fields.
    """
    if not isinstance(request, AccessTokenRequest):
        request = AccessTokenRequest.model_validate(dict(request))
    client = OAuth2TokenClient(credential_store, transport=transport, timeout=timeout)
    return await client.acquire_token(request)
