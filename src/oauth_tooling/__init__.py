"""oauth_tooling: OAuth2 request authorization and token acquisition.

Protects FastAPI/Starlette services with bearer tokens checked against a
token-info endpoint, enforces per-route scopes, and acquires access tokens
for outbound calls using credentials read from a local directory.
"""

from oauth_tooling.auth import (
    AUTHORIZATION_CODE_GRANT,
    PASSWORD_CREDENTIALS_GRANT,
    REFRESH_TOKEN_GRANT,
    AccessTokenRequest,
    AuthorizerConfig,
    OAuth2Middleware,
    PrecedenceOptions,
    TokenInfo,
    TokenResponse,
    create_auth_code_request_uri,
    get_access_token,
    require_scopes,
)

__version__ = "0.1.0"

__all__ = [
    "AUTHORIZATION_CODE_GRANT",
    "PASSWORD_CREDENTIALS_GRANT",
    "REFRESH_TOKEN_GRANT",
    "AccessTokenRequest",
    "AuthorizerConfig",
    "OAuth2Middleware",
    "PrecedenceOptions",
    "TokenInfo",
    "TokenResponse",
    "__version__",
    "create_auth_code_request_uri",
    "get_access_token",
    "require_scopes",
]
