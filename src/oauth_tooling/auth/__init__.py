"""OAuth2 authorization and token acquisition.

- Token acquisition for the password, authorization_code and refresh_token
  grants, with client credentials read from a credentials directory
- Token-info lookup for bearer tokens on inbound requests
- Starlette/FastAPI middleware that authorizes requests (401 on failure)
- Scope enforcement per route with an optional precedence override (403 on failure)

Public exports:
    get_access_token / OAuth2TokenClient: Acquire access tokens
    AccessTokenRequest / TokenResponse: Token request and response models
    PASSWORD_CREDENTIALS_GRANT, AUTHORIZATION_CODE_GRANT, REFRESH_TOKEN_GRANT: Grant kinds
    create_auth_code_request_uri: Build an authorization-code request URI
    Credentials / CredentialStore: Credentials loaded from disk
    TokenInfo / TokenInfoClient: Token-info lookup
    OAuth2Middleware / RequestAuthorizer / AuthorizerConfig / RequestContext: Request authorization
    authorize / ScopeGate / PrecedenceOptions / require_scopes: Scope enforcement
"""

from oauth_tooling.auth.credentials import (
    CredentialStore,
    Credentials,
    get_credential_store,
    read_credentials_dir,
)
from oauth_tooling.auth.introspection import TokenInfo, TokenInfoClient
from oauth_tooling.auth.middleware import (
    AuthorizerConfig,
    OAuth2Middleware,
    RequestAuthorizer,
    RequestContext,
    get_request_context,
)
from oauth_tooling.auth.oauth2 import (
    AUTHORIZATION_CODE_GRANT,
    GRANT_TYPES,
    PASSWORD_CREDENTIALS_GRANT,
    REFRESH_TOKEN_GRANT,
    AccessTokenRequest,
    OAuth2TokenClient,
    TokenResponse,
    create_auth_code_request_uri,
    get_access_token,
)
from oauth_tooling.auth.scopes import PrecedenceOptions, ScopeGate, authorize, require_scopes

__all__ = [
    "AUTHORIZATION_CODE_GRANT",
    "GRANT_TYPES",
    "PASSWORD_CREDENTIALS_GRANT",
    "REFRESH_TOKEN_GRANT",
    "AccessTokenRequest",
    "AuthorizerConfig",
    "CredentialStore",
    "Credentials",
    "OAuth2Middleware",
    "OAuth2TokenClient",
    "PrecedenceOptions",
    "RequestAuthorizer",
    "RequestContext",
    "ScopeGate",
    "TokenInfo",
    "TokenInfoClient",
    "TokenResponse",
    "authorize",
    "create_auth_code_request_uri",
    "get_access_token",
    "get_credential_store",
    "get_request_context",
    "read_credentials_dir",
    "require_scopes",
]
