"""oauth_tooling testing utilities.

Modules:
    mocks: MockAuthorizationServer, an httpx.MockTransport-backed token and
           token-info endpoint with request recording.
    fixtures: Pytest fixtures (mock_auth_server, credentials_dir,
              credential_store) and the write_credentials helper.

Example:
    >>> from oauth_tooling.testing import MockAuthorizationServer
    >>> pytest_plugins = ["oauth_tooling.testing.fixtures"]
"""

from oauth_tooling.testing.mocks import MockAuthorizationServer

__all__ = [
    "MockAuthorizationServer",
]
