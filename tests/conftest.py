"""Shared pytest fixtures for oauth_tooling tests.

Fixtures from oauth_tooling.testing.fixtures (mock_auth_server,
credentials_dir, credential_store) are loaded for every test module.
"""

from __future__ import annotations

from typing import Iterator

import pytest

import oauth_tooling.auth.credentials as credentials_module

pytest_plugins = ["oauth_tooling.testing.fixtures"]


@pytest.fixture(autouse=True)
def _isolate_default_credential_store() -> Iterator[None]:
    """Give every test a fresh process-wide CredentialStore."""
    credentials_module._default_store = None
    yield
    credentials_module._default_store = None
