"""Pytest fixtures for oauth_tooling tests.

Fixtures (use with pytest):
    mock_auth_server: Fresh MockAuthorizationServer expecting the test client credentials.
    credentials_dir: Temporary credentials directory with client.json and user.json.
    credential_store: Fresh CredentialStore (no process-wide cache shared between tests).

Helpers:
    write_credentials(): Write client.json (and optionally user.json) into a directory.
"""

import json
from pathlib import Path

import pytest

from oauth_tooling.auth.credentials import (
    CLIENT_CREDENTIALS_FILE,
    USER_CREDENTIALS_FILE,
    CredentialStore,
)
from oauth_tooling.testing.mocks import MockAuthorizationServer

TEST_CLIENT_ID = "nucleus_client"
TEST_CLIENT_SECRET = "nucleus_client_secret"
TEST_USERNAME = "nucleus_user"
TEST_PASSWORD = "nucleus_user_password"


def write_credentials(
    directory: Path,
    client_id: str = TEST_CLIENT_ID,
    client_secret: str = TEST_CLIENT_SECRET,
    username: str | None = TEST_USERNAME,
    password: str | None = TEST_PASSWORD,
) -> Path:
    """Write credential files into ``directory`` (created if needed).

    user.json is only written when both username and password are given.
    """
    directory.mkdir(parents=True, exist_ok=True)
    (directory / CLIENT_CREDENTIALS_FILE).write_text(
        json.dumps({"client_id": client_id, "client_secret": client_secret}),
        encoding="utf-8",
    )
    if username is not None and password is not None:
        (directory / USER_CREDENTIALS_FILE).write_text(
            json.dumps(
                {"application_username": username, "application_password": password}
            ),
            encoding="utf-8",
        )
    return directory


@pytest.fixture
def mock_auth_server() -> MockAuthorizationServer:
    """Create a MockAuthorizationServer that only accepts the test client."""
    server = MockAuthorizationServer()
    server.expect_client(TEST_CLIENT_ID, TEST_CLIENT_SECRET)
    return server


@pytest.fixture
def credentials_dir(tmp_path: Path) -> Path:
    """Create a credentials directory holding the test client and user."""
    return write_credentials(tmp_path / "credentials")


@pytest.fixture
def credential_store() -> CredentialStore:
    """Create an empty CredentialStore isolated to the test."""
    return CredentialStore()
