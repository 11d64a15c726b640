"""Client and user credentials loaded from a credentials directory.

A credentials directory holds two JSON files:

- ``client.json``: ``{"client_id": ..., "client_secret": ...}`` (required)
- ``user.json``: ``{"application_username": ..., "application_password": ...}``
  (optional; only the password grant needs it)

``CredentialStore`` reads a directory once and keeps the result for the
lifetime of the process. Concurrent first loads of the same directory share
a single in-flight read; failed reads are not cached, so the next call
retries.
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any, Callable, Optional, Union

from pydantic import Field

from oauth_tooling.errors import CredentialsUnavailableError
from oauth_tooling.models.base import OAuthBaseModel
from oauth_tooling.observability import get_logger

logger = get_logger(__name__)

CLIENT_CREDENTIALS_FILE = "client.json"
USER_CREDENTIALS_FILE = "user.json"

StrPath = Union[str, os.PathLike]


class Credentials(OAuthBaseModel):
    """Client credentials plus optional resource-owner credentials.

    Attributes:
        client_id: OAuth2 client identifier.
        client_secret: OAuth2 client secret.
        user: Resource owner username (password grant only).
        password: Resource owner password (password grant only).
    """

    client_id: str = Field(..., min_length=1)
    client_secret: str = Field(..., repr=False)
    user: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)

    @property
    def has_user_credentials(self) -> bool:
        return self.user is not None and self.password is not None


def _read_json_object(path: Path, directory: str) -> dict[str, Any]:
    try:
        with path.open(encoding="utf-8") as fh:
            data = json.load(fh)
    except OSError as exc:
        raise CredentialsUnavailableError(
            directory, f"cannot read {path.name}: {exc.strerror or exc}"
        ) from exc
    except json.JSONDecodeError as exc:
        raise CredentialsUnavailableError(directory, f"{path.name} is not valid JSON") from exc
    if not isinstance(data, dict):
        raise CredentialsUnavailableError(directory, f"{path.name} must contain a JSON object")
    return data


def _require_str(data: dict[str, Any], key: str, filename: str, directory: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise CredentialsUnavailableError(directory, f"{filename} has no string field {key!r}")
    return value


def read_credentials_dir(directory: Path) -> Credentials:
    """Read credentials from ``directory`` (blocking).

    Raises:
        CredentialsUnavailableError: Directory missing, client.json missing or
            malformed, or user.json present but malformed.
    """
    dir_label = str(directory)
    if not directory.is_dir():
        raise CredentialsUnavailableError(dir_label, "directory does not exist")

    client = _read_json_object(directory / CLIENT_CREDENTIALS_FILE, dir_label)
    client_id = _require_str(client, "client_id", CLIENT_CREDENTIALS_FILE, dir_label)
    client_secret = _require_str(client, "client_secret", CLIENT_CREDENTIALS_FILE, dir_label)

    user: Optional[str] = None
    password: Optional[str] = None
    user_path = directory / USER_CREDENTIALS_FILE
    if user_path.exists():
        user_data = _read_json_object(user_path, dir_label)
        user = _require_str(user_data, "application_username", USER_CREDENTIALS_FILE, dir_label)
        password = _require_str(
            user_data, "application_password", USER_CREDENTIALS_FILE, dir_label
        )

    return Credentials(
        client_id=client_id,
        client_secret=client_secret,
        user=user,
        password=password,
    )


def _cache_key(directory: StrPath) -> str:
    return str(Path(directory).expanduser().resolve(strict=False))


class CredentialStore:
    """Process-lifetime cache of credentials keyed by directory path.

    Example:
        >>> store = CredentialStore()
        >>> creds = await store.load("/etc/oauth/credentials")
        >>> creds.client_id
        'my-client'
    """

    def __init__(self, reader: Callable[[Path], Credentials] | None = None) -> None:
        """Initialize the store.

        Args:
            reader: Blocking function that reads one directory; runs in a
                worker thread. Defaults to read_credentials_dir.
        """
        self._reader = reader or read_credentials_dir
        self._cache: dict[str, Credentials] = {}
        self._inflight: dict[str, asyncio.Task[Credentials]] = {}

    async def load(self, directory: StrPath) -> Credentials:
        """Return the credentials for ``directory``, reading them at most once.

        Raises:
            CredentialsUnavailableError: The read failed. Nothing is cached.
        """
        key = _cache_key(directory)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load_and_cache(key))
            self._inflight[key] = task
            task.add_done_callback(lambda done, k=key: self._forget_inflight(k, done))
        # shield: one cancelled waiter must not cancel the read for the others
        return await asyncio.shield(task)

    def is_cached(self, directory: StrPath) -> bool:
        return _cache_key(directory) in self._cache

    async def _load_and_cache(self, key: str) -> Credentials:
        try:
            credentials = await asyncio.to_thread(self._reader, Path(key))
        except CredentialsUnavailableError as exc:
            logger.warning("oauth.credentials.load_failed", directory=key, reason=exc.reason)
            raise
        self._cache[key] = credentials
        logger.info(
            "oauth.credentials.loaded",
            directory=key,
            client_id=credentials.client_id,
            has_user_credentials=credentials.has_user_credentials,
        )
        return credentials

    def _forget_inflight(self, key: str, done: asyncio.Task[Credentials]) -> None:
        if self._inflight.get(key) is done:
            del self._inflight[key]


_default_store: CredentialStore | None = None


def get_credential_store() -> CredentialStore:
    """Return the process-wide CredentialStore used by get_access_token."""
    global _default_store
    if _default_store is None:
        _default_store = CredentialStore()
    return _default_store
