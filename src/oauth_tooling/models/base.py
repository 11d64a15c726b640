"""Base Pydantic model configuration for oauth_tooling models.

Two base classes cover the two kinds of data this library handles:

- ``OAuthBaseModel`` for values this library defines completely
  (credentials, token requests): frozen, unknown fields rejected.
- ``OAuthPassthroughModel`` for authorization-server responses
  (token responses, token info): frozen, unknown fields kept verbatim so
  callers see every claim the server returned.
"""

from pydantic import BaseModel, ConfigDict


class OAuthBaseModel(BaseModel):
    """Base model for values fully described by this library.

    Example:
        >>> class MyModel(OAuthBaseModel):
        ...     name: str
        >>> MyModel(name="x", other=1)  # Raises ValidationError (extra forbidden)
        Traceback (most recent call last):
        ...
        pydantic_core._pydantic_core.ValidationError: ...
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        validate_default=True,
    )


class OAuthPassthroughModel(BaseModel):
    """Base model for authorization-server payloads.

    Declared fields are validated; every other field is stored as-is and
    included in ``model_dump()``.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
    )
