"""Pydantic base models shared across oauth_tooling."""

from oauth_tooling.models.base import OAuthBaseModel, OAuthPassthroughModel

__all__ = [
    "OAuthBaseModel",
    "OAuthPassthroughModel",
]
