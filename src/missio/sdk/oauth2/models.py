"""Pydantic models for OAuth2 configuration and token records.

OAuth2 auth blocks are read from collection files and discriminated on
``flow``; a block without ``flow`` is a client-credentials block.

## Security-relevant configuration fields

- ``credentials.placement``: decides whether the client secret travels in an
  HTTP Basic header or in the form body.
- ``pkce.enabled``: disabling PKCE weakens the authorization code flow.
- ``credentialsId``: part of the token storage key; two blocks sharing it
  share tokens.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import ConfigDict, Discriminator, Field, Tag, field_validator

from missio.sdk.models import CollectionModel, SdkBaseModel

DEFAULT_FLOW = "client_credentials"

# Tokens are treated as expired this long before their real expiry.
EXPIRY_MARGIN_MS = 30_000


class OAuth2Credentials(CollectionModel):
    """Client credentials and where to send them on token requests."""

    client_id: str | None = None
    client_secret: str | None = None
    placement: Literal["basic_auth_header", "body"] = "basic_auth_header"


class OAuth2ResourceOwner(CollectionModel):
    username: str | None = None
    password: str | None = None


class OAuth2PkceSettings(CollectionModel):
    enabled: bool = True
    method: Literal["S256"] = "S256"


class OAuth2Settings(CollectionModel):
    auto_fetch_token: bool = True
    auto_refresh_token: bool = True


class _OAuth2AuthBase(CollectionModel):
    type: Literal["oauth2"] = "oauth2"
    access_token_url: str | None = None
    refresh_token_url: str | None = None
    scope: str | None = None
    credentials: OAuth2Credentials | None = None
    credentials_id: str | None = None
    settings: OAuth2Settings = Field(default_factory=OAuth2Settings)

    @field_validator("settings", mode="before")
    @classmethod
    def _default_settings(cls, value: Any) -> Any:
        return {} if value is None else value


class OAuth2ClientCredentialsAuth(_OAuth2AuthBase):
    flow: Literal["client_credentials"] = "client_credentials"


class OAuth2PasswordAuth(_OAuth2AuthBase):
    flow: Literal["resource_owner_password_credentials"] = "resource_owner_password_credentials"
    resource_owner: OAuth2ResourceOwner | None = None


class OAuth2AuthorizationCodeAuth(_OAuth2AuthBase):
    flow: Literal["authorization_code"] = "authorization_code"
    authorization_url: str | None = None
    callback_url: str | None = None
    pkce: OAuth2PkceSettings = Field(default_factory=OAuth2PkceSettings)

    @field_validator("pkce", mode="before")
    @classmethod
    def _coerce_pkce(cls, value: Any) -> Any:
        # Older collection files store a bare boolean.
        if value is None:
            return {}
        if isinstance(value, bool):
            return {"enabled": value}
        return value


def oauth2_flow_tag(raw: Any) -> str:
    """Return the flow tag of a raw or parsed OAuth2 auth block."""
    if isinstance(raw, dict):
        return raw.get("flow") or DEFAULT_FLOW
    return getattr(raw, "flow", None) or DEFAULT_FLOW


OAuth2Auth = Annotated[
    Annotated[OAuth2ClientCredentialsAuth, Tag("client_credentials")]
    | Annotated[OAuth2PasswordAuth, Tag("resource_owner_password_credentials")]
    | Annotated[OAuth2AuthorizationCodeAuth, Tag("authorization_code")],
    Discriminator(oauth2_flow_tag),
]


class OAuth2TokenData(SdkBaseModel):
    """A token endpoint response normalized for storage.

    ``created_at`` is stamped in epoch milliseconds when the response is
    received. A missing ``expires_in`` means the token never expires.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    access_token: str
    token_type: str | None = None
    expires_in: float | None = None
    refresh_token: str | None = None
    scope: str | None = None
    created_at: int

    @property
    def expires_at(self) -> int | None:
        if not self.expires_in or not self.created_at:
            return None
        return self.created_at + int(self.expires_in * 1000)

    def is_expired(self, now_ms: int) -> bool:
        expires_at = self.expires_at
        if expires_at is None:
            return False
        return now_ms > expires_at - EXPIRY_MARGIN_MS


class TokenStatus(SdkBaseModel):
    """Read-only view of a stored token."""

    has_token: bool
    expires_at: int | None = None
    is_expired: bool | None = None
    time_remaining: int | None = None


__all__ = [
    "DEFAULT_FLOW",
    "EXPIRY_MARGIN_MS",
    "OAuth2Auth",
    "OAuth2AuthorizationCodeAuth",
    "OAuth2ClientCredentialsAuth",
    "OAuth2Credentials",
    "OAuth2PasswordAuth",
    "OAuth2PkceSettings",
    "OAuth2ResourceOwner",
    "OAuth2Settings",
    "OAuth2TokenData",
    "TokenStatus",
    "oauth2_flow_tag",
]
