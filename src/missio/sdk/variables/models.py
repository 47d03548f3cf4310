"""Collection data model.

Collection files are YAML documents written by the desktop client and by hand,
so every record here tolerates unknown keys and accepts camelCase field names.
Variants are chosen by tag before validation:

- ``ValueExpr``: a literal string, a typed ``{type, data}`` value, or a list of
  variants of which one may be selected.
- Environment entries: ``Variable`` or, when the entry says ``secret: true``,
  ``SecretVariable``.
- ``Auth``: discriminated on ``type`` and, for OAuth2, on ``flow``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BeforeValidator, Discriminator, Field, Tag, field_validator

from missio.sdk.models import CollectionModel, SdkBaseModel
from missio.sdk.oauth2.models import (
    OAuth2AuthorizationCodeAuth,
    OAuth2ClientCredentialsAuth,
    OAuth2PasswordAuth,
    oauth2_flow_tag,
)


def _stringify_scalar(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


def _none_to_list(value: Any) -> Any:
    return [] if value is None else value


LiteralValue = Annotated[str, BeforeValidator(_stringify_scalar)]


class TypedValue(CollectionModel):
    type: str = "string"
    data: LiteralValue = ""


class ValueVariant(CollectionModel):
    title: str = ""
    value: ValueExpr | None = None
    selected: bool = False


def _value_kind(raw: Any) -> str:
    if isinstance(raw, list):
        return "variants"
    if isinstance(raw, (dict, TypedValue)):
        return "typed"
    return "literal"


ValueExpr = Annotated[
    Annotated[LiteralValue, Tag("literal")]
    | Annotated[TypedValue, Tag("typed")]
    | Annotated[list[ValueVariant], Tag("variants")],
    Discriminator(_value_kind),
]

ValueVariant.model_rebuild()


def value_to_string(value: Any) -> str:
    """Flatten a ``ValueExpr`` to the string used for interpolation.

    Variant lists yield the selected variant, else the first one; an empty
    list or a missing value yields an empty string.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, TypedValue):
        return value.data
    if isinstance(value, list):
        if not value:
            return ""
        chosen = next((variant for variant in value if variant.selected), value[0])
        return value_to_string(chosen.value)
    return str(value)


class Variable(CollectionModel):
    name: str
    value: ValueExpr | None = None
    disabled: bool = False
    secret: Literal[False] = False


class SecretVariable(CollectionModel):
    """A secret entry of an environment.

    With ``secure`` set, ``value`` holds a ``secure:<uuid>`` reference and the
    plaintext lives in the secret store. Otherwise ``value`` is the plaintext.
    """

    secret: Literal[True] = True
    name: str | None = None
    value: LiteralValue | None = None
    secure: bool = False
    disabled: bool = False
    type: str | None = None


def _variable_kind(raw: Any) -> str:
    if isinstance(raw, dict):
        return "secret" if raw.get("secret") is True else "plain"
    return "secret" if isinstance(raw, SecretVariable) else "plain"


EnvironmentVariable = Annotated[
    Annotated[Variable, Tag("plain")] | Annotated[SecretVariable, Tag("secret")],
    Discriminator(_variable_kind),
]


class Environment(CollectionModel):
    name: str
    variables: list[EnvironmentVariable] = Field(default_factory=list)
    extends: str | None = None
    dot_env_file_path: str | None = None
    color: str | None = None

    @field_validator("variables", mode="before")
    @classmethod
    def _variables_list(cls, value: Any) -> Any:
        return _none_to_list(value)

    @property
    def plain_variables(self) -> list[Variable]:
        return [var for var in self.variables if isinstance(var, Variable)]

    @property
    def secret_variables(self) -> list[SecretVariable]:
        return [var for var in self.variables if isinstance(var, SecretVariable)]


class SecretProviderConfig(CollectionModel):
    name: str
    type: str = "azure-keyvault"
    url: str = ""
    disabled: bool = False


class AuthBasic(CollectionModel):
    type: Literal["basic"] = "basic"
    username: str = ""
    password: str = ""


class AuthBearer(CollectionModel):
    type: Literal["bearer"] = "bearer"
    token: str = ""


class AuthApiKey(CollectionModel):
    type: Literal["apikey"] = "apikey"
    key: str = ""
    value: str = ""
    placement: Literal["header", "query"] = "header"


def _auth_tag(raw: Any) -> str | None:
    auth_type = raw.get("type") if isinstance(raw, dict) else getattr(raw, "type", None)
    if auth_type == "oauth2":
        return f"oauth2:{oauth2_flow_tag(raw)}"
    return auth_type


Auth = Annotated[
    Annotated[AuthBasic, Tag("basic")]
    | Annotated[AuthBearer, Tag("bearer")]
    | Annotated[AuthApiKey, Tag("apikey")]
    | Annotated[OAuth2ClientCredentialsAuth, Tag("oauth2:client_credentials")]
    | Annotated[OAuth2PasswordAuth, Tag("oauth2:resource_owner_password_credentials")]
    | Annotated[OAuth2AuthorizationCodeAuth, Tag("oauth2:authorization_code")],
    Discriminator(_auth_tag),
]


class HttpHeader(CollectionModel):
    name: str
    value: str = ""
    disabled: bool = False


class RequestDefaults(CollectionModel):
    """Defaults a collection or folder applies to the requests below it."""

    variables: list[Variable] = Field(default_factory=list)
    headers: list[HttpHeader] = Field(default_factory=list)
    auth: Literal["inherit"] | Auth | None = None

    @field_validator("variables", "headers", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> Any:
        return _none_to_list(value)


class CollectionConfig(CollectionModel):
    environments: list[Environment] = Field(default_factory=list)
    secret_providers: list[SecretProviderConfig] = Field(default_factory=list)

    @field_validator("environments", "secret_providers", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> Any:
        return _none_to_list(value)


class OpenCollection(CollectionModel):
    """The parsed body of a collection file."""

    config: CollectionConfig = Field(default_factory=CollectionConfig)
    request: RequestDefaults | None = None

    @field_validator("config", mode="before")
    @classmethod
    def _default_config(cls, value: Any) -> Any:
        return {} if value is None else value


class MissioCollection(SdkBaseModel):
    """A loaded collection and where it lives on disk."""

    id: str
    root_dir: Path
    file_path: Path | None = None
    data: OpenCollection = Field(default_factory=OpenCollection)

    @property
    def environments(self) -> list[Environment]:
        return self.data.config.environments

    @property
    def secret_providers(self) -> list[SecretProviderConfig]:
        return self.data.config.secret_providers

    @property
    def request_defaults(self) -> RequestDefaults | None:
        return self.data.request

    def find_environment(self, name: str | None) -> Environment | None:
        if not name:
            return None
        return next((env for env in self.environments if env.name == name), None)


__all__ = [
    "Auth",
    "AuthApiKey",
    "AuthBasic",
    "AuthBearer",
    "CollectionConfig",
    "Environment",
    "EnvironmentVariable",
    "HttpHeader",
    "MissioCollection",
    "OpenCollection",
    "RequestDefaults",
    "SecretProviderConfig",
    "SecretVariable",
    "TypedValue",
    "ValueExpr",
    "ValueVariant",
    "Variable",
    "value_to_string",
]
