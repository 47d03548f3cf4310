from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from missio.sdk.variables.models import Variable

DEFAULT_CONFIG_DIR = Path.home() / ".missio"


class UserSecretsConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    cache_ttl: float = Field(default=300.0, gt=0)


class UserStoreConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str = str(DEFAULT_CONFIG_DIR / "secrets.db")
    key_env: str = "MISSIO_STORE_KEY"
    allow_plaintext: bool = False


class UserOAuth2ConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    request_timeout: float = Field(default=15.0, gt=0)
    authorization_timeout: float = Field(default=120.0, gt=0)


class UserLoggingConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = False
    path: str | None = None
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5


class UserConfigModel(BaseModel):
    """Per-user settings from ``~/.missio/config.yml``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    missio: Literal[1] = 1
    globals: list[Variable] = Field(default_factory=list)
    secrets: UserSecretsConfigModel = Field(default_factory=UserSecretsConfigModel)
    store: UserStoreConfigModel = Field(default_factory=UserStoreConfigModel)
    oauth2: UserOAuth2ConfigModel = Field(default_factory=UserOAuth2ConfigModel)
    logging: UserLoggingConfigModel = Field(default_factory=UserLoggingConfigModel)
    active_environments: dict[str, str] = Field(default_factory=dict)
