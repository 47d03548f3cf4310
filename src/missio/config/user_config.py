import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from missio.config.models import DEFAULT_CONFIG_DIR, UserConfigModel

# No logging in this module as it's used to load the logging config

__all__ = ["CONFIG_ENV_VAR", "get_user_config_path", "load_user_config"]

CONFIG_ENV_VAR = "MISSIO_CONFIG"


def get_user_config_path() -> Path:
    return Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_DIR / "config.yml")).expanduser()


def load_user_config() -> UserConfigModel:
    """Load the user configuration from ~/.missio/config.yml or MISSIO_CONFIG env var.

    A missing default file yields the defaults; a missing file named by
    MISSIO_CONFIG is an error.
    """
    path = get_user_config_path()

    if not path.exists():
        if CONFIG_ENV_VAR not in os.environ:
            return UserConfigModel()
        raise FileNotFoundError(f"Missio user config not found at {path}")

    with open(path) as f:
        config_data = yaml.safe_load(f) or {}

    if not isinstance(config_data, dict):
        raise ValueError("Missio user config must be a mapping")

    try:
        return UserConfigModel.model_validate(config_data)
    except ValidationError as exc:
        raise ValueError(f"Invalid user config: {exc}") from exc
