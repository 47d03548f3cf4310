"""Secret storage and secret reference resolution."""

from missio.sdk.secrets.cache import TTLCache
from missio.sdk.secrets.secure import (
    SecureValueBridge,
    extract_secure_id,
    generate_secure_ref,
)
from missio.sdk.secrets.store import InMemorySecretStore, SecretStore, SqliteSecretStore

__all__ = [
    "InMemorySecretStore",
    "SecretStore",
    "SecureValueBridge",
    "SqliteSecretStore",
    "TTLCache",
    "extract_secure_id",
    "generate_secure_ref",
]
