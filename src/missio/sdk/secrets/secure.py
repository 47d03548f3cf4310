"""Bridge between ``secure:<uuid>`` references and the secret store.

Collection files only ever carry the reference. The plaintext is kept in the
secret store under a key derived from the uuid, so renaming a variable does
not touch the store.
"""

from __future__ import annotations

import logging
import re
import uuid

from missio.sdk.secrets.store import SecretStore

logger = logging.getLogger(__name__)

SECURE_PREFIX = "secure:"
SECURE_REF_PATTERN = re.compile(r"^secure:([A-Za-z0-9-]+)$")
SECURE_KEY_NAMESPACE = "missio:secure:"


def generate_secure_ref() -> str:
    """Return a fresh ``secure:<uuid>`` reference."""
    return f"{SECURE_PREFIX}{uuid.uuid4()}"


def extract_secure_id(value: str | None) -> str | None:
    """Return the uuid of a ``secure:<uuid>`` reference, or None for anything else."""
    if not value:
        return None
    match = SECURE_REF_PATTERN.match(value)
    return match.group(1) if match else None


def secure_store_key(secure_id: str) -> str:
    return f"{SECURE_KEY_NAMESPACE}{secure_id}"


class SecureValueBridge:
    """Reads and writes secure variable values by uuid."""

    def __init__(self, store: SecretStore) -> None:
        self._store = store

    async def store_secure_value(self, secure_id: str, value: str) -> None:
        await self._store.store(secure_store_key(secure_id), value)
        logger.debug("Stored secure value %s", secure_id)

    async def get_secure_value(self, secure_id: str) -> str | None:
        return await self._store.get(secure_store_key(secure_id))

    async def delete_secure_value(self, secure_id: str) -> None:
        await self._store.delete(secure_store_key(secure_id))
        logger.debug("Deleted secure value %s", secure_id)


__all__ = [
    "SECURE_KEY_NAMESPACE",
    "SecureValueBridge",
    "extract_secure_id",
    "generate_secure_ref",
    "secure_store_key",
]
