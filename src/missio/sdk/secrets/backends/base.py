"""Secret backend contract."""

from __future__ import annotations

from typing import Protocol


class SecretBackendError(Exception):
    """A vault could not be reached or refused the request."""

    def __init__(self, message: str, *, vault_url: str | None = None) -> None:
        super().__init__(message)
        self.vault_url = vault_url


class SecretBackend(Protocol):
    """Keyed fetch and listing against one kind of vault.

    ``get_secret`` returns None when the secret does not exist and raises
    ``SecretBackendError`` when the vault fails.
    """

    provider_type: str

    async def get_secret(self, vault_url: str, name: str) -> str | None: ...

    async def list_secret_names(self, vault_url: str) -> list[str]: ...

    async def close(self) -> None: ...


__all__ = ["SecretBackend", "SecretBackendError"]
