"""
Azure Key Vault secret backend.

Authentication uses ``DefaultAzureCredential``, so whatever the developer is
signed in with (Azure CLI, environment credentials, managed identity) is used
without extra configuration. One ``SecretClient`` is kept per vault URL.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
    ServiceRequestError,
)
from azure.identity.aio import DefaultAzureCredential
from azure.keyvault.secrets.aio import SecretClient

from missio.sdk.secrets.backends.base import SecretBackend, SecretBackendError

logger = logging.getLogger(__name__)

AZURE_KEYVAULT_TYPE = "azure-keyvault"


class AzureKeyVaultBackend(SecretBackend):
    provider_type = AZURE_KEYVAULT_TYPE

    def __init__(
        self,
        credential: Any | None = None,
        client_factory: Callable[[str, Any], Any] | None = None,
    ) -> None:
        self._credential = credential
        self._client_factory = client_factory or (
            lambda vault_url, credential: SecretClient(vault_url=vault_url, credential=credential)
        )
        self._clients: dict[str, Any] = {}

    def _get_client(self, vault_url: str) -> Any:
        client = self._clients.get(vault_url)
        if client is None:
            if self._credential is None:
                self._credential = DefaultAzureCredential()
            client = self._client_factory(vault_url, self._credential)
            self._clients[vault_url] = client
            logger.debug("Created Key Vault client for %s", vault_url)
        return client

    async def get_secret(self, vault_url: str, name: str) -> str | None:
        client = self._get_client(vault_url)
        try:
            secret = await client.get_secret(name)
        except ResourceNotFoundError:
            return None
        except Exception as exc:
            raise self._translate_error(exc, vault_url) from exc
        return secret.value

    async def list_secret_names(self, vault_url: str) -> list[str]:
        client = self._get_client(vault_url)
        try:
            names = [
                prop.name
                async for prop in client.list_properties_of_secrets()
                if prop.name is not None and prop.enabled is not False
            ]
        except Exception as exc:
            raise self._translate_error(exc, vault_url) from exc
        return sorted(names)

    async def close(self) -> None:
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
        if self._credential is not None and hasattr(self._credential, "close"):
            await self._credential.close()
        self._credential = None

    def _translate_error(self, exc: Exception, vault_url: str) -> SecretBackendError:
        if isinstance(exc, ClientAuthenticationError):
            message = (
                f"Authentication to Key Vault {vault_url} failed. "
                "Sign in with 'az login' or configure Azure credentials."
            )
        elif isinstance(exc, HttpResponseError) and exc.status_code in (401, 403):
            message = (
                f"Access denied to Key Vault {vault_url}. "
                "Check that your identity has secret get/list permissions."
            )
        elif isinstance(exc, ServiceRequestError):
            message = f"Could not reach Key Vault {vault_url}: {exc}"
        else:
            message = f"Key Vault request to {vault_url} failed: {exc}"
        return SecretBackendError(message, vault_url=vault_url)


__all__ = ["AZURE_KEYVAULT_TYPE", "AzureKeyVaultBackend"]
