"""
Secret reference resolution.

This module handles ``$secret.<provider>.<name>`` references:
- Finding references inside arbitrary text
- Fetching each referenced secret from the provider's backend
- Caching secret values and secret name listings with a TTL

Provider and secret names are restricted to ``[A-Za-z0-9_-]+``.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Callable, Iterable, Mapping, Sequence

from missio.sdk.secrets.backends.base import SecretBackend, SecretBackendError
from missio.sdk.secrets.cache import DEFAULT_TTL_SECONDS, TTLCache
from missio.sdk.variables.interpolation import interpolate
from missio.sdk.variables.models import SecretProviderConfig

logger = logging.getLogger(__name__)

SECRET_REFERENCE_PATTERN = re.compile(r"\$secret\.([A-Za-z0-9_-]+)\.([A-Za-z0-9_-]+)")


def find_secret_references(text: str) -> list[tuple[str, str]]:
    """Return ``(provider, secret)`` pairs referenced in ``text``."""
    if not text:
        return []
    return [(m.group(1), m.group(2)) for m in SECRET_REFERENCE_PATTERN.finditer(text)]


def _default_backends() -> list[SecretBackend]:
    from missio.sdk.secrets.backends.azure_keyvault import AzureKeyVaultBackend

    return [AzureKeyVaultBackend()]


class SecretReferenceResolver:
    """Resolves secret references against a collection's secret providers.

    Owns two TTL caches: secret values keyed by ``vaultUrl|secretName`` and
    secret name listings keyed by ``providerName|vaultUrl``.
    """

    def __init__(
        self,
        backends: Iterable[SecretBackend] | None = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._backends: dict[str, SecretBackend] = {}
        for backend in backends if backends is not None else _default_backends():
            self.register_backend(backend)
        self._value_cache: TTLCache[str] = TTLCache(ttl_seconds, clock)
        self._names_cache: TTLCache[list[str]] = TTLCache(ttl_seconds, clock)

    def register_backend(self, backend: SecretBackend) -> None:
        self._backends[backend.provider_type] = backend

    def clear_cache(self) -> None:
        self._value_cache.clear()
        self._names_cache.clear()

    async def close(self) -> None:
        for backend in self._backends.values():
            await backend.close()

    async def resolve_secret(
        self,
        provider_name: str,
        secret_name: str,
        providers: Sequence[SecretProviderConfig],
        variables: Mapping[str, str],
    ) -> str | None:
        """Fetch one secret through the named provider.

        Returns None when the provider is unknown or disabled, when its type
        has no backend, or when the secret does not exist. Backend failures
        propagate as ``SecretBackendError``.
        """
        provider = _find_provider(provider_name, providers)
        if provider is None:
            return None

        backend = self._backends.get(provider.type)
        if backend is None:
            logger.debug("No backend for secret provider type %s", provider.type)
            return None

        vault_url = interpolate(provider.url, variables)
        cache_key = f"{vault_url}|{secret_name}"
        cached = self._value_cache.get(cache_key)
        if cached is not None:
            return cached

        value = await backend.get_secret(vault_url, secret_name)
        if value is not None:
            self._value_cache.set(cache_key, value)
        return value

    async def resolve_secret_references(
        self,
        text: str,
        providers: Sequence[SecretProviderConfig],
        variables: Mapping[str, str],
    ) -> str:
        """Replace every resolvable secret reference in ``text``.

        References that cannot be resolved stay in the text as written.
        """
        if not text or "$secret." not in text:
            return text

        parts: list[str] = []
        position = 0
        for match in SECRET_REFERENCE_PATTERN.finditer(text):
            provider_name, secret_name = match.group(1), match.group(2)
            try:
                value = await self.resolve_secret(provider_name, secret_name, providers, variables)
            except Exception as exc:
                logger.warning(
                    "Failed to resolve secret reference",
                    extra={"provider": provider_name, "secret": secret_name, "error": str(exc)},
                )
                value = None
            parts.append(text[position : match.start()])
            parts.append(value if value is not None else match.group(0))
            position = match.end()
        parts.append(text[position:])
        return "".join(parts)

    async def list_secret_names(
        self, provider: SecretProviderConfig, variables: Mapping[str, str]
    ) -> list[str]:
        """List the secret names of a provider's vault.

        Raises:
            SecretBackendError: If the provider type is unsupported or the vault fails
        """
        backend = self._backends.get(provider.type)
        if backend is None:
            raise SecretBackendError(f"Unsupported secret provider type: {provider.type}")

        vault_url = interpolate(provider.url, variables)
        cache_key = f"{provider.name}|{vault_url}"
        cached = self._names_cache.get(cache_key)
        if cached is not None:
            return list(cached)

        names = await backend.list_secret_names(vault_url)
        self._names_cache.set(cache_key, list(names))
        return list(names)

    def get_cached_secret_names(self, provider_name: str) -> list[str]:
        """Return cached secret names for a provider without any I/O."""
        prefix = f"{provider_name}|"
        for key in self._names_cache.keys():
            if key.startswith(prefix):
                names = self._names_cache.get(key)
                if names is not None:
                    return list(names)
        return []

    async def prefetch_secret_names(
        self, providers: Sequence[SecretProviderConfig], variables: Mapping[str, str]
    ) -> None:
        """Warm the listing cache for every enabled provider, ignoring failures."""
        enabled = [provider for provider in providers if not provider.disabled]
        results = await asyncio.gather(
            *(self.list_secret_names(provider, variables) for provider in enabled),
            return_exceptions=True,
        )
        for provider, result in zip(enabled, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "Failed to prefetch secret names",
                    extra={"provider": provider.name, "error": str(result)},
                )


def _find_provider(
    name: str, providers: Sequence[SecretProviderConfig]
) -> SecretProviderConfig | None:
    for provider in providers:
        if provider.name == name and not provider.disabled:
            return provider
    return None


__all__ = [
    "SECRET_REFERENCE_PATTERN",
    "SecretReferenceResolver",
    "find_secret_references",
]
