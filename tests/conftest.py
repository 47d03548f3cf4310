"""
Global pytest configuration and fixtures.
"""

from pathlib import Path
from typing import Any

import pytest
from cryptography.fernet import Fernet

from missio.sdk.secrets.references import SecretReferenceResolver
from missio.sdk.secrets.secure import SecureValueBridge
from missio.sdk.secrets.store import InMemorySecretStore, SecretStore, SqliteSecretStore
from missio.sdk.variables.models import MissioCollection, OpenCollection
from missio.sdk.variables.resolver import VariableResolver


class FakeSecretBackend:
    """In-memory vault backend keyed by vault URL."""

    provider_type = "azure-keyvault"

    def __init__(self, vaults: dict[str, dict[str, str]] | None = None) -> None:
        self.vaults = vaults or {}
        self.get_calls: list[tuple[str, str]] = []
        self.list_calls: list[str] = []
        self.fail_with: Exception | None = None

    async def get_secret(self, vault_url: str, name: str) -> str | None:
        self.get_calls.append((vault_url, name))
        if self.fail_with is not None:
            raise self.fail_with
        return self.vaults.get(vault_url, {}).get(name)

    async def list_secret_names(self, vault_url: str) -> list[str]:
        self.list_calls.append(vault_url)
        if self.fail_with is not None:
            raise self.fail_with
        return sorted(self.vaults.get(vault_url, {}))

    async def close(self) -> None:
        return None


def _memory_store_factory(tmp_path: Path) -> SecretStore:
    return InMemorySecretStore()


def _sqlite_store_factory(tmp_path: Path) -> SecretStore:
    return SqliteSecretStore(tmp_path / "secrets.db", encryption_key=Fernet.generate_key())


@pytest.fixture(params=[_memory_store_factory, _sqlite_store_factory], ids=["memory", "sqlite"])
async def secret_store(request, tmp_path):
    """Parametrized secret store fixture to exercise all backends uniformly."""
    store = request.param(tmp_path)
    try:
        yield store
    finally:
        if isinstance(store, SqliteSecretStore):
            await store.close()


@pytest.fixture
def fake_backend() -> FakeSecretBackend:
    return FakeSecretBackend()


@pytest.fixture
def memory_store() -> InMemorySecretStore:
    return InMemorySecretStore()


@pytest.fixture
def resolver(memory_store: InMemorySecretStore, fake_backend: FakeSecretBackend) -> VariableResolver:
    return VariableResolver(
        SecureValueBridge(memory_store),
        SecretReferenceResolver(backends=[fake_backend]),
    )


@pytest.fixture
def make_collection(tmp_path: Path):
    """Build a MissioCollection from a raw (YAML-shaped) mapping."""

    def _make(data: dict[str, Any] | None = None, collection_id: str = "col-1") -> MissioCollection:
        return MissioCollection(
            id=collection_id,
            root_dir=tmp_path,
            data=OpenCollection.model_validate(data or {}),
        )

    return _make
