"""Wiring of SDK services from the user config for CLI commands."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

import click

from missio.config.collection import load_collection, load_folder_defaults
from missio.config.models import UserConfigModel
from missio.sdk.oauth2.authorization_code import AuthorizationCodeFlow
from missio.sdk.oauth2.manager import OAuth2TokenManager
from missio.sdk.oauth2.token_endpoint import TokenEndpointClient
from missio.sdk.secrets.references import SecretReferenceResolver
from missio.sdk.secrets.secure import SecureValueBridge
from missio.sdk.secrets.store import SqliteSecretStore
from missio.sdk.variables.models import MissioCollection, RequestDefaults
from missio.sdk.variables.resolver import VariableResolver


@dataclass
class MissioServices:
    store: SqliteSecretStore
    secure_values: SecureValueBridge
    secret_references: SecretReferenceResolver
    resolver: VariableResolver
    token_manager: OAuth2TokenManager


def create_store(user_config: UserConfigModel) -> SqliteSecretStore:
    store_config = user_config.store
    return SqliteSecretStore(
        Path(store_config.path).expanduser(),
        os.environ.get(store_config.key_env),
        allow_plaintext=store_config.allow_plaintext,
    )


@asynccontextmanager
async def open_services(user_config: UserConfigModel) -> AsyncIterator[MissioServices]:
    store = create_store(user_config)
    secure_values = SecureValueBridge(store)
    secret_references = SecretReferenceResolver(ttl_seconds=user_config.secrets.cache_ttl)
    resolver = VariableResolver(secure_values, secret_references, user_config.globals)
    for collection_id, env_name in user_config.active_environments.items():
        resolver.set_active_environment(collection_id, env_name)

    token_endpoint = TokenEndpointClient(timeout=user_config.oauth2.request_timeout)
    token_manager = OAuth2TokenManager(
        store,
        token_endpoint=token_endpoint,
        authorization_code_flow=AuthorizationCodeFlow(
            token_endpoint, timeout=user_config.oauth2.authorization_timeout
        ),
    )
    try:
        yield MissioServices(store, secure_values, secret_references, resolver, token_manager)
    finally:
        await secret_references.close()
        await store.close()


def load_cli_collection(
    path: str, env: str | None, resolver: VariableResolver
) -> MissioCollection:
    """Load a collection and apply ``--env`` on top of the configured active environment."""
    collection = load_collection(path)
    if env is not None:
        if collection.find_environment(env) is None:
            raise click.BadParameter(f"Environment '{env}' not found in {path}", param_hint="--env")
        resolver.set_active_environment(collection.id, env)
    return collection


def load_cli_folder(folder_file: str | None) -> RequestDefaults | None:
    return load_folder_defaults(folder_file) if folder_file else None
