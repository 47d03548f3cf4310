"""
Variable merge engine.

Builds the variable mapping used to expand request templates. Layers are
applied in order, later layers overwriting earlier ones, and disabled entries
are skipped:

1. global variables
2. collection request defaults
3. folder request defaults
4. the active environment: the parent it ``extends`` (plain, then secret),
   its dotenv file, its own plain variables, its own secret variables

The merged map then goes through two passes: references between values are
expanded, and ``$secret.<provider>.<name>`` references are substituted.

Every call recomputes the mapping; nothing is cached across calls.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Literal

from missio.sdk.secrets.references import SecretReferenceResolver
from missio.sdk.secrets.secure import SecureValueBridge, extract_secure_id
from missio.sdk.variables.dotenv import load_dotenv_file
from missio.sdk.variables.interpolation import interpolate, interpolate_variable_map
from missio.sdk.variables.models import (
    Environment,
    MissioCollection,
    RequestDefaults,
    SecretVariable,
    Variable,
    value_to_string,
)

logger = logging.getLogger(__name__)

VariableSource = Literal["global", "collection", "folder", "environment", "dotenv", "secret"]


@dataclass(frozen=True)
class ResolvedVariable:
    value: str
    source: VariableSource


class VariableResolver:
    """Resolves collection variables and tracks the active environment per collection."""

    def __init__(
        self,
        secure_values: SecureValueBridge,
        secret_references: SecretReferenceResolver,
        global_variables: Iterable[Variable] = (),
    ) -> None:
        self._secure_values = secure_values
        self._secret_references = secret_references
        self._global_variables: list[Variable] = list(global_variables)
        self._active_environments: dict[str, str] = {}

    @property
    def secret_references(self) -> SecretReferenceResolver:
        return self._secret_references

    # ── State ──────────────────────────────────────────────────────────────────
    @property
    def global_variables(self) -> list[Variable]:
        return list(self._global_variables)

    def set_global_variables(self, variables: Iterable[Variable]) -> None:
        self._global_variables = list(variables)

    def set_active_environment(self, collection_id: str, name: str | None) -> None:
        if name is None:
            self._active_environments.pop(collection_id, None)
        else:
            self._active_environments[collection_id] = name

    def get_active_environment_name(self, collection_id: str) -> str | None:
        return self._active_environments.get(collection_id)

    def get_active_environment(self, collection: MissioCollection) -> Environment | None:
        return collection.find_environment(self.get_active_environment_name(collection.id))

    def get_collection_environments(self, collection: MissioCollection) -> list[Environment]:
        return list(collection.environments)

    # ── Resolution ─────────────────────────────────────────────────────────────
    async def resolve_variables(
        self, collection: MissioCollection, folder_defaults: RequestDefaults | None = None
    ) -> dict[str, str]:
        resolved = await self.resolve_variables_with_source(collection, folder_defaults)
        return {name: variable.value for name, variable in resolved.items()}

    async def resolve_variables_with_source(
        self, collection: MissioCollection, folder_defaults: RequestDefaults | None = None
    ) -> dict[str, ResolvedVariable]:
        merged: dict[str, ResolvedVariable] = {}

        _apply_plain(merged, self._global_variables, "global")
        if collection.request_defaults is not None:
            _apply_plain(merged, collection.request_defaults.variables, "collection")
        if folder_defaults is not None:
            _apply_plain(merged, folder_defaults.variables, "folder")

        environment = self.get_active_environment(collection)
        if environment is not None:
            await self._apply_environment(merged, environment, collection)

        expanded = interpolate_variable_map(
            {name: variable.value for name, variable in merged.items()}
        )
        merged = {
            name: ResolvedVariable(expanded[name], variable.source)
            for name, variable in merged.items()
        }

        return await self._substitute_secret_references(merged, expanded, collection)

    async def _apply_environment(
        self,
        merged: dict[str, ResolvedVariable],
        environment: Environment,
        collection: MissioCollection,
    ) -> None:
        if environment.extends:
            parent = collection.find_environment(environment.extends)
            if parent is None:
                logger.debug(
                    "Environment %s extends unknown environment %s",
                    environment.name,
                    environment.extends,
                )
            else:
                _apply_plain(merged, parent.plain_variables, "environment")
                await self._apply_secrets(merged, parent.secret_variables)

        if environment.dot_env_file_path:
            values = await load_dotenv_file(collection.root_dir, environment.dot_env_file_path)
            for name, value in values.items():
                merged[name] = ResolvedVariable(value, "dotenv")

        _apply_plain(merged, environment.plain_variables, "environment")
        await self._apply_secrets(merged, environment.secret_variables)

    async def _apply_secrets(
        self, merged: dict[str, ResolvedVariable], variables: Iterable[SecretVariable]
    ) -> None:
        for variable in variables:
            if variable.disabled or not variable.name:
                continue
            if variable.secure:
                secure_id = extract_secure_id(variable.value)
                if secure_id is None:
                    continue
                value = await self._secure_values.get_secure_value(secure_id)
            else:
                value = variable.value
            if value is not None:
                merged[variable.name] = ResolvedVariable(value, "secret")

    async def _substitute_secret_references(
        self,
        merged: dict[str, ResolvedVariable],
        snapshot: Mapping[str, str],
        collection: MissioCollection,
    ) -> dict[str, ResolvedVariable]:
        providers = collection.secret_providers
        for name, variable in list(merged.items()):
            if "$secret." not in variable.value:
                continue
            substituted = await self._secret_references.resolve_secret_references(
                variable.value, providers, snapshot
            )
            if substituted != variable.value:
                merged[name] = ResolvedVariable(substituted, "secret")
        return merged

    # ── Templates ──────────────────────────────────────────────────────────────
    def interpolate(self, template: str, variables: Mapping[str, str]) -> str:
        return interpolate(template, variables)

    async def interpolate_with_secrets(
        self, template: str, variables: Mapping[str, str], collection: MissioCollection
    ) -> str:
        """Expand placeholders, then substitute secret references in the result."""
        text = interpolate(template, variables)
        return await self._secret_references.resolve_secret_references(
            text, collection.secret_providers, variables
        )


def _apply_plain(
    merged: dict[str, ResolvedVariable],
    variables: Iterable[Variable],
    source: VariableSource,
) -> None:
    for variable in variables:
        if variable.disabled or not variable.name:
            continue
        merged[variable.name] = ResolvedVariable(value_to_string(variable.value), source)


__all__ = ["ResolvedVariable", "VariableResolver", "VariableSource"]
