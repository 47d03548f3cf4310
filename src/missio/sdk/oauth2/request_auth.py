"""Apply a request's effective auth configuration.

Auth is looked up request first, then folder, then collection; ``inherit``
(or no auth at all) defers to the next level. Every string field is expanded
with variables and secret references before use.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from missio.sdk.oauth2.manager import OAUTH2_AUTH_TYPES, OAuth2AuthConfig, OAuth2TokenManager
from missio.sdk.variables.models import (
    Auth,
    AuthApiKey,
    AuthBasic,
    AuthBearer,
    MissioCollection,
    RequestDefaults,
)
from missio.sdk.variables.resolver import VariableResolver

logger = logging.getLogger(__name__)


@dataclass
class AppliedAuth:
    headers: dict[str, str] = field(default_factory=dict)
    query_params: dict[str, str] = field(default_factory=dict)


def effective_auth(
    request_auth: Auth | Literal["inherit"] | None,
    folder_defaults: RequestDefaults | None,
    collection: MissioCollection,
) -> Auth | None:
    """Return the first concrete auth block walking request, folder, collection."""
    candidates = [
        request_auth,
        folder_defaults.auth if folder_defaults is not None else None,
        collection.request_defaults.auth if collection.request_defaults is not None else None,
    ]
    for candidate in candidates:
        if candidate is None or candidate == "inherit":
            continue
        return candidate
    return None


async def _expand_strings(
    value: Any,
    variables: Mapping[str, str],
    collection: MissioCollection,
    resolver: VariableResolver,
) -> Any:
    if isinstance(value, str):
        return await resolver.interpolate_with_secrets(value, variables, collection)
    if isinstance(value, dict):
        return {
            key: await _expand_strings(item, variables, collection, resolver)
            for key, item in value.items()
        }
    return value


async def resolve_oauth2_auth(
    auth: OAuth2AuthConfig,
    variables: Mapping[str, str],
    collection: MissioCollection,
    resolver: VariableResolver,
) -> OAuth2AuthConfig:
    """Return a copy of ``auth`` with every string field expanded."""
    data = await _expand_strings(auth.model_dump(), variables, collection, resolver)
    return type(auth).model_validate(data)


async def build_auth(
    request_auth: Auth | Literal["inherit"] | None,
    folder_defaults: RequestDefaults | None,
    collection: MissioCollection,
    variables: Mapping[str, str],
    resolver: VariableResolver,
    token_manager: OAuth2TokenManager,
    env_name: str | None = None,
    *,
    cancel_event: asyncio.Event | None = None,
) -> AppliedAuth:
    auth = effective_auth(request_auth, folder_defaults, collection)
    applied = AppliedAuth()
    if auth is None:
        return applied

    async def expand(text: str) -> str:
        return await resolver.interpolate_with_secrets(text, variables, collection)

    if isinstance(auth, AuthBasic):
        raw = f"{await expand(auth.username)}:{await expand(auth.password)}".encode()
        applied.headers["Authorization"] = "Basic " + base64.b64encode(raw).decode("ascii")
    elif isinstance(auth, AuthBearer):
        applied.headers["Authorization"] = f"Bearer {await expand(auth.token)}"
    elif isinstance(auth, AuthApiKey):
        key, value = await expand(auth.key), await expand(auth.value)
        if key:
            target = applied.query_params if auth.placement == "query" else applied.headers
            target[key] = value
    elif isinstance(auth, OAUTH2_AUTH_TYPES):
        resolved = await resolve_oauth2_auth(auth, variables, collection, resolver)
        token = await token_manager.get_token(
            resolved, collection.id, env_name, cancel_event=cancel_event
        )
        if token:
            applied.headers["Authorization"] = f"Bearer {token}"
        else:
            logger.debug("No OAuth2 token available and auto-fetch is disabled")
    return applied


async def build_auth_headers(
    request_auth: Auth | Literal["inherit"] | None,
    folder_defaults: RequestDefaults | None,
    collection: MissioCollection,
    variables: Mapping[str, str],
    resolver: VariableResolver,
    token_manager: OAuth2TokenManager,
    env_name: str | None = None,
) -> dict[str, str]:
    applied = await build_auth(
        request_auth, folder_defaults, collection, variables, resolver, token_manager, env_name
    )
    return applied.headers


__all__ = [
    "AppliedAuth",
    "build_auth",
    "build_auth_headers",
    "effective_auth",
    "resolve_oauth2_auth",
]
