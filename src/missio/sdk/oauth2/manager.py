"""
OAuth2 token manager.

Tokens are persisted in the secret store under
``missio:oauth2:<collectionId>:<envName>:<accessTokenUrl>:<credentialsId>``.
Per key a token moves between three states:

- no token: nothing stored, or the stored token was cleared
- valid: stored and not past ``created_at + expires_in - 30s``
- expired: refreshed when possible, otherwise deleted and fetched again

The manager is the only reader and writer of that keyspace. It also keeps an
index of the keys it has written under ``missio:oauth2:index`` so tokens can
be cleared in bulk. Updates to the index are serialized by a lock owned by the
manager.

Two callers refreshing the same key at the same time may both hit the token
endpoint; the last one to persist wins.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable

from pydantic import ValidationError

from missio.sdk.oauth2.authorization_code import AuthorizationCodeFlow
from missio.sdk.oauth2.errors import OAuth2ConfigurationError, OAuth2Error
from missio.sdk.oauth2.models import (
    OAuth2AuthorizationCodeAuth,
    OAuth2ClientCredentialsAuth,
    OAuth2PasswordAuth,
    OAuth2TokenData,
    TokenStatus,
)
from missio.sdk.oauth2.token_endpoint import TokenEndpointClient
from missio.sdk.secrets.store import SecretStore

logger = logging.getLogger(__name__)

TOKEN_KEY_PREFIX = "missio:oauth2:"
TOKEN_INDEX_KEY = "missio:oauth2:index"
NO_ENVIRONMENT = "_none_"
DEFAULT_CREDENTIALS_ID = "default"

OAuth2AuthConfig = OAuth2ClientCredentialsAuth | OAuth2PasswordAuth | OAuth2AuthorizationCodeAuth
OAUTH2_AUTH_TYPES = (OAuth2ClientCredentialsAuth, OAuth2PasswordAuth, OAuth2AuthorizationCodeAuth)


def token_storage_key(
    collection_id: str,
    env_name: str | None,
    access_token_url: str,
    credentials_id: str | None = None,
) -> str:
    return (
        f"{TOKEN_KEY_PREFIX}{collection_id}:{env_name or NO_ENVIRONMENT}:"
        f"{access_token_url}:{credentials_id or DEFAULT_CREDENTIALS_ID}"
    )


class OAuth2TokenManager:
    """Fetches, caches, refreshes and clears OAuth2 access tokens."""

    def __init__(
        self,
        store: SecretStore,
        token_endpoint: TokenEndpointClient | None = None,
        authorization_code_flow: AuthorizationCodeFlow | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._clock = clock
        self._index_lock = asyncio.Lock()
        self._token_endpoint = token_endpoint or TokenEndpointClient(clock=clock)
        self._authorization_code_flow = authorization_code_flow or AuthorizationCodeFlow(
            self._token_endpoint
        )

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def storage_key(
        self, auth: OAuth2AuthConfig, collection_id: str, env_name: str | None = None
    ) -> str:
        if not auth.access_token_url:
            raise OAuth2ConfigurationError("OAuth2 configuration requires accessTokenUrl")
        return token_storage_key(
            collection_id, env_name, auth.access_token_url, auth.credentials_id
        )

    async def get_token(
        self,
        auth: OAuth2AuthConfig,
        collection_id: str,
        env_name: str | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> str | None:
        """Return a usable access token, or None when auto-fetch is disabled.

        Raises:
            OAuth2ConfigurationError: If a field the flow needs is missing
            OAuth2Error: If fetching a new token fails
        """
        key = self.storage_key(auth, collection_id, env_name)
        settings = auth.settings
        stored = await self._load(key, discard_invalid=True)

        if stored is not None:
            if not stored.is_expired(self._now_ms()):
                return stored.access_token

            if settings.auto_refresh_token and stored.refresh_token:
                refreshed = await self._try_refresh(auth, stored)
                if refreshed is not None:
                    await self._save(key, refreshed)
                    return refreshed.access_token

            await self._delete(key)

        if not settings.auto_fetch_token:
            return None

        token = await self._fetch(auth, cancel_event)
        await self._save(key, token)
        return token.access_token

    async def get_token_status(
        self, auth: OAuth2AuthConfig, collection_id: str, env_name: str | None = None
    ) -> TokenStatus:
        stored = await self._load(self.storage_key(auth, collection_id, env_name))
        if stored is None:
            return TokenStatus(has_token=False)

        now = self._now_ms()
        expires_at = stored.expires_at
        return TokenStatus(
            has_token=True,
            expires_at=expires_at,
            is_expired=stored.is_expired(now),
            time_remaining=max(0, expires_at - now) if expires_at is not None else None,
        )

    async def clear_token(
        self, auth: OAuth2AuthConfig, collection_id: str, env_name: str | None = None
    ) -> None:
        await self._delete(self.storage_key(auth, collection_id, env_name))

    async def clear_all_tokens(
        self, collection_id: str | None = None, env_name: str | None = None
    ) -> int:
        """Delete every token this manager has stored, optionally scoped.

        ``env_name`` narrows the scope only together with ``collection_id``.
        ``None`` leaves every environment in scope; pass ``NO_ENVIRONMENT`` to
        target only the tokens stored without an active environment.
        Returns the number of tokens deleted.
        """
        prefix = TOKEN_KEY_PREFIX
        if collection_id is not None:
            prefix += f"{collection_id}:"
            if env_name is not None:
                prefix += f"{env_name}:"

        async with self._index_lock:
            keys = await self._read_index()
            cleared = [key for key in keys if key.startswith(prefix)]
            for key in cleared:
                await self._store.delete(key)
            if cleared:
                await self._write_index([key for key in keys if key not in cleared])
        logger.info("Cleared %d OAuth2 token(s)", len(cleared))
        return len(cleared)

    # ── Flows ──────────────────────────────────────────────────────────────────
    async def _fetch(
        self, auth: OAuth2AuthConfig, cancel_event: asyncio.Event | None
    ) -> OAuth2TokenData:
        client_id = auth.credentials.client_id if auth.credentials is not None else None

        if isinstance(auth, OAuth2ClientCredentialsAuth):
            if not client_id:
                raise OAuth2ConfigurationError(
                    "OAuth2 client_credentials flow requires credentials.clientId"
                )
            return await self._token_endpoint.fetch_client_credentials(auth)

        if isinstance(auth, OAuth2PasswordAuth):
            owner = auth.resource_owner
            if not client_id:
                raise OAuth2ConfigurationError(
                    "OAuth2 password flow requires credentials.clientId"
                )
            if owner is None or not owner.username or not owner.password:
                raise OAuth2ConfigurationError(
                    "OAuth2 password flow requires resourceOwner.username and resourceOwner.password"
                )
            return await self._token_endpoint.fetch_password(auth, owner.username, owner.password)

        if isinstance(auth, OAuth2AuthorizationCodeAuth):
            if not auth.authorization_url:
                raise OAuth2ConfigurationError(
                    "OAuth2 authorization_code flow requires authorizationUrl"
                )
            if not client_id:
                raise OAuth2ConfigurationError(
                    "OAuth2 authorization_code flow requires credentials.clientId"
                )
            return await self._authorization_code_flow.run(auth, cancel_event)

        raise OAuth2ConfigurationError(
            f"Unsupported OAuth2 flow: {getattr(auth, 'flow', None)!r}"
        )

    async def _try_refresh(
        self, auth: OAuth2AuthConfig, stored: OAuth2TokenData
    ) -> OAuth2TokenData | None:
        assert stored.refresh_token is not None
        token_url = auth.refresh_token_url or auth.access_token_url
        assert token_url is not None
        try:
            refreshed = await self._token_endpoint.refresh(
                token_url, stored.refresh_token, auth.credentials, auth.scope
            )
        except OAuth2Error as exc:
            logger.warning(
                "OAuth2 token refresh failed",
                extra={"endpoint": token_url, "error": str(exc)},
            )
            return None
        if refreshed.refresh_token is None:
            refreshed = refreshed.model_copy(update={"refresh_token": stored.refresh_token})
        return refreshed

    # ── Storage ────────────────────────────────────────────────────────────────
    async def _load(self, key: str, discard_invalid: bool = False) -> OAuth2TokenData | None:
        raw = await self._store.get(key)
        if raw is None:
            return None
        try:
            return OAuth2TokenData.model_validate_json(raw)
        except ValidationError:
            if discard_invalid:
                logger.warning("Discarding unreadable stored OAuth2 token")
                await self._delete(key)
            return None

    async def _save(self, key: str, token: OAuth2TokenData) -> None:
        await self._store.store(key, token.model_dump_json())
        async with self._index_lock:
            keys = await self._read_index()
            if key not in keys:
                keys.append(key)
                await self._write_index(keys)

    async def _delete(self, key: str) -> None:
        await self._store.delete(key)
        async with self._index_lock:
            keys = await self._read_index()
            if key in keys:
                keys.remove(key)
                await self._write_index(keys)

    async def _read_index(self) -> list[str]:
        raw = await self._store.get(TOKEN_INDEX_KEY)
        if not raw:
            return []
        try:
            keys = json.loads(raw)
        except ValueError:
            logger.warning("Resetting unreadable OAuth2 token index")
            return []
        return [key for key in keys if isinstance(key, str)] if isinstance(keys, list) else []

    async def _write_index(self, keys: list[str]) -> None:
        await self._store.store(TOKEN_INDEX_KEY, json.dumps(keys))


__all__ = [
    "DEFAULT_CREDENTIALS_ID",
    "NO_ENVIRONMENT",
    "OAUTH2_AUTH_TYPES",
    "OAuth2AuthConfig",
    "OAuth2TokenManager",
    "TOKEN_INDEX_KEY",
    "token_storage_key",
]
