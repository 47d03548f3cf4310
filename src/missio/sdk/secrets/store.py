"""Opaque secret stores shared by the secure-value bridge and the OAuth2 manager."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Protocol

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class SecretStore(Protocol):
    """Async key/value store for secret strings.

    Keys are namespaced by the caller (``missio:secure:...``,
    ``missio:oauth2:...``); the store treats them as opaque.
    """

    async def get(self, key: str) -> str | None: ...

    async def store(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class InMemorySecretStore(SecretStore):
    """Process-local store for tests and ephemeral sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._values.get(key)

    async def store(self, key: str, value: str) -> None:
        self._values[key] = value

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._values)


class SqliteSecretStore(SecretStore):
    """SQLite-backed SecretStore with Fernet encryption at rest."""

    def __init__(
        self,
        db_path: Path,
        encryption_key: str | bytes | None = None,
        *,
        allow_plaintext: bool = False,
    ) -> None:
        self.db_path = Path(db_path)
        self.allow_plaintext = allow_plaintext
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._executor: ThreadPoolExecutor | None = None
        self._initialized = False
        self._fernet = self._build_fernet(encryption_key) if encryption_key else None
        if not self._fernet and self.allow_plaintext:
            logger.warning(
                "Storing secrets in plaintext because allow_plaintext=True and no "
                "encryption key was provided. This disables at-rest protection."
            )

    async def initialize(self) -> None:
        if self._initialized:
            return
        await self._run(self._sync_initialize)

    async def close(self) -> None:
        if self._executor:
            await asyncio.get_running_loop().run_in_executor(self._executor, self._sync_close)
            self._executor.shutdown(wait=True)
        self._executor = None
        self._initialized = False

    async def get(self, key: str) -> str | None:
        await self.initialize()
        stored = await self._run(self._sync_get, key)
        return self._decrypt(stored)

    async def store(self, key: str, value: str) -> None:
        await self.initialize()
        await self._run(self._sync_store, key, self._encrypt(value))

    async def delete(self, key: str) -> None:
        await self.initialize()
        await self._run(self._sync_delete, key)

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        executor = self._ensure_executor()
        return await asyncio.get_running_loop().run_in_executor(executor, func, *args)

    # ── Internals (sync) ───────────────────────────────────────────────────────
    def _sync_initialize(self) -> None:
        with self._lock:
            if self._initialized:
                return
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS secrets (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            self._conn.commit()
            self._initialized = True

    def _sync_close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
            self._initialized = False

    def _sync_get(self, key: str) -> str | None:
        assert self._conn is not None
        with self._lock:
            row = self._conn.execute("SELECT value FROM secrets WHERE key = ?", (key,)).fetchone()
            return row[0] if row else None

    def _sync_store(self, key: str, value: str) -> None:
        assert self._conn is not None
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO secrets (key, value) VALUES (?, ?)", (key, value)
            )
            self._conn.commit()

    def _sync_delete(self, key: str) -> None:
        assert self._conn is not None
        with self._lock:
            self._conn.execute("DELETE FROM secrets WHERE key = ?", (key,))
            self._conn.commit()

    def _ensure_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="secret-store")
        return self._executor

    def _build_fernet(self, encryption_key: str | bytes) -> Fernet:
        key_bytes = (
            encryption_key.encode("utf-8") if isinstance(encryption_key, str) else encryption_key
        )
        try:
            return Fernet(key_bytes)
        except (TypeError, ValueError) as exc:
            raise ValueError(
                "Invalid Fernet key: expected urlsafe base64-encoded 32-byte value. "
                "Generate one with Fernet.generate_key()."
            ) from exc

    def _encrypt(self, value: str) -> str:
        if self._fernet:
            return self._fernet.encrypt(value.encode("utf-8")).decode("utf-8")
        if not self.allow_plaintext:
            raise ValueError(
                "Secret store encryption key is required; set allow_plaintext=True to store "
                "secrets in plaintext."
            )
        return value

    def _decrypt(self, value: str | None) -> str | None:
        if value is None:
            return None
        if self._fernet:
            try:
                return self._fernet.decrypt(value.encode("utf-8")).decode("utf-8")
            except InvalidToken as exc:
                raise ValueError("Failed to decrypt stored secret") from exc
        if not self.allow_plaintext:
            raise ValueError(
                "Secret store encryption key is required to read stored secrets; plaintext "
                "secrets are disabled."
            )
        return value


__all__ = ["InMemorySecretStore", "SecretStore", "SqliteSecretStore"]
