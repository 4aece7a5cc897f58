"""
Vault KeyStore — Durable key/value persistence for master key state.

Contract used by MasterKeyManager:
- ``get(key)`` -> stored mapping or None
- ``upsert(key, value)`` -> overwrite or insert
- ``scan(prefix)`` -> all (key, value) pairs whose key starts with prefix

Implementations:
- MemoryKeyStore: process-local, for tests and ephemeral use
- FileKeyStore: single JSON file, atomically replaced on each write
- SQLKeyStore: asyncpg-compatible pool over a ``system_config`` table

Security Note:
    Stored values contain master key material. Restrict access to the
    backing store; FileKeyStore writes its file with mode 0600.
"""
import os
import asyncio
import logging
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Union

import orjson

logger = logging.getLogger("navigator.keyvault")


class KeyStore(ABC):
    """Abstract async key/value store."""

    @abstractmethod
    async def get(self, key: str) -> Optional[dict]:
        """Return the value stored under ``key`` or None."""

    @abstractmethod
    async def upsert(self, key: str, value: dict) -> None:
        """Insert or overwrite ``key``. Must be durable when it returns."""

    @abstractmethod
    async def scan(self, prefix: str) -> list[tuple[str, dict]]:
        """Return every (key, value) pair whose key starts with ``prefix``."""


class MemoryKeyStore(KeyStore):
    """In-process store; values are copied through JSON on every access."""

    def __init__(self):
        self._data: dict[str, bytes] = {}

    async def get(self, key: str) -> Optional[dict]:
        raw = self._data.get(key)
        return orjson.loads(raw) if raw is not None else None

    async def upsert(self, key: str, value: dict) -> None:
        self._data[key] = orjson.dumps(value)

    async def scan(self, prefix: str) -> list[tuple[str, dict]]:
        return [
            (k, orjson.loads(v))
            for k, v in sorted(self._data.items())
            if k.startswith(prefix)
        ]


class FileKeyStore(KeyStore):
    """JSON file store.

    Every write serializes the whole namespace to a temporary file in the
    same directory and moves it over the old one with ``os.replace``.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock: Optional[asyncio.Lock] = None

    @property
    def path(self) -> Path:
        return self._path

    def _guard(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        data = orjson.loads(self._path.read_bytes())
        if not isinstance(data, dict):
            raise ValueError(f"Key store file {self._path} is not a JSON object")
        return data

    def _write(self, data: dict[str, Any]) -> None:
        fd, tmp = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as fp:
                fp.write(orjson.dumps(data, option=orjson.OPT_INDENT_2))
                fp.flush()
                os.fsync(fp.fileno())
            os.chmod(tmp, 0o600)
            os.replace(tmp, self._path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    async def get(self, key: str) -> Optional[dict]:
        async with self._guard():
            return self._read().get(key)

    async def upsert(self, key: str, value: dict) -> None:
        async with self._guard():
            data = self._read()
            data[key] = value
            self._write(data)
        logger.debug("FileKeyStore wrote %s to %s", key, self._path)

    async def scan(self, prefix: str) -> list[tuple[str, dict]]:
        async with self._guard():
            data = self._read()
        return [(k, v) for k, v in sorted(data.items()) if k.startswith(prefix)]


# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_SELECT_VALUE = """
SELECT value
FROM {table}
WHERE key = $1
"""

_UPSERT_VALUE = """
INSERT INTO {table} (key, value, updated_at)
VALUES ($1, $2, NOW())
ON CONFLICT (key)
DO UPDATE SET value = EXCLUDED.value,
             updated_at = NOW()
"""

_SELECT_PREFIX = """
SELECT key, value
FROM {table}
WHERE key LIKE $1
ORDER BY key
"""


class SQLKeyStore(KeyStore):
    """Key store over an asyncpg-compatible connection pool.

    Expects a table with a unique text ``key`` column, a json/text ``value``
    column and an ``updated_at`` timestamp. Values are written as JSON text.
    """

    def __init__(self, db_pool: Any, table: str = "system_config"):
        if not table.replace("_", "").replace(".", "").isalnum():
            raise ValueError(f"Invalid table name: {table}")
        self._db = db_pool
        self._select = _SELECT_VALUE.format(table=table)
        self._upsert = _UPSERT_VALUE.format(table=table)
        self._prefix = _SELECT_PREFIX.format(table=table)

    @staticmethod
    def _decode(value: Any) -> dict:
        if isinstance(value, (str, bytes)):
            return orjson.loads(value)
        return value

    async def get(self, key: str) -> Optional[dict]:
        async with self._db.acquire() as conn:
            row = await conn.fetchrow(self._select, key)
        if row is None:
            return None
        return self._decode(row["value"])

    async def upsert(self, key: str, value: dict) -> None:
        payload = orjson.dumps(value).decode("utf-8")
        async with self._db.acquire() as conn:
            await conn.execute(self._upsert, key, payload)

    async def scan(self, prefix: str) -> list[tuple[str, dict]]:
        escaped = (
            prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        )
        async with self._db.acquire() as conn:
            rows = await conn.fetch(self._prefix, escaped + "%")
        return [(row["key"], self._decode(row["value"])) for row in rows]
