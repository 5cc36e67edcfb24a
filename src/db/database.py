# key-value media the repository persists to
from __future__ import annotations

import os.path
from sqlite3 import Row
from typing import Dict, List, Optional

import aiosqlite

from db.config import DEFAULT_MAX_VALUE_BYTES
from db.errors import QuotaExceededError
from utils.logger import get_logger

_logger = get_logger(__name__)

KV_TABLE_SCRIPT = """
CREATE TABLE IF NOT EXISTS kv (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


class KeyValueStore:
    """
    String-to-string store with a fixed per-key capacity.

    Values larger than max_value_bytes (UTF-8) are refused with
    QuotaExceededError and the previous value is left in place.
    Use as ``async with store:`` or call open()/close() explicitly.
    """

    def __init__(self, max_value_bytes: int = DEFAULT_MAX_VALUE_BYTES) -> None:
        self.max_value_bytes = max_value_bytes

    def check_capacity(self, key: str, value: str) -> None:
        size = len(value.encode("utf-8"))
        if size > self.max_value_bytes:
            raise QuotaExceededError(key, size, self.max_value_bytes)

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def __aenter__(self) -> "KeyValueStore":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    async def remove_item(self, key: str) -> None:
        raise NotImplementedError

    async def keys(self) -> List[str]:
        raise NotImplementedError

    async def clear(self) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    """In-process store, used by tests and throwaway sessions."""

    def __init__(
        self,
        max_value_bytes: int = DEFAULT_MAX_VALUE_BYTES,
        initial: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(max_value_bytes)
        self._data: Dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self.check_capacity(key, value)
        self._data[key] = value

    async def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self) -> List[str]:
        return list(self._data)

    async def clear(self) -> None:
        self._data.clear()


async def _table_exists(conn: aiosqlite.Connection, table_name: str) -> bool:
    cur = await conn.execute(
        """
        SELECT name
        FROM sqlite_master
        WHERE type = 'table'
          AND name = ?;
        """,
        (table_name,),
    )
    row = await cur.fetchone()
    await cur.close()
    return row is not None


class SqliteStore(KeyValueStore):
    """Store backed by a single ``kv`` table in an SQLite file."""

    def __init__(
        self, path: str, max_value_bytes: int = DEFAULT_MAX_VALUE_BYTES
    ) -> None:
        super().__init__(max_value_bytes)
        self.path = path
        self._conn: Optional[aiosqlite.Connection] = None

    async def open(self) -> None:
        if self._conn is not None:
            return
        folder = os.path.dirname(self.path)
        if folder and self.path != ":memory:":
            os.makedirs(folder, exist_ok=True)
        conn = await aiosqlite.connect(self.path)
        conn.row_factory = Row
        if not await _table_exists(conn, "kv"):
            _logger.info(f"Initializing key-value store at {self.path}...")
            await conn.executescript(KV_TABLE_SCRIPT)
            await conn.commit()
        self._conn = conn

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None

    def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("SqliteStore is not open.")
        return self._conn

    async def get_item(self, key: str) -> Optional[str]:
        cur = await self._connection().execute(
            "SELECT value FROM kv WHERE key = ?;", (key,)
        )
        row = await cur.fetchone()
        await cur.close()
        return row["value"] if row else None

    async def set_item(self, key: str, value: str) -> None:
        self.check_capacity(key, value)
        conn = self._connection()
        await conn.execute(
            """
            INSERT INTO kv(key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value;
            """,
            (key, value),
        )
        await conn.commit()

    async def remove_item(self, key: str) -> None:
        conn = self._connection()
        await conn.execute("DELETE FROM kv WHERE key = ?;", (key,))
        await conn.commit()

    async def keys(self) -> List[str]:
        cur = await self._connection().execute("SELECT key FROM kv ORDER BY rowid;")
        rows = await cur.fetchall()
        await cur.close()
        return [row["key"] for row in rows]

    async def clear(self) -> None:
        conn = self._connection()
        await conn.execute("DELETE FROM kv;")
        await conn.commit()
