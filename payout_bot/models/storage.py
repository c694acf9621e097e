from __future__ import annotations

import logging
import os
import time
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple

import aiosqlite
import redis.asyncio as redis

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class MemoryBackend:
    """Process-local session storage. Used in tests and development."""

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._items: Dict[str, Tuple[str, float]] = {}

    async def init(self) -> None:
        return None

    async def get(self, key: str) -> Optional[str]:
        item = self._items.get(key)
        if item is None:
            return None
        value, expires_at = item
        if self._clock() >= expires_at:
            self._items.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl: int) -> None:
        self._items[key] = (value, self._clock() + ttl)

    async def delete(self, key: str) -> None:
        self._items.pop(key, None)

    async def close(self) -> None:
        self._items.clear()


class SqliteBackend:
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        directory = os.path.dirname(os.path.abspath(db_path))
        if directory and not os.path.exists(directory):
            os.makedirs(directory, exist_ok=True)

    async def init(self) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    session_key TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    expires_at REAL NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            await db.execute("CREATE INDEX IF NOT EXISTS idx_sessions_expires_at ON sessions(expires_at)")
            await db.commit()

    async def get(self, key: str) -> Optional[str]:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT payload, expires_at FROM sessions WHERE session_key = ? LIMIT 1",
                (key,),
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            if row["expires_at"] <= time.time():
                await db.execute("DELETE FROM sessions WHERE session_key = ?", (key,))
                await db.commit()
                return None
        return row["payload"]

    async def set(self, key: str, value: str, ttl: int) -> None:
        now = datetime.utcnow().isoformat(timespec="seconds")
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                """
                INSERT INTO sessions(session_key, payload, expires_at, updated_at)
                VALUES(?, ?, ?, ?)
                ON CONFLICT(session_key) DO UPDATE SET
                    payload = excluded.payload,
                    expires_at = excluded.expires_at,
                    updated_at = excluded.updated_at
                """,
                (key, value, time.time() + ttl, now),
            )
            await db.commit()

    async def delete(self, key: str) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute("DELETE FROM sessions WHERE session_key = ?", (key,))
            await db.commit()

    async def cleanup_expired(self) -> int:
        async with aiosqlite.connect(self._db_path) as db:
            cursor = await db.execute("DELETE FROM sessions WHERE expires_at <= ?", (time.time(),))
            await db.commit()
            return cursor.rowcount

    async def close(self) -> None:
        removed = await self.cleanup_expired()
        if removed:
            logger.info("Removed %s expired sessions", removed)


class RedisBackend:
    def __init__(self, url: str, prefix: str = "payout_bot:session:") -> None:
        self._client = redis.from_url(url, decode_responses=True)
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def init(self) -> None:
        await self._client.ping()

    async def get(self, key: str) -> Optional[str]:
        return await self._client.get(self._key(key))

    async def set(self, key: str, value: str, ttl: int) -> None:
        await self._client.set(self._key(key), value, ex=ttl)

    async def delete(self, key: str) -> None:
        await self._client.delete(self._key(key))

    async def close(self) -> None:
        await self._client.aclose()


def build_backend(kind: str, *, db_path: str, redis_url: Optional[str] = None):
    if kind == "memory":
        return MemoryBackend()
    if kind == "redis":
        if not redis_url:
            raise RuntimeError("REDIS_URL is required for the redis session backend")
        return RedisBackend(redis_url)
    return SqliteBackend(db_path)
