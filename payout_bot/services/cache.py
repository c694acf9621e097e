from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional

Clock = Callable[[], float]


@dataclass(slots=True)
class CacheEntry:
    value: Any
    expires_at: float


class BalanceCache:
    """Short-lived per-user memo for the balances call.

    The clock is injectable so tests can move time forward explicitly.
    """

    def __init__(self, ttl: float = 60, clock: Clock = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry] = {}

    def get(self, user_id: Hashable) -> Optional[Any]:
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            self._entries.pop(user_id, None)
            return None
        return entry.value

    def set(self, user_id: Hashable, value: Any) -> None:
        if self.ttl <= 0:
            return
        now = self._clock()
        self._prune(now)
        self._entries[user_id] = CacheEntry(value=value, expires_at=now + self.ttl)

    def _prune(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]

    def invalidate(self, user_id: Hashable) -> None:
        self._entries.pop(user_id, None)

    def clear(self) -> None:
        self._entries.clear()

    async def get_or_fetch(self, user_id: Hashable, fetch: Callable[[], Awaitable[List[Any]]]) -> List[Any]:
        cached = self.get(user_id)
        if cached is not None:
            return cached
        value = await fetch()
        self.set(user_id, value)
        return value
