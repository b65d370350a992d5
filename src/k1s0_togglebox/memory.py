"""InMemoryCacheClient 実装"""

from __future__ import annotations

import time
from typing import Any

from .cache import CacheClient


class _CacheEntry:
    __slots__ = ("value", "expires_at")

    def __init__(self, value: Any, ttl: float) -> None:
        self.value = value
        self.expires_at = time.monotonic() + ttl

    def is_expired(self) -> bool:
        return time.monotonic() >= self.expires_at


class InMemoryCacheClient(CacheClient):
    """プロセス内インメモリキャッシュクライアント。デフォルトのキャッシュ。"""

    def __init__(self) -> None:
        self._store: dict[str, _CacheEntry] = {}

    async def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.is_expired():
            del self._store[key]
            return None
        return entry.value

    async def set(self, key: str, value: Any, ttl: float) -> None:
        self._store[key] = _CacheEntry(value, ttl)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)
