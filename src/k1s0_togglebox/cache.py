"""CacheClient 抽象基底クラスと定義キャッシュ層"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class CacheClient(ABC):
    """キャッシュクライアント抽象基底クラス。"""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """キーに対応する値を取得する。存在しないか期限切れなら None。"""
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: float) -> None:
        """キーと値を有効期限（秒）付きで保存する。"""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """キーを削除する。"""
        ...

    @abstractmethod
    async def clear(self) -> None:
        """全てのキーを削除する。"""
        ...


class DefinitionCache:
    """リモート定義の TTL キャッシュ。

    実際の保存先は注入された CacheClient に委譲する。enabled=False の場合、
    read は常に None を返し write は何もしない。
    """

    def __init__(self, backend: CacheClient, ttl: float, enabled: bool = True) -> None:
        self._backend = backend
        self._ttl = ttl
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    @staticmethod
    def namespace_key(
        entity: str, platform: str, environment: str, version: str | None = None
    ) -> str:
        """{entity}:{platform}:{environment}[:{version}] 形式のキーを組み立てる。"""
        parts = [entity, platform, environment]
        if version is not None:
            parts.append(version)
        return ":".join(parts)

    async def read(self, key: str) -> Any | None:
        if not self._enabled:
            return None
        value = await self._backend.get(key)
        logger.debug("definition cache read", key=key, hit=value is not None)
        return value

    async def write(self, key: str, value: Any, ttl: float | None = None) -> None:
        if not self._enabled:
            return
        await self._backend.set(key, value, self._ttl if ttl is None else ttl)

    async def invalidate(self, key: str) -> None:
        await self._backend.delete(key)

    async def invalidate_all(self) -> None:
        await self._backend.clear()
