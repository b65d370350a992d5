"""リモート定義ローダー（Config / Flags / Experiments）"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

import structlog

from .cache import DefinitionCache
from .exceptions import ToggleBoxError, ToggleBoxErrorCodes
from .models import Experiment, Flag
from .transport import Transport

T = TypeVar("T")

logger = structlog.get_logger(__name__)

STABLE_VERSION = "stable"
LATEST_VERSION = "latest"


def environment_path(platform: str, environment: str) -> str:
    return f"/api/v1/platforms/{platform}/environments/{environment}"


def _response_data(response: Any, path: str) -> Any:
    if not isinstance(response, dict):
        raise ToggleBoxError(
            code=ToggleBoxErrorCodes.INVALID_RESPONSE,
            message=f"Unexpected response from {path}",
        )
    return response.get("data")


class DefinitionLoader(ABC, Generic[T]):
    """キャッシュ優先でリモート定義を取得するローダー基底クラス。

    キャッシュヒット時は通信しない。ミス時は取得・パースしてキャッシュに保存する。
    通信エラーはそのまま送出し、リトライはしない。
    """

    entity: str

    def __init__(
        self,
        transport: Transport,
        cache: DefinitionCache,
        platform: str,
        environment: str,
    ) -> None:
        self._transport = transport
        self._cache = cache
        self._platform = platform
        self._environment = environment

    @property
    def base_path(self) -> str:
        return environment_path(self._platform, self._environment)

    @property
    def cache_key(self) -> str:
        return DefinitionCache.namespace_key(self.entity, self._platform, self._environment)

    @property
    @abstractmethod
    def path(self) -> str: ...

    @abstractmethod
    def parse(self, data: Any) -> T: ...

    async def load(self) -> T:
        cached = await self._cache.read(self.cache_key)
        if cached is not None:
            return cached
        logger.debug("fetching definitions", entity=self.entity, path=self.path)
        response = await self._transport.get(self.path)
        value = self._parse_or_raise(_response_data(response, self.path), self.path)
        await self._cache.write(self.cache_key, value)
        return value

    async def invalidate(self) -> None:
        await self._cache.invalidate(self.cache_key)

    def _parse_or_raise(self, data: Any, path: str) -> Any:
        try:
            return self.parse(data)
        except (KeyError, TypeError, ValueError) as e:
            raise ToggleBoxError(
                code=ToggleBoxErrorCodes.INVALID_RESPONSE,
                message=f"Invalid {self.entity} payload from {path}: {e}",
                cause=e,
            ) from e


class ConfigLoader(DefinitionLoader[dict[str, Any]]):
    """リモート設定ローダー。バージョンごとに別パス・別キャッシュキー。"""

    entity = "config"

    def __init__(
        self,
        transport: Transport,
        cache: DefinitionCache,
        platform: str,
        environment: str,
        version: str = STABLE_VERSION,
    ) -> None:
        super().__init__(transport, cache, platform, environment)
        self._version = version

    @property
    def version(self) -> str:
        return self._version

    @property
    def cache_key(self) -> str:
        return DefinitionCache.namespace_key(
            self.entity, self._platform, self._environment, self._version
        )

    @property
    def path(self) -> str:
        if self._version == STABLE_VERSION:
            return f"{self.base_path}/configs"
        if self._version == LATEST_VERSION:
            return f"{self.base_path}/versions/latest"
        return f"{self.base_path}/versions/{self._version}"

    def parse(self, data: Any) -> dict[str, Any]:
        if data is None:
            return {}
        if isinstance(data, dict) and isinstance(data.get("config"), dict):
            return dict(data["config"])
        if not isinstance(data, dict):
            raise TypeError(f"config must be an object, got {type(data).__name__}")
        return dict(data)


class FlagLoader(DefinitionLoader[list[Flag]]):
    """フィーチャーフラグ定義ローダー。"""

    entity = "flags"

    @property
    def path(self) -> str:
        return f"{self.base_path}/flags"

    def parse(self, data: Any) -> list[Flag]:
        return [Flag.from_dict(item) for item in data or []]

    async def fetch_one(self, flag_key: str) -> Flag:
        """単一フラグをキャッシュを経由せずに取得する。"""
        path = f"{self.path}/{flag_key}"
        response = await self._transport.get(path)
        return self._parse_or_raise([_response_data(response, path)], path)[0]


class ExperimentLoader(DefinitionLoader[list[Experiment]]):
    """実験定義ローダー。"""

    entity = "experiments"

    @property
    def path(self) -> str:
        return f"{self.base_path}/experiments"

    def parse(self, data: Any) -> list[Experiment]:
        return [Experiment.from_dict(item) for item in data or []]

    async def fetch_one(self, experiment_key: str) -> Experiment:
        """単一実験をキャッシュを経由せずに取得する。"""
        path = f"{self.path}/{experiment_key}"
        response = await self._transport.get(path)
        return self._parse_or_raise([_response_data(response, path)], path)[0]
