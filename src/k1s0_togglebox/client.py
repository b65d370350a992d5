"""ToggleBoxClient 実装

3 層構成のクライアント:
- Tier 1: リモート設定（全員同じ値）
- Tier 2: フィーチャーフラグ（2 値、国・言語ターゲティング）
- Tier 3: 実験（多変量 A/B テスト）

評価はローカルで行い、評価・露出イベントはバッファして非同期に送信する。
"""

from __future__ import annotations

from collections.abc import Awaitable
from types import TracebackType
from typing import Any, TypeVar

import structlog

from .allocation import assign_variation
from .cache import CacheClient, DefinitionCache
from .evaluation import evaluate_flag
from .events import EventBuffer
from .exceptions import NotFoundError, ToggleBoxError, ToggleBoxErrorCodes
from .http_client import HttpTransport
from .loaders import ConfigLoader, ExperimentLoader, FlagLoader, environment_path
from .memory import InMemoryCacheClient
from .models import (
    ConversionData,
    EventData,
    Experiment,
    ExperimentContext,
    Flag,
    FlagContext,
    FlagResult,
    RequestContext,
    ServedValue,
    VariantAssignment,
)
from .options import ClientOptions, validate_options
from .transport import Transport

T = TypeVar("T")
D = TypeVar("D")

logger = structlog.get_logger(__name__)

HEALTH_PATH = "/api/v1/health"


async def or_default(awaitable: Awaitable[T], default: D) -> T | D:
    """ToggleBoxError をデフォルト値に変換する。"""
    try:
        return await awaitable
    except ToggleBoxError as e:
        logger.debug("falling back to default", code=e.code, error=str(e))
        return default


class ToggleBoxClient:
    """togglebox クライアント。"""

    def __init__(
        self,
        options: ClientOptions,
        cache: CacheClient | None = None,
        transport: Transport | None = None,
    ) -> None:
        validate_options(options)
        self._options = options
        self._platform = options.platform
        self._environment = options.environment
        self._transport = transport or HttpTransport(
            options.api_base_url,
            api_key=options.api_key,
            timeout_seconds=options.timeout_seconds,
        )
        self._cache = DefinitionCache(
            cache or InMemoryCacheClient(),
            ttl=options.cache.ttl,
            enabled=options.cache.enabled,
        )
        loader_args = (self._transport, self._cache, self._platform, self._environment)
        self._config_loader = ConfigLoader(*loader_args, version=options.config_version)
        self._flag_loader = FlagLoader(*loader_args)
        self._experiment_loader = ExperimentLoader(*loader_args)
        self._events = EventBuffer(
            self._transport,
            f"{environment_path(self._platform, self._environment)}/stats/events",
            options.stats,
        )
        self._log = logger.bind(platform=self._platform, environment=self._environment)

    async def __aenter__(self) -> ToggleBoxClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def pending_events(self) -> int:
        return len(self._events)

    # ==================== Tier 1: リモート設定 ====================

    async def get_config(self) -> dict[str, Any]:
        """設定バージョンに対応する設定値マップを取得する。"""
        return dict(await self._config_loader.load())

    async def get_all_configs(self) -> dict[str, Any]:
        return await self.get_config()

    async def get_config_value(self, key: str, default: Any = None) -> Any:
        """設定値を取得する。未定義または取得失敗時は default。"""
        config = await or_default(self.get_config(), {})
        value = config.get(key)
        return default if value is None else value

    # ==================== Tier 2: フィーチャーフラグ ====================

    async def get_flags(self) -> list[Flag]:
        return await self._flag_loader.load()

    async def get_flag(self, flag_key: str, context: FlagContext) -> FlagResult:
        """フラグを評価し、評価イベントをキューに積む。

        フラグが存在しなければ NotFoundError。
        """
        flag = await self._find_flag(flag_key)
        result = evaluate_flag(flag, context)
        await self._events.enqueue(
            "flag_evaluation",
            {
                "flagKey": flag_key,
                "value": str(result.served_value),
                "userId": context.user_id,
                "country": context.country,
                "language": context.language,
            },
        )
        return result

    async def is_flag_enabled(
        self, flag_key: str, context: FlagContext, default: bool = False
    ) -> bool:
        """配信値が A なら True。評価に失敗した場合は default。"""
        result = await or_default(self.get_flag(flag_key, context), None)
        if result is None:
            return default
        return result.served_value == ServedValue.A

    async def get_flag_info(self, flag_key: str) -> Flag | None:
        """評価せずにフラグ定義を取得する。取得できなければ None。"""
        return await or_default(self._flag_loader.fetch_one(flag_key), None)

    # ==================== Tier 3: 実験 ====================

    async def get_experiments(self) -> list[Experiment]:
        return await self._experiment_loader.load()

    async def get_variant(
        self, experiment_key: str, context: ExperimentContext
    ) -> VariantAssignment | None:
        """バリエーションを割り当て、割り当てがあれば露出イベントをキューに積む。"""
        assignment = await self.get_variant_without_tracking(experiment_key, context)
        if assignment is not None:
            await self._events.enqueue(
                "experiment_exposure",
                {
                    "experimentKey": experiment_key,
                    "variationKey": assignment.variation_key,
                    "userId": context.user_id,
                },
            )
        return assignment

    async def get_variant_without_tracking(
        self, experiment_key: str, context: ExperimentContext
    ) -> VariantAssignment | None:
        """露出イベントを積まずにバリエーションを割り当てる。"""
        experiment = await self._find_experiment(experiment_key)
        return assign_variation(experiment, context)

    async def get_experiment_info(self, experiment_key: str) -> Experiment | None:
        """割り当てせずに実験定義を取得する。取得できなければ None。"""
        return await or_default(self._experiment_loader.fetch_one(experiment_key), None)

    async def track_conversion(
        self, experiment_key: str, context: ExperimentContext, data: ConversionData
    ) -> None:
        """コンバージョンを記録する。露出数を増やさないよう非トラッキングで割り当てる。"""
        assignment = await self.get_variant_without_tracking(experiment_key, context)
        if assignment is None:
            return
        await self._events.enqueue(
            "conversion",
            {
                "experimentKey": experiment_key,
                "metricName": data.metric_name,
                "variationKey": assignment.variation_key,
                "userId": context.user_id,
                "value": data.value,
            },
        )

    async def track_event(
        self, event_name: str, context: RequestContext, data: EventData | None = None
    ) -> None:
        """カスタムイベントを記録する。"""
        data = data or EventData()
        await self._events.enqueue(
            "custom_event",
            {
                "eventName": event_name,
                "userId": context.user_id,
                "country": context.country,
                "language": context.language,
                "experimentKey": data.experiment_key,
                "variationKey": data.variation_key,
                "value": data.value,
            },
        )

    # ==================== キャッシュ・ライフサイクル ====================

    async def refresh(self) -> None:
        """3 層すべてのキャッシュを破棄して再取得する。"""
        await self._config_loader.invalidate()
        await self._flag_loader.invalidate()
        await self._experiment_loader.invalidate()

        await self._config_loader.load()
        await self._flag_loader.load()
        await self._experiment_loader.load()
        self._log.debug("definitions refreshed")

    async def clear_cache(self) -> None:
        await self._cache.invalidate_all()

    async def flush_stats(self) -> None:
        """キュー中の統計イベントを送信する。失敗しても例外は送出しない。"""
        await self._events.flush()

    async def check_connection(self) -> dict[str, Any]:
        """API の疎通とヘルスを確認する。"""
        return await self._transport.get(HEALTH_PATH)

    async def close(self) -> None:
        await self.flush_stats()

    async def _find_flag(self, flag_key: str) -> Flag:
        for flag in await self.get_flags():
            if flag.flag_key == flag_key:
                return flag
        raise NotFoundError(
            code=ToggleBoxErrorCodes.FLAG_NOT_FOUND,
            message=f'Flag "{flag_key}" not found',
        )

    async def _find_experiment(self, experiment_key: str) -> Experiment:
        for experiment in await self.get_experiments():
            if experiment.experiment_key == experiment_key:
                return experiment
        raise NotFoundError(
            code=ToggleBoxErrorCodes.EXPERIMENT_NOT_FOUND,
            message=f'Experiment "{experiment_key}" not found',
        )
