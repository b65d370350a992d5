"""togglebox データモデル"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any


class ServedValue(StrEnum):
    """フラグの配信値（A / B）。"""

    A = "A"
    B = "B"


class EvaluationReason(StrEnum):
    """フラグ評価理由。"""

    FLAG_DISABLED = "flag_disabled"
    FORCE_EXCLUDED = "force_excluded"
    FORCE_INCLUDED = "force_included"
    COUNTRY_NOT_TARGETED = "country_not_targeted"
    LANGUAGE_NOT_TARGETED = "language_not_targeted"
    TARGETING_MATCH = "targeting_match"
    ROLLOUT = "rollout"
    DEFAULT = "default"


class ExperimentStatus(StrEnum):
    """実験ステータス。"""

    DRAFT = "draft"
    RUNNING = "running"
    COMPLETED = "completed"


def _parse_served(value: Any) -> ServedValue | None:
    return ServedValue(value) if value is not None else None


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ==================== コンテキスト ====================


@dataclass(frozen=True)
class RequestContext:
    """評価リクエストのコンテキスト。"""

    user_id: str
    country: str | None = None
    language: str | None = None

    def __post_init__(self) -> None:
        if not self.user_id:
            raise ValueError("user_id must not be empty")


@dataclass(frozen=True)
class FlagContext(RequestContext):
    """フラグ評価コンテキスト。"""


@dataclass(frozen=True)
class ExperimentContext(RequestContext):
    """実験割り当てコンテキスト。"""


# ==================== ターゲティング ====================


@dataclass(frozen=True)
class LanguageTarget:
    """言語ターゲット。"""

    language: str
    serve_value: ServedValue | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LanguageTarget:
        return cls(
            language=data["language"],
            serve_value=_parse_served(data.get("serveValue")),
        )


@dataclass(frozen=True)
class CountryTarget:
    """国ターゲット。languages が空なら国単位で一致判定する。"""

    country: str
    serve_value: ServedValue | None = None
    languages: tuple[LanguageTarget, ...] = ()

    def matches(self, country: str) -> bool:
        return self.country.upper() == country.upper()

    def find_language(self, language: str) -> LanguageTarget | None:
        for target in self.languages:
            if target.language.lower() == language.lower():
                return target
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CountryTarget:
        return cls(
            country=data["country"],
            serve_value=_parse_served(data.get("serveValue")),
            languages=tuple(LanguageTarget.from_dict(lang) for lang in data.get("languages") or []),
        )


@dataclass(frozen=True)
class Targeting:
    """国・言語ターゲティングと強制包含・除外ユーザー。"""

    countries: tuple[CountryTarget, ...] = ()
    force_include_users: frozenset[str] = frozenset()
    force_exclude_users: frozenset[str] = frozenset()

    def find_country(self, country: str) -> CountryTarget | None:
        for target in self.countries:
            if target.matches(country):
                return target
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Targeting:
        return cls(
            countries=tuple(CountryTarget.from_dict(c) for c in data.get("countries") or []),
            force_include_users=frozenset(data.get("forceIncludeUsers") or []),
            force_exclude_users=frozenset(data.get("forceExcludeUsers") or []),
        )


# ==================== 定義 ====================


@dataclass(frozen=True)
class Flag:
    """2 値フィーチャーフラグ定義。"""

    flag_key: str
    enabled: bool
    value_a: Any
    value_b: Any
    name: str = ""
    description: str | None = None
    flag_type: str = "boolean"
    default_value: ServedValue | None = None
    targeting: Targeting | None = None
    rollout_enabled: bool = False
    rollout_percentage_a: float = 100
    rollout_percentage_b: float = 0
    created_at: str = ""
    updated_at: str = ""

    @property
    def default_served(self) -> ServedValue:
        return self.default_value or ServedValue.B

    def value_for(self, served: ServedValue) -> Any:
        return self.value_a if served == ServedValue.A else self.value_b

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Flag:
        targeting = data.get("targeting")
        return cls(
            flag_key=data["flagKey"],
            enabled=bool(data["enabled"]),
            value_a=data["valueA"],
            value_b=data["valueB"],
            name=data.get("name", ""),
            description=data.get("description"),
            flag_type=data.get("flagType", "boolean"),
            default_value=_parse_served(data.get("defaultValue")),
            targeting=Targeting.from_dict(targeting) if targeting else None,
            rollout_enabled=bool(data.get("rolloutEnabled", False)),
            rollout_percentage_a=data.get("rolloutPercentageA", 100),
            rollout_percentage_b=data.get("rolloutPercentageB", 0),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )


@dataclass(frozen=True)
class Variation:
    """実験バリエーション。"""

    key: str
    name: str
    value: Any
    is_control: bool | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Variation:
        return cls(
            key=data["key"],
            name=data.get("name", data["key"]),
            value=data.get("value"),
            is_control=data.get("isControl"),
        )


@dataclass(frozen=True)
class TrafficAllocation:
    """バリエーションへのトラフィック割り当て（%）。"""

    variation_key: str
    percentage: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TrafficAllocation:
        return cls(variation_key=data["variationKey"], percentage=data["percentage"])


@dataclass(frozen=True)
class Experiment:
    """多変量実験定義。"""

    experiment_key: str
    status: ExperimentStatus
    variations: tuple[Variation, ...]
    control_variation: str
    traffic_allocation: tuple[TrafficAllocation, ...]
    name: str = ""
    description: str | None = None
    hypothesis: str = ""
    targeting: Targeting | None = None
    primary_metric: dict[str, Any] = field(default_factory=dict)
    secondary_metrics: tuple[dict[str, Any], ...] = ()
    confidence_level: float = 0.95
    scheduled_start_at: datetime | None = None
    scheduled_end_at: datetime | None = None
    started_at: str | None = None
    completed_at: str | None = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def is_running(self) -> bool:
        return self.status == ExperimentStatus.RUNNING

    def is_within_schedule(self, now: datetime | None = None) -> bool:
        """スケジュール期間内か確認する。未設定の境界は無制限として扱う。"""
        now = now or datetime.now(timezone.utc)
        if self.scheduled_start_at is not None and self.scheduled_start_at > now:
            return False
        if self.scheduled_end_at is not None and self.scheduled_end_at < now:
            return False
        return True

    def find_variation(self, key: str) -> Variation | None:
        for variation in self.variations:
            if variation.key == key:
                return variation
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Experiment:
        targeting = data.get("targeting")
        return cls(
            experiment_key=data["experimentKey"],
            status=ExperimentStatus(data["status"]),
            variations=tuple(Variation.from_dict(v) for v in data["variations"]),
            control_variation=data["controlVariation"],
            traffic_allocation=tuple(
                TrafficAllocation.from_dict(a) for a in data["trafficAllocation"]
            ),
            name=data.get("name", ""),
            description=data.get("description"),
            hypothesis=data.get("hypothesis", ""),
            targeting=Targeting.from_dict(targeting) if targeting else None,
            primary_metric=data.get("primaryMetric") or {},
            secondary_metrics=tuple(data.get("secondaryMetrics") or []),
            confidence_level=data.get("confidenceLevel", 0.95),
            scheduled_start_at=_parse_datetime(data.get("scheduledStartAt")),
            scheduled_end_at=_parse_datetime(data.get("scheduledEndAt")),
            started_at=data.get("startedAt"),
            completed_at=data.get("completedAt"),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )


# ==================== 評価結果 ====================


@dataclass(frozen=True)
class FlagResult:
    """フラグ評価結果。"""

    flag_key: str
    value: Any
    served_value: ServedValue
    reason: EvaluationReason


@dataclass(frozen=True)
class VariantAssignment:
    """実験バリエーション割り当て結果。"""

    experiment_key: str
    variation_key: str
    variation_name: str
    value: Any
    is_control: bool


# ==================== トラッキング ====================


@dataclass(frozen=True)
class ConversionData:
    """コンバージョン計測データ。"""

    metric_name: str
    value: float | None = None


@dataclass(frozen=True)
class EventData:
    """カスタムイベントの付加データ。"""

    experiment_key: str | None = None
    variation_key: str | None = None
    value: float | None = None


@dataclass(frozen=True)
class QueuedEvent:
    """送信待ちの統計イベント。"""

    type: str
    timestamp: str
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """type と timestamp をペイロードと同じ階層に展開する。"""
        return {"type": self.type, "timestamp": self.timestamp, **self.payload}
