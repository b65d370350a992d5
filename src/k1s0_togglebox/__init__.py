"""k1s0 togglebox library."""

from .allocation import assign_variation
from .bucketing import bucket
from .cache import CacheClient, DefinitionCache
from .client import ToggleBoxClient
from .evaluation import evaluate_flag
from .events import EventBuffer
from .exceptions import (
    ConfigurationError,
    NetworkError,
    NotFoundError,
    ToggleBoxError,
    ToggleBoxErrorCodes,
)
from .http_client import HttpTransport
from .loaders import ConfigLoader, ExperimentLoader, FlagLoader
from .memory import InMemoryCacheClient
from .models import (
    ConversionData,
    CountryTarget,
    EvaluationReason,
    EventData,
    Experiment,
    ExperimentContext,
    ExperimentStatus,
    Flag,
    FlagContext,
    FlagResult,
    LanguageTarget,
    QueuedEvent,
    RequestContext,
    ServedValue,
    Targeting,
    TrafficAllocation,
    VariantAssignment,
    Variation,
)
from .options import CacheOptions, ClientOptions, StatsOptions, load_options
from .transport import Transport

__all__ = [
    "CacheClient",
    "CacheOptions",
    "ClientOptions",
    "ConfigLoader",
    "ConfigurationError",
    "ConversionData",
    "CountryTarget",
    "DefinitionCache",
    "EvaluationReason",
    "EventBuffer",
    "EventData",
    "Experiment",
    "ExperimentContext",
    "ExperimentLoader",
    "ExperimentStatus",
    "Flag",
    "FlagContext",
    "FlagLoader",
    "FlagResult",
    "HttpTransport",
    "InMemoryCacheClient",
    "LanguageTarget",
    "NetworkError",
    "NotFoundError",
    "QueuedEvent",
    "RequestContext",
    "ServedValue",
    "StatsOptions",
    "Targeting",
    "ToggleBoxClient",
    "ToggleBoxError",
    "ToggleBoxErrorCodes",
    "TrafficAllocation",
    "Transport",
    "VariantAssignment",
    "Variation",
    "assign_variation",
    "bucket",
    "evaluate_flag",
    "load_options",
]
