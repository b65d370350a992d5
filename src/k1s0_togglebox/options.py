"""クライアント設定（pydantic BaseModel）と YAML 読み込み"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigurationError, ToggleBoxErrorCodes

TENANT_URL_TEMPLATE = "https://{subdomain}.togglebox.io"


class CacheOptions(BaseModel):
    """定義キャッシュ設定。"""

    enabled: bool = True
    ttl: float = Field(default=300, ge=0)


class StatsOptions(BaseModel):
    """統計イベント送信設定。"""

    enabled: bool = True
    batch_size: int = Field(default=20, ge=1)
    max_retries: int = Field(default=3, ge=1)
    max_queue_size: int = Field(default=1000, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)


class ClientOptions(BaseModel):
    """ToggleBoxClient 設定。

    api_url と tenant_subdomain はどちらか一方のみ指定する。
    config_version は "stable"、"latest" または明示的なバージョン ID。
    """

    platform: str
    environment: str
    api_url: str | None = None
    tenant_subdomain: str | None = None
    api_key: str | None = None
    cache: CacheOptions = Field(default_factory=CacheOptions)
    stats: StatsOptions = Field(default_factory=StatsOptions)
    config_version: str = "stable"
    timeout_seconds: float = Field(default=30.0, gt=0)

    @property
    def api_base_url(self) -> str:
        if self.tenant_subdomain:
            return TENANT_URL_TEMPLATE.format(subdomain=self.tenant_subdomain)
        return (self.api_url or "").rstrip("/")


def validate_options(options: ClientOptions) -> None:
    """フィールド間の整合性を検証する。不正なら ConfigurationError。"""
    if not options.platform or not options.environment:
        raise ConfigurationError(
            code=ToggleBoxErrorCodes.CONFIG_ERROR,
            message="Missing required options: platform and environment are required",
        )
    if not options.api_url and not options.tenant_subdomain:
        raise ConfigurationError(
            code=ToggleBoxErrorCodes.CONFIG_ERROR,
            message="Either api_url or tenant_subdomain must be provided",
        )
    if options.api_url and options.tenant_subdomain:
        raise ConfigurationError(
            code=ToggleBoxErrorCodes.CONFIG_ERROR,
            message="Cannot provide both api_url and tenant_subdomain - use one or the other",
        )


def _read_yaml(path: Path) -> dict[str, Any]:
    """YAML ファイルを読み込む。"""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(
            code=ToggleBoxErrorCodes.READ_FILE,
            message=f"Failed to read options file: {path}",
            cause=e,
        ) from e
    try:
        data: dict[str, Any] = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(
            code=ToggleBoxErrorCodes.PARSE_YAML,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    return data


def load_options(path: Path) -> ClientOptions:
    """YAML ファイルから ClientOptions を読み込む。

    ファイル直下、または togglebox セクション配下の設定を受け付ける。
    """
    data = _read_yaml(path)
    section = data.get("togglebox", data) if isinstance(data, dict) else data
    try:
        options = ClientOptions.model_validate(section)
    except ValidationError as e:
        raise ConfigurationError(
            code=ToggleBoxErrorCodes.VALIDATION,
            message=f"Options validation failed: {e}",
            cause=e,
        ) from e
    validate_options(options)
    return options
