"""定義ローダーのユニットテスト"""

import pytest
from k1s0_togglebox import (
    ConfigLoader,
    DefinitionCache,
    ExperimentLoader,
    FlagLoader,
    InMemoryCacheClient,
    NetworkError,
    ToggleBoxError,
    ToggleBoxErrorCodes,
)

BASE = "/api/v1/platforms/web/environments/production"

FLAG = {
    "flagKey": "dark-mode",
    "name": "Dark mode",
    "enabled": True,
    "valueA": True,
    "valueB": False,
    "targeting": {
        "countries": [
            {"country": "JP", "serveValue": "A", "languages": [{"language": "ja"}]},
        ],
        "forceExcludeUsers": ["blocked"],
    },
    "rolloutEnabled": True,
    "rolloutPercentageA": 30,
    "rolloutPercentageB": 70,
}

EXPERIMENT = {
    "experimentKey": "checkout-test",
    "name": "Checkout",
    "hypothesis": "h",
    "status": "running",
    "variations": [{"key": "control", "name": "Control", "value": 1}],
    "controlVariation": "control",
    "trafficAllocation": [{"variationKey": "control", "percentage": 100}],
    "scheduledEndAt": "2030-01-01T00:00:00Z",
}


def make_cache(enabled: bool = True) -> DefinitionCache:
    return DefinitionCache(InMemoryCacheClient(), ttl=300, enabled=enabled)


def loader_args(transport, cache):
    return (transport, cache, "web", "production")


async def test_flag_loader_parses_and_caches(transport) -> None:
    """取得したフラグをパースしてキャッシュし、2 回目は通信しないこと。"""
    transport.responses[f"{BASE}/flags"] = {"data": [FLAG]}
    loader = FlagLoader(*loader_args(transport, make_cache()))
    flags = await loader.load()
    assert len(flags) == 1
    flag = flags[0]
    assert flag.flag_key == "dark-mode"
    assert flag.targeting.countries[0].languages[0].language == "ja"
    assert "blocked" in flag.targeting.force_exclude_users
    assert flag.rollout_percentage_a == 30

    again = await loader.load()
    assert again == flags
    assert transport.get_calls == [f"{BASE}/flags"]


async def test_disabled_cache_always_fetches(transport) -> None:
    """キャッシュ無効時は毎回取得すること。"""
    transport.responses[f"{BASE}/experiments"] = {"data": [EXPERIMENT]}
    loader = ExperimentLoader(*loader_args(transport, make_cache(enabled=False)))
    await loader.load()
    await loader.load()
    assert len(transport.get_calls) == 2


async def test_invalidate_forces_refetch(transport) -> None:
    """invalidate 後は再取得すること。"""
    transport.responses[f"{BASE}/flags"] = {"data": []}
    loader = FlagLoader(*loader_args(transport, make_cache()))
    assert await loader.load() == []
    await loader.invalidate()
    await loader.load()
    assert len(transport.get_calls) == 2


async def test_network_error_propagates(transport) -> None:
    """通信エラーはそのまま送出し、リトライしないこと。"""
    loader = FlagLoader(*loader_args(transport, make_cache()))
    with pytest.raises(NetworkError):
        await loader.load()
    assert len(transport.get_calls) == 1


async def test_invalid_payload(transport) -> None:
    """必須フィールド欠落は INVALID_RESPONSE。"""
    transport.responses[f"{BASE}/flags"] = {"data": [{"name": "no key"}]}
    loader = FlagLoader(*loader_args(transport, make_cache()))
    with pytest.raises(ToggleBoxError) as exc_info:
        await loader.load()
    assert exc_info.value.code == ToggleBoxErrorCodes.INVALID_RESPONSE


async def test_invalid_serve_value_rejected(transport) -> None:
    """serveValue が A/B 以外ならパース時に拒否すること。"""
    bad = dict(FLAG, targeting={"countries": [{"country": "JP", "serveValue": "C"}]})
    transport.responses[f"{BASE}/flags"] = {"data": [bad]}
    loader = FlagLoader(*loader_args(transport, make_cache()))
    with pytest.raises(ToggleBoxError) as exc_info:
        await loader.load()
    assert exc_info.value.code == ToggleBoxErrorCodes.INVALID_RESPONSE


@pytest.mark.parametrize(
    ("version", "path", "key"),
    [
        ("stable", f"{BASE}/configs", "config:web:production:stable"),
        ("latest", f"{BASE}/versions/latest", "config:web:production:latest"),
        ("1700000000000", f"{BASE}/versions/1700000000000", "config:web:production:1700000000000"),
    ],
)
async def test_config_versions(transport, version, path, key) -> None:
    """設定バージョンごとにパスとキャッシュキーが異なること。"""
    transport.responses[path] = {"data": {"config": {"theme": "dark"}}}
    cache = make_cache()
    loader = ConfigLoader(*loader_args(transport, cache), version=version)
    assert loader.cache_key == key
    assert await loader.load() == {"theme": "dark"}
    assert await cache.read(key) == {"theme": "dark"}


async def test_config_versions_cached_independently(transport) -> None:
    """バージョン間でキャッシュを共有しないこと。"""
    transport.responses[f"{BASE}/configs"] = {"data": {"limit": 1}}
    transport.responses[f"{BASE}/versions/latest"] = {"data": {"limit": 2}}
    cache = make_cache()
    stable = ConfigLoader(*loader_args(transport, cache))
    latest = ConfigLoader(*loader_args(transport, cache), version="latest")
    assert await stable.load() == {"limit": 1}
    assert await latest.load() == {"limit": 2}


async def test_fetch_one_bypasses_cache(transport) -> None:
    """単一取得はキャッシュを使わないこと。"""
    transport.responses[f"{BASE}/experiments/checkout-test"] = {"data": EXPERIMENT}
    loader = ExperimentLoader(*loader_args(transport, make_cache()))
    experiment = await loader.fetch_one("checkout-test")
    assert experiment.experiment_key == "checkout-test"
    assert experiment.scheduled_end_at.year == 2030
    await loader.fetch_one("checkout-test")
    assert len(transport.get_calls) == 2
