"""実験バリエーション割り当てのユニットテスト"""

from datetime import datetime, timedelta, timezone
from typing import Any

from k1s0_togglebox import Experiment, ExperimentContext, ExperimentStatus, assign_variation


def make_experiment(**overrides: Any) -> Experiment:
    data: dict[str, Any] = {
        "experimentKey": "checkout-test",
        "name": "Checkout test",
        "hypothesis": "A shorter checkout converts better",
        "status": "running",
        "variations": [
            {"key": "control", "name": "Control", "value": "old"},
            {"key": "treatment", "name": "Treatment", "value": "new"},
        ],
        "controlVariation": "control",
        "trafficAllocation": [
            {"variationKey": "control", "percentage": 50},
            {"variationKey": "treatment", "percentage": 50},
        ],
    }
    data.update(overrides)
    return Experiment.from_dict(data)


def ctx(user_id: str, country: str | None = None, language: str | None = None) -> ExperimentContext:
    return ExperimentContext(user_id=user_id, country=country, language=language)


def test_assigns_by_cumulative_allocation() -> None:
    """累積割り当て範囲でバリエーションが決まること。"""
    experiment = make_experiment()
    # bucket: user-1=3, user-2=70
    first = assign_variation(experiment, ctx("user-1"))
    assert first is not None
    assert first.variation_key == "control"
    assert first.variation_name == "Control"
    assert first.value == "old"
    assert first.is_control is True

    second = assign_variation(experiment, ctx("user-2"))
    assert second is not None
    assert second.variation_key == "treatment"
    assert second.is_control is False


def test_allocation_is_stable() -> None:
    """同じ入力には常に同じバリエーションを返すこと。"""
    experiment = make_experiment(experimentKey="exp-1")
    # bucket("user-1", "exp-1") == 75
    keys = {assign_variation(experiment, ctx("user-1")).variation_key for _ in range(10)}
    assert keys == {"treatment"}


def test_declared_order_defines_ranges() -> None:
    """割り当ての宣言順で範囲が決まること。"""
    experiment = make_experiment(
        trafficAllocation=[
            {"variationKey": "treatment", "percentage": 10},
            {"variationKey": "control", "percentage": 90},
        ]
    )
    # bucket: user-1=3, user-3=18
    assert assign_variation(experiment, ctx("user-1")).variation_key == "treatment"
    assert assign_variation(experiment, ctx("user-3")).variation_key == "control"


def test_uncovered_bucket_returns_none() -> None:
    """割り当て合計が 100 未満で範囲外なら None。"""
    experiment = make_experiment(
        trafficAllocation=[
            {"variationKey": "control", "percentage": 10},
            {"variationKey": "treatment", "percentage": 10},
        ]
    )
    # bucket: user-3=18, user-4=96
    assert assign_variation(experiment, ctx("user-3")).variation_key == "treatment"
    assert assign_variation(experiment, ctx("user-4")) is None


def test_is_control_from_variation_record() -> None:
    """isControl がバリエーションにあればそれを優先すること。"""
    experiment = make_experiment(
        variations=[
            {"key": "control", "name": "Control", "value": "old", "isControl": False},
            {"key": "treatment", "name": "Treatment", "value": "new"},
        ]
    )
    assignment = assign_variation(experiment, ctx("user-1"))
    assert assignment.variation_key == "control"
    assert assignment.is_control is False


def test_not_running_returns_none() -> None:
    """running 以外は割り当てないこと。"""
    for status in ("draft", "completed"):
        experiment = make_experiment(status=status)
        assert experiment.status == ExperimentStatus(status)
        assert assign_variation(experiment, ctx("user-1")) is None


def test_schedule_start_in_future() -> None:
    """開始予定が未来なら running でも割り当てないこと。"""
    start = datetime.now(timezone.utc) + timedelta(days=1)
    experiment = make_experiment(scheduledStartAt=start.isoformat())
    assert assign_variation(experiment, ctx("user-1")) is None


def test_schedule_end_in_past() -> None:
    """終了予定が過去なら割り当てないこと。"""
    experiment = make_experiment(scheduledEndAt="2020-01-01T00:00:00Z")
    assert assign_variation(experiment, ctx("user-1")) is None


def test_schedule_window_with_explicit_now() -> None:
    """期間内なら割り当てること。片側だけの境界も扱えること。"""
    experiment = make_experiment(
        scheduledStartAt="2026-01-01T00:00:00Z", scheduledEndAt="2026-12-31T00:00:00Z"
    )
    inside = datetime(2026, 6, 1, tzinfo=timezone.utc)
    outside = datetime(2027, 1, 1, tzinfo=timezone.utc)
    assert assign_variation(experiment, ctx("user-1"), now=inside) is not None
    assert assign_variation(experiment, ctx("user-1"), now=outside) is None

    open_ended = make_experiment(scheduledStartAt="2026-01-01T00:00:00")
    assert assign_variation(open_ended, ctx("user-1"), now=outside) is not None


def test_force_exclude() -> None:
    """強制除外ユーザーは割り当てないこと。"""
    experiment = make_experiment(targeting={"forceExcludeUsers": ["user-1"]})
    assert assign_variation(experiment, ctx("user-1")) is None
    assert assign_variation(experiment, ctx("user-2")) is not None


def test_force_include_does_not_bypass_targeting() -> None:
    """強制包含でも国ターゲティングとハッシュ割り当てを通ること。"""
    experiment = make_experiment(
        targeting={"forceIncludeUsers": ["user-2"], "countries": [{"country": "JP"}]}
    )
    assert assign_variation(experiment, ctx("user-2")) is None
    assert assign_variation(experiment, ctx("user-2", country="US")) is None
    assignment = assign_variation(experiment, ctx("user-2", country="JP"))
    # bucket("user-2", "checkout-test") == 70
    assert assignment.variation_key == "treatment"


def test_country_and_language_targeting() -> None:
    """国・言語ターゲティングは大文字小文字を区別せずに判定すること。"""
    experiment = make_experiment(
        targeting={"countries": [{"country": "ca", "languages": [{"language": "FR"}]}]}
    )
    assert assign_variation(experiment, ctx("user-1", country="CA")) is None
    assert assign_variation(experiment, ctx("user-1", country="CA", language="en")) is None
    assert assign_variation(experiment, ctx("user-1", country="CA", language="fr")) is not None


def test_unknown_variation_in_allocation_is_skipped() -> None:
    """存在しないバリエーションを指す割り当ては次の割り当てに進むこと。"""
    experiment = make_experiment(
        trafficAllocation=[
            {"variationKey": "ghost", "percentage": 50},
            {"variationKey": "treatment", "percentage": 50},
        ]
    )
    assert assign_variation(experiment, ctx("user-1")).variation_key == "treatment"
