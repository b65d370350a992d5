"""実験バリエーション割り当て"""

from __future__ import annotations

from datetime import datetime

from .bucketing import bucket
from .models import Experiment, ExperimentContext, Targeting, VariantAssignment


def _is_targeted(targeting: Targeting, context: ExperimentContext) -> bool:
    # forceIncludeUsers は除外されないことだけを保証し、通常のバケット割り当てを通る
    if context.user_id in targeting.force_exclude_users:
        return False
    if not targeting.countries:
        return True
    if context.country is None:
        return False
    country = targeting.find_country(context.country)
    if country is None:
        return False
    if not country.languages:
        return True
    if context.language is None:
        return False
    return country.find_language(context.language) is not None


def assign_variation(
    experiment: Experiment,
    context: ExperimentContext,
    now: datetime | None = None,
) -> VariantAssignment | None:
    """実験のバリエーションを割り当てる。対象外なら None。

    traffic_allocation を宣言順に累積し、累積値がバケットを超えた最初の
    割り当てを採用する。どの範囲にも入らない場合も None を返す。
    """
    if not experiment.is_running:
        return None
    if not experiment.is_within_schedule(now):
        return None
    if experiment.targeting is not None and not _is_targeted(experiment.targeting, context):
        return None

    position = bucket(context.user_id, experiment.experiment_key)
    cumulative: float = 0
    for allocation in experiment.traffic_allocation:
        cumulative += allocation.percentage
        if position < cumulative:
            variation = experiment.find_variation(allocation.variation_key)
            if variation is None:
                continue
            is_control = (
                variation.is_control
                if variation.is_control is not None
                else variation.key == experiment.control_variation
            )
            return VariantAssignment(
                experiment_key=experiment.experiment_key,
                variation_key=variation.key,
                variation_name=variation.name,
                value=variation.value,
                is_control=is_control,
            )
    return None
