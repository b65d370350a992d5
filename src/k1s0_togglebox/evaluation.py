"""フィーチャーフラグ評価"""

from __future__ import annotations

from .bucketing import bucket
from .models import EvaluationReason, Flag, FlagContext, FlagResult, ServedValue


def _result(flag: Flag, served: ServedValue, reason: EvaluationReason) -> FlagResult:
    return FlagResult(
        flag_key=flag.flag_key,
        value=flag.value_for(served),
        served_value=served,
        reason=reason,
    )


def evaluate_flag(flag: Flag, context: FlagContext) -> FlagResult:
    """フラグを評価する。

    上から順に判定し、最初に一致したルールで結果が決まる:
    無効 → 強制除外 → 強制包含 → 国・言語ターゲティング → ロールアウト → デフォルト。
    一致しない場合も例外は送出せず、reason で表現する。
    """
    if not flag.enabled:
        return _result(flag, flag.default_served, EvaluationReason.FLAG_DISABLED)

    targeting = flag.targeting
    if targeting is not None:
        if context.user_id in targeting.force_exclude_users:
            return _result(flag, ServedValue.B, EvaluationReason.FORCE_EXCLUDED)
        if context.user_id in targeting.force_include_users:
            return _result(flag, ServedValue.A, EvaluationReason.FORCE_INCLUDED)

        if targeting.countries:
            if context.country is None:
                return _result(flag, flag.default_served, EvaluationReason.COUNTRY_NOT_TARGETED)

            country = targeting.find_country(context.country)
            if country is None:
                return _result(flag, flag.default_served, EvaluationReason.COUNTRY_NOT_TARGETED)

            if country.languages:
                if context.language is None:
                    return _result(
                        flag, flag.default_served, EvaluationReason.LANGUAGE_NOT_TARGETED
                    )
                language = country.find_language(context.language)
                if language is None:
                    return _result(
                        flag, flag.default_served, EvaluationReason.LANGUAGE_NOT_TARGETED
                    )
                return _result(
                    flag, language.serve_value or ServedValue.A, EvaluationReason.TARGETING_MATCH
                )

            return _result(
                flag, country.serve_value or ServedValue.A, EvaluationReason.TARGETING_MATCH
            )

    if flag.rollout_enabled:
        served = (
            ServedValue.A
            if bucket(context.user_id, flag.flag_key) < flag.rollout_percentage_a
            else ServedValue.B
        )
        return _result(flag, served, EvaluationReason.ROLLOUT)

    return _result(flag, flag.default_served, EvaluationReason.DEFAULT)
