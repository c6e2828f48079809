"""
Trend and comparison engine.

Trends compare the mean of the older half of a chronological value list with
the newer half. Comparisons map an overall score onto estimated percentile
bands; they are a monotone heuristic, not population-calibrated.
"""

import math
from collections.abc import Mapping, Sequence

from healthscore.domain.models import (
    MetricSeries,
    MetricType,
    PercentileComparison,
    TrendDirection,
    UserProfile,
)
from healthscore.domain.reference import age_bucket
from healthscore.services.statistics import round_half_up

TREND_THRESHOLD_PERCENT = 5.0

# Metrics where a falling value is an improvement
LOWER_IS_BETTER: frozenset[MetricType] = frozenset(
    {MetricType.RESTING_HEART_RATE, MetricType.BODY_FAT, MetricType.BMI}
)

PERCENTILE_OFFSETS = {"age_group": 10, "gender": 5, "overall": 0}

OVERALL_TREND_KEY = "overall"


def percent_change(chronological: Sequence[float]) -> float | None:
    """Change of the newer half's mean relative to the older half's, in percent."""
    if len(chronological) < 2:
        return None

    middle = len(chronological) // 2
    older = math.fsum(chronological[:middle]) / middle
    newer = math.fsum(chronological[middle:]) / (len(chronological) - middle)

    if older == 0:
        return 0.0 if newer == 0 else math.copysign(math.inf, newer)
    return (newer - older) / abs(older) * 100


def trend_direction(
    chronological: Sequence[float], lower_is_better: bool = False
) -> TrendDirection:
    """
    Label a chronological series as improving, declining or stable.

    A change beyond +/-5 % between half means counts; fewer than two values is
    insufficient data.
    """
    change = percent_change(chronological)
    if change is None:
        return TrendDirection.INSUFFICIENT_DATA
    if lower_is_better:
        change = -change

    if change > TREND_THRESHOLD_PERCENT:
        return TrendDirection.IMPROVING
    if change < -TREND_THRESHOLD_PERCENT:
        return TrendDirection.DECLINING
    return TrendDirection.STABLE


def metric_trends(
    series_by_type: Mapping[MetricType, MetricSeries],
    history: Sequence[float] | None = None,
) -> dict[str, TrendDirection]:
    """Trend per non-empty series, plus the overall score trend when history is given."""
    trends = {
        metric_type.value: trend_direction(
            series.chronological_values(), lower_is_better=metric_type in LOWER_IS_BETTER
        )
        for metric_type, series in series_by_type.items()
        if not series.is_empty
    }
    if history is not None:
        trends[OVERALL_TREND_KEY] = trend_direction(history)
    return trends


def _percentile(score: float, offset: int) -> int:
    return max(1, min(99, round_half_up(score) + offset))


def compare(score: float | None, profile: UserProfile | None = None) -> PercentileComparison | None:
    """Estimated percentile standing per age group, gender and overall; None without a score."""
    if score is None or not math.isfinite(score):
        return None

    bucket = age_bucket(profile.age if profile else None)
    gender = profile.gender.value if profile and profile.gender else "all"

    return PercentileComparison(
        age_group=_percentile(score, PERCENTILE_OFFSETS["age_group"]),
        gender=_percentile(score, PERCENTILE_OFFSETS["gender"]),
        overall=_percentile(score, PERCENTILE_OFFSETS["overall"]),
        age_group_label=f"{bucket}-{bucket + 9}",
        gender_label=gender,
        is_estimate=True,
    )
