"""
Tests for trends and peer comparison.

Covers:
- Half-mean percent change and the +/-5 % stable band
- Lower-is-better metrics
- Per-metric and overall trends
- Percentile estimates and their bounds
"""

from datetime import UTC, datetime, timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from healthscore.domain.models import (
    Gender,
    MetricSeries,
    MetricType,
    NumericSample,
    TrendDirection,
    UserProfile,
)
from healthscore.services.trends import (
    OVERALL_TREND_KEY,
    compare,
    metric_trends,
    percent_change,
    trend_direction,
)

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=UTC)


def chronological_series(metric_type: MetricType, oldest_first: list[float]) -> MetricSeries:
    count = len(oldest_first)
    samples = tuple(
        NumericSample(metric_type=metric_type, date=NOW - timedelta(days=count - 1 - i), value=v)
        for i, v in enumerate(oldest_first)
    )
    return MetricSeries(metric_type=metric_type, samples=tuple(reversed(samples)))


class TestTrendDirection:
    """Direction from the older half mean to the newer half mean."""

    @pytest.mark.parametrize(
        ("values", "expected"),
        [
            ([100, 100, 110, 110], TrendDirection.IMPROVING),
            ([100, 90], TrendDirection.DECLINING),
            ([100, 102], TrendDirection.STABLE),
            ([100, 95], TrendDirection.STABLE),
            ([5], TrendDirection.INSUFFICIENT_DATA),
            ([], TrendDirection.INSUFFICIENT_DATA),
        ],
    )
    def test_direction(self, values: list[float], expected: TrendDirection) -> None:
        assert trend_direction(values) == expected

    def test_lower_is_better_inverts_the_direction(self) -> None:
        assert trend_direction([60, 60, 54, 54], lower_is_better=True) == TrendDirection.IMPROVING
        assert trend_direction([54, 60], lower_is_better=True) == TrendDirection.DECLINING

    def test_odd_length_puts_the_middle_value_in_the_newer_half(self) -> None:
        assert percent_change([100, 100, 130]) == pytest.approx(15.0)

    def test_zero_baseline(self) -> None:
        assert percent_change([0, 0]) == 0
        assert trend_direction([0, 10]) == TrendDirection.IMPROVING


class TestMetricTrends:
    """Trends across a set of series."""

    def test_per_metric_trends_skip_empty_series(self) -> None:
        series = {
            MetricType.STEPS: chronological_series(MetricType.STEPS, [6000, 6000, 9000, 9000]),
            MetricType.RESTING_HEART_RATE: chronological_series(
                MetricType.RESTING_HEART_RATE, [64, 63, 58, 57]
            ),
            MetricType.VO2MAX: MetricSeries(metric_type=MetricType.VO2MAX),
        }
        trends = metric_trends(series)

        assert trends == {
            "steps": TrendDirection.IMPROVING,
            "resting_heart_rate": TrendDirection.IMPROVING,
        }

    def test_overall_trend_from_history(self) -> None:
        trends = metric_trends({}, history=[70, 71, 69, 70])
        assert trends == {OVERALL_TREND_KEY: TrendDirection.STABLE}


class TestCompare:
    """Estimated percentile standing."""

    def test_offsets_per_group(self) -> None:
        comparison = compare(75, UserProfile(age=34, gender=Gender.FEMALE))

        assert comparison is not None
        assert comparison.age_group == 85
        assert comparison.gender == 80
        assert comparison.overall == 75
        assert comparison.age_group_label == "30-39"
        assert comparison.gender_label == "female"
        assert comparison.is_estimate is True

    def test_percentiles_are_capped(self) -> None:
        high = compare(95)
        low = compare(0)

        assert high is not None
        assert high.age_group == 99
        assert low is not None
        assert low.overall == 1

    def test_defaults_without_profile(self) -> None:
        comparison = compare(60)

        assert comparison is not None
        assert comparison.gender_label == "all"
        assert comparison.age_group_label == "30-39"

    def test_no_score_no_comparison(self) -> None:
        assert compare(None) is None

    @given(st.floats(min_value=0, max_value=100), st.floats(min_value=0, max_value=100))
    def test_comparison_is_monotone(self, a: float, b: float) -> None:
        """Property: a higher score never maps to a lower percentile."""
        low, high = sorted((a, b))
        low_comparison, high_comparison = compare(low), compare(high)

        assert low_comparison is not None
        assert high_comparison is not None
        assert low_comparison.overall <= high_comparison.overall
        assert low_comparison.age_group <= high_comparison.age_group
