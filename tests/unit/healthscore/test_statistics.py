"""
Tests for the statistics calculator.

Covers:
- Common aggregates and their invariants (min <= avg <= max, determinism)
- Heart-rate specializations (resting estimate, zones, recovery, load)
- Activity rolling windows and consistency
- Sleep quality and debt
- Recovery, body composition and nutrition fields
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
    SleepSample,
    SleepStages,
    UserProfile,
)
from healthscore.services.statistics import (
    calculate_stats,
    cardio_load,
    consistency_score,
    heart_rate_recovery,
    readiness,
    resting_estimate,
    sleep_quality_score,
    trend_slope,
)

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=UTC)


def make_series(
    metric_type: MetricType, newest_first: list[float], step: timedelta = timedelta(hours=1)
) -> MetricSeries:
    """Series whose first value is stamped at NOW and each next one `step` earlier."""
    samples = tuple(
        NumericSample(metric_type=metric_type, date=NOW - step * i, value=value)
        for i, value in enumerate(newest_first)
    )
    return MetricSeries(metric_type=metric_type, samples=samples)


def daily(metric_type: MetricType, newest_first: list[float]) -> MetricSeries:
    return make_series(metric_type, newest_first, step=timedelta(days=1))


class TestCommonStats:
    """Aggregates shared by every metric type."""

    def test_empty_series_has_no_stats(self) -> None:
        assert calculate_stats(MetricSeries(metric_type=MetricType.STEPS), now=NOW) is None

    def test_basic_aggregates(self) -> None:
        series = make_series(MetricType.BODY_TEMPERATURE, [37.0, 36.5, 36.6])
        stats = calculate_stats(series, now=NOW)

        assert stats is not None
        assert stats.count == 3
        assert stats.min == 36.5
        assert stats.max == 37.0
        assert stats.latest.value == 37.0
        assert stats.recent.count == 3

    def test_recent_window_excludes_old_samples(self) -> None:
        series = daily(MetricType.WALKING_SPEED, [5.0] * 10)
        stats = calculate_stats(series, now=NOW)

        assert stats is not None
        assert stats.count == 10
        assert stats.recent.count == 8  # day 0 through day 7 inclusive

    def test_recent_average_is_none_when_window_is_empty(self) -> None:
        later = NOW + timedelta(days=30)
        stats = calculate_stats(daily(MetricType.WEIGHT, [70.0, 71.0]), now=later)

        assert stats is not None
        assert stats.recent.count == 0
        assert stats.recent.avg is None

    @given(st.lists(st.floats(min_value=30, max_value=220), min_size=1, max_size=60))
    def test_average_lies_between_min_and_max(self, values: list[float]) -> None:
        """Property: min <= avg <= max for any non-empty series."""
        stats = calculate_stats(make_series(MetricType.HEART_RATE, values), now=NOW)

        assert stats is not None
        assert stats.min <= stats.avg <= stats.max

    @given(st.lists(st.floats(min_value=0, max_value=30_000), min_size=1, max_size=30))
    def test_same_series_and_now_give_identical_stats(self, values: list[float]) -> None:
        """Property: statistics are a pure function of the series and `now`."""
        series = daily(MetricType.STEPS, values)
        assert calculate_stats(series, now=NOW) == calculate_stats(series, now=NOW)


class TestHeartRate:
    """Heart-rate specializations."""

    def test_resting_estimate_uses_the_lowest_five_percent(self) -> None:
        values = [55, 57, 54, 56, 58, 90, 92, 95, 100, 88]
        stats = calculate_stats(make_series(MetricType.HEART_RATE, values), now=NOW)

        assert stats is not None
        assert stats.resting_hr is not None
        assert 54 <= stats.resting_hr <= 55

    def test_resting_estimate_needs_five_samples(self) -> None:
        assert resting_estimate([60, 70, 80, 90], 0.05) is None
        stats = calculate_stats(make_series(MetricType.HEART_RATE, [60, 70, 80]), now=NOW)
        assert stats is not None
        assert stats.resting_hr is None

    def test_zones_are_derived_from_age(self) -> None:
        values = [100] * 5 + [120] * 3 + [175] * 2
        profile = UserProfile(age=30)
        series = make_series(MetricType.HEART_RATE, values)
        stats = calculate_stats(series, profile=profile, now=NOW)

        assert stats is not None
        zones = stats.heart_rate_zones
        assert zones is not None
        assert [z.name for z in zones] == [
            "RECOVERY",
            "AEROBIC",
            "ENDURANCE",
            "THRESHOLD",
            "MAX EFFORT",
        ]
        assert (zones[0].min_bpm, zones[0].max_bpm) == (95, 114)
        assert zones[0].time_in_zone == 5
        assert zones[0].percent == 50
        assert zones[1].percent == 30
        assert zones[4].percent == 20
        assert sum(z.time_in_zone for z in zones) == 10

    def test_zone_bounds_round_halves_up(self) -> None:
        stats = calculate_stats(
            make_series(MetricType.HEART_RATE, [100] * 10), profile=UserProfile(age=35), now=NOW
        )

        assert stats is not None
        assert stats.heart_rate_zones is not None
        # max HR 185: recovery starts at 92.5
        assert stats.heart_rate_zones[0].min_bpm == 93

    def test_zones_need_ten_samples(self) -> None:
        stats = calculate_stats(make_series(MetricType.HEART_RATE, [100] * 9), now=NOW)
        assert stats is not None
        assert stats.heart_rate_zones is None

    def test_recovery_scans_the_series_newest_first(self) -> None:
        # Time order: 14 x 60, then 100, 110, 120, 130, 140, 150
        newest_first = [150, 140, 130, 120, 110, 100] + [60] * 14
        assert heart_rate_recovery(newest_first) == 10

        stats = calculate_stats(make_series(MetricType.HEART_RATE, newest_first), now=NOW)
        assert stats is not None
        assert stats.recovery_rate == 10

    def test_recovery_requires_five_lower_samples_after_the_peak(self) -> None:
        newest_first = [80] * 9 + [125, 130, 135, 140, 145, 150] + [80] * 5
        assert heart_rate_recovery(newest_first) == 70

    def test_recovery_average_rounds_halves_up(self) -> None:
        # drops of 8 and 9 bpm
        newest_first = [150, 142, 133, 120, 110, 100] + [60] * 14
        assert heart_rate_recovery(newest_first) == 9

    def test_recovery_is_none_without_peaks(self) -> None:
        assert heart_rate_recovery([80.0] * 25) is None
        assert heart_rate_recovery([150.0, 140.0]) is None

    def test_cardio_load(self) -> None:
        assert cardio_load([80] * 10) == 0
        assert cardio_load([80] * 5 + [110] * 5) == 100
        assert cardio_load([110] * 9) is None


class TestActivity:
    """Rolling windows and consistency for cumulative metrics."""

    def test_steady_week_is_perfectly_consistent(self) -> None:
        stats = calculate_stats(daily(MetricType.STEPS, [8000] * 7), now=NOW)

        assert stats is not None
        assert stats.consistency == 100
        assert stats.daily_average == 8000
        assert stats.weekly_total == 56_000
        assert stats.active_days == 0

    def test_a_missed_day_lowers_consistency(self) -> None:
        stats = calculate_stats(daily(MetricType.STEPS, [8000] * 6 + [0]), now=NOW)

        assert stats is not None
        assert stats.consistency is not None
        assert stats.consistency < 100

    def test_consistency_needs_seven_days(self) -> None:
        stats = calculate_stats(daily(MetricType.STEPS, [8000] * 6), now=NOW)
        assert stats is not None
        assert stats.consistency is None

    def test_consistency_of_all_zero_days_is_zero(self) -> None:
        series = daily(MetricType.STEPS, [0] * 7)
        assert consistency_score(series.samples) == 0

    def test_daily_average_sums_samples_within_a_day(self) -> None:
        series = make_series(MetricType.STEPS, [3000, 2000, 5000], step=timedelta(hours=2))
        stats = calculate_stats(series, now=NOW)

        assert stats is not None
        assert stats.daily_average == 10_000
        assert stats.active_days == 1

    def test_exercise_goal(self) -> None:
        stats = calculate_stats(daily(MetricType.EXERCISE_TIME, [35, 10]), now=NOW)
        assert stats is not None
        assert stats.goal_met is True

    def test_active_energy_intensity_distribution(self) -> None:
        stats = calculate_stats(daily(MetricType.ACTIVE_ENERGY, [900, 300, 500, 400, 600]), now=NOW)

        assert stats is not None
        bands = stats.intensity_distribution
        assert bands is not None
        assert bands["high"].days == 1
        assert bands["high"].avg_calories == 900
        assert bands["moderate"].days == 2
        assert bands["low"].days == 2


class TestSleep:
    """Sleep quality, debt and stage breakdown."""

    @staticmethod
    def night(hours: float, days_ago: int = 0, **extra: object) -> SleepSample:
        start = NOW - timedelta(days=days_ago, hours=14)
        return SleepSample(metric_type=MetricType.SLEEP, date=start, value=hours, **extra)

    def test_quality_score_caps_at_100(self) -> None:
        stages = SleepStages(deep=1.6, core=4.6, rem=1.8)
        assert sleep_quality_score(self.night(8, sleep_efficiency=92, stages=stages)) == 100

    @pytest.mark.parametrize(("hours", "expected"), [(8, 75), (6.5, 65), (5.5, 55), (4, 50)])
    def test_quality_score_from_duration_alone(self, hours: float, expected: int) -> None:
        assert sleep_quality_score(self.night(hours)) == expected

    def test_sleep_debt_over_the_week(self) -> None:
        nights = tuple(self.night(7, days_ago=d) for d in range(7))
        stats = calculate_stats(MetricSeries(metric_type=MetricType.SLEEP, samples=nights), now=NOW)

        assert stats is not None
        assert stats.sleep_debt == pytest.approx(7.0)
        assert stats.optimal_nights == 7

    def test_sleep_debt_is_never_negative(self) -> None:
        nights = tuple(self.night(9.5, days_ago=d) for d in range(3))
        stats = calculate_stats(MetricSeries(metric_type=MetricType.SLEEP, samples=nights), now=NOW)

        assert stats is not None
        assert stats.sleep_debt == 0

    def test_sleep_debt_is_unknown_without_recent_nights(self) -> None:
        nights = (self.night(7, days_ago=20),)
        stats = calculate_stats(MetricSeries(metric_type=MetricType.SLEEP, samples=nights), now=NOW)

        assert stats is not None
        assert stats.sleep_debt is None

    def test_sleep_debt_needs_three_nights(self) -> None:
        nights = tuple(self.night(6, days_ago=d) for d in range(2))
        stats = calculate_stats(MetricSeries(metric_type=MetricType.SLEEP, samples=nights), now=NOW)

        assert stats is not None
        assert stats.sleep_debt is None

    def test_zero_efficiency_is_treated_as_missing(self) -> None:
        assert sleep_quality_score(self.night(8, sleep_efficiency=0)) == 75

        nights = (self.night(7.2, sleep_efficiency=0, time_in_bed=8),)
        stats = calculate_stats(MetricSeries(metric_type=MetricType.SLEEP, samples=nights), now=NOW)
        assert stats is not None
        assert stats.sleep_efficiency == pytest.approx(90.0)

    def test_efficiency_falls_back_to_time_in_bed(self) -> None:
        nights = (self.night(7.2, time_in_bed=8),)
        stats = calculate_stats(MetricSeries(metric_type=MetricType.SLEEP, samples=nights), now=NOW)

        assert stats is not None
        assert stats.sleep_efficiency == pytest.approx(90.0)

    def test_stage_breakdown(self) -> None:
        stages = SleepStages(deep=1.6, core=4.6, rem=1.8, awake=0.4)
        nights = (self.night(8, stages=stages),)
        stats = calculate_stats(MetricSeries(metric_type=MetricType.SLEEP, samples=nights), now=NOW)

        assert stats is not None
        assert stats.sleep_stages is not None
        assert stats.sleep_stages.deep_percent == 20.0
        assert stats.sleep_stages.rem_percent == 22.5


class TestRecoveryAndBody:
    """HRV, VO2max, weight and nutrient fields."""

    def test_hrv_readiness_and_stress(self) -> None:
        stats = calculate_stats(
            daily(MetricType.HEART_RATE_VARIABILITY, [80] + [60] * 6), now=NOW
        )

        assert stats is not None
        assert stats.readiness is not None
        assert stats.readiness.status == "EXCELLENT"
        assert stats.stress_level is not None
        assert stats.stress_level.level == "LOW"

    def test_readiness_needs_three_samples(self) -> None:
        assert readiness([60, 60]) is None
        assert readiness([60, 60, 60]) is not None

    def test_trend_slope_needs_a_full_window(self) -> None:
        assert trend_slope([60, 61, 62]) is None
        assert trend_slope([66, 65, 64, 63, 62, 61, 60]) == pytest.approx(1.0)

    def test_vo2max_is_classified_for_the_profile(self) -> None:
        profile = UserProfile(age=35, gender=Gender.MALE)
        stats = calculate_stats(daily(MetricType.VO2MAX, [50]), profile=profile, now=NOW)

        assert stats is not None
        assert stats.classification == "GOOD"
        assert stats.aerobic_efficiency == 100

    def test_weight_change_and_bmi(self) -> None:
        profile = UserProfile(height_cm=180)
        stats = calculate_stats(daily(MetricType.WEIGHT, [75.0, 75.5]), profile=profile, now=NOW)

        assert stats is not None
        assert stats.change == pytest.approx(-0.5)
        assert stats.bmi == 23.1
        assert stats.classification == "NORMAL"
        assert stats.monthly_change is None

    def test_protein_intake_against_goal(self) -> None:
        stats = calculate_stats(daily(MetricType.DIETARY_PROTEIN, [70, 120]), now=NOW)

        assert stats is not None
        assert stats.daily_goal == 140
        assert stats.daily_total == 70
        assert stats.percent_of_goal == 50
        assert stats.intake_label == "INCREASE PROTEIN INTAKE"
        assert stats.daily_average == 95
