"""
Metric statistics calculator.

Turns a validated, newest-first series into a `MetricStats` record: common
aggregates for every metric plus specialized fields chosen by a dispatch table
keyed on metric type. Every rolling window is anchored on an explicit `now`,
so the same series and `now` always produce identical statistics.

Computations that need more samples than the series holds leave their field
as None. None means unknown and must never be read as zero.
"""

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import Any

import structlog

from healthscore.domain.metrics import (
    DAILY_MINUTE_GOALS,
    NUTRIENT_GOALS,
    RECENT_WINDOW_DAYS,
)
from healthscore.domain.models import (
    HeartRateZone,
    IntensityBand,
    MetricSeries,
    MetricStats,
    MetricType,
    Readiness,
    RecentStats,
    Sample,
    SleepSample,
    SleepStageBreakdown,
    StressLevel,
    UserProfile,
)
from healthscore.domain.reference import (
    DEFAULT_AGE,
    body_mass_index,
    classify_bmi,
    classify_body_temperature,
    classify_oxygen_saturation,
    classify_respiratory_rate,
    classify_resting_heart_rate,
    classify_vo2max,
    estimate_energy_goal,
    stress_from_hrv,
)

logger = structlog.get_logger(__name__)

# Minimum sample counts per computation
MIN_RESTING_SAMPLES = 5
MIN_ZONE_SAMPLES = 10
MIN_CARDIO_LOAD_SAMPLES = 10
MIN_RECOVERY_SAMPLES = 20
MIN_READINESS_SAMPLES = 3
MIN_SLEEP_DEBT_NIGHTS = 3
MIN_CONSISTENCY_DAYS = 7
MONTHLY_CHANGE_SAMPLES = 30

RESTING_HR_FRACTION = 0.05
RESTING_RESPIRATORY_FRACTION = 0.10

RECOVERY_PEAK_BPM = 140
RECOVERY_LOOKAHEAD = 5

# Lower bound as a share of max heart rate, highest zone first.
HEART_RATE_ZONES: tuple[tuple[str, float, float], ...] = (
    ("MAX EFFORT", 0.9, 1.0),
    ("THRESHOLD", 0.8, 0.9),
    ("ENDURANCE", 0.7, 0.8),
    ("AEROBIC", 0.6, 0.7),
    ("RECOVERY", 0.5, 0.6),
)

# (exclusive lower bpm, weight), most intense first; samples <= 100 bpm are inactive.
CARDIO_LOAD_BANDS: tuple[tuple[float, int], ...] = ((170, 4), (150, 3), (120, 2), (100, 1))

IDEAL_SLEEP_HOURS = 8.0
OPTIMAL_NIGHT_HOURS = 7.0
ACTIVE_DAY_STEPS = 10_000
TREND_WINDOW = 7
VO2MAX_TREND_WINDOW = 5
AEROBIC_REFERENCE_VO2MAX = 50.0


def mean(values: Sequence[float]) -> float:
    return math.fsum(values) / len(values)


def round_half_up(value: float) -> int:
    """Nearest integer with halves rounded up (92.5 -> 93), unlike banker's `round`."""
    return math.floor(value + 0.5)


def _day(sample: Sample) -> date:
    return sample.date.astimezone(UTC).date()


@dataclass(frozen=True)
class _Context:
    """Inputs shared by the specialized calculators for one series."""

    series: MetricSeries
    metric_type: MetricType
    profile: UserProfile | None
    now: datetime

    @property
    def samples(self) -> tuple[Sample, ...]:
        return self.series.samples

    @property
    def values(self) -> list[float]:
        return self.series.values()

    @property
    def age(self) -> int:
        if self.profile is not None and self.profile.age is not None:
            return self.profile.age
        return DEFAULT_AGE

    def window(self, days: int = RECENT_WINDOW_DAYS) -> list[Sample]:
        start = self.now - timedelta(days=days)
        return [s for s in self.samples if start <= s.date <= self.now]

    def today(self) -> list[Sample]:
        today = self.now.astimezone(UTC).date()
        return [s for s in self.samples if _day(s) == today]


# --- Building blocks ---------------------------------------------------------


def resting_estimate(values: Sequence[float], fraction: float) -> float | None:
    """Mean of the lowest `fraction` of values (at least one); needs 5 samples."""
    if len(values) < MIN_RESTING_SAMPLES:
        return None
    lowest = sorted(values)[: max(1, math.floor(len(values) * fraction))]
    return mean(lowest)


def heart_rate_zones(values: Sequence[float], age: int) -> tuple[HeartRateZone, ...] | None:
    """
    Bucket samples into five zones derived from max HR (220 - age).

    Each sample lands in the highest zone whose lower bound it meets; samples
    below the recovery zone are not counted. Returned lowest zone first.
    """
    if len(values) < MIN_ZONE_SAMPLES:
        return None

    max_hr = 220 - age
    bounds = [
        (name, round_half_up(max_hr * lo), round_half_up(max_hr * hi))
        for name, lo, hi in HEART_RATE_ZONES
    ]
    counts = dict.fromkeys((name for name, _, _ in bounds), 0)

    for value in values:
        for name, lower, _ in bounds:
            if value >= lower:
                counts[name] += 1
                break

    total = len(values)
    zones = [
        HeartRateZone(
            name=name,
            min_bpm=lower,
            max_bpm=upper,
            time_in_zone=counts[name],
            percent=round_half_up(counts[name] / total * 100),
        )
        for name, lower, upper in bounds
    ]
    return tuple(reversed(zones))


def heart_rate_recovery(newest_first: Sequence[float]) -> int | None:
    """
    Average single-step drop after detected peaks.

    A peak is a sample at or above 140 bpm whose next five samples in series
    order (newest first) are all strictly lower. Needs 20 samples; None when
    no peak is found.
    """
    if len(newest_first) < MIN_RECOVERY_SAMPLES:
        return None

    drops: list[float] = []
    for i in range(len(newest_first) - RECOVERY_LOOKAHEAD):
        peak = newest_first[i]
        if peak < RECOVERY_PEAK_BPM:
            continue
        following = newest_first[i + 1 : i + 1 + RECOVERY_LOOKAHEAD]
        if all(v < peak for v in following):
            drops.append(peak - following[0])

    if not drops:
        return None
    return round_half_up(mean(drops))


def cardio_load(values: Sequence[float]) -> int | None:
    """Intensity-weighted share of active (>100 bpm) samples, capped at 100."""
    if len(values) < MIN_CARDIO_LOAD_SAMPLES:
        return None

    active = [v for v in values if v > CARDIO_LOAD_BANDS[-1][0]]
    if not active:
        return 0

    load = 0
    for value in active:
        for lower, weight in CARDIO_LOAD_BANDS:
            if value > lower:
                load += weight
                break
    return min(100, round_half_up(load / len(active) * 100))


def sleep_quality_score(sample: SleepSample | Sample) -> int:
    """Score the night from duration, efficiency and deep/REM time."""
    score = 50
    duration = sample.value

    if 7 <= duration <= 9:
        score += 25
    elif 6 <= duration < 7 or 9 < duration <= 10:
        score += 15
    elif 5 <= duration < 6 or duration > 10:
        score += 5

    if isinstance(sample, SleepSample):
        efficiency = sample.sleep_efficiency
        # 0 % is a missing reading, not a terrible night
        if efficiency:
            if efficiency >= 90:
                score += 25
            elif efficiency >= 80:
                score += 20
            elif efficiency >= 70:
                score += 15
            elif efficiency >= 60:
                score += 10
            else:
                score += 5

        if sample.stages is not None:
            for hours in (sample.stages.deep, sample.stages.rem):
                if hours >= 1.5:
                    score += 15
                elif hours >= 1:
                    score += 10
                elif hours >= 0.5:
                    score += 5

    return min(100, score)


def sleep_debt(window: Sequence[Sample], nights_recorded: int | None = None) -> float | None:
    """
    Hours short of 8 per recorded night over the window; never negative.

    Unknown until at least three nights are recorded in the whole series
    (`nights_recorded`, defaulting to the window length) and one falls in the window.
    """
    nights = len(window) if nights_recorded is None else nights_recorded
    if not window or nights < MIN_SLEEP_DEBT_NIGHTS:
        return None
    expected = IDEAL_SLEEP_HOURS * len(window)
    return max(0.0, expected - math.fsum(s.value for s in window))


def daily_totals(samples: Sequence[Sample]) -> dict[date, float]:
    totals: dict[date, float] = {}
    for sample in samples:
        day = _day(sample)
        totals[day] = totals.get(day, 0.0) + sample.value
    return totals


def consistency_score(window: Sequence[Sample]) -> float | None:
    """
    100 minus the coefficient of variation of per-day totals.

    Needs seven distinct days of data. A zero mean scores 0.
    """
    totals = list(daily_totals(window).values())
    if len(totals) < MIN_CONSISTENCY_DAYS:
        return None

    average = mean(totals)
    if average == 0:
        return 0.0
    stddev = math.sqrt(mean([(v - average) ** 2 for v in totals]))
    cv = stddev / average * 100
    return max(0.0, min(100.0, 100 - cv))


def trend_slope(newest_first: Sequence[float], window: int = TREND_WINDOW) -> float | None:
    """Mean change between consecutive samples over the newest `window`, newer minus older."""
    if len(newest_first) < window:
        return None
    recent = newest_first[:window]
    return mean([recent[i] - recent[i + 1] for i in range(len(recent) - 1)])


def readiness(newest_first: Sequence[float]) -> Readiness | None:
    """Latest HRV relative to the mean of the newest seven samples."""
    if len(newest_first) < MIN_READINESS_SAMPLES:
        return None
    baseline = mean(newest_first[:7])
    if baseline <= 0:
        return None

    relative = newest_first[0] / baseline * 100
    if relative > 115:
        return Readiness(status="EXCELLENT", score=90)
    if relative > 105:
        return Readiness(status="GOOD", score=75)
    if relative > 95:
        return Readiness(status="NORMAL", score=60)
    if relative > 85:
        return Readiness(status="FAIR", score=45)
    return Readiness(status="POOR", score=30)


def intensity_distribution(samples: Sequence[Sample]) -> dict[str, IntensityBand] | None:
    """Split days into top 20 %, middle 40 % and bottom 40 % by daily total."""
    if not samples:
        return None

    days = sorted(daily_totals(samples).values(), reverse=True)
    high_end = math.ceil(len(days) * 0.2)
    moderate_end = math.ceil(len(days) * 0.6)
    groups = {
        "high": days[:high_end],
        "moderate": days[high_end:moderate_end],
        "low": days[moderate_end:],
    }
    return {
        name: IntensityBand(days=len(group), avg_calories=math.fsum(group) / max(1, len(group)))
        for name, group in groups.items()
    }


def intake_label(metric_type: MetricType, percent_of_goal: float) -> str:
    nutrient = metric_type.value.removeprefix("dietary_").upper()
    if 90 <= percent_of_goal <= 110:
        return f"{nutrient} INTAKE OPTIMAL"
    if percent_of_goal < 50:
        return f"{nutrient} INTAKE VERY LOW"
    if percent_of_goal < 90:
        return f"INCREASE {nutrient} INTAKE"
    if percent_of_goal > 150:
        return f"{nutrient} INTAKE EXCESSIVE"
    return f"MODERATE {nutrient} INTAKE"


# --- Specialized calculators -------------------------------------------------

Fields = dict[str, Any]


def _rolling(ctx: _Context) -> Fields:
    """Weekly total plus the mean of per-day totals over days with data."""
    window = ctx.window()
    if not window:
        return {}
    totals = daily_totals(window)
    return {
        "weekly_total": math.fsum(totals.values()),
        "daily_average": mean(list(totals.values())),
    }


def _heart_rate(ctx: _Context) -> Fields:
    resting = resting_estimate(ctx.values, RESTING_HR_FRACTION)
    return {
        "resting_hr": round_half_up(resting) if resting is not None else None,
        "cardio_load": cardio_load(ctx.values),
        "heart_rate_zones": heart_rate_zones(ctx.values, ctx.age),
        "recovery_rate": heart_rate_recovery(ctx.values),
    }


def _resting_heart_rate(ctx: _Context) -> Fields:
    return {
        "trend": trend_slope(ctx.values),
        "classification": classify_resting_heart_rate(ctx.samples[0].value),
    }


def _heart_rate_variability(ctx: _Context) -> Fields:
    level, score = stress_from_hrv(ctx.samples[0].value)
    return {
        "trend": trend_slope(ctx.values),
        "stress_level": StressLevel(level=level, score=score),
        "readiness": readiness(ctx.values),
    }


def _respiratory_rate(ctx: _Context) -> Fields:
    resting = resting_estimate(ctx.values, RESTING_RESPIRATORY_FRACTION)
    return {
        "classification": classify_respiratory_rate(ctx.samples[0].value),
        "resting_rate": round(resting, 1) if resting is not None else None,
    }


def _oxygen_saturation(ctx: _Context) -> Fields:
    return {"classification": classify_oxygen_saturation(ctx.samples[0].value)}


def _body_temperature(ctx: _Context) -> Fields:
    return {"classification": classify_body_temperature(ctx.samples[0].value)}


def _vo2max(ctx: _Context) -> Fields:
    latest = ctx.samples[0].value
    return {
        "classification": classify_vo2max(latest, ctx.profile).value.upper(),
        "trend": trend_slope(ctx.values, VO2MAX_TREND_WINDOW),
        "aerobic_efficiency": min(100, round_half_up(latest / AEROBIC_REFERENCE_VO2MAX * 100)),
    }


def _steps(ctx: _Context) -> Fields:
    window = ctx.window()
    days = daily_totals(ctx.samples)
    return {
        **_rolling(ctx),
        "total": math.fsum(ctx.values),
        "weekly_average": mean([s.value for s in window]) if window else None,
        "active_days": sum(1 for total in days.values() if total >= ACTIVE_DAY_STEPS),
        "consistency": consistency_score(window),
    }


def _energy(ctx: _Context) -> Fields:
    fields = _rolling(ctx)
    if ctx.metric_type == MetricType.ACTIVE_ENERGY:
        fields["intensity_distribution"] = intensity_distribution(ctx.samples)
    return fields


def _minutes_goal(ctx: _Context) -> Fields:
    return {
        **_rolling(ctx),
        "goal_met": ctx.samples[0].value >= DAILY_MINUTE_GOALS[ctx.metric_type],
    }


def _sleep(ctx: _Context) -> Fields:
    latest = ctx.samples[0]
    fields: Fields = {
        "sleep_quality_score": sleep_quality_score(latest),
        "sleep_debt": sleep_debt(ctx.window(), len(ctx.samples)),
        "optimal_nights": sum(1 for v in ctx.values if v >= OPTIMAL_NIGHT_HOURS),
    }

    if isinstance(latest, SleepSample):
        if latest.sleep_efficiency:
            fields["sleep_efficiency"] = latest.sleep_efficiency
        elif latest.time_in_bed:
            fields["sleep_efficiency"] = min(100.0, latest.value / latest.time_in_bed * 100)

        stages = latest.stages
        if stages is not None and latest.value > 0:
            fields["sleep_stages"] = SleepStageBreakdown(
                deep=stages.deep,
                core=stages.core,
                rem=stages.rem,
                awake=stages.awake,
                deep_percent=round(stages.deep / latest.value * 100, 1),
                rem_percent=round(stages.rem / latest.value * 100, 1),
            )
    return fields


def _weight(ctx: _Context) -> Fields:
    values = ctx.values
    fields: Fields = {}
    if len(values) >= 2:
        fields["change"] = values[0] - values[1]
    if len(values) >= MONTHLY_CHANGE_SAMPLES:
        baseline = values[MONTHLY_CHANGE_SAMPLES - 1]
        fields["monthly_change"] = values[0] - baseline
        if baseline:
            fields["monthly_change_percent"] = fields["monthly_change"] / baseline * 100

    if ctx.profile is not None and ctx.profile.height_cm:
        bmi = body_mass_index(values[0], ctx.profile.height_cm)
        fields["bmi"] = round(bmi, 1)
        fields["classification"] = classify_bmi(bmi)
    return fields


def _bmi(ctx: _Context) -> Fields:
    return {"classification": classify_bmi(ctx.samples[0].value)}


def _nutrient(ctx: _Context) -> Fields:
    if ctx.metric_type == MetricType.DIETARY_ENERGY:
        goal = estimate_energy_goal(ctx.profile)
    else:
        goal = NUTRIENT_GOALS[ctx.metric_type]

    today = math.fsum(s.value for s in ctx.today())
    window = ctx.window()
    percent = today / goal * 100
    return {
        **_rolling(ctx),
        "daily_total": today,
        "weekly_average": mean([s.value for s in window]) if window else None,
        "daily_goal": goal,
        "percent_of_goal": percent,
        "intake_label": intake_label(ctx.metric_type, percent),
    }


def _performance(ctx: _Context) -> Fields:
    return {"trend": trend_slope(ctx.values)}


SPECIALIZED_STATS: dict[MetricType, Callable[[_Context], Fields]] = {
    MetricType.HEART_RATE: _heart_rate,
    MetricType.RESTING_HEART_RATE: _resting_heart_rate,
    MetricType.HEART_RATE_VARIABILITY: _heart_rate_variability,
    MetricType.RESPIRATORY_RATE: _respiratory_rate,
    MetricType.OXYGEN_SATURATION: _oxygen_saturation,
    MetricType.BODY_TEMPERATURE: _body_temperature,
    MetricType.VO2MAX: _vo2max,
    MetricType.STEPS: _steps,
    MetricType.ACTIVE_ENERGY: _energy,
    MetricType.BASAL_ENERGY: _energy,
    MetricType.EXERCISE_TIME: _minutes_goal,
    MetricType.STAND_TIME: _minutes_goal,
    MetricType.TIME_IN_DAYLIGHT: _minutes_goal,
    MetricType.WALKING_SPEED: _performance,
    MetricType.RUNNING_SPEED: _performance,
    MetricType.RUNNING_POWER: _performance,
    MetricType.SLEEP: _sleep,
    MetricType.WEIGHT: _weight,
    MetricType.BMI: _bmi,
    **dict.fromkeys(NUTRIENT_GOALS, _nutrient),
}


def calculate_stats(
    series: MetricSeries,
    metric_type: MetricType | None = None,
    profile: UserProfile | None = None,
    now: datetime | None = None,
) -> MetricStats | None:
    """
    Compute statistics for a validated series.

    Returns None for an empty series. `metric_type` defaults to the series'
    own type; `now` defaults to the current UTC time and anchors every window.
    """
    if series.is_empty:
        return None

    metric_type = metric_type or series.metric_type
    now = now or datetime.now(UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)

    ctx = _Context(series=series, metric_type=metric_type, profile=profile, now=now)
    values = ctx.values
    lo, hi = min(values), max(values)
    recent = ctx.window()

    specialized = SPECIALIZED_STATS.get(metric_type)
    extra = specialized(ctx) if specialized is not None else {}

    logger.debug(
        "stats_calculated",
        component="statistics",
        metric_type=metric_type.value,
        count=len(values),
        specialized=sorted(k for k, v in extra.items() if v is not None),
    )

    return MetricStats(
        metric_type=metric_type,
        latest=series.samples[0],
        count=len(values),
        min=lo,
        max=hi,
        # min <= avg <= max must hold under float rounding
        avg=min(max(mean(values), lo), hi),
        recent=RecentStats(
            count=len(recent),
            avg=mean([s.value for s in recent]) if recent else None,
        ),
        **extra,
    )
