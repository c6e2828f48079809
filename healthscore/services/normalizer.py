"""
Reference normalizer.

Maps a raw metric value onto a 0-100 sub-score. Every scoring input has its own
piecewise function, registered in a single lookup table keyed by `ScoreInput`.
Metric types are graded through the input they feed, after converting their
canonical unit (protein grams and water litres become per-kg ratios of the
profile's body weight). Metric types without a grading function score 0.

- higher-is-better inputs step through ascending threshold bands
- lower-is-better inputs step through descending bands down to a floor
- ratio inputs (protein g/kg, hydration ml/kg, BMI, calorie balance) use an
  ideal corridor that peaks in the middle and decays outward

VO2max is graded against an age- and gender-bucketed standards table. Absent
or non-finite input scores 0, and no result ever leaves [0, 100].
"""

import math
from collections.abc import Callable
from enum import Enum

from healthscore.domain.metrics import coerce_metric_type
from healthscore.domain.models import MetricType, UserProfile
from healthscore.domain.reference import (
    BMI_CORRIDOR,
    CALORIE_RATIO_CORRIDOR,
    EXERCISE_MINUTES_BANDS,
    HRV_BANDS,
    HYDRATION_ML_PER_KG_CORRIDOR,
    LEAN_MASS_BANDS,
    PROTEIN_G_PER_KG_CORRIDOR,
    RESTING_HR_BANDS,
    SLEEP_DEBT_BANDS,
    SLEEP_DURATION_CORRIDOR,
    SPO2_BANDS,
    STEPS_BANDS,
    VO2_TIER_SCORE_FLOORS,
    Vo2Tier,
    body_fat_corridor,
    classify_vo2max,
    estimate_energy_goal,
    vo2max_thresholds,
)


class ScoreInput(str, Enum):
    """Raw inputs the composite scorer normalizes."""

    # Cardiovascular
    VO2MAX = "vo2max"  # ml/kg/min
    RESTING_HEART_RATE = "resting_heart_rate"  # bpm
    HRV = "hrv"  # ms
    OXYGEN_SATURATION = "oxygen_saturation"  # %

    # Activity
    STEPS = "steps"  # daily average
    EXERCISE_MINUTES = "exercise_minutes"  # daily average
    STEP_CONSISTENCY = "step_consistency"  # 0-100

    # Body composition
    BODY_FAT = "body_fat"  # %
    BMI = "bmi"  # kg/m²
    MUSCLE_MASS = "muscle_mass"  # lean mass, % of body weight

    # Recovery
    SLEEP_DURATION = "sleep_duration"  # hours
    SLEEP_QUALITY = "sleep_quality"  # 0-100
    SLEEP_DEBT = "sleep_debt"  # hours over the last week
    HRV_READINESS = "hrv_readiness"  # 0-100

    # Nutrition
    PROTEIN = "protein"  # g per kg body weight
    HYDRATION = "hydration"  # ml per kg body weight
    CALORIE_BALANCE = "calorie_balance"  # intake / goal ratio


def clamp_score(value: float) -> float:
    return max(0.0, min(100.0, value))


def vo2max_tier(value: float, profile: UserProfile | None = None) -> Vo2Tier:
    """Fitness tier for a VO2max reading against the profile's age/gender standard."""
    return classify_vo2max(value, profile)


def _vo2max(value: float, profile: UserProfile | None) -> float:
    """
    Interpolate linearly within the tier the value falls in.

    Poor scales 0-40 up to the fair threshold; fair, good and excellent span
    their tier floors; superior adds one point per ml/kg/min above its threshold.
    """
    t = vo2max_thresholds(profile)
    tier = classify_vo2max(value, profile)
    floor = VO2_TIER_SCORE_FLOORS[tier]

    if tier == Vo2Tier.POOR:
        return VO2_TIER_SCORE_FLOORS[Vo2Tier.FAIR] * value / t.fair
    if tier == Vo2Tier.SUPERIOR:
        return floor + (value - t.superior)

    spans = {
        Vo2Tier.FAIR: (t.fair, t.good, Vo2Tier.GOOD),
        Vo2Tier.GOOD: (t.good, t.excellent, Vo2Tier.EXCELLENT),
        Vo2Tier.EXCELLENT: (t.excellent, t.superior, Vo2Tier.SUPERIOR),
    }
    low, high, next_tier = spans[tier]
    ceiling = VO2_TIER_SCORE_FLOORS[next_tier]
    return floor + (ceiling - floor) * (value - low) / (high - low)


def _muscle_mass(value: float, profile: UserProfile | None) -> float:
    gender = profile.gender if profile else None
    if gender in LEAN_MASS_BANDS:
        return LEAN_MASS_BANDS[gender].score(value)
    scores = [bands.score(value) for bands in LEAN_MASS_BANDS.values()]
    return sum(scores) / len(scores)


def _body_fat(value: float, profile: UserProfile | None) -> float:
    return body_fat_corridor(profile.gender if profile else None).score(value)


def _identity(value: float, _profile: UserProfile | None) -> float:
    return value


Normalizer = Callable[[float, UserProfile | None], float]
Converter = Callable[[float, UserProfile | None], float | None]

NORMALIZERS: dict[ScoreInput, Normalizer] = {
    ScoreInput.VO2MAX: _vo2max,
    ScoreInput.RESTING_HEART_RATE: lambda v, _: RESTING_HR_BANDS.score(v),
    ScoreInput.HRV: lambda v, _: HRV_BANDS.score(v),
    ScoreInput.OXYGEN_SATURATION: lambda v, _: SPO2_BANDS.score(v),
    ScoreInput.STEPS: lambda v, _: STEPS_BANDS.score(v),
    ScoreInput.EXERCISE_MINUTES: lambda v, _: EXERCISE_MINUTES_BANDS.score(v),
    ScoreInput.STEP_CONSISTENCY: _identity,
    ScoreInput.BODY_FAT: _body_fat,
    ScoreInput.BMI: lambda v, _: BMI_CORRIDOR.score(v),
    ScoreInput.MUSCLE_MASS: _muscle_mass,
    ScoreInput.SLEEP_DURATION: lambda v, _: SLEEP_DURATION_CORRIDOR.score(v),
    ScoreInput.SLEEP_QUALITY: _identity,
    ScoreInput.SLEEP_DEBT: lambda v, _: SLEEP_DEBT_BANDS.score(v),
    ScoreInput.HRV_READINESS: _identity,
    ScoreInput.PROTEIN: lambda v, _: PROTEIN_G_PER_KG_CORRIDOR.score(v),
    ScoreInput.HYDRATION: lambda v, _: HYDRATION_ML_PER_KG_CORRIDOR.score(v),
    ScoreInput.CALORIE_BALANCE: lambda v, _: CALORIE_RATIO_CORRIDOR.score(v),
}


def _per_kg(factor: float) -> Converter:
    """Daily intake divided by body weight; unknown weight leaves the value unusable."""

    def convert(value: float, profile: UserProfile | None) -> float | None:
        if profile is None or not profile.weight_kg:
            return None
        return value * factor / profile.weight_kg

    return convert


def _lean_mass_percent(value: float, profile: UserProfile | None) -> float | None:
    if profile is None or not profile.weight_kg:
        return None
    return value / profile.weight_kg * 100


def _calorie_ratio(value: float, profile: UserProfile | None) -> float | None:
    goal = estimate_energy_goal(profile)
    return value / goal if goal > 0 else None


def _as_is(value: float, _profile: UserProfile | None) -> float | None:
    return value


# Scoring input each metric type is graded as, and how its raw unit converts to it.
METRIC_INPUTS: dict[MetricType, tuple[ScoreInput, Converter]] = {
    MetricType.VO2MAX: (ScoreInput.VO2MAX, _as_is),
    MetricType.RESTING_HEART_RATE: (ScoreInput.RESTING_HEART_RATE, _as_is),
    MetricType.HEART_RATE_VARIABILITY: (ScoreInput.HRV, _as_is),
    MetricType.OXYGEN_SATURATION: (ScoreInput.OXYGEN_SATURATION, _as_is),
    MetricType.STEPS: (ScoreInput.STEPS, _as_is),
    MetricType.EXERCISE_TIME: (ScoreInput.EXERCISE_MINUTES, _as_is),
    MetricType.BODY_FAT: (ScoreInput.BODY_FAT, _as_is),
    MetricType.BMI: (ScoreInput.BMI, _as_is),
    MetricType.LEAN_BODY_MASS: (ScoreInput.MUSCLE_MASS, _lean_mass_percent),
    MetricType.SLEEP: (ScoreInput.SLEEP_DURATION, _as_is),
    MetricType.DIETARY_PROTEIN: (ScoreInput.PROTEIN, _per_kg(1.0)),  # g -> g/kg
    MetricType.DIETARY_WATER: (ScoreInput.HYDRATION, _per_kg(1000.0)),  # L -> ml/kg
    MetricType.DIETARY_ENERGY: (ScoreInput.CALORIE_BALANCE, _calorie_ratio),
}


def _resolve(
    metric: MetricType | ScoreInput | str, value: float, profile: UserProfile | None
) -> tuple[ScoreInput, float | None] | None:
    if isinstance(metric, MetricType):
        metric_type: MetricType | None = metric
    elif isinstance(metric, ScoreInput):
        return metric, value
    else:
        try:
            return ScoreInput(metric), value
        except ValueError:
            metric_type = coerce_metric_type(metric)

    if metric_type not in METRIC_INPUTS:
        return None
    score_input, convert = METRIC_INPUTS[metric_type]
    return score_input, convert(value, profile)


def normalize(
    metric: MetricType | ScoreInput | str,
    raw_value: float | None,
    profile: UserProfile | None = None,
) -> float:
    """
    Normalize a raw value to a 0-100 sub-score.

    Args:
        metric: Metric type the value was recorded as (in its canonical unit),
            or a scoring input whose value is already in the input's unit
        raw_value: Raw value, or None when unavailable
        profile: Optional age/gender/weight context for personalized tables

    Returns:
        Sub-score in [0, 100]. 0 when the raw value is absent or not finite,
        when the metric type is not graded, or when a per-kg ratio has no
        body weight to divide by.
    """
    if raw_value is None or isinstance(raw_value, bool):
        return 0.0
    value = float(raw_value)
    if not math.isfinite(value):
        return 0.0

    resolved = _resolve(metric, value, profile)
    if resolved is None:
        return 0.0
    score_input, converted = resolved
    if converted is None or not math.isfinite(converted):
        return 0.0
    return clamp_score(NORMALIZERS[score_input](converted, profile))
