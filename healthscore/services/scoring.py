"""
Composite scorer.

Raw inputs are drawn from per-metric statistics, normalized to sub-scores and
combined into domain scores with fixed weights; domain scores combine into the
overall score the same way. Absent inputs and domains are excluded and the
remaining weights renormalized, never counted as zero. When every domain is
missing the result is an explicit no-data state instead of a score.
"""

import math
from collections.abc import Mapping
from typing import TypeVar

import structlog

from healthscore.domain.models import (
    AssessmentStatus,
    Domain,
    DomainScore,
    FitnessCategory,
    MetricStats,
    MetricType,
    OverallScore,
    UserProfile,
)
from healthscore.services.normalizer import ScoreInput, clamp_score, normalize

logger = structlog.get_logger(__name__)

KeyT = TypeVar("KeyT")

DOMAIN_WEIGHTS: dict[Domain, dict[ScoreInput, float]] = {
    Domain.CARDIOVASCULAR: {
        ScoreInput.VO2MAX: 40,
        ScoreInput.RESTING_HEART_RATE: 25,
        ScoreInput.HRV: 20,
        ScoreInput.OXYGEN_SATURATION: 15,
    },
    Domain.ACTIVITY: {
        ScoreInput.STEPS: 40,
        ScoreInput.EXERCISE_MINUTES: 35,
        ScoreInput.STEP_CONSISTENCY: 25,
    },
    Domain.BODY_COMPOSITION: {
        ScoreInput.BODY_FAT: 40,
        ScoreInput.BMI: 35,
        ScoreInput.MUSCLE_MASS: 25,
    },
    Domain.RECOVERY: {
        ScoreInput.SLEEP_QUALITY: 45,
        ScoreInput.SLEEP_DEBT: 25,
        ScoreInput.HRV_READINESS: 30,
    },
    Domain.NUTRITION: {
        ScoreInput.PROTEIN: 40,
        ScoreInput.HYDRATION: 30,
        ScoreInput.CALORIE_BALANCE: 30,
    },
}

OVERALL_WEIGHTS: dict[Domain, float] = {
    Domain.CARDIOVASCULAR: 35,
    Domain.ACTIVITY: 25,
    Domain.BODY_COMPOSITION: 15,
    Domain.RECOVERY: 15,
    Domain.NUTRITION: 10,
}

# Metric series each input is derived from, preferred source first.
INPUT_SOURCES: dict[ScoreInput, tuple[MetricType, ...]] = {
    ScoreInput.VO2MAX: (MetricType.VO2MAX,),
    ScoreInput.RESTING_HEART_RATE: (MetricType.RESTING_HEART_RATE, MetricType.HEART_RATE),
    ScoreInput.HRV: (MetricType.HEART_RATE_VARIABILITY,),
    ScoreInput.OXYGEN_SATURATION: (MetricType.OXYGEN_SATURATION,),
    ScoreInput.STEPS: (MetricType.STEPS,),
    ScoreInput.EXERCISE_MINUTES: (MetricType.EXERCISE_TIME,),
    ScoreInput.STEP_CONSISTENCY: (MetricType.STEPS,),
    ScoreInput.BODY_FAT: (MetricType.BODY_FAT,),
    ScoreInput.BMI: (MetricType.BMI, MetricType.WEIGHT),
    ScoreInput.MUSCLE_MASS: (MetricType.LEAN_BODY_MASS, MetricType.WEIGHT),
    ScoreInput.SLEEP_QUALITY: (MetricType.SLEEP,),
    ScoreInput.SLEEP_DEBT: (MetricType.SLEEP,),
    ScoreInput.HRV_READINESS: (MetricType.HEART_RATE_VARIABILITY,),
    ScoreInput.PROTEIN: (MetricType.DIETARY_PROTEIN, MetricType.WEIGHT),
    ScoreInput.HYDRATION: (MetricType.DIETARY_WATER, MetricType.WEIGHT),
    ScoreInput.CALORIE_BALANCE: (MetricType.DIETARY_ENERGY,),
}

# (minimum score, category), highest first
CATEGORY_LADDER: tuple[tuple[float, FitnessCategory], ...] = (
    (90, FitnessCategory.ELITE),
    (80, FitnessCategory.EXCELLENT),
    (70, FitnessCategory.GOOD),
    (60, FitnessCategory.FAIR),
    (50, FitnessCategory.BELOW_AVERAGE),
    (40, FitnessCategory.POOR),
)


def required_metric_types() -> list[MetricType]:
    """Every metric type some domain input is derived from, in stable order."""
    seen: dict[MetricType, None] = {}
    for inputs in DOMAIN_WEIGHTS.values():
        for score_input in inputs:
            seen.update(dict.fromkeys(INPUT_SOURCES[score_input]))
    return list(seen)


def categorize(score: float) -> FitnessCategory:
    for minimum, category in CATEGORY_LADDER:
        if score >= minimum:
            return category
    return FitnessCategory.VERY_POOR


def weighted_contributions(
    values: Mapping[KeyT, float | None], weights: Mapping[KeyT, float]
) -> dict[KeyT, float]:
    """
    Each present value scaled by its weight renormalized over present keys.

    Keys whose value is None (or missing from `values`) drop out and their
    weight is redistributed; the contributions then sum to the weighted mean.
    """
    present = {k: v for k, v in values.items() if v is not None and k in weights}
    total_weight = math.fsum(weights[k] for k in present)
    if total_weight <= 0:
        return {}
    return {k: v * weights[k] / total_weight for k, v in present.items()}


def weighted_average(
    values: Mapping[KeyT, float | None], weights: Mapping[KeyT, float]
) -> float | None:
    """Weighted mean over present values only; None when nothing is present."""
    contributions = weighted_contributions(values, weights)
    if not contributions:
        return None
    return math.fsum(contributions.values())


# --- Raw input extraction ----------------------------------------------------


def _latest(stats: Mapping[MetricType, MetricStats], metric_type: MetricType) -> float | None:
    metric = stats.get(metric_type)
    return metric.latest.value if metric is not None else None


def _recent_or_latest(
    stats: Mapping[MetricType, MetricStats], metric_type: MetricType
) -> float | None:
    metric = stats.get(metric_type)
    if metric is None:
        return None
    return metric.recent.avg if metric.recent.avg is not None else metric.latest.value


def _field(
    stats: Mapping[MetricType, MetricStats], metric_type: MetricType, name: str
) -> float | None:
    metric = stats.get(metric_type)
    return getattr(metric, name) if metric is not None else None


def _body_weight(
    stats: Mapping[MetricType, MetricStats], profile: UserProfile | None
) -> float | None:
    weight = _latest(stats, MetricType.WEIGHT)
    if weight is None and profile is not None:
        weight = profile.weight_kg
    return weight if weight else None


def extract_inputs(
    stats: Mapping[MetricType, MetricStats], profile: UserProfile | None = None
) -> dict[ScoreInput, float | None]:
    """Raw value for every scoring input, or None when it cannot be derived."""
    weight = _body_weight(stats, profile)

    resting_hr = _latest(stats, MetricType.RESTING_HEART_RATE)
    if resting_hr is None:
        resting_hr = _field(stats, MetricType.HEART_RATE, "resting_hr")

    bmi = _latest(stats, MetricType.BMI)
    if bmi is None:
        bmi = _field(stats, MetricType.WEIGHT, "bmi")

    lean_mass = _latest(stats, MetricType.LEAN_BODY_MASS)
    hrv_stats = stats.get(MetricType.HEART_RATE_VARIABILITY)
    readiness = hrv_stats.readiness if hrv_stats is not None else None
    protein = _field(stats, MetricType.DIETARY_PROTEIN, "daily_average")
    water = _field(stats, MetricType.DIETARY_WATER, "daily_average")
    energy = _field(stats, MetricType.DIETARY_ENERGY, "daily_average")
    energy_goal = _field(stats, MetricType.DIETARY_ENERGY, "daily_goal")

    return {
        ScoreInput.VO2MAX: _latest(stats, MetricType.VO2MAX),
        ScoreInput.RESTING_HEART_RATE: resting_hr,
        ScoreInput.HRV: _recent_or_latest(stats, MetricType.HEART_RATE_VARIABILITY),
        ScoreInput.OXYGEN_SATURATION: _recent_or_latest(stats, MetricType.OXYGEN_SATURATION),
        ScoreInput.STEPS: _field(stats, MetricType.STEPS, "daily_average"),
        ScoreInput.EXERCISE_MINUTES: _field(stats, MetricType.EXERCISE_TIME, "daily_average"),
        ScoreInput.STEP_CONSISTENCY: _field(stats, MetricType.STEPS, "consistency"),
        ScoreInput.BODY_FAT: _latest(stats, MetricType.BODY_FAT),
        ScoreInput.BMI: bmi,
        ScoreInput.MUSCLE_MASS: (
            lean_mass / weight * 100 if lean_mass is not None and weight is not None else None
        ),
        ScoreInput.SLEEP_QUALITY: _field(stats, MetricType.SLEEP, "sleep_quality_score"),
        ScoreInput.SLEEP_DEBT: _field(stats, MetricType.SLEEP, "sleep_debt"),
        ScoreInput.HRV_READINESS: readiness.score if readiness is not None else None,
        ScoreInput.PROTEIN: protein / weight if protein is not None and weight else None,
        ScoreInput.HYDRATION: water * 1000 / weight if water is not None and weight else None,
        ScoreInput.CALORIE_BALANCE: (
            energy / energy_goal if energy is not None and energy_goal else None
        ),
    }


# --- Scores ------------------------------------------------------------------


def score_domain(
    domain: Domain,
    raw_inputs: Mapping[ScoreInput, float | None],
    profile: UserProfile | None = None,
) -> DomainScore | None:
    """
    Normalize and weight the domain's inputs.

    Returns None when none of the domain's inputs is present, which marks the
    domain as missing.
    """
    weights = DOMAIN_WEIGHTS[domain]
    normalized: dict[ScoreInput, float | None] = {
        score_input: (
            normalize(score_input, raw_inputs.get(score_input), profile)
            if raw_inputs.get(score_input) is not None
            else None
        )
        for score_input in weights
    }

    contributions = weighted_contributions(normalized, weights)
    if not contributions:
        return None

    score = clamp_score(math.fsum(contributions.values()))
    return DomainScore(
        domain=domain,
        score=score,
        category=categorize(score),
        sub_scores={k.value: v for k, v in contributions.items()},
        metric_scores={k.value: v for k, v in normalized.items() if v is not None},
        missing_inputs=[k.value for k, v in normalized.items() if v is None],
    )


def score_overall(components: Mapping[Domain, DomainScore]) -> OverallScore:
    """Combine domain scores; all domains missing yields the no-data state."""
    contributions = weighted_contributions(
        {domain: component.score for domain, component in components.items()}, OVERALL_WEIGHTS
    )
    missing = [domain for domain in OVERALL_WEIGHTS if domain not in contributions]

    if not contributions:
        logger.info("overall_score_unavailable", component="scoring")
        return OverallScore(status=AssessmentStatus.NO_DATA, missing_domains=missing)

    score = clamp_score(math.fsum(contributions.values()))
    return OverallScore(
        status=AssessmentStatus.ASSESSED,
        score=score,
        category=categorize(score),
        contributions=contributions,
        missing_domains=missing,
    )


def score_domains(
    raw_inputs: Mapping[ScoreInput, float | None], profile: UserProfile | None = None
) -> dict[Domain, DomainScore]:
    """Score every domain that has at least one input present."""
    components: dict[Domain, DomainScore] = {}
    for domain in DOMAIN_WEIGHTS:
        component = score_domain(domain, raw_inputs, profile)
        if component is not None:
            components[domain] = component
    return components


def classify_domains(
    components: Mapping[Domain, DomainScore],
    strength_threshold: float = 80.0,
    weakness_threshold: float = 60.0,
) -> tuple[list[Domain], list[Domain]]:
    """Strengths score at or above the strength threshold; weaknesses below the other."""
    strengths = [d for d, c in components.items() if c.score >= strength_threshold]
    weaknesses = [d for d, c in components.items() if c.score < weakness_threshold]
    return strengths, weaknesses
