"""
Rule-based recommendation generator.

Each scored domain below its threshold yields one fixed-template
recommendation. Output is a pure function of the domain scores: same scores,
same recommendations, same order.
"""

import math
from collections.abc import Mapping
from typing import NamedTuple

from healthscore.domain.models import Domain, DomainScore, Priority, Recommendation
from healthscore.services.normalizer import ScoreInput

DEFAULT_THRESHOLD = 70.0
DOMAIN_THRESHOLDS: dict[Domain, float] = {
    Domain.NUTRITION: 60.0,
}

HIGH_PRIORITY_DOMAINS = frozenset({Domain.CARDIOVASCULAR, Domain.RECOVERY})

PRIORITY_ORDER: dict[Priority, int] = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}

INPUT_LABELS: dict[ScoreInput, str] = {
    ScoreInput.VO2MAX: "VO2max",
    ScoreInput.RESTING_HEART_RATE: "resting heart rate",
    ScoreInput.HRV: "heart rate variability",
    ScoreInput.OXYGEN_SATURATION: "blood oxygen",
    ScoreInput.STEPS: "daily steps",
    ScoreInput.EXERCISE_MINUTES: "exercise minutes",
    ScoreInput.STEP_CONSISTENCY: "day-to-day consistency",
    ScoreInput.BODY_FAT: "body fat",
    ScoreInput.BMI: "BMI",
    ScoreInput.MUSCLE_MASS: "lean mass",
    ScoreInput.SLEEP_DURATION: "sleep duration",
    ScoreInput.SLEEP_QUALITY: "sleep quality",
    ScoreInput.SLEEP_DEBT: "sleep debt",
    ScoreInput.HRV_READINESS: "HRV readiness",
    ScoreInput.PROTEIN: "protein intake",
    ScoreInput.HYDRATION: "hydration",
    ScoreInput.CALORIE_BALANCE: "calorie balance",
}


class Template(NamedTuple):
    title: str
    summary: str
    timeframe: str
    actions: tuple[str, ...]


TEMPLATES: dict[Domain, Template] = {
    Domain.CARDIOVASCULAR: Template(
        title="Build cardiovascular fitness",
        summary="Aerobic capacity and heart-rate markers are below where they should be.",
        timeframe="8-12 weeks",
        actions=(
            "Add three 30-minute zone 2 sessions per week",
            "Include one interval session per week once zone 2 feels easy",
            "Take the stairs and walk briskly between sessions",
            "Track resting heart rate each morning to follow progress",
        ),
    ),
    Domain.ACTIVITY: Template(
        title="Move more, more consistently",
        summary="Daily movement is low or varies a lot from day to day.",
        timeframe="4-6 weeks",
        actions=(
            "Set a daily step goal 1,000 steps above your current average",
            "Schedule at least 30 minutes of exercise on five days a week",
            "Break up long sitting periods with a short walk every hour",
        ),
    ),
    Domain.BODY_COMPOSITION: Template(
        title="Improve body composition",
        summary="Body fat, BMI or lean mass sit outside the healthy range.",
        timeframe="12-16 weeks",
        actions=(
            "Strength train two to three times per week",
            "Aim for a modest, sustainable calorie deficit if body fat is high",
            "Prioritise protein at every meal to preserve lean mass",
            "Re-measure body composition every four weeks",
        ),
    ),
    Domain.RECOVERY: Template(
        title="Prioritise sleep and recovery",
        summary="Sleep and recovery markers suggest you are not fully recovering.",
        timeframe="2-4 weeks",
        actions=(
            "Keep a consistent bedtime and wake time, including weekends",
            "Aim for 7-9 hours of sleep opportunity every night",
            "Avoid caffeine after midday and screens in the last hour before bed",
            "Schedule a lighter training day when HRV drops below baseline",
        ),
    ),
    Domain.NUTRITION: Template(
        title="Tighten up nutrition",
        summary="Protein, hydration or energy intake are off target.",
        timeframe="2-4 weeks",
        actions=(
            "Log meals for a week to see where intake falls short",
            "Include a protein source with every meal",
            "Keep a water bottle within reach and refill it through the day",
        ),
    ),
}

DOMAIN_LABELS: dict[Domain, str] = {
    Domain.CARDIOVASCULAR: "cardiovascular",
    Domain.ACTIVITY: "activity",
    Domain.BODY_COMPOSITION: "body composition",
    Domain.RECOVERY: "recovery",
    Domain.NUTRITION: "nutrition",
}


def threshold_for(domain: Domain) -> float:
    return DOMAIN_THRESHOLDS.get(domain, DEFAULT_THRESHOLD)


def priority_for(domain: Domain) -> Priority:
    return Priority.HIGH if domain in HIGH_PRIORITY_DOMAINS else Priority.MEDIUM


def _weakest_input(component: DomainScore) -> tuple[str, float] | None:
    if not component.metric_scores:
        return None
    name = min(component.metric_scores, key=lambda k: (component.metric_scores[k], k))
    return INPUT_LABELS.get(ScoreInput(name), name), component.metric_scores[name]


def _recommend(component: DomainScore, threshold: float) -> Recommendation:
    template = TEMPLATES[component.domain]
    label = DOMAIN_LABELS[component.domain]
    gain = max(1, math.ceil(threshold - component.score))

    description = f"Your {label} score is {component.score:.0f}/100. {template.summary}"
    weakest = _weakest_input(component)
    if weakest is not None:
        input_label, input_score = weakest
        description += f" The weakest input is {input_label} at {input_score:.0f}/100."

    return Recommendation(
        category=component.domain,
        priority=priority_for(component.domain),
        title=template.title,
        description=description,
        expected_impact=f"+{gain} points to reach the {label} target of {threshold:.0f}",
        timeframe=template.timeframe,
        actions=list(template.actions),
    )


def generate_recommendations(components: Mapping[Domain, DomainScore]) -> list[Recommendation]:
    """
    One recommendation per domain scoring below its threshold.

    Ordered by priority, then ascending domain score, then domain name.
    """
    below = [
        component
        for domain, component in components.items()
        if component.score < threshold_for(domain)
    ]
    below.sort(key=lambda c: (PRIORITY_ORDER[priority_for(c.domain)], c.score, c.domain.value))
    return [_recommend(component, threshold_for(component.domain)) for component in below]
