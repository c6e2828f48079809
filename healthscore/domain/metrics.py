"""
Static per-metric lookup tables.

Units, plausibility ranges and nutrient goals are keyed by `MetricType` so that
adding a metric type is a data change here rather than a code change in every
stage of the pipeline.
"""

from typing import NamedTuple

from healthscore.domain.models import MetricType

RECENT_WINDOW_DAYS = 7

DEFAULT_UNITS: dict[MetricType, str] = {
    MetricType.HEART_RATE: "bpm",
    MetricType.RESTING_HEART_RATE: "bpm",
    MetricType.HEART_RATE_VARIABILITY: "ms",
    MetricType.RESPIRATORY_RATE: "breaths/min",
    MetricType.OXYGEN_SATURATION: "%",
    MetricType.BODY_TEMPERATURE: "°C",
    MetricType.VO2MAX: "ml/kg/min",
    MetricType.STEPS: "count",
    MetricType.DISTANCE: "km",
    MetricType.ACTIVE_ENERGY: "kcal",
    MetricType.BASAL_ENERGY: "kcal",
    MetricType.EXERCISE_TIME: "min",
    MetricType.STAND_TIME: "min",
    MetricType.WALKING_SPEED: "m/s",
    MetricType.RUNNING_SPEED: "m/s",
    MetricType.RUNNING_POWER: "W",
    MetricType.TIME_IN_DAYLIGHT: "min",
    MetricType.SLEEP: "hours",
    MetricType.WEIGHT: "kg",
    MetricType.BODY_FAT: "%",
    MetricType.LEAN_BODY_MASS: "kg",
    MetricType.BMI: "kg/m²",
    MetricType.DIETARY_ENERGY: "kcal",
    MetricType.DIETARY_PROTEIN: "g",
    MetricType.DIETARY_CARBS: "g",
    MetricType.DIETARY_FAT: "g",
    MetricType.DIETARY_WATER: "L",
    MetricType.DIETARY_FIBER: "g",
    MetricType.DIETARY_SUGAR: "g",
    MetricType.DIETARY_SODIUM: "mg",
}

# Provider-side camelCase names (HealthKit bridge) mapped onto our metric types.
METRIC_ALIASES: dict[str, MetricType] = {
    "heartRate": MetricType.HEART_RATE,
    "restingHeartRate": MetricType.RESTING_HEART_RATE,
    "heartRateVariability": MetricType.HEART_RATE_VARIABILITY,
    "respiratoryRate": MetricType.RESPIRATORY_RATE,
    "oxygenSaturation": MetricType.OXYGEN_SATURATION,
    "bodyTemperature": MetricType.BODY_TEMPERATURE,
    "calories": MetricType.ACTIVE_ENERGY,
    "basalEnergy": MetricType.BASAL_ENERGY,
    "exerciseTime": MetricType.EXERCISE_TIME,
    "standTime": MetricType.STAND_TIME,
    "walkingSpeed": MetricType.WALKING_SPEED,
    "runningSpeed": MetricType.RUNNING_SPEED,
    "runningPower": MetricType.RUNNING_POWER,
    "timeInDaylight": MetricType.TIME_IN_DAYLIGHT,
    "bodyFat": MetricType.BODY_FAT,
    "leanBodyMass": MetricType.LEAN_BODY_MASS,
    "dietaryEnergy": MetricType.DIETARY_ENERGY,
    "dietaryProtein": MetricType.DIETARY_PROTEIN,
    "dietaryCarbs": MetricType.DIETARY_CARBS,
    "dietaryFat": MetricType.DIETARY_FAT,
    "dietaryWater": MetricType.DIETARY_WATER,
    "dietaryFiber": MetricType.DIETARY_FIBER,
    "dietarySugar": MetricType.DIETARY_SUGAR,
    "dietarySodium": MetricType.DIETARY_SODIUM,
}


class PlausibleRange(NamedTuple):
    """
    Hard bounds reject a sample as physiologically impossible; soft bounds only
    flag it as unusual. None leaves that side unbounded.
    """

    hard_min: float | None
    hard_max: float | None
    soft_min: float | None = None
    soft_max: float | None = None


PLAUSIBLE_RANGES: dict[MetricType, PlausibleRange] = {
    MetricType.HEART_RATE: PlausibleRange(20, 250, 30, 220),
    MetricType.RESTING_HEART_RATE: PlausibleRange(20, 200, 35, 110),
    MetricType.HEART_RATE_VARIABILITY: PlausibleRange(0, 500, 5, 250),
    MetricType.RESPIRATORY_RATE: PlausibleRange(2, 80, 8, 30),
    MetricType.OXYGEN_SATURATION: PlausibleRange(50, 100, 88, None),
    MetricType.BODY_TEMPERATURE: PlausibleRange(25, 45, 35, 39),
    MetricType.VO2MAX: PlausibleRange(5, 100, 15, 90),
    MetricType.STEPS: PlausibleRange(0, 200_000, None, 60_000),
    MetricType.DISTANCE: PlausibleRange(0, 500),
    MetricType.ACTIVE_ENERGY: PlausibleRange(0, 20_000),
    MetricType.BASAL_ENERGY: PlausibleRange(0, 10_000),
    MetricType.EXERCISE_TIME: PlausibleRange(0, 1440),
    MetricType.STAND_TIME: PlausibleRange(0, 1440),
    MetricType.WALKING_SPEED: PlausibleRange(0, 15),
    MetricType.RUNNING_SPEED: PlausibleRange(0, 15),
    MetricType.RUNNING_POWER: PlausibleRange(0, 2500),
    MetricType.TIME_IN_DAYLIGHT: PlausibleRange(0, 1440),
    MetricType.SLEEP: PlausibleRange(0, 24, 3, 12),
    MetricType.WEIGHT: PlausibleRange(1, 500, 30, 250),
    MetricType.BODY_FAT: PlausibleRange(0, 80, 3, 60),
    MetricType.LEAN_BODY_MASS: PlausibleRange(1, 300),
    MetricType.BMI: PlausibleRange(5, 100, 15, 50),
    MetricType.DIETARY_ENERGY: PlausibleRange(0, 20_000),
    MetricType.DIETARY_PROTEIN: PlausibleRange(0, 1000),
    MetricType.DIETARY_CARBS: PlausibleRange(0, 2000),
    MetricType.DIETARY_FAT: PlausibleRange(0, 1000),
    MetricType.DIETARY_WATER: PlausibleRange(0, 20),
    MetricType.DIETARY_FIBER: PlausibleRange(0, 300),
    MetricType.DIETARY_SUGAR: PlausibleRange(0, 1000),
    MetricType.DIETARY_SODIUM: PlausibleRange(0, 50_000),
}

# Sleep architecture bounds, as percentage of total sleep.
SLEEP_STAGE_PERCENT_RANGES: dict[str, tuple[float, float]] = {
    "deep": (10.0, 30.0),
    "rem": (15.0, 35.0),
    "core": (40.0, 60.0),
}
SLEEP_EFFICIENCY_RANGE = (70.0, 100.0)

# Default daily nutrient goals (unpersonalized).
NUTRIENT_GOALS: dict[MetricType, float] = {
    MetricType.DIETARY_ENERGY: 2200,
    MetricType.DIETARY_PROTEIN: 140,
    MetricType.DIETARY_CARBS: 250,
    MetricType.DIETARY_FAT: 73,
    MetricType.DIETARY_WATER: 3,
    MetricType.DIETARY_FIBER: 30,
    MetricType.DIETARY_SUGAR: 50,
    MetricType.DIETARY_SODIUM: 2300,
}

# Daily minimum counted as "goal met" for duration-style metrics (minutes).
DAILY_MINUTE_GOALS: dict[MetricType, float] = {
    MetricType.EXERCISE_TIME: 30,
    MetricType.STAND_TIME: 12,
    MetricType.TIME_IN_DAYLIGHT: 30,
}


def coerce_metric_type(name: "str | MetricType") -> MetricType | None:
    """Resolve a metric type from its value or a provider alias, else None."""
    if isinstance(name, MetricType):
        return name
    try:
        return MetricType(name)
    except ValueError:
        return METRIC_ALIASES.get(name)


def default_unit(metric_type: "str | MetricType") -> str:
    """Canonical unit for a metric type; unknown types map to an empty string."""
    resolved = coerce_metric_type(metric_type)
    if resolved is None:
        return ""
    return DEFAULT_UNITS.get(resolved, "")
