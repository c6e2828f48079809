"""
Reference tables used for classification and normalization.

Key concepts:
- VO2max standards: five fitness tiers per age decade per gender
- Threshold bands: (threshold, score) steps for higher- or lower-is-better metrics
- Ideal corridors: score is highest inside a target range and decays outward

Values are general-population guidance, not clinical reference ranges.
"""

from enum import Enum
from typing import NamedTuple

from healthscore.domain.models import ActivityLevel, Gender, UserProfile

DEFAULT_AGE = 30


class Vo2Tier(str, Enum):
    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"
    EXCELLENT = "excellent"
    SUPERIOR = "superior"


class Vo2Thresholds(NamedTuple):
    """Lower bounds (ml/kg/min) of each tier above POOR."""

    fair: float
    good: float
    excellent: float
    superior: float


# Keyed by the lower bound of each age decade.
VO2MAX_STANDARDS: dict[Gender, dict[int, Vo2Thresholds]] = {
    Gender.MALE: {
        20: Vo2Thresholds(40.0, 46.0, 53.0, 58.0),
        30: Vo2Thresholds(38.0, 44.0, 51.0, 56.0),
        40: Vo2Thresholds(35.0, 41.0, 48.0, 53.0),
        50: Vo2Thresholds(32.0, 38.0, 44.0, 49.0),
        60: Vo2Thresholds(29.0, 34.0, 40.0, 45.0),
        70: Vo2Thresholds(26.0, 31.0, 36.0, 41.0),
    },
    Gender.FEMALE: {
        20: Vo2Thresholds(34.0, 40.0, 46.0, 51.0),
        30: Vo2Thresholds(32.0, 38.0, 44.0, 49.0),
        40: Vo2Thresholds(29.0, 35.0, 41.0, 46.0),
        50: Vo2Thresholds(27.0, 32.0, 37.0, 42.0),
        60: Vo2Thresholds(24.0, 29.0, 34.0, 38.0),
        70: Vo2Thresholds(22.0, 26.0, 31.0, 35.0),
    },
}

# Normalized score at the floor of each tier; scores interpolate up to the next floor.
VO2_TIER_SCORE_FLOORS: dict[Vo2Tier, float] = {
    Vo2Tier.POOR: 0.0,
    Vo2Tier.FAIR: 40.0,
    Vo2Tier.GOOD: 60.0,
    Vo2Tier.EXCELLENT: 75.0,
    Vo2Tier.SUPERIOR: 90.0,
}


def age_bucket(age: int | None) -> int:
    """Snap an age to the nearest decade defined in the VO2max table."""
    decades = sorted(VO2MAX_STANDARDS[Gender.MALE])
    decade = ((age if age is not None else DEFAULT_AGE) // 10) * 10
    return min(max(decade, decades[0]), decades[-1])


def vo2max_thresholds(profile: UserProfile | None) -> Vo2Thresholds:
    """Thresholds for the profile's bucket; unknown gender averages both tables."""
    bucket = age_bucket(profile.age if profile else None)
    gender = profile.gender if profile else None

    if gender in (Gender.MALE, Gender.FEMALE):
        return VO2MAX_STANDARDS[gender][bucket]

    male = VO2MAX_STANDARDS[Gender.MALE][bucket]
    female = VO2MAX_STANDARDS[Gender.FEMALE][bucket]
    return Vo2Thresholds(*((m + f) / 2 for m, f in zip(male, female, strict=True)))


def classify_vo2max(value: float, profile: UserProfile | None) -> Vo2Tier:
    t = vo2max_thresholds(profile)
    if value >= t.superior:
        return Vo2Tier.SUPERIOR
    if value >= t.excellent:
        return Vo2Tier.EXCELLENT
    if value >= t.good:
        return Vo2Tier.GOOD
    if value >= t.fair:
        return Vo2Tier.FAIR
    return Vo2Tier.POOR


# --- Threshold bands -----------------------------------------------------------


class Bands(NamedTuple):
    """
    Step scoring table.

    For ascending bands a value scores the first step whose threshold it meets
    (thresholds listed high to low). For descending bands a value scores the
    first step whose threshold it does not exceed (thresholds listed low to
    high). Values matching no step get `floor`.
    """

    steps: tuple[tuple[float, float], ...]
    floor: float
    ascending: bool = True

    def score(self, value: float) -> float:
        for threshold, score in self.steps:
            if (value >= threshold) if self.ascending else (value <= threshold):
                return score
        return self.floor


HRV_BANDS = Bands(((70, 100), (50, 85), (35, 70), (20, 50)), floor=30)
SPO2_BANDS = Bands(((98, 100), (95, 90), (92, 70), (88, 50)), floor=30)
STEPS_BANDS = Bands(((12_000, 100), (10_000, 90), (7_500, 75), (5_000, 55), (2_500, 35)), floor=15)
EXERCISE_MINUTES_BANDS = Bands(((60, 100), (30, 85), (20, 70), (10, 50), (5, 30)), floor=10)
RESTING_HR_BANDS = Bands(
    ((50, 100), (60, 90), (70, 80), (80, 60), (90, 40)), floor=20, ascending=False
)
SLEEP_DEBT_BANDS = Bands(
    ((1, 100), (3, 85), (5, 70), (8, 50), (12, 30)), floor=10, ascending=False
)

# Lean mass as a share of body weight (%), by gender.
LEAN_MASS_BANDS: dict[Gender, Bands] = {
    Gender.MALE: Bands(((80, 100), (75, 85), (70, 70), (65, 50)), floor=30),
    Gender.FEMALE: Bands(((72, 100), (67, 85), (62, 70), (57, 50)), floor=30),
}


# --- Ideal corridors -----------------------------------------------------------


class Corridor(NamedTuple):
    """
    Score is `peak` inside [low, high]. Outside, the distance to the nearest
    edge is scored by the `below` or `above` descending bands.
    """

    low: float
    high: float
    below: Bands
    above: Bands
    peak: float = 100.0

    def score(self, value: float) -> float:
        if value < self.low:
            return self.below.score(self.low - value)
        if value > self.high:
            return self.above.score(value - self.high)
        return self.peak


def _decay(*steps: tuple[float, float], floor: float) -> Bands:
    return Bands(steps, floor=floor, ascending=False)


BMI_CORRIDOR = Corridor(
    18.5,
    24.9,
    below=_decay((1.5, 75), floor=45),
    above=_decay((2.1, 80), (5.1, 65), (10.1, 40), floor=20),
)
PROTEIN_G_PER_KG_CORRIDOR = Corridor(
    1.2,
    2.2,
    below=_decay((0.2, 80), (0.4, 60), floor=35),
    above=_decay((0.8, 85), floor=60),
)
HYDRATION_ML_PER_KG_CORRIDOR = Corridor(
    30.0,
    45.0,
    below=_decay((5, 80), (10, 60), floor=35),
    above=_decay((15, 85), floor=60),
)
CALORIE_RATIO_CORRIDOR = Corridor(
    0.9,
    1.1,
    below=_decay((0.1, 75), (0.2, 50), floor=25),
    above=_decay((0.1, 75), (0.2, 50), floor=25),
)
SLEEP_DURATION_CORRIDOR = Corridor(
    7.0,
    9.0,
    below=_decay((1, 80), (2, 60), floor=30),
    above=_decay((1, 85), floor=60),
)

# Body fat (%): ideal band per gender, lower-is-better above it.
BODY_FAT_IDEAL: dict[Gender, tuple[float, float]] = {
    Gender.MALE: (10.0, 20.0),
    Gender.FEMALE: (18.0, 28.0),
}
BODY_FAT_EXCESS_BANDS = _decay((3, 85), (6, 70), (10, 50), (15, 30), floor=10)
BODY_FAT_DEFICIT_BANDS = _decay((3, 85), (6, 65), floor=40)


def body_fat_corridor(gender: Gender | None) -> Corridor:
    if gender in BODY_FAT_IDEAL:
        low, high = BODY_FAT_IDEAL[gender]
    else:
        low = sum(band[0] for band in BODY_FAT_IDEAL.values()) / len(BODY_FAT_IDEAL)
        high = sum(band[1] for band in BODY_FAT_IDEAL.values()) / len(BODY_FAT_IDEAL)
    return Corridor(low, high, below=BODY_FAT_DEFICIT_BANDS, above=BODY_FAT_EXCESS_BANDS)


# --- Energy goal -----------------------------------------------------------------

ACTIVITY_MULTIPLIERS: dict[ActivityLevel, float] = {
    ActivityLevel.SEDENTARY: 1.2,
    ActivityLevel.LIGHT: 1.375,
    ActivityLevel.MODERATE: 1.55,
    ActivityLevel.ACTIVE: 1.725,
    ActivityLevel.VERY_ACTIVE: 1.9,
}
DEFAULT_ENERGY_GOAL_KCAL = 2200.0


def estimate_energy_goal(profile: UserProfile | None) -> float:
    """
    Daily energy need from Mifflin-St Jeor BMR times the activity multiplier.

    Falls back to the unpersonalized goal when weight, height or age is unknown.
    """
    if profile is None or None in (profile.weight_kg, profile.height_cm, profile.age):
        return DEFAULT_ENERGY_GOAL_KCAL

    weight, height, age = profile.weight_kg, profile.height_cm, profile.age
    base = 10 * weight + 6.25 * height - 5 * age  # type: ignore[operator]
    if profile.gender == Gender.MALE:
        bmr = base + 5
    elif profile.gender == Gender.FEMALE:
        bmr = base - 161
    else:
        bmr = base - 78
    return bmr * ACTIVITY_MULTIPLIERS[profile.activity_level]


# --- Classifications -------------------------------------------------------------


def classify_resting_heart_rate(bpm: float) -> str:
    if bpm < 50:
        return "ATHLETE"
    if bpm < 60:
        return "EXCELLENT"
    if bpm < 70:
        return "GOOD"
    if bpm < 80:
        return "AVERAGE"
    if bpm < 90:
        return "FAIR"
    return "POOR"


def classify_oxygen_saturation(spo2: float) -> str:
    if spo2 >= 95:
        return "NORMAL"
    if spo2 >= 90:
        return "MILD HYPOXEMIA"
    if spo2 >= 85:
        return "MODERATE HYPOXEMIA"
    return "SEVERE HYPOXEMIA"


def classify_respiratory_rate(rate: float) -> str:
    if rate < 12:
        return "BELOW NORMAL"
    if rate <= 20:
        return "NORMAL"
    if rate <= 30:
        return "ELEVATED"
    return "HIGH"


def classify_body_temperature(celsius: float) -> str:
    if celsius < 36:
        return "HYPOTHERMIA"
    if celsius <= 37.3:
        return "NORMAL"
    if celsius <= 38:
        return "MILD FEVER"
    if celsius <= 39:
        return "MODERATE FEVER"
    return "HIGH FEVER"


def classify_bmi(bmi: float) -> str:
    if bmi < 18.5:
        return "UNDERWEIGHT"
    if bmi < 25:
        return "NORMAL"
    if bmi < 30:
        return "OVERWEIGHT"
    if bmi < 35:
        return "OBESE"
    return "SEVERELY OBESE"


def stress_from_hrv(hrv_ms: float) -> tuple[str, int]:
    """Higher HRV generally indicates lower stress."""
    if hrv_ms > 70:
        return "LOW", 25
    if hrv_ms > 50:
        return "MODERATE", 50
    if hrv_ms > 30:
        return "HIGH", 75
    return "VERY HIGH", 100


def body_mass_index(weight_kg: float, height_cm: float) -> float:
    height_m = height_cm / 100
    return weight_kg / (height_m * height_m)
