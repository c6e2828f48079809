"""
Domain models for health-metric aggregation and fitness scoring.

These models represent the core business concepts and are framework-agnostic.
They use Pydantic for validation; value objects are frozen so a series or a
statistics record cannot change after the pipeline produced it.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from healthscore.errors import IssueSeverity


class MetricType(str, Enum):
    """Metric types a health-data provider can be asked for."""

    # Cardiovascular & respiratory
    HEART_RATE = "heart_rate"
    RESTING_HEART_RATE = "resting_heart_rate"
    HEART_RATE_VARIABILITY = "heart_rate_variability"
    RESPIRATORY_RATE = "respiratory_rate"
    OXYGEN_SATURATION = "oxygen_saturation"
    BODY_TEMPERATURE = "body_temperature"
    VO2MAX = "vo2max"

    # Activity
    STEPS = "steps"
    DISTANCE = "distance"
    ACTIVE_ENERGY = "active_energy"
    BASAL_ENERGY = "basal_energy"
    EXERCISE_TIME = "exercise_time"
    STAND_TIME = "stand_time"
    WALKING_SPEED = "walking_speed"
    RUNNING_SPEED = "running_speed"
    RUNNING_POWER = "running_power"
    TIME_IN_DAYLIGHT = "time_in_daylight"

    # Sleep
    SLEEP = "sleep"

    # Body composition
    WEIGHT = "weight"
    BODY_FAT = "body_fat"
    LEAN_BODY_MASS = "lean_body_mass"
    BMI = "bmi"

    # Nutrition
    DIETARY_ENERGY = "dietary_energy"
    DIETARY_PROTEIN = "dietary_protein"
    DIETARY_CARBS = "dietary_carbs"
    DIETARY_FAT = "dietary_fat"
    DIETARY_WATER = "dietary_water"
    DIETARY_FIBER = "dietary_fiber"
    DIETARY_SUGAR = "dietary_sugar"
    DIETARY_SODIUM = "dietary_sodium"


class Period(str, Enum):
    """Look-back window a provider fetch covers."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class Domain(str, Enum):
    """Scoring domains aggregating several metrics."""

    CARDIOVASCULAR = "cardiovascular"
    ACTIVITY = "activity"
    BODY_COMPOSITION = "body_composition"
    RECOVERY = "recovery"
    NUTRITION = "nutrition"


class FitnessCategory(str, Enum):
    """Seven-tier category ladder for domain and overall scores."""

    ELITE = "elite"
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    BELOW_AVERAGE = "below_average"
    POOR = "poor"
    VERY_POOR = "very_poor"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TrendDirection(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"
    INSUFFICIENT_DATA = "insufficient_data"


class AssessmentStatus(str, Enum):
    ASSESSED = "assessed"
    NO_DATA = "no_data"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class ActivityLevel(str, Enum):
    """Self-reported activity level, used for energy-goal personalization."""

    SEDENTARY = "sedentary"
    LIGHT = "light"
    MODERATE = "moderate"
    ACTIVE = "active"
    VERY_ACTIVE = "very_active"


class UserProfile(BaseModel):
    """Caller-supplied personalization context. Read-only for the pipeline."""

    model_config = ConfigDict(frozen=True)

    age: int | None = Field(None, ge=0, le=130)
    gender: Gender | None = None
    weight_kg: float | None = Field(None, gt=0.0, le=500.0)
    height_cm: float | None = Field(None, gt=0.0, le=300.0)
    activity_level: ActivityLevel = ActivityLevel.MODERATE


# --- Samples -----------------------------------------------------------------


class SleepStages(BaseModel):
    """Time spent in each sleep stage, in hours."""

    model_config = ConfigDict(frozen=True)

    deep: float = Field(ge=0.0, allow_inf_nan=False)
    core: float = Field(ge=0.0, allow_inf_nan=False)
    rem: float = Field(ge=0.0, allow_inf_nan=False)
    awake: float = Field(default=0.0, ge=0.0, allow_inf_nan=False)

    @property
    def asleep(self) -> float:
        return self.deep + self.core + self.rem

    @property
    def total(self) -> float:
        return self.asleep + self.awake


class NumericSample(BaseModel):
    """One timestamped measurement."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["numeric"] = "numeric"
    metric_type: MetricType
    date: datetime
    value: float = Field(allow_inf_nan=False)
    unit: str = ""
    source: str | None = None
    category: str | None = None
    type: str | None = None

    @field_validator("date", "end_date", check_fields=False)
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Naive timestamps are taken as UTC so windows compare consistently."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class SleepSample(NumericSample):
    """A sleep session; `value` is total sleep in hours."""

    kind: Literal["sleep"] = "sleep"  # type: ignore[assignment]
    end_date: datetime | None = None
    time_in_bed: float | None = Field(None, ge=0.0, allow_inf_nan=False)
    sleep_efficiency: float | None = Field(None, ge=0.0, allow_inf_nan=False)
    stages: SleepStages | None = None


Sample = Annotated[NumericSample | SleepSample, Field(discriminator="kind")]


class ValidationIssue(BaseModel):
    """A single validator finding, kept for data-quality reporting."""

    model_config = ConfigDict(frozen=True)

    metric_type: MetricType
    index: int | None = None
    severity: IssueSeverity
    reason: str


class MetricSeries(BaseModel):
    """
    Validated samples for one metric type, newest first.

    Created per fetch, immutable once produced. Carries the validation findings
    and fetch failure that shaped it so callers can report degraded data.
    """

    model_config = ConfigDict(frozen=True)

    metric_type: MetricType
    samples: tuple[Sample, ...] = ()
    warnings: tuple[ValidationIssue, ...] = ()
    errors: tuple[ValidationIssue, ...] = ()
    fetch_error: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.samples

    @property
    def is_degraded(self) -> bool:
        return bool(self.warnings or self.errors or self.fetch_error)

    def values(self) -> list[float]:
        return [s.value for s in self.samples]

    def chronological_values(self) -> list[float]:
        return [s.value for s in reversed(self.samples)]


# --- Statistics --------------------------------------------------------------


class RecentStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int = Field(ge=0)
    avg: float | None = None


class HeartRateZone(BaseModel):
    """Time-in-zone for one heart-rate band; time is a sample count."""

    model_config = ConfigDict(frozen=True)

    name: str
    min_bpm: int
    max_bpm: int
    time_in_zone: int = Field(ge=0)
    percent: int = Field(ge=0, le=100)


class StressLevel(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: str
    score: int


class Readiness(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str
    score: int = Field(ge=0, le=100)


class SleepStageBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    deep: float
    core: float
    rem: float
    awake: float
    deep_percent: float
    rem_percent: float


class IntensityBand(BaseModel):
    model_config = ConfigDict(frozen=True)

    days: int = Field(ge=0)
    avg_calories: float


class MetricStats(BaseModel):
    """
    Aggregate and metric-specific statistics for one series.

    Specialized fields are None when the metric does not produce them or the
    series is too short for the computation. None means unknown, not zero.
    """

    model_config = ConfigDict(frozen=True)

    metric_type: MetricType
    latest: Sample
    count: int = Field(ge=0)
    min: float
    max: float
    avg: float
    recent: RecentStats

    # Cardiovascular
    resting_hr: int | None = None
    heart_rate_zones: tuple[HeartRateZone, ...] | None = None
    recovery_rate: int | None = None
    cardio_load: int | None = None
    resting_rate: float | None = None
    stress_level: StressLevel | None = None
    readiness: Readiness | None = None
    aerobic_efficiency: int | None = None

    # Shared descriptive fields
    classification: str | None = None
    trend: float | None = None

    # Rolling windows
    total: float | None = None
    weekly_total: float | None = None
    weekly_average: float | None = None
    daily_total: float | None = None
    daily_average: float | None = None
    consistency: float | None = None
    active_days: int | None = None
    goal_met: bool | None = None
    intensity_distribution: dict[str, IntensityBand] | None = None

    # Sleep
    sleep_quality_score: int | None = None
    sleep_debt: float | None = None
    sleep_efficiency: float | None = None
    optimal_nights: int | None = None
    sleep_stages: SleepStageBreakdown | None = None

    # Nutrition
    daily_goal: float | None = None
    percent_of_goal: float | None = None
    intake_label: str | None = None

    # Body composition
    change: float | None = None
    monthly_change: float | None = None
    monthly_change_percent: float | None = None
    bmi: float | None = None


class MetricAnalysis(BaseModel):
    """Series plus statistics for callers that need no full assessment."""

    model_config = ConfigDict(frozen=True)

    metric_type: MetricType
    series: MetricSeries
    stats: MetricStats | None = None


# --- Scores ------------------------------------------------------------------


class DomainScore(BaseModel):
    """
    Normalized score for one domain.

    `sub_scores` hold each input's contribution (normalized value times its
    renormalized weight), so `score` is their sum. `metric_scores` keep the
    0-100 normalized values before weighting.
    """

    model_config = ConfigDict(frozen=True)

    domain: Domain
    score: float = Field(ge=0.0, le=100.0)
    category: FitnessCategory
    sub_scores: dict[str, float]
    metric_scores: dict[str, float]
    missing_inputs: list[str] = Field(default_factory=list)


class OverallScore(BaseModel):
    """Weighted combination of domain scores, or an explicit no-data state."""

    model_config = ConfigDict(frozen=True)

    status: AssessmentStatus
    score: float | None = Field(None, ge=0.0, le=100.0)
    category: FitnessCategory | None = None
    contributions: dict[Domain, float] = Field(default_factory=dict)
    missing_domains: list[Domain] = Field(default_factory=list)


class Recommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: Domain
    priority: Priority
    title: str
    description: str
    expected_impact: str
    timeframe: str
    actions: list[str] = Field(min_length=3, max_length=4)


class PercentileComparison(BaseModel):
    """Estimated standing against peers; not population-calibrated."""

    model_config = ConfigDict(frozen=True)

    age_group: int = Field(ge=1, le=99)
    gender: int = Field(ge=1, le=99)
    overall: int = Field(ge=1, le=99)
    age_group_label: str
    gender_label: str
    is_estimate: bool = True


class DataQuality(BaseModel):
    model_config = ConfigDict(frozen=True)

    warnings: int = Field(default=0, ge=0)
    errors: int = Field(default=0, ge=0)
    failed_metrics: list[MetricType] = Field(default_factory=list)
    degraded_metrics: list[MetricType] = Field(default_factory=list)

    @property
    def is_degraded(self) -> bool:
        return bool(self.failed_metrics or self.degraded_metrics)


class Assessment(BaseModel):
    """
    Composite fitness assessment.

    Created fresh per invocation. `status == no_data` means nothing usable was
    available in any domain; `overall_score` and `category` are then None.
    """

    status: AssessmentStatus
    overall_score: float | None = Field(None, ge=0.0, le=100.0)
    category: FitnessCategory | None = None
    components: dict[Domain, DomainScore] = Field(default_factory=dict)
    missing_domains: list[Domain] = Field(default_factory=list)
    strengths: list[Domain] = Field(default_factory=list)
    weaknesses: list[Domain] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)
    trends: dict[str, TrendDirection] = Field(default_factory=dict)
    comparison: PercentileComparison | None = None
    stats: dict[MetricType, MetricStats] = Field(default_factory=dict)
    data_quality: DataQuality = Field(default_factory=DataQuality)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
