"""
Error taxonomy for the scoring pipeline.

Only configuration problems are raised at callers. Sample rejections and fetch
failures are carried inside `Result` values and recorded on the series they
affect; insufficient data is expressed as a missing (None) statistic.
"""

from enum import Enum


class IssueSeverity(str, Enum):
    """How a validation finding affects the sample it was raised for."""

    WARNING = "warning"  # sample kept, data marked degraded
    ERROR = "error"  # sample dropped


class HealthScoreError(Exception):
    """Base class for all pipeline errors."""


class SampleValidationError(HealthScoreError, ValueError):
    """A raw sample failed a structural, consistency or plausibility check."""

    def __init__(
        self,
        reason: str,
        *,
        metric_type: str = "",
        index: int | None = None,
        severity: IssueSeverity = IssueSeverity.ERROR,
    ) -> None:
        super().__init__(reason)
        self.reason = reason
        self.metric_type = metric_type
        self.index = index
        self.severity = severity

    def at(self, index: int) -> "SampleValidationError":
        """Return a copy tagged with the sample's position in its batch."""
        return SampleValidationError(
            self.reason, metric_type=self.metric_type, index=index, severity=self.severity
        )


class FetchError(HealthScoreError):
    """A provider fetch failed on every attempt."""

    def __init__(self, metric_type: str, attempts: int, cause: BaseException | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Fetching {metric_type} failed after {attempts} attempt(s){detail}")
        self.metric_type = metric_type
        self.attempts = attempts
        self.cause = cause


class ConfigurationError(HealthScoreError):
    """Configuration could not be loaded or is inconsistent."""
