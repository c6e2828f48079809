"""
Sample validation.

Raw provider records are loosely typed mappings. Each one is checked for
structure (numeric finite value, parseable date), physiological plausibility
and, for sleep sessions, internal consistency between duration, stages, time
in bed and end date. Hard failures reject the sample; soft findings keep it
and are reported as warnings so callers can flag the data as degraded.
"""

import math
from collections.abc import Mapping
from datetime import datetime
from typing import Any

import structlog

from healthscore.domain.metrics import (
    PLAUSIBLE_RANGES,
    SLEEP_EFFICIENCY_RANGE,
    SLEEP_STAGE_PERCENT_RANGES,
    coerce_metric_type,
    default_unit,
)
from healthscore.domain.models import (
    MetricSeries,
    MetricType,
    NumericSample,
    Sample,
    SleepSample,
    SleepStages,
    ValidationIssue,
)
from healthscore.errors import IssueSeverity, SampleValidationError
from healthscore.result import Result

logger = structlog.get_logger(__name__)

STAGE_SUM_TOLERANCE_HOURS = 0.1
TIME_IN_BED_TOLERANCE_HOURS = 0.1
END_DATE_TOLERANCE_HOURS = 0.5
MAX_TIME_IN_BED_RATIO = 1.5

# Provider payloads use camelCase; accept both spellings.
_FIELD_ALIASES = {
    "end_date": ("end_date", "endDate"),
    "time_in_bed": ("time_in_bed", "timeInBed"),
    "sleep_efficiency": ("sleep_efficiency", "sleepEfficiency"),
}


def _field(raw: Mapping[str, Any], name: str) -> Any:
    for key in _FIELD_ALIASES.get(name, (name,)):
        if raw.get(key) is not None:
            return raw[key]
    return None


def _as_number(value: Any) -> float | None:
    """Finite int/float, else None. Booleans and numeric strings are not numbers."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def _as_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


def _as_text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _reject(reason: str, metric_type: MetricType | str) -> Result[Sample, SampleValidationError]:
    metric = metric_type.value if isinstance(metric_type, MetricType) else str(metric_type)
    return Result.err(SampleValidationError(reason, metric_type=metric))


def _parse_stages(raw: Any) -> SleepStages | str | None:
    """SleepStages, None when absent, or a rejection reason."""
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        return "sleep stages must be a mapping"

    parsed: dict[str, float] = {}
    for stage in ("deep", "core", "rem", "awake"):
        value = raw.get(stage)
        if value is None:
            if stage == "awake":
                continue
            return f"sleep stage '{stage}' is missing"
        number = _as_number(value)
        if number is None or number < 0:
            return f"sleep stage '{stage}' must be a non-negative number"
        parsed[stage] = number
    return SleepStages(**parsed)


def _check_sleep_consistency(sample: SleepSample) -> str | None:
    stages = sample.stages
    if stages is not None and abs(stages.asleep - sample.value) > STAGE_SUM_TOLERANCE_HOURS:
        return (
            f"sleep stages sum to {stages.asleep:.2f}h but total sleep is {sample.value:.2f}h"
        )

    if sample.time_in_bed is not None:
        if sample.time_in_bed < sample.value:
            return (
                f"time in bed {sample.time_in_bed:.2f}h is less than "
                f"total sleep {sample.value:.2f}h"
            )
        bed_gap = abs(sample.time_in_bed - stages.total) if stages is not None else 0.0
        if bed_gap > TIME_IN_BED_TOLERANCE_HOURS:
            return (
                f"time in bed {sample.time_in_bed:.2f}h does not match "
                f"stages plus awake time {stages.total:.2f}h"
            )

    if sample.end_date is not None:
        duration = (sample.end_date - sample.date).total_seconds() / 3600
        if abs(duration - sample.value) > END_DATE_TOLERANCE_HOURS:
            return (
                f"session spans {duration:.2f}h but total sleep is {sample.value:.2f}h"
            )
    return None


def validate_sample(
    raw: Mapping[str, Any] | NumericSample, metric_type: MetricType | str
) -> Result[Sample, SampleValidationError]:
    """
    Validate one raw sample for `metric_type`.

    Returns the typed sample, or the reason it was rejected. The canonical unit
    is filled in when the source omits one.
    """
    if isinstance(raw, NumericSample):
        raw = raw.model_dump()

    resolved = coerce_metric_type(metric_type)
    if resolved is None:
        return _reject(f"unknown metric type '{metric_type}'", metric_type)
    if not isinstance(raw, Mapping):
        return _reject("sample must be a mapping", resolved)

    value = _as_number(raw.get("value"))
    if value is None:
        return _reject("value is missing, non-numeric or not finite", resolved)

    date = _as_datetime(raw.get("date"))
    if date is None:
        return _reject("date is missing or unparseable", resolved)

    bounds = PLAUSIBLE_RANGES.get(resolved)
    if bounds is not None:
        if bounds.hard_min is not None and value < bounds.hard_min:
            return _reject(f"value {value} is below the minimum {bounds.hard_min}", resolved)
        if bounds.hard_max is not None and value > bounds.hard_max:
            return _reject(f"value {value} is above the maximum {bounds.hard_max}", resolved)

    common = {
        "metric_type": resolved,
        "date": date,
        "value": value,
        "unit": _as_text(raw.get("unit")) or default_unit(resolved),
        "source": _as_text(raw.get("source")),
        "category": _as_text(raw.get("category")),
        "type": _as_text(raw.get("type")),
    }

    if resolved != MetricType.SLEEP:
        return Result.ok(NumericSample(**common))

    stages = _parse_stages(raw.get("stages"))
    if isinstance(stages, str):
        return _reject(stages, resolved)

    end_date = None
    raw_end = _field(raw, "end_date")
    if raw_end is not None:
        end_date = _as_datetime(raw_end)
        if end_date is None:
            return _reject("end date is unparseable", resolved)

    optional: dict[str, float | None] = {}
    for name in ("time_in_bed", "sleep_efficiency"):
        raw_number = _field(raw, name)
        number = _as_number(raw_number)
        if raw_number is not None and (number is None or number < 0):
            return _reject(f"{name} must be a non-negative number", resolved)
        optional[name] = number

    sample = SleepSample(**common, end_date=end_date, stages=stages, **optional)
    problem = _check_sleep_consistency(sample)
    if problem is not None:
        return _reject(problem, resolved)
    return Result.ok(sample)


def sample_warnings(sample: Sample) -> list[SampleValidationError]:
    """Soft findings for an accepted sample: unusual but possible values."""
    metric = sample.metric_type.value
    warnings: list[str] = []

    bounds = PLAUSIBLE_RANGES.get(sample.metric_type)
    if bounds is not None:
        if bounds.soft_min is not None and sample.value < bounds.soft_min:
            warnings.append(f"value {sample.value} is unusually low (< {bounds.soft_min})")
        if bounds.soft_max is not None and sample.value > bounds.soft_max:
            warnings.append(f"value {sample.value} is unusually high (> {bounds.soft_max})")

    if isinstance(sample, SleepSample):
        if sample.sleep_efficiency is not None:
            low, high = SLEEP_EFFICIENCY_RANGE
            if not low <= sample.sleep_efficiency <= high:
                warnings.append(
                    f"sleep efficiency {sample.sleep_efficiency}% is outside {low:g}-{high:g}%"
                )

        if sample.stages is not None and sample.value > 0:
            for stage, (low, high) in SLEEP_STAGE_PERCENT_RANGES.items():
                percent = getattr(sample.stages, stage) / sample.value * 100
                if not low <= percent <= high:
                    warnings.append(
                        f"{stage} sleep is {percent:.0f}% of total, expected {low:g}-{high:g}%"
                    )

        max_in_bed = sample.value * MAX_TIME_IN_BED_RATIO
        if sample.time_in_bed is not None and sample.time_in_bed > max_in_bed:
            warnings.append(
                f"time in bed {sample.time_in_bed:.2f}h is more than "
                f"{MAX_TIME_IN_BED_RATIO}x total sleep"
            )

    return [
        SampleValidationError(reason, metric_type=metric, severity=IssueSeverity.WARNING)
        for reason in warnings
    ]


def _issue(metric_type: MetricType, error: SampleValidationError) -> ValidationIssue:
    return ValidationIssue(
        metric_type=metric_type,
        index=error.index,
        severity=error.severity,
        reason=error.reason,
    )


def validate_series(raw_items: Any, metric_type: MetricType | str) -> MetricSeries:
    """
    Validate a batch of raw samples into a newest-first series.

    Rejected samples are dropped and recorded as errors; accepted samples with
    soft findings are kept and recorded as warnings.
    """
    resolved = coerce_metric_type(metric_type)
    if resolved is None:
        raise ValueError(f"Unknown metric type: {metric_type!r}")

    log = logger.bind(component="validator", metric_type=resolved.value)

    if not isinstance(raw_items, list | tuple):
        log.warning("sample_batch_not_a_list", received=type(raw_items).__name__)
        return MetricSeries(
            metric_type=resolved,
            errors=(
                ValidationIssue(
                    metric_type=resolved,
                    severity=IssueSeverity.ERROR,
                    reason=f"expected a list of samples, got {type(raw_items).__name__}",
                ),
            ),
        )

    samples: list[Sample] = []
    warnings: list[ValidationIssue] = []
    errors: list[ValidationIssue] = []

    for index, raw in enumerate(raw_items):
        result = validate_sample(raw, resolved)
        if result.is_err():
            error = result.unwrap_err().at(index)
            log.debug("sample_rejected", index=index, reason=error.reason)
            errors.append(_issue(resolved, error))
            continue

        sample = result.unwrap()
        samples.append(sample)
        warnings.extend(_issue(resolved, w.at(index)) for w in sample_warnings(sample))

    samples.sort(key=lambda s: s.date, reverse=True)

    if errors or warnings:
        log.info(
            "series_validated",
            accepted=len(samples),
            rejected=len(errors),
            warnings=len(warnings),
        )

    return MetricSeries(
        metric_type=resolved,
        samples=tuple(samples),
        warnings=tuple(warnings),
        errors=tuple(errors),
    )
