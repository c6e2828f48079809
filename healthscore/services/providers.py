"""
Health-data provider and cache interfaces, with in-memory implementations.

The pipeline only needs two collaborators: something that returns raw sample
records for a (metric type, period) pair, and an optional key-value cache.
Both are Protocols so any vendor bridge or store can be injected without
inheriting from anything here.
"""

import asyncio
import random
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

import structlog

from healthscore.domain.metrics import coerce_metric_type, default_unit
from healthscore.domain.models import MetricType, Period

logger = structlog.get_logger(__name__)

RawRecord = Mapping[str, Any]

PERIOD_DAYS: dict[Period, int] = {
    Period.DAY: 1,
    Period.WEEK: 7,
    Period.MONTH: 30,
    Period.YEAR: 365,
}


class HealthDataProvider(Protocol):
    """
    Source of raw samples for one metric type over a look-back period.

    Implementations may raise on transient failures; the fetcher retries.
    """

    async def fetch(self, metric_type: MetricType, period: Period) -> list[RawRecord]:
        ...


class MetricCache(Protocol):
    """Key-value store for fetched records. Purely an optimization."""

    def get(self, key: str) -> Any | None:
        ...

    def set(self, key: str, value: Any) -> None:
        ...


class InMemoryCache:
    """Dict-backed cache, scoped to one process."""

    def __init__(self) -> None:
        self._store: dict[str, Any] = {}

    def get(self, key: str) -> Any | None:
        return self._store.get(key)

    def set(self, key: str, value: Any) -> None:
        self._store[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self._store

    def __len__(self) -> int:
        return len(self._store)


class InMemoryHealthDataProvider:
    """
    Serves static records, optionally failing the first N calls per metric type.

    Useful for tests and demos: `failures={MetricType.STEPS: 2}` makes the first
    two step fetches raise `ConnectionError` before data is returned.
    """

    def __init__(
        self,
        data: Mapping[MetricType | str, list[RawRecord]] | None = None,
        failures: Mapping[MetricType | str, int] | None = None,
        delay_seconds: float = 0.0,
    ) -> None:
        self._data: dict[MetricType, list[RawRecord]] = {}
        for name, records in (data or {}).items():
            metric_type = coerce_metric_type(name)
            if metric_type is None:
                raise ValueError(f"Unknown metric type: {name!r}")
            self._data[metric_type] = list(records)

        self._failures: dict[MetricType, int] = {}
        for name, count in (failures or {}).items():
            metric_type = coerce_metric_type(name)
            if metric_type is None:
                raise ValueError(f"Unknown metric type: {name!r}")
            self._failures[metric_type] = count

        self.delay_seconds = delay_seconds
        self.calls: list[tuple[MetricType, Period]] = []

    async def fetch(self, metric_type: MetricType, period: Period) -> list[RawRecord]:
        self.calls.append((metric_type, period))
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        remaining = self._failures.get(metric_type, 0)
        if remaining > 0:
            self._failures[metric_type] = remaining - 1
            raise ConnectionError(f"Provider unavailable for {metric_type.value}")

        return list(self._data.get(metric_type, []))

    def calls_for(self, metric_type: MetricType) -> int:
        return sum(1 for called, _ in self.calls if called == metric_type)


# (typical low, typical high, samples per day) for simulated metrics
_SIMULATION_PROFILES: dict[MetricType, tuple[float, float, int]] = {
    MetricType.HEART_RATE: (55, 165, 24),
    MetricType.RESTING_HEART_RATE: (52, 64, 1),
    MetricType.HEART_RATE_VARIABILITY: (35, 85, 1),
    MetricType.OXYGEN_SATURATION: (95, 99, 4),
    MetricType.RESPIRATORY_RATE: (12, 18, 4),
    MetricType.VO2MAX: (40, 48, 1),
    MetricType.STEPS: (5_000, 13_000, 1),
    MetricType.EXERCISE_TIME: (10, 60, 1),
    MetricType.STAND_TIME: (8, 14, 1),
    MetricType.ACTIVE_ENERGY: (300, 800, 1),
    MetricType.WEIGHT: (74, 76, 1),
    MetricType.BODY_FAT: (16, 19, 1),
    MetricType.LEAN_BODY_MASS: (58, 61, 1),
    MetricType.DIETARY_ENERGY: (1_900, 2_600, 1),
    MetricType.DIETARY_PROTEIN: (90, 160, 1),
    MetricType.DIETARY_WATER: (1.8, 3.2, 1),
}


class SimulatedHealthDataProvider:
    """
    Simulated provider generating plausible records for demos.

    In production this is where a vendor bridge (HealthKit, Health Connect, a
    CSV export) would sit. Seeded so that runs are reproducible.
    """

    def __init__(
        self,
        seed: int = 42,
        failure_rate: float = 0.0,
        now: datetime | None = None,
    ) -> None:
        self._random = random.Random(seed)
        self.failure_rate = failure_rate
        self.now = now or datetime.now(UTC)
        self.logger = logger.bind(component="simulated_provider")

    async def fetch(self, metric_type: MetricType, period: Period) -> list[RawRecord]:
        await asyncio.sleep(0)

        if self._random.random() < self.failure_rate:
            self.logger.warning("simulated_fetch_failure", metric_type=metric_type.value)
            raise ConnectionError(f"Simulated outage fetching {metric_type.value}")

        days = PERIOD_DAYS[period]
        if metric_type == MetricType.SLEEP:
            return [self._sleep_record(day) for day in range(days)]

        profile = _SIMULATION_PROFILES.get(metric_type)
        if profile is None:
            return []

        low, high, per_day = profile
        records: list[RawRecord] = []
        for day in range(days):
            for slot in range(per_day):
                moment = self.now - timedelta(days=day, hours=slot * 24 / per_day)
                records.append(
                    {
                        "date": moment.isoformat(),
                        "value": round(self._random.uniform(low, high), 1),
                        "unit": default_unit(metric_type),
                        "source": "simulator",
                    }
                )
        return records

    def _sleep_record(self, day: int) -> RawRecord:
        deep = round(self._random.uniform(1.0, 1.8), 2)
        rem = round(self._random.uniform(1.3, 2.0), 2)
        core = round(self._random.uniform(3.5, 4.5), 2)
        awake = round(self._random.uniform(0.2, 0.6), 2)
        asleep = round(deep + rem + core, 2)
        start = (self.now - timedelta(days=day)).replace(hour=22, minute=30)
        start -= timedelta(days=1)
        return {
            "date": start.isoformat(),
            "endDate": (start + timedelta(hours=asleep)).isoformat(),
            "value": asleep,
            "unit": "hours",
            "timeInBed": round(asleep + awake, 2),
            "sleepEfficiency": round(asleep / (asleep + awake) * 100, 1),
            "stages": {"deep": deep, "core": core, "rem": rem, "awake": awake},
            "source": "simulator",
        }
