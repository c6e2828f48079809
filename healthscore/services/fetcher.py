"""
Retry policy and concurrent metric fetcher.

Key patterns:
- One explicit retry policy object driving both a sync and an async loop
- Structured concurrency with asyncio.TaskGroup, bounded by a semaphore
- Per-attempt timeouts with asyncio.wait_for
- Expected failures returned as Result values, never raised to the caller
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field

from healthscore.config import FetchConfig
from healthscore.domain.models import MetricType, Period
from healthscore.errors import FetchError
from healthscore.result import Result
from healthscore.services.providers import HealthDataProvider, MetricCache, RawRecord

logger = structlog.get_logger(__name__)

T = TypeVar("T")

RetryHook = Callable[[int, BaseException, float], None]


class RetryPolicy(BaseModel):
    """
    Exponential backoff schedule.

    `delay_for(n)` is the pause after the n-th failed attempt:
    base * factor^(n-1), capped at `max_delay_seconds`. The schedule has one
    entry fewer than `max_attempts` because the last failure is not retried.
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    base_delay_seconds: float = Field(default=1.0, ge=0.0)
    backoff_factor: float = Field(default=2.0, ge=1.0)
    max_delay_seconds: float = Field(default=30.0, ge=0.0)

    @classmethod
    def from_config(cls, config: FetchConfig) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            base_delay_seconds=config.base_delay_seconds,
            backoff_factor=config.backoff_factor,
            max_delay_seconds=config.max_delay_seconds,
        )

    def delay_for(self, attempt: int) -> float:
        if attempt < 1:
            raise ValueError("attempt numbers start at 1")
        delay = self.base_delay_seconds * self.backoff_factor ** (attempt - 1)
        return min(delay, self.max_delay_seconds)

    def delays(self) -> list[float]:
        return [self.delay_for(attempt) for attempt in range(1, self.max_attempts)]


def run_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
    on_retry: RetryHook | None = None,
) -> T:
    """Call `operation` until it succeeds or the policy is exhausted; re-raise the last error."""
    for attempt, delay in enumerate(policy.delays(), start=1):
        try:
            return operation()
        except Exception as e:
            if on_retry is not None:
                on_retry(attempt, e, delay)
            sleep(delay)
    return operation()


async def run_with_retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    on_retry: RetryHook | None = None,
) -> T:
    """Async twin of `run_with_retry`, driven by the same policy schedule."""
    for attempt, delay in enumerate(policy.delays(), start=1):
        try:
            return await operation()
        except Exception as e:
            if on_retry is not None:
                on_retry(attempt, e, delay)
            await sleep(delay)
    return await operation()


def cache_key(metric_type: MetricType, period: Period) -> str:
    return f"{metric_type.value}:{period.value}"


class MetricFetcher:
    """
    Fetches raw records for many metric types concurrently.

    Design principles:
    - Graceful degradation (one failing metric never aborts the others)
    - Bounded fan-out (semaphore caps in-flight provider calls)
    - Cache as an optimization only (read/write errors are logged and ignored)
    """

    def __init__(
        self,
        provider: HealthDataProvider,
        config: FetchConfig | None = None,
        cache: MetricCache | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.provider = provider
        self.config = config or FetchConfig()
        self.cache = cache
        self.policy = RetryPolicy.from_config(self.config)
        self._sleep = sleep
        self._semaphore = asyncio.Semaphore(self.config.max_concurrent_fetches)
        self.logger = logger.bind(component="metric_fetcher")

    def _read_cache(self, key: str) -> list[RawRecord] | None:
        if self.cache is None:
            return None
        try:
            cached = self.cache.get(key)
        except Exception as e:
            self.logger.warning("cache_read_failed", key=key, error=str(e))
            return None
        return list(cached) if isinstance(cached, list | tuple) else None

    def _write_cache(self, key: str, records: list[RawRecord]) -> None:
        if self.cache is None:
            return
        try:
            self.cache.set(key, records)
        except Exception as e:
            self.logger.warning("cache_write_failed", key=key, error=str(e))

    async def _attempt(self, metric_type: MetricType, period: Period) -> Any:
        async with self._semaphore:
            return await asyncio.wait_for(
                self.provider.fetch(metric_type, period),
                timeout=self.config.timeout_seconds,
            )

    async def fetch_one(
        self,
        metric_type: MetricType,
        period: Period | None = None,
        force_refresh: bool = False,
    ) -> Result[Any, FetchError]:
        """
        Fetch raw records for one metric type, consulting the cache first.

        Returns the records as delivered by the provider (None becomes an empty
        list), or a `FetchError` once every attempt has failed.
        """
        period = period or self.config.default_period
        key = cache_key(metric_type, period)
        log = self.logger.bind(metric_type=metric_type.value, period=period.value)

        if not force_refresh:
            cached = self._read_cache(key)
            if cached is not None:
                log.debug("cache_hit", records=len(cached))
                return Result.ok(cached)

        def on_retry(attempt: int, error: BaseException, delay: float) -> None:
            log.warning(
                "metric_fetch_retry",
                attempt=attempt,
                error=str(error) or type(error).__name__,
                delay_seconds=delay,
            )

        try:
            records = await run_with_retry_async(
                lambda: self._attempt(metric_type, period),
                self.policy,
                sleep=self._sleep,
                on_retry=on_retry,
            )
        except Exception as e:
            log.error(
                "metric_fetch_failed",
                attempts=self.policy.max_attempts,
                error=str(e) or type(e).__name__,
            )
            return Result.err(FetchError(metric_type.value, self.policy.max_attempts, e))

        if records is None:
            records = []
        if isinstance(records, list | tuple):
            records = list(records)
            self._write_cache(key, records)

        log.debug("metric_fetched", records=len(records) if isinstance(records, list) else None)
        return Result.ok(records)

    async def fetch_many(
        self,
        metric_types: Iterable[MetricType],
        period: Period | None = None,
        force_refresh: bool = False,
    ) -> dict[MetricType, Result[Any, FetchError]]:
        """
        Fetch every metric type concurrently and join the results.

        Key pattern: TaskGroup for structured concurrency. `fetch_one` turns
        every ordinary failure into a Result, so one metric never cancels its
        siblings.
        """
        unique = list(dict.fromkeys(metric_types))
        start_time = time.perf_counter()

        async with asyncio.TaskGroup() as task_group:
            tasks = {
                metric_type: task_group.create_task(
                    self.fetch_one(metric_type, period, force_refresh),
                    name=f"fetch:{metric_type.value}",
                )
                for metric_type in unique
            }

        results = {metric_type: task.result() for metric_type, task in tasks.items()}
        failed = [m.value for m, r in results.items() if r.is_err()]

        self.logger.info(
            "metric_fetch_completed",
            total_metrics=len(results),
            failed_metrics=failed,
            duration_seconds=round(time.perf_counter() - start_time, 3),
        )
        return results
