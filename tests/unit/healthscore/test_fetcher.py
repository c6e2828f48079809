"""
Tests for the retry policy and concurrent metric fetcher.

Covers:
- Backoff schedule
- Sync and async retry loops (success after failures, exhaustion)
- Cache reads, force refresh and cache failures
- Per-attempt timeouts
- Concurrent fan-out with isolation and a concurrency bound
"""

import asyncio
from typing import Any

import pytest

from healthscore.config import FetchConfig
from healthscore.domain.models import MetricType, Period
from healthscore.errors import FetchError
from healthscore.services.fetcher import (
    MetricFetcher,
    RetryPolicy,
    cache_key,
    run_with_retry,
    run_with_retry_async,
)
from healthscore.services.providers import InMemoryCache, InMemoryHealthDataProvider

RECORDS = [{"date": "2024-06-15T08:00:00Z", "value": 8000}]


class RecordingSleep:
    """Async sleep stand-in that records requested delays without waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class BrokenCache:
    def get(self, key: str) -> Any | None:
        raise RuntimeError("cache offline")

    def set(self, key: str, value: Any) -> None:
        raise RuntimeError("cache offline")


class Flaky:
    """Callable failing a fixed number of times before returning a value."""

    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError(f"failure {self.calls}")
        return "ok"


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


class TestRetryPolicy:
    """Exponential backoff schedule."""

    def test_default_schedule(self) -> None:
        policy = RetryPolicy()
        assert policy.delays() == [1.0, 2.0]

    def test_delay_is_capped(self) -> None:
        policy = RetryPolicy(max_attempts=5, base_delay_seconds=10, backoff_factor=10)
        assert policy.delay_for(1) == 10
        assert policy.delay_for(2) == 30
        assert policy.delays() == [10, 30, 30, 30]

    def test_single_attempt_has_no_delays(self) -> None:
        assert RetryPolicy(max_attempts=1).delays() == []

    def test_attempt_numbers_start_at_one(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy().delay_for(0)

    def test_from_config(self) -> None:
        config = FetchConfig(max_attempts=4, base_delay_seconds=0.5)
        policy = RetryPolicy.from_config(config)
        assert policy.delays() == [0.5, 1.0, 2.0]


class TestRetryLoops:
    """Sync and async retry loops share the policy schedule."""

    def test_sync_succeeds_after_failures(self) -> None:
        operation = Flaky(failures=2)
        waited: list[float] = []
        retries: list[int] = []

        result = run_with_retry(
            operation,
            RetryPolicy(),
            sleep=waited.append,
            on_retry=lambda attempt, error, delay: retries.append(attempt),
        )

        assert result == "ok"
        assert operation.calls == 3
        assert waited == [1.0, 2.0]
        assert retries == [1, 2]

    def test_sync_exhaustion_raises_the_last_error(self) -> None:
        operation = Flaky(failures=5)

        with pytest.raises(ConnectionError, match="failure 3"):
            run_with_retry(operation, RetryPolicy(), sleep=lambda _: None)
        assert operation.calls == 3

    @pytest.mark.asyncio
    async def test_async_succeeds_after_failures(self, sleep: RecordingSleep) -> None:
        operation = Flaky(failures=1)

        async def call() -> str:
            return operation()

        assert await run_with_retry_async(call, RetryPolicy(), sleep=sleep) == "ok"
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_async_exhaustion_raises(self, sleep: RecordingSleep) -> None:
        operation = Flaky(failures=10)

        async def call() -> str:
            return operation()

        with pytest.raises(ConnectionError):
            await run_with_retry_async(call, RetryPolicy(max_attempts=2), sleep=sleep)
        assert operation.calls == 2
        assert sleep.delays == [1.0]


class TestFetchOne:
    """Single-metric fetches through retry and cache."""

    @pytest.mark.asyncio
    async def test_transient_failures_are_retried(self, sleep: RecordingSleep) -> None:
        provider = InMemoryHealthDataProvider({MetricType.STEPS: RECORDS}, failures={"steps": 2})
        fetcher = MetricFetcher(provider, FetchConfig(), sleep=sleep)

        result = await fetcher.fetch_one(MetricType.STEPS)

        assert result.unwrap() == RECORDS
        assert provider.calls_for(MetricType.STEPS) == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhausted_retries_return_a_fetch_error(self, sleep: RecordingSleep) -> None:
        provider = InMemoryHealthDataProvider(failures={MetricType.STEPS: 5})
        fetcher = MetricFetcher(provider, FetchConfig(), sleep=sleep)

        result = await fetcher.fetch_one(MetricType.STEPS)

        assert result.is_err()
        error = result.unwrap_err()
        assert isinstance(error, FetchError)
        assert error.attempts == 3
        assert isinstance(error.cause, ConnectionError)
        assert provider.calls_for(MetricType.STEPS) == 3

    @pytest.mark.asyncio
    async def test_uses_default_period(self, sleep: RecordingSleep) -> None:
        provider = InMemoryHealthDataProvider()
        fetcher = MetricFetcher(provider, FetchConfig(default_period=Period.MONTH), sleep=sleep)

        assert (await fetcher.fetch_one(MetricType.SLEEP)).unwrap() == []
        assert provider.calls == [(MetricType.SLEEP, Period.MONTH)]

    @pytest.mark.asyncio
    async def test_cache_hit_skips_the_provider(self, sleep: RecordingSleep) -> None:
        provider = InMemoryHealthDataProvider({MetricType.STEPS: RECORDS})
        cache = InMemoryCache()
        fetcher = MetricFetcher(provider, FetchConfig(), cache, sleep=sleep)

        await fetcher.fetch_one(MetricType.STEPS, Period.WEEK)
        second = await fetcher.fetch_one(MetricType.STEPS, Period.WEEK)

        assert second.unwrap() == RECORDS
        assert cache_key(MetricType.STEPS, Period.WEEK) in cache
        assert provider.calls_for(MetricType.STEPS) == 1

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_the_cache(self, sleep: RecordingSleep) -> None:
        provider = InMemoryHealthDataProvider({MetricType.STEPS: RECORDS})
        cache = InMemoryCache()
        cache.set(cache_key(MetricType.STEPS, Period.WEEK), [{"stale": True}])
        fetcher = MetricFetcher(provider, FetchConfig(), cache, sleep=sleep)

        result = await fetcher.fetch_one(MetricType.STEPS, Period.WEEK, force_refresh=True)

        assert result.unwrap() == RECORDS
        assert cache.get(cache_key(MetricType.STEPS, Period.WEEK)) == RECORDS

    @pytest.mark.asyncio
    async def test_cache_failures_are_ignored(self, sleep: RecordingSleep) -> None:
        provider = InMemoryHealthDataProvider({MetricType.STEPS: RECORDS})
        fetcher = MetricFetcher(provider, FetchConfig(), BrokenCache(), sleep=sleep)

        result = await fetcher.fetch_one(MetricType.STEPS)
        assert result.unwrap() == RECORDS

    @pytest.mark.asyncio
    async def test_slow_attempts_time_out(self, sleep: RecordingSleep) -> None:
        provider = InMemoryHealthDataProvider({MetricType.STEPS: RECORDS}, delay_seconds=0.5)
        fetcher = MetricFetcher(
            provider, FetchConfig(timeout_seconds=0.01, max_attempts=2), sleep=sleep
        )

        result = await fetcher.fetch_one(MetricType.STEPS)

        assert result.is_err()
        assert isinstance(result.unwrap_err().cause, TimeoutError)
        assert provider.calls_for(MetricType.STEPS) == 2


class TestFetchMany:
    """Concurrent fan-out and join."""

    @pytest.mark.asyncio
    async def test_one_failure_does_not_affect_the_others(self, sleep: RecordingSleep) -> None:
        provider = InMemoryHealthDataProvider(
            {MetricType.STEPS: RECORDS, MetricType.SLEEP: []},
            failures={MetricType.VO2MAX: 10},
        )
        fetcher = MetricFetcher(provider, FetchConfig(), sleep=sleep)

        results = await fetcher.fetch_many(
            [MetricType.STEPS, MetricType.VO2MAX, MetricType.SLEEP, MetricType.STEPS]
        )

        assert list(results) == [MetricType.STEPS, MetricType.VO2MAX, MetricType.SLEEP]
        assert results[MetricType.STEPS].unwrap() == RECORDS
        assert results[MetricType.SLEEP].unwrap() == []
        assert results[MetricType.VO2MAX].is_err()

    @pytest.mark.asyncio
    async def test_in_flight_fetches_are_bounded(self) -> None:
        class CountingProvider:
            def __init__(self) -> None:
                self.in_flight = 0
                self.peak = 0

            async def fetch(self, metric_type: MetricType, period: Period) -> list[Any]:
                self.in_flight += 1
                self.peak = max(self.peak, self.in_flight)
                await asyncio.sleep(0.01)
                self.in_flight -= 1
                return []

        provider = CountingProvider()
        fetcher = MetricFetcher(provider, FetchConfig(max_concurrent_fetches=2))

        results = await fetcher.fetch_many(list(MetricType)[:6])

        assert len(results) == 6
        assert all(r.is_ok() for r in results.values())
        assert provider.peak == 2
