"""
Assessment orchestrator.

Drives the pipeline for one request:

    concurrent fetch -> validate -> statistics -> normalize -> score
    -> recommendations -> trends/comparison

Fetching is the only I/O and the only concurrent stage. Everything after the
join is a pure function of the fetched series, the profile and `now`, exposed
separately as `build_assessment` so it can be used without a provider.
"""

import asyncio
from collections.abc import Awaitable, Callable, Mapping, Sequence
from datetime import UTC, datetime

import structlog

from healthscore.config import AppConfig, ScoringConfig, configure_logging, get_config
from healthscore.domain.models import (
    Assessment,
    AssessmentStatus,
    DataQuality,
    MetricAnalysis,
    MetricSeries,
    MetricStats,
    MetricType,
    Period,
    UserProfile,
)
from healthscore.errors import FetchError
from healthscore.result import Result
from healthscore.services.fetcher import MetricFetcher
from healthscore.services.providers import HealthDataProvider, MetricCache
from healthscore.services.recommendations import generate_recommendations
from healthscore.services.scoring import (
    classify_domains,
    extract_inputs,
    required_metric_types,
    score_domains,
    score_overall,
)
from healthscore.services.statistics import calculate_stats
from healthscore.services.trends import compare, metric_trends
from healthscore.services.validator import validate_series

logger = structlog.get_logger(__name__)


def _data_quality(series_by_type: Mapping[MetricType, MetricSeries]) -> DataQuality:
    failed = [m for m, s in series_by_type.items() if s.fetch_error is not None]
    degraded = [
        m for m, s in series_by_type.items() if s.is_degraded and s.fetch_error is None
    ]
    return DataQuality(
        warnings=sum(len(s.warnings) for s in series_by_type.values()),
        errors=sum(len(s.errors) for s in series_by_type.values()),
        failed_metrics=failed,
        degraded_metrics=degraded,
    )


def series_from_result(
    metric_type: MetricType, result: Result[object, FetchError]
) -> MetricSeries:
    """Validated series for a fetch result; a failed fetch becomes an empty series."""
    if result.is_err():
        return MetricSeries(metric_type=metric_type, fetch_error=str(result.unwrap_err()))
    return validate_series(result.unwrap(), metric_type)


def calculate_all_stats(
    series_by_type: Mapping[MetricType, MetricSeries],
    profile: UserProfile | None,
    now: datetime,
) -> dict[MetricType, MetricStats]:
    stats: dict[MetricType, MetricStats] = {}
    for metric_type, series in series_by_type.items():
        metric_stats = calculate_stats(series, metric_type, profile, now)
        if metric_stats is not None:
            stats[metric_type] = metric_stats
    return stats


def build_assessment(
    series_by_type: Mapping[MetricType, MetricSeries],
    profile: UserProfile | None = None,
    *,
    scoring: ScoringConfig | None = None,
    now: datetime | None = None,
    history: Sequence[float] | None = None,
) -> Assessment:
    """
    Assess already-fetched series.

    Missing metrics and domains are excluded from weighting. When no domain
    can be scored the assessment carries `status=no_data` and no score.
    """
    scoring = scoring or ScoringConfig()
    now = now or datetime.now(UTC)

    stats = calculate_all_stats(series_by_type, profile, now)
    components = score_domains(extract_inputs(stats, profile), profile)
    overall = score_overall(components)
    trends = metric_trends(series_by_type, history)
    data_quality = _data_quality(series_by_type)

    if overall.status == AssessmentStatus.NO_DATA:
        return Assessment(
            status=AssessmentStatus.NO_DATA,
            missing_domains=overall.missing_domains,
            trends=trends,
            stats=stats,
            data_quality=data_quality,
            generated_at=now,
        )

    strengths, weaknesses = classify_domains(
        components, scoring.strength_threshold, scoring.weakness_threshold
    )
    return Assessment(
        status=AssessmentStatus.ASSESSED,
        overall_score=overall.score,
        category=overall.category,
        components=components,
        missing_domains=overall.missing_domains,
        strengths=strengths,
        weaknesses=weaknesses,
        recommendations=generate_recommendations(components),
        trends=trends,
        comparison=compare(overall.score, profile),
        stats=stats,
        data_quality=data_quality,
        generated_at=now,
    )


class AssessmentService:
    """
    Entry point for callers: fetches what the scoring domains need and assesses it.

    Design principles:
    - Graceful degradation (a failed metric drops out, it never fails the request)
    - Injected collaborators (provider and cache are Protocols)
    - Observable (one structured log line per assessment)
    """

    def __init__(
        self,
        provider: HealthDataProvider,
        cache: MetricCache | None = None,
        config: AppConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config or get_config()
        configure_logging(self.config.logging)
        self.fetcher = MetricFetcher(provider, self.config.fetch, cache, sleep=sleep)
        self.logger = logger.bind(component="assessment_service")

    async def fetch_series(
        self,
        metric_types: Sequence[MetricType],
        period: Period | None = None,
        force_refresh: bool = False,
    ) -> dict[MetricType, MetricSeries]:
        results = await self.fetcher.fetch_many(metric_types, period, force_refresh)
        return {m: series_from_result(m, result) for m, result in results.items()}

    async def assess(
        self,
        profile: UserProfile | None = None,
        period: Period | None = None,
        force_refresh: bool = False,
        history: Sequence[float] | None = None,
        now: datetime | None = None,
    ) -> Assessment:
        """
        Run the full pipeline for a profile.

        Args:
            profile: Caller-supplied personalization context (read-only)
            period: Look-back window; defaults to the configured period
            force_refresh: Bypass cache reads (fresh results are still cached)
            history: Previous overall scores, oldest first, for an overall trend
            now: Anchor for rolling windows; defaults to the current UTC time
        """
        series_by_type = await self.fetch_series(required_metric_types(), period, force_refresh)
        assessment = build_assessment(
            series_by_type,
            profile,
            scoring=self.config.scoring,
            now=now,
            history=history,
        )

        self.logger.info(
            "assessment_completed",
            status=assessment.status.value,
            overall_score=(
                round(assessment.overall_score, 1)
                if assessment.overall_score is not None
                else None
            ),
            category=assessment.category.value if assessment.category else None,
            missing_domains=[d.value for d in assessment.missing_domains],
            failed_metrics=[m.value for m in assessment.data_quality.failed_metrics],
        )
        return assessment

    async def analyze_metric(
        self,
        metric_type: MetricType,
        period: Period | None = None,
        profile: UserProfile | None = None,
        force_refresh: bool = False,
        now: datetime | None = None,
    ) -> MetricAnalysis:
        """Series and statistics for one metric, without scoring (e.g. a sleep-only view)."""
        result = await self.fetcher.fetch_one(metric_type, period, force_refresh)
        series = series_from_result(metric_type, result)
        return MetricAnalysis(
            metric_type=metric_type,
            series=series,
            stats=calculate_stats(series, metric_type, profile, now),
        )
