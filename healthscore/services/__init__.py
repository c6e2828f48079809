"""
Pipeline services.

This package contains the stages of the scoring pipeline (validation,
statistics, normalization, scoring, recommendations, trends) and the fetch
and orchestration layer that drives them.
"""

from .assessment import AssessmentService, build_assessment
from .fetcher import MetricFetcher, RetryPolicy, run_with_retry, run_with_retry_async
from .normalizer import ScoreInput, normalize, vo2max_tier
from .providers import (
    HealthDataProvider,
    InMemoryCache,
    InMemoryHealthDataProvider,
    MetricCache,
    SimulatedHealthDataProvider,
)
from .recommendations import generate_recommendations
from .scoring import categorize, score_domain, score_overall, weighted_average
from .statistics import calculate_stats
from .trends import compare, trend_direction
from .validator import validate_sample, validate_series

__all__ = [
    "AssessmentService",
    "HealthDataProvider",
    "InMemoryCache",
    "InMemoryHealthDataProvider",
    "MetricCache",
    "MetricFetcher",
    "RetryPolicy",
    "ScoreInput",
    "SimulatedHealthDataProvider",
    "build_assessment",
    "calculate_stats",
    "categorize",
    "compare",
    "generate_recommendations",
    "normalize",
    "run_with_retry",
    "run_with_retry_async",
    "score_domain",
    "score_overall",
    "trend_direction",
    "validate_sample",
    "validate_series",
    "vo2max_tier",
    "weighted_average",
]
