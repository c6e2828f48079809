"""
End-to-end system check demonstrating the full scoring pipeline.

This script checks:
1. Configuration loading and validation
2. Sample validation (accepted, warned and rejected samples)
3. Concurrent fetching with retries
4. Full assessment over simulated data
5. Graceful degradation when metrics fail
6. The explicit no-data state

Run with: uv run python system_check.py
"""

import asyncio
from datetime import UTC, datetime, timedelta

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from healthscore.config import configure_logging, get_config, print_config_summary
from healthscore.domain.models import (
    ActivityLevel,
    AssessmentStatus,
    Gender,
    MetricType,
    UserProfile,
)
from healthscore.services import (
    AssessmentService,
    InMemoryCache,
    InMemoryHealthDataProvider,
    MetricFetcher,
    SimulatedHealthDataProvider,
    validate_series,
)

console = Console()

PROFILE = UserProfile(
    age=35,
    gender=Gender.MALE,
    weight_kg=75.0,
    height_cm=180.0,
    activity_level=ActivityLevel.ACTIVE,
)


async def no_wait(delay: float) -> None:
    """Retry sleep that returns immediately so the check runs fast."""
    await asyncio.sleep(0)


async def check_configuration() -> bool:
    """Check configuration loading and validation."""

    console.print(Panel("🔧 Checking Configuration", style="blue"))

    try:
        config = get_config()
        configure_logging(config.logging)

        console.print("✅ Configuration loaded successfully", style="green")
        print_config_summary()
        return True

    except Exception as e:
        console.print(f"❌ Configuration check failed: {e}", style="red")
        return False


async def check_validation() -> bool:
    """Check sample validation against a mix of good and bad sleep records."""

    console.print(Panel("🧪 Checking Sample Validation", style="blue"))

    start = datetime.now(UTC).replace(hour=22, minute=0, second=0, microsecond=0)
    start -= timedelta(days=1)
    raw = [
        {
            "date": start.isoformat(),
            "endDate": (start + timedelta(hours=8)).isoformat(),
            "value": 8.0,
            "stages": {"deep": 1.6, "core": 4.6, "rem": 1.8, "awake": 0.0},
        },
        {
            # Stages add up to 7.5h against a stated 8h
            "date": (start - timedelta(days=1)).isoformat(),
            "value": 8.0,
            "stages": {"deep": 1.5, "core": 4.2, "rem": 1.8, "awake": 0.5},
        },
        {"date": (start - timedelta(days=2)).isoformat(), "value": 2.5},
        {"date": "not-a-date", "value": 7.0},
    ]

    try:
        series = validate_series(raw, MetricType.SLEEP)

        table = Table(title="Validation Findings")
        table.add_column("Index", style="cyan")
        table.add_column("Severity", style="magenta")
        table.add_column("Reason", style="white")
        for issue in (*series.errors, *series.warnings):
            table.add_row(str(issue.index), issue.severity.value, issue.reason)
        console.print(table)

        console.print(
            f"✅ {len(series.samples)} accepted, {len(series.errors)} rejected, "
            f"{len(series.warnings)} warning(s)",
            style="green",
        )
        return len(series.samples) == 2 and len(series.errors) == 2

    except Exception as e:
        console.print(f"❌ Validation check failed: {e}", style="red")
        return False


async def check_fetching() -> bool:
    """Check concurrent fetching with transient provider failures."""

    console.print(Panel("📡 Checking Fetch and Retry", style="blue"))

    try:
        now = datetime.now(UTC)
        records = [
            {"date": (now - timedelta(days=i)).isoformat(), "value": 9000 + i * 100}
            for i in range(7)
        ]
        provider = InMemoryHealthDataProvider(
            {
                MetricType.STEPS: records,
                MetricType.VO2MAX: [{"date": now.isoformat(), "value": 47}],
            },
            failures={MetricType.STEPS: 2, MetricType.HEART_RATE_VARIABILITY: 10},
        )
        fetcher = MetricFetcher(provider, get_config().fetch, InMemoryCache(), sleep=no_wait)

        results = await fetcher.fetch_many(
            [MetricType.STEPS, MetricType.VO2MAX, MetricType.HEART_RATE_VARIABILITY]
        )

        table = Table(title="Fetch Results")
        table.add_column("Metric", style="cyan")
        table.add_column("Calls", style="yellow")
        table.add_column("Outcome", style="white")
        for metric_type, result in results.items():
            outcome = (
                f"{len(result.unwrap())} record(s)" if result.is_ok() else str(result.unwrap_err())
            )
            table.add_row(metric_type.value, str(provider.calls_for(metric_type)), outcome)
        console.print(table)

        ok = (
            results[MetricType.STEPS].is_ok()
            and results[MetricType.HEART_RATE_VARIABILITY].is_err()
        )
        console.print(
            "✅ Retries recovered transient failures" if ok else "❌ Unexpected fetch outcome",
            style="green" if ok else "red",
        )
        return ok

    except Exception as e:
        console.print(f"❌ Fetch check failed: {e}", style="red")
        return False


async def check_assessment() -> bool:
    """Check a full assessment over simulated data."""

    console.print(Panel("🏅 Checking Full Assessment", style="blue"))

    try:
        service = AssessmentService(SimulatedHealthDataProvider(seed=42), sleep=no_wait)
        assessment = await service.assess(PROFILE, history=[62.0, 64.0, 66.0, 69.0])

        if assessment.overall_score is None or assessment.category is None:
            console.print("❌ Assessment returned no score", style="red")
            return False

        console.print(
            f"Overall: {assessment.overall_score:.1f} ({assessment.category.value.upper()})",
            style="bold",
        )

        table = Table(title="Domain Scores")
        table.add_column("Domain", style="cyan")
        table.add_column("Score", style="green")
        table.add_column("Category", style="magenta")
        table.add_column("Missing Inputs", style="yellow")
        for domain, component in assessment.components.items():
            table.add_row(
                domain.value,
                f"{component.score:.1f}",
                component.category.value,
                ", ".join(component.missing_inputs) or "-",
            )
        console.print(table)

        if assessment.comparison:
            comparison = assessment.comparison
            console.print(
                f"Estimated percentile: {comparison.overall} overall, "
                f"{comparison.age_group} in {comparison.age_group_label}, "
                f"{comparison.gender} among {comparison.gender_label}"
            )

        for i, recommendation in enumerate(assessment.recommendations, 1):
            console.print(
                f"\n💡 Recommendation #{i} [{recommendation.priority.value}]:", style="yellow"
            )
            console.print(f"  {recommendation.title}")
            console.print(f"  {recommendation.description}")
            console.print(f"  Impact: {recommendation.expected_impact}")
            console.print(f"  Actions: {', '.join(recommendation.actions[:2])}")

        console.print("✅ Assessment completed", style="green")
        return assessment.status == AssessmentStatus.ASSESSED

    except Exception as e:
        console.print(f"❌ Assessment check failed: {e}", style="red")
        return False


async def check_degradation() -> bool:
    """Check that failing metrics degrade the assessment instead of failing it."""

    console.print(Panel("🛡️ Checking Graceful Degradation", style="blue"))

    try:
        provider = SimulatedHealthDataProvider(seed=3, failure_rate=0.4)
        service = AssessmentService(provider, sleep=no_wait)
        assessment = await service.assess(PROFILE)

        quality = assessment.data_quality
        console.print(f"Status: {assessment.status.value}", style="yellow")
        console.print(f"Failed metrics: {[m.value for m in quality.failed_metrics] or 'none'}")
        console.print(f"Missing domains: {[d.value for d in assessment.missing_domains] or 'none'}")

        console.print("✅ Pipeline completed despite provider failures", style="green")
        return True

    except Exception as e:
        console.print(f"❌ Degradation check failed: {e}", style="red")
        return False


async def check_no_data() -> bool:
    """Check the explicit no-data state."""

    console.print(Panel("📭 Checking No-Data State", style="blue"))

    try:
        service = AssessmentService(InMemoryHealthDataProvider(), sleep=no_wait)
        assessment = await service.assess(UserProfile(age=35))

        ok = assessment.status == AssessmentStatus.NO_DATA and assessment.overall_score is None
        console.print(
            f"Status: {assessment.status.value}, score: {assessment.overall_score}",
            style="green" if ok else "red",
        )
        return ok

    except Exception as e:
        console.print(f"❌ No-data check failed: {e}", style="red")
        return False


async def run_all_checks() -> None:
    """Run all system checks."""

    console.print(Panel("🧪 Health Score Pipeline - System Checks", style="bold blue"))

    checks = [
        ("Configuration", check_configuration),
        ("Sample Validation", check_validation),
        ("Fetch and Retry", check_fetching),
        ("Full Assessment", check_assessment),
        ("Graceful Degradation", check_degradation),
        ("No-Data State", check_no_data),
    ]

    results = []

    for check_name, check_func in checks:
        console.print(f"\n{'=' * 60}")
        try:
            result = await check_func()
            results.append((check_name, result))
        except KeyboardInterrupt:
            console.print("\n⏹️  Checks interrupted by user", style="yellow")
            break
        except Exception as e:
            console.print(f"❌ {check_name} failed with exception: {e}", style="red")
            results.append((check_name, False))

    # Summary
    console.print(f"\n{'=' * 60}")
    console.print(Panel("📋 Check Results Summary", style="bold"))

    summary_table = Table()
    summary_table.add_column("Check", style="cyan")
    summary_table.add_column("Result", style="white")

    passed = 0
    for check_name, result in results:
        if result:
            summary_table.add_row(check_name, "✅ PASSED")
            passed += 1
        else:
            summary_table.add_row(check_name, "❌ FAILED")

    console.print(summary_table)

    console.print(f"\n🎯 Results: {passed}/{len(results)} checks passed")

    if passed == len(results):
        console.print("🎉 All checks passed! The pipeline is ready.", style="green")
    else:
        console.print("⚠️  Some checks failed. See the output above.", style="yellow")


if __name__ == "__main__":
    try:
        asyncio.run(run_all_checks())
    except KeyboardInterrupt:
        console.print("\n👋 Checks stopped by user", style="yellow")
    except Exception as e:
        console.print(f"\n💥 System check failed: {e}", style="red")
