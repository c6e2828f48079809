"""
Tests for recommendation generation.

Covers:
- Domain-specific thresholds
- Priority and ordering
- Template content and determinism
"""

from healthscore.domain.models import Domain, DomainScore, Priority
from healthscore.services.recommendations import generate_recommendations, threshold_for
from healthscore.services.scoring import categorize


def component(
    domain: Domain, score: float, metric_scores: dict[str, float] | None = None
) -> DomainScore:
    return DomainScore(
        domain=domain,
        score=score,
        category=categorize(score),
        sub_scores={},
        metric_scores=metric_scores or {},
    )


class TestThresholds:
    """Which domains produce a recommendation."""

    def test_domains_at_or_above_threshold_get_none(self) -> None:
        components = {
            Domain.CARDIOVASCULAR: component(Domain.CARDIOVASCULAR, 70),
            Domain.ACTIVITY: component(Domain.ACTIVITY, 92),
        }
        assert generate_recommendations(components) == []

    def test_nutrition_has_a_lower_threshold(self) -> None:
        assert threshold_for(Domain.NUTRITION) == 60
        assert threshold_for(Domain.ACTIVITY) == 70

        components = {
            Domain.NUTRITION: component(Domain.NUTRITION, 65),
            Domain.ACTIVITY: component(Domain.ACTIVITY, 65),
        }
        recommendations = generate_recommendations(components)

        assert [r.category for r in recommendations] == [Domain.ACTIVITY]

    def test_no_components_no_recommendations(self) -> None:
        assert generate_recommendations({}) == []


class TestContent:
    """Priority, ordering and template fields."""

    def test_priority_then_score_ordering(self) -> None:
        components = {
            Domain.ACTIVITY: component(Domain.ACTIVITY, 40),
            Domain.CARDIOVASCULAR: component(Domain.CARDIOVASCULAR, 65),
            Domain.BODY_COMPOSITION: component(Domain.BODY_COMPOSITION, 60),
            Domain.RECOVERY: component(Domain.RECOVERY, 50),
        }
        recommendations = generate_recommendations(components)

        assert [r.category for r in recommendations] == [
            Domain.RECOVERY,
            Domain.CARDIOVASCULAR,
            Domain.ACTIVITY,
            Domain.BODY_COMPOSITION,
        ]
        assert [r.priority for r in recommendations] == [
            Priority.HIGH,
            Priority.HIGH,
            Priority.MEDIUM,
            Priority.MEDIUM,
        ]

    def test_every_template_has_three_or_four_actions(self) -> None:
        components = {domain: component(domain, 10) for domain in Domain}
        recommendations = generate_recommendations(components)

        assert len(recommendations) == len(Domain)
        for recommendation in recommendations:
            assert 3 <= len(recommendation.actions) <= 4
            assert recommendation.title
            assert recommendation.timeframe

    def test_description_names_the_weakest_input(self) -> None:
        components = {
            Domain.ACTIVITY: component(
                Domain.ACTIVITY, 55, {"steps": 75, "exercise_minutes": 30}
            )
        }
        (recommendation,) = generate_recommendations(components)

        assert "exercise minutes at 30/100" in recommendation.description
        assert recommendation.expected_impact == "+15 points to reach the activity target of 70"

    def test_output_is_deterministic(self) -> None:
        components = {domain: component(domain, 45.5) for domain in Domain}
        assert generate_recommendations(components) == generate_recommendations(components)
