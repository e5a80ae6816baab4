import pytest # pyright: ignore[reportMissingImports]
from pathlib import Path

# Import modules to test
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from fusion.risk_aggregator import (
    aggregate_results,
    aggregate_risk,
    reconcile_narrative,
    scores_from_results,
    status_to_narrative,
)
from scoring.models import Domain, DomainResult, NarrativeStatus, OverallStatus


class TestAggregateRisk:
    """Test the weakest-link status rule."""

    def test_single_low_domain_forces_danger(self):
        """A high average cannot hide one critically low domain."""
        assessment = aggregate_risk({Domain.VISUAL: 100, Domain.AUDIO: 100, Domain.TOUCH: 59})
        assert assessment.status == OverallStatus.DANGER
        assert assessment.lowest_score == 59
        assert assessment.average_score == pytest.approx(259 / 3)
        assert assessment.critical

    def test_low_average_is_caution(self):
        assessment = aggregate_risk({Domain.VISUAL: 75, Domain.AUDIO: 75, Domain.TOUCH: 80})
        assert assessment.status == OverallStatus.CAUTION
        assert not assessment.critical

    def test_healthy_scores_are_normal(self):
        assessment = aggregate_risk({Domain.VISUAL: 90, Domain.AUDIO: 85})
        assert assessment.status == OverallStatus.NORMAL

    def test_thresholds_are_strict(self):
        assert aggregate_risk({Domain.AUDIO: 60}).status == OverallStatus.CAUTION
        assert aggregate_risk({Domain.AUDIO: 80}).status == OverallStatus.NORMAL
        assert aggregate_risk({Domain.AUDIO: 79}).status == OverallStatus.CAUTION

    def test_no_results(self):
        assessment = aggregate_risk({})
        assert assessment.status == OverallStatus.NORMAL
        assert assessment.lowest_score == 100
        assert assessment.average_score == 100.0
        assert not assessment.has_results

    def test_missing_domains_are_excluded(self):
        assessment = aggregate_risk({Domain.VISUAL: 90, Domain.AUDIO: None})
        assert assessment.scores == {Domain.VISUAL: 90}
        assert assessment.average_score == 90.0

    def test_thresholds_from_config(self):
        config = {'risk': {'danger_threshold': 50, 'caution_threshold': 55}}
        assert aggregate_risk({Domain.TOUCH: 55}, config).status == OverallStatus.NORMAL
        assert aggregate_risk({Domain.TOUCH: 52}, config).status == OverallStatus.CAUTION


class TestResultHelpers:
    """Test aggregation over DomainResult objects."""

    def test_later_result_replaces_earlier(self):
        results = [
            DomainResult(domain=Domain.TOUCH, score=40),
            DomainResult(domain=Domain.AUDIO, score=90),
            DomainResult(domain=Domain.TOUCH, score=85),
        ]
        assert scores_from_results(results) == {Domain.TOUCH: 85, Domain.AUDIO: 90}
        assert aggregate_results(results).status == OverallStatus.NORMAL


class TestNarrativeReconciliation:
    """Test the safety net over narrative classifications."""

    def test_status_mapping(self):
        assert status_to_narrative(OverallStatus.NORMAL) == NarrativeStatus.SUNNY
        assert status_to_narrative(OverallStatus.CAUTION) == NarrativeStatus.CLOUDY
        assert status_to_narrative(OverallStatus.DANGER) == NarrativeStatus.STORM

    def test_danger_overrides_narrative(self):
        assessment = aggregate_risk({Domain.VISUAL: 100, Domain.TOUCH: 50})
        assert reconcile_narrative(assessment, NarrativeStatus.SUNNY) == NarrativeStatus.STORM
        assert reconcile_narrative(assessment, NarrativeStatus.CLOUDY) == NarrativeStatus.STORM

    def test_non_critical_narrative_stands(self):
        assessment = aggregate_risk({Domain.VISUAL: 70})
        assert reconcile_narrative(assessment, NarrativeStatus.SUNNY) == NarrativeStatus.SUNNY
        assert reconcile_narrative(assessment, NarrativeStatus.STORM) == NarrativeStatus.STORM
