"""
Cross-domain risk aggregation.

Fusion strategy (weakest link):
- Missing domains are excluded, never treated as zero
- lowest = min(scores), or 100 when no domain has run
- DANGER if lowest < 60
- CAUTION if the average of the scores falls in [60, 80)
- NORMAL otherwise

Decision rules:
1. A single critically low domain forces DANGER whatever the average
2. The average only separates CAUTION from NORMAL
3. A narrative classification may never soften a computed DANGER

Clinical rationale:
- A stroke typically degrades one system (face, speech or one limb);
  averaging would hide exactly that signal
- Screening favours recall for the critical case, so the rule is an
  override, not a vote

Engineering approach:
- Status recomputed from the current results on every call, never cached
- Thresholds configurable under `risk`
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional

import numpy as np

from scoring.models import Domain, DomainResult, NarrativeStatus, OverallStatus

logger = logging.getLogger(__name__)


@dataclass
class RiskAssessment:
    """
    Day-level risk decision.

    Attributes:
        status: NORMAL, CAUTION or DANGER
        lowest_score: Minimum domain score (100 with no results)
        average_score: Mean domain score (100 with no results)
        scores: Domain -> score for the domains that ran
    """
    status: OverallStatus
    lowest_score: int
    average_score: float
    scores: Dict[Domain, int] = field(default_factory=dict)

    @property
    def has_results(self) -> bool:
        return bool(self.scores)

    @property
    def critical(self) -> bool:
        return self.status == OverallStatus.DANGER


def scores_from_results(results: Iterable[DomainResult]) -> Dict[Domain, int]:
    """Domain -> score; a later result for the same domain replaces an earlier one."""
    return {result.domain: result.score for result in results}


def aggregate_risk(scores: Mapping[Domain, int], config: Optional[Dict] = None) -> RiskAssessment:
    """
    Apply the weakest-link policy to the available domain scores.

    Args:
        scores: Domain -> score in [0, 100] for the domains that ran
        config: Configuration dictionary (risk section)

    Returns:
        RiskAssessment
    """
    risk_cfg = (config or {}).get('risk', {})
    danger_threshold = risk_cfg.get('danger_threshold', 60)
    caution_threshold = risk_cfg.get('caution_threshold', 80)

    scores = {domain: int(score) for domain, score in scores.items() if score is not None}

    if not scores:
        return RiskAssessment(status=OverallStatus.NORMAL, lowest_score=100, average_score=100.0)

    values = np.array(list(scores.values()), dtype=np.float64)
    lowest = int(values.min())
    average = float(values.mean())

    if lowest < danger_threshold:
        status = OverallStatus.DANGER
    elif average < caution_threshold:
        status = OverallStatus.CAUTION
    else:
        status = OverallStatus.NORMAL

    logger.info(
        f"Risk status {status.value}: lowest={lowest}, average={average:.1f} "
        f"over {len(scores)} domain(s)"
    )

    return RiskAssessment(status=status, lowest_score=lowest, average_score=average, scores=scores)


def aggregate_results(results: Iterable[DomainResult], config: Optional[Dict] = None) -> RiskAssessment:
    """aggregate_risk over DomainResult objects."""
    return aggregate_risk(scores_from_results(results), config)


def status_to_narrative(status: OverallStatus) -> NarrativeStatus:
    """Deterministic narrative status for a computed risk status."""
    return {
        OverallStatus.NORMAL: NarrativeStatus.SUNNY,
        OverallStatus.CAUTION: NarrativeStatus.CLOUDY,
        OverallStatus.DANGER: NarrativeStatus.STORM,
    }[status]


def reconcile_narrative(assessment: RiskAssessment, narrative_status: NarrativeStatus) -> NarrativeStatus:
    """
    Safety net over an externally classified narrative status.

    A computed DANGER always yields STORM; otherwise the narrative's own
    classification stands.
    """
    if assessment.critical and narrative_status != NarrativeStatus.STORM:
        logger.warning(
            f"Narrative status {narrative_status.value} overridden to STORM "
            f"(lowest score {assessment.lowest_score})"
        )
        return NarrativeStatus.STORM
    return narrative_status
