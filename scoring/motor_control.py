"""
Motor control domain score.

    score = floor(0.5 * spiral + 0.5 * stability)
    score = min(score, 59) if resting tremor was detected

A detected resting tremor caps the domain below the danger threshold, so
the weakest-link aggregator always raises it regardless of how well the
spiral went.
"""

import logging
import math
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from .models import Domain, DomainResult, IssueTag, TouchBaseline
from .vocal_stability import format_issues

logger = logging.getLogger(__name__)


def combine_touch(
    spiral_score: int,
    stability_score: int,
    stability_issues: Iterable[IssueTag],
    config: Optional[Dict] = None
) -> Tuple[int, FrozenSet[IssueTag]]:
    """Equal-weight spiral/stability composite with the tremor cap."""
    composite_cfg = (config or {}).get('touch', {}).get('composite', {})

    issues = frozenset(stability_issues)
    weighted = (
        composite_cfg.get('spiral_weight', 0.5) * spiral_score
        + composite_cfg.get('stability_weight', 0.5) * stability_score
    )
    score = int(math.floor(weighted))

    if IssueTag.RESTING_TREMOR in issues:
        score = min(score, composite_cfg.get('tremor_cap', 59))

    return max(0, min(100, score)), issues


def score_touch(
    spiral_score: int,
    stability_score: int,
    stability_issues: Iterable[IssueTag],
    config: Optional[Dict] = None
) -> DomainResult:
    """Score the motor domain in test mode."""
    weak_threshold = (config or {}).get('touch', {}).get('composite', {}).get('weak_coordination_threshold', 60)
    score, issues = combine_touch(spiral_score, stability_score, stability_issues, config)

    if issues:
        details = f"Anomalies detected: {format_issues(issues)}. Please monitor closely."
    elif spiral_score < weak_threshold:
        details = "Hand coordination is slightly weak, fine finger exercises are recommended."
    else:
        details = "Limb function is normal."

    logger.info(f"Touch score: {score} (spiral={spiral_score}, stability={stability_score})")

    return DomainResult(domain=Domain.TOUCH, score=score, issues=issues, details=details)


def calibrate_touch(
    spiral_rmse: float,
    max_drift_deg: float,
    tremor_intensity: float,
    tremor_frequency_hz: float
) -> DomainResult:
    """Calibration mode: fixed score, raw motor metrics as the baseline payload."""
    return DomainResult(
        domain=Domain.TOUCH,
        score=100,
        details="Baseline recorded.",
        baseline=TouchBaseline(
            spiral_rmse=spiral_rmse,
            max_drift_deg=max_drift_deg,
            tremor_intensity=tremor_intensity,
            tremor_frequency_hz=tremor_frequency_hz
        )
    )
