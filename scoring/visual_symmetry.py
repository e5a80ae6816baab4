"""
Facial symmetry domain score.

Reduces a scan window (mean eye, mouth and brow symmetry over admitted
frames) to the VISUAL composite:

    score = floor(0.4 * eye + 0.4 * mouth + 0.2 * brow)

Score interpretation:
- 85-100: Well balanced facial features
- 80-84: Mild asymmetry (flagged only when no baseline exists)
- <80: Below a typical personal baseline

Clinical rationale:
- Unilateral facial droop (stroke, Bell's palsy) shows first at the mouth
  corners and eye opening, hence their larger weights
- Brow symmetry is noisier (expression, glasses) and weighted less
- A personal baseline absorbs natural asymmetry, so the finding threshold
  is lower when one exists
"""

import logging
import math
from typing import Dict, Optional

from .models import Domain, DomainResult, IssueTag, VisualBaseline

logger = logging.getLogger(__name__)


def compute_visual_score(eye_mean: float, mouth_mean: float, brow_mean: float, config: Optional[Dict] = None) -> int:
    """Weighted composite of the three mean symmetry ratios."""
    weights = (config or {}).get('visual', {}).get('weights', {})
    weighted = (
        weights.get('eye', 0.4) * eye_mean
        + weights.get('mouth', 0.4) * mouth_mean
        + weights.get('brow', 0.2) * brow_mean
    )
    return max(0, min(100, int(math.floor(weighted))))


def score_visual(
    eye_mean: float,
    mouth_mean: float,
    brow_mean: float,
    baseline: Optional[VisualBaseline] = None,
    config: Optional[Dict] = None
) -> DomainResult:
    """
    Score a scan window in test mode.

    Args:
        eye_mean: Mean eye symmetry (0-100)
        mouth_mean: Mean mouth symmetry (0-100)
        brow_mean: Mean brow symmetry (0-100)
        baseline: Stored visual baseline, if the user calibrated
        config: Configuration dictionary

    Returns:
        DomainResult with the facial_asymmetry finding when applicable
    """
    visual_cfg = (config or {}).get('visual', {})
    score = compute_visual_score(eye_mean, mouth_mean, brow_mean, config)

    issues = set()
    if baseline is not None:
        if score < visual_cfg.get('baseline_threshold', 80):
            issues.add(IssueTag.FACIAL_ASYMMETRY)
            details = "Facial symmetry is below your baseline, please keep an eye on it."
        else:
            details = "Facial features are consistent with your baseline."
    elif score < visual_cfg.get('asymmetry_threshold', 85):
        issues.add(IssueTag.FACIAL_ASYMMETRY)
        details = "Slight facial asymmetry detected."
    else:
        details = "Facial features are well balanced."

    logger.info(f"Visual score: {score} (eye={eye_mean:.1f}, mouth={mouth_mean:.1f}, brow={brow_mean:.1f})")

    return DomainResult(domain=Domain.VISUAL, score=score, issues=frozenset(issues), details=details)


def calibrate_visual(eye_mean: float, mouth_mean: float, brow_mean: float) -> DomainResult:
    """Calibration mode: fixed score, raw means as the baseline payload."""
    return DomainResult(
        domain=Domain.VISUAL,
        score=100,
        details="Baseline recorded.",
        baseline=VisualBaseline(eye_sym=eye_mean, mouth_sym=mouth_mean, brow_sym=brow_mean)
    )
