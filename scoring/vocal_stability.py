"""
Voice domain score.

Combines the sustained-vowel score (acoustic stability) with the reading
score (semantic coherence):

    score = floor(0.4 * vowel + 0.6 * reading)
    score = min(score, 65) if the vowel sub-test raised any issue

Clinical rationale:
- Jitter and shimmer are physiological markers (dysarthria, weak breath
  support); a fluent reading must not mask them, hence the cap
- Low coherence (word substitutions, broken logic) suggests aphasia and
  is reported as its own finding without triggering the cap
"""

import logging
import math
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from .models import AudioBaseline, Domain, DomainResult, IssueTag

logger = logging.getLogger(__name__)


def format_issues(issues: Iterable[IssueTag]) -> str:
    """Issue labels in declaration order, comma separated."""
    issues = set(issues)
    return ", ".join(tag.label for tag in IssueTag if tag in issues)


def combine_audio(
    vowel_score: int,
    vowel_issues: Iterable[IssueTag],
    reading_score: int,
    config: Optional[Dict] = None
) -> Tuple[int, FrozenSet[IssueTag]]:
    """
    Weighted vowel/reading composite with the physiological cap.

    Returns:
        (score, issues) where issues are the vowel issues plus
        semantic_incoherence for a low reading score
    """
    audio_cfg = (config or {}).get('audio', {})
    composite_cfg = audio_cfg.get('composite', {})
    reading_cfg = audio_cfg.get('reading', {})

    vowel_issues = frozenset(vowel_issues)
    weighted = (
        composite_cfg.get('vowel_weight', 0.4) * vowel_score
        + composite_cfg.get('reading_weight', 0.6) * reading_score
    )
    score = int(math.floor(weighted))

    if vowel_issues:
        score = min(score, composite_cfg.get('issue_cap', 65))

    issues = set(vowel_issues)
    if reading_score < reading_cfg.get('coherence_issue_threshold', 70):
        issues.add(IssueTag.SEMANTIC_INCOHERENCE)

    return max(0, min(100, score)), frozenset(issues)


def score_audio(
    vowel_score: int,
    vowel_issues: Iterable[IssueTag],
    reading_score: int,
    config: Optional[Dict] = None
) -> DomainResult:
    """Score the voice domain in test mode."""
    fair_threshold = (config or {}).get('audio', {}).get('reading', {}).get('fair_threshold', 85)
    score, issues = combine_audio(vowel_score, vowel_issues, reading_score, config)

    if issues:
        details = f"Potential issues detected: {format_issues(issues)}. Watch for effortful speech."
    elif score < fair_threshold:
        details = "Voice is fair today, drink some water and rest."
    else:
        details = "Your voice is clear and your reading is coherent."

    logger.info(f"Audio score: {score} (vowel={vowel_score}, reading={reading_score}, issues={format_issues(issues) or 'none'})")

    return DomainResult(domain=Domain.AUDIO, score=score, issues=issues, details=details)


def calibrate_audio(
    jitter: float,
    shimmer: float,
    mean_pitch_hz: float,
    reading_pace: Optional[float] = None,
    coherence: Optional[int] = None
) -> DomainResult:
    """Calibration mode: fixed score, raw voice metrics as the baseline payload."""
    return DomainResult(
        domain=Domain.AUDIO,
        score=100,
        details="Baseline recorded.",
        baseline=AudioBaseline(
            jitter=jitter,
            shimmer=shimmer,
            mean_pitch_hz=mean_pitch_hz,
            reading_pace=reading_pace,
            coherence=coherence
        )
    )
