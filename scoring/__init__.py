"""
Domain scoring module.

This package turns sub-test outcomes into per-domain results:
1. Visual (0-100): Weighted facial symmetry
2. Audio (0-100): Vowel stability + reading coherence, capped on vowel issues
3. Touch (0-100): Spiral accuracy + arm stability, capped on resting tremor

All scores are:
- Integers in [0, 100], higher = healthier
- Explainable (issue tags and a details sentence)
- Screening-quality heuristics, not medical diagnoses

The session scorer (scoring.session_scorer) sequences the sub-tests and is
imported explicitly, since it depends on the signal pipelines.
"""

from .models import (
    AudioBaseline,
    BaselineProfile,
    Domain,
    DomainBaseline,
    DomainResult,
    HistoryRecord,
    IssueTag,
    NarrativeStatus,
    OverallStatus,
    SessionMode,
    TouchBaseline,
    VisualBaseline,
)
from .visual_symmetry import calibrate_visual, compute_visual_score, score_visual
from .vocal_stability import calibrate_audio, combine_audio, format_issues, score_audio
from .motor_control import calibrate_touch, combine_touch, score_touch

__all__ = [
    'AudioBaseline',
    'BaselineProfile',
    'Domain',
    'DomainBaseline',
    'DomainResult',
    'HistoryRecord',
    'IssueTag',
    'NarrativeStatus',
    'OverallStatus',
    'SessionMode',
    'TouchBaseline',
    'VisualBaseline',
    'calibrate_visual',
    'compute_visual_score',
    'score_visual',
    'calibrate_audio',
    'combine_audio',
    'format_issues',
    'score_audio',
    'calibrate_touch',
    'combine_touch',
    'score_touch',
]
