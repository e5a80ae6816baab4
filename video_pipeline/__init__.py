"""
Video analysis pipeline for facial symmetry screening.

This package implements landmark-based visual analysis:
1. Facial symmetry (eye, brow, mouth ratios) with head-pose gating
2. Lighting gate (too-dark detection on a downscaled image)
3. MediaPipe Face Mesh landmark source (optional, `capture` extra)

Clinical rationale:
- Facial droop on one side is an early stroke warning sign
- Pose and lighting gates keep measurement artifacts out of the score
"""

from .face_analyzer import (
    FacialSymmetryAnalyzer,
    FrameAnalysis,
    PoseIssue,
    SymmetrySample,
    VisualCaptureResult,
    analyze_landmarks,
    compute_symmetry,
    evaluate_pose,
)
from .lighting import LightingMonitor, measure_brightness

__all__ = [
    'FacialSymmetryAnalyzer',
    'FrameAnalysis',
    'PoseIssue',
    'SymmetrySample',
    'VisualCaptureResult',
    'analyze_landmarks',
    'compute_symmetry',
    'evaluate_pose',
    'LightingMonitor',
    'measure_brightness',
]
