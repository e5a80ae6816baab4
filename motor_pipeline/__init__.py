"""
Motor control pipeline for limb screening.

This package implements the two touch sub-tests:
1. Spiral tracing (radial deviation from an Archimedean spiral, RMSE)
2. Static arm hold (tilt drift and zero-crossing tremor analysis)

Clinical rationale:
- Spiral deviation reflects ataxia / fine-motor coordination loss
- Arm drift and resting tremor are classic bedside neurological signs
"""

from .spiral import (
    SpiralGeometry,
    SpiralResult,
    SpiralTracingTest,
    compute_rmse,
    radial_error,
    score_spiral,
)
from .stability import (
    DriftAnalysis,
    StabilityPhase,
    StabilityResult,
    StabilityTest,
    TremorAnalysis,
    analyze_drift,
    analyze_tremor,
    combine_stability,
    count_zero_crossings,
    motion_magnitude,
)

__all__ = [
    'SpiralGeometry',
    'SpiralResult',
    'SpiralTracingTest',
    'compute_rmse',
    'radial_error',
    'score_spiral',
    'DriftAnalysis',
    'StabilityPhase',
    'StabilityResult',
    'StabilityTest',
    'TremorAnalysis',
    'analyze_drift',
    'analyze_tremor',
    'combine_stability',
    'count_zero_crossings',
    'motion_magnitude',
]
