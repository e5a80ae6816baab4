"""
Geometry primitives for landmark-based measurements.

All functions are stateless and operate on plain point sets:
- A point is any sequence whose first two entries are (x, y); a third
  entry (z, depth) is used where noted.
- A point set is an (N, 2) or (N, 3) array-like.

Symmetry convention:
    symmetry = floor(min(left, right) / max(left, right) * 100)

so 100 means perfectly symmetric and the value is always in [0, 100].
Both magnitudes zero (or negative / non-finite) is undefined and raises
DegenerateMeasurementError instead of being coerced to some value.
"""

import math
from typing import Sequence

import numpy as np

from .errors import DegenerateMeasurementError


def distance_2d(p1: Sequence[float], p2: Sequence[float]) -> float:
    """Euclidean distance in the image plane (x, y only)."""
    return math.hypot(p1[0] - p2[0], p1[1] - p2[1])


def bounding_box_height(points) -> float:
    """Vertical extent (max y - min y) of a point set."""
    pts = np.asarray(points, dtype=np.float64)
    if pts.ndim != 2 or pts.shape[0] == 0:
        raise DegenerateMeasurementError("Empty point cluster")
    return float(pts[:, 1].max() - pts[:, 1].min())


def calculate_symmetry(left_measure: float, right_measure: float) -> int:
    """
    Symmetry ratio of two non-negative magnitudes on a 0-100 scale.

    Args:
        left_measure: Left-side magnitude (height, distance, ...)
        right_measure: Right-side magnitude

    Returns:
        Integer in [0, 100]; 100 iff both magnitudes are equal

    Raises:
        DegenerateMeasurementError: if either magnitude is negative or
            non-finite, or both are zero
    """
    left = float(left_measure)
    right = float(right_measure)

    if not (math.isfinite(left) and math.isfinite(right)):
        raise DegenerateMeasurementError(
            f"Non-finite symmetry input: left={left}, right={right}"
        )
    if left < 0 or right < 0:
        raise DegenerateMeasurementError(
            f"Negative symmetry input: left={left}, right={right}"
        )

    larger = max(left, right)
    if larger == 0:
        raise DegenerateMeasurementError("Both symmetry magnitudes are zero")

    if left == right:
        return 100

    ratio = min(left, right) / larger
    # Unequal magnitudes never round up to a perfect score
    return min(99, int(math.floor(ratio * 100)))


def cluster_symmetry(left_points, right_points) -> int:
    """Symmetry of two landmark clusters by bounding-box height."""
    return calculate_symmetry(
        bounding_box_height(left_points),
        bounding_box_height(right_points)
    )


def polar_coordinates(x: float, y: float) -> tuple:
    """
    Polar form of a point relative to the origin.

    Returns:
        (r, theta) with theta normalized to [0, 2*pi)
    """
    r = math.hypot(x, y)
    theta = math.atan2(y, x)
    if theta < 0:
        theta += 2 * math.pi
    return r, theta
