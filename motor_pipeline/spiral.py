"""
Spiral tracing sub-test for limb coordination (ataxia screening).

The user traces an Archimedean spiral r(theta) = b * theta outward from the
center without lifting the finger. Each pointer sample is compared with
the ideal curve by its radial deviation; the session reduces to RMSE.

Engineering approach:
- Points are centered coordinates in reference pixels (scale 140 px)
- Angle is periodic but radius grows with the unwrapped angle, so the
  error is the minimum over candidate windings n = 0..LOOPS
- Capture must start inside the start zone; lifting the pointer before
  reaching the outer edge aborts and resets (no partial score)
- Fewer than 30 points caps the score: implausibly fast or glitchy input

Score:
    score = floor(min(max(0, 100 - 2 * RMSE), 40 if points < 30 else 100))
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from capture.events import PointerEvent, PointerPhase
from utils.errors import ConstraintViolationError, InsufficientDataError
from utils.geometry import polar_coordinates

logger = logging.getLogger(__name__)


class SpiralGeometry:
    """
    Ideal spiral r = b * theta for theta in [0, 2*pi*loops].

    Args:
        max_radius: Outer radius (reference pixels)
        loops: Number of turns
        winding_tolerance: Extra angle (rad) allowed past the last turn
            when matching a point to a winding
    """

    def __init__(self, max_radius: float = 140, loops: int = 3, winding_tolerance: float = 0.5):
        self.max_radius = max_radius
        self.loops = loops
        self.winding_tolerance = winding_tolerance
        self.b = max_radius / (2 * math.pi * loops)

    @classmethod
    def from_config(cls, config: Optional[Dict] = None) -> 'SpiralGeometry':
        spiral_cfg = (config or {}).get('touch', {}).get('spiral', {})
        return cls(
            max_radius=spiral_cfg.get('max_radius', 140),
            loops=spiral_cfg.get('loops', 3),
            winding_tolerance=spiral_cfg.get('winding_tolerance_rad', 0.5)
        )

    @property
    def max_theta(self) -> float:
        return 2 * math.pi * self.loops

    def ideal_radius(self, theta: float) -> float:
        return self.b * theta

    def ideal_point(self, theta: float) -> Tuple[float, float]:
        r = self.ideal_radius(theta)
        return r * math.cos(theta), r * math.sin(theta)

    def radial_error(self, x: float, y: float) -> float:
        """
        Radial deviation of a centered point from the nearest winding.

        Returns:
            min over n in [0, loops] of |r - b * (theta + 2*pi*n)|
        """
        r, theta = polar_coordinates(x, y)
        limit = self.max_theta + self.winding_tolerance

        best = math.inf
        for n in range(self.loops + 1):
            candidate = theta + 2 * math.pi * n
            if candidate > limit:
                continue
            best = min(best, abs(r - self.b * candidate))
        return best


def radial_error(x: float, y: float, geometry: Optional[SpiralGeometry] = None) -> float:
    """Radial deviation from the default (140 px, 3 loop) spiral."""
    return (geometry or SpiralGeometry()).radial_error(x, y)


def compute_rmse(errors) -> float:
    errors = np.asarray(errors, dtype=np.float64)
    if errors.size == 0:
        raise InsufficientDataError("No spiral samples recorded")
    return float(np.sqrt(np.mean(errors ** 2)))


def score_spiral(rmse: float, num_points: int, config: Optional[Dict] = None) -> int:
    """Map RMSE and point count to the 0-100 coordination score."""
    spiral_cfg = (config or {}).get('touch', {}).get('spiral', {})
    score = max(0.0, 100 - spiral_cfg.get('rmse_weight', 2.0) * rmse)
    if num_points < spiral_cfg.get('min_points', 30):
        score = min(score, spiral_cfg.get('sparse_cap', 40))
    return int(math.floor(score))


@dataclass
class SpiralResult:
    """
    Scored spiral trace.

    Attributes:
        score: Coordination score 0-100
        rmse: Root-mean-square radial error (px)
        num_points: Recorded points including the start point
    """
    score: int
    rmse: float
    num_points: int


class SpiralTracingTest:
    """
    Stateful spiral session driven by pointer events.

    The session buffers (points and per-point errors) exist only while
    the pointer is down; lifting early or aborting discards them.
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        on_complete: Optional[Callable[[SpiralResult], None]] = None
    ):
        self.config = config or {}
        spiral_cfg = self.config.get('touch', {}).get('spiral', {})

        self.geometry = SpiralGeometry.from_config(self.config)
        self.start_zone_radius = spiral_cfg.get('start_zone_radius', 35)
        self.completion_radius = self.geometry.max_radius - spiral_cfg.get('completion_margin', 10)
        self.on_complete = on_complete

        self.drawing = False
        self.points: List[Tuple[float, float]] = []
        self.errors: List[float] = []
        self.progress = 0.0
        self.feedback = "Press and hold the center dot to begin"
        self.result: Optional[SpiralResult] = None

    def handle(self, event: PointerEvent) -> Optional[SpiralResult]:
        """Dispatch a pointer event; start-zone violations become feedback."""
        if event.phase == PointerPhase.DOWN:
            try:
                self.pointer_down(event.x, event.y)
            except ConstraintViolationError as e:
                self.feedback = e.user_message
            return None
        if event.phase == PointerPhase.MOVE:
            return self.pointer_move(event.x, event.y)
        self.pointer_up()
        return None

    def pointer_down(self, x: float, y: float):
        """
        Begin a trace.

        Raises:
            ConstraintViolationError: pointer outside the start zone
        """
        if math.hypot(x, y) > self.start_zone_radius:
            logger.warning(f"Spiral start refused at distance {math.hypot(x, y):.1f}px")
            raise ConstraintViolationError(
                "Spiral trace must start at the center",
                reason="outside_start_zone",
                user_message="Please start from the center dot"
            )

        self.drawing = True
        self.points = [(x, y)]
        self.errors = []
        self.progress = 0.0
        self.result = None
        self.feedback = "Keep holding and trace outward..."
        logger.info("Spiral trace started")

    def pointer_move(self, x: float, y: float) -> Optional[SpiralResult]:
        """Record a point; finishes automatically at the outer edge."""
        if not self.drawing:
            return None

        self.points.append((x, y))
        self.errors.append(self.geometry.radial_error(x, y))

        distance = math.hypot(x, y)
        self.progress = min(100.0, distance / self.geometry.max_radius * 100)

        if distance >= self.completion_radius:
            return self.finish()
        return None

    def pointer_up(self):
        """Lifting before completion aborts and resets the trace."""
        if self.drawing:
            logger.info(f"Spiral trace aborted after {len(self.points)} points")
            self.abort()
            self.feedback = "Please do not lift your finger, start again from the center"

    def abort(self):
        self.drawing = False
        self.points = []
        self.errors = []
        self.progress = 0.0

    def finish(self) -> Optional[SpiralResult]:
        """Score the trace and release its buffers."""
        errors, num_points = self.errors, len(self.points)
        self.drawing = False
        self.points = []
        self.errors = []

        try:
            rmse = compute_rmse(errors)
        except InsufficientDataError as e:
            logger.warning(f"Spiral trace failed: {e}")
            self.feedback = e.user_message
            self.progress = 0.0
            return None

        score = score_spiral(rmse, num_points, self.config)
        self.result = SpiralResult(score=score, rmse=rmse, num_points=num_points)
        self.progress = 100.0
        self.feedback = "Done"

        logger.info(f"Spiral trace: {num_points} points, rmse={rmse:.2f}px, score={score}")

        if self.on_complete is not None:
            self.on_complete(self.result)
        return self.result
