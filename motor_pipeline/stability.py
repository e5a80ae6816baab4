"""
Static arm-hold sub-test: drift and resting tremor.

Protocol:
1. PREP: 5 s countdown while the user raises the phone at arm's length
2. MEASURING: exactly 10 s with eyes closed; orientation (beta tilt) and
   acceleration are collected only in this phase
3. Reduce to drift angle and tremor frequency/intensity

Clinical rationale:
- Pronator drift: a weak arm sinks when held out with eyes closed; seen
  as growing tilt relative to the starting angle
- Resting tremor (Parkinsonian 4-6 Hz, essential 4-12 Hz) shows as
  oscillation of the acceleration magnitude in the 3-12 Hz band above the
  sensor noise floor; slow intentional movement stays below 3 Hz

Engineering approach:
- DC removal by mean subtraction (gravity, sensor offset)
- Intensity = RMS of the AC signal; frequency from zero crossings
- Phases are duration-driven, never sensor-triggered, so no timeout is
  needed; listeners exist only for the measurement window
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence

import numpy as np

from capture.events import MotionSample, OrientationSample
from capture.interfaces import MotionSource, Subscription
from scoring.models import IssueTag
from utils.errors import DeviceUnavailableError, InsufficientDataError

logger = logging.getLogger(__name__)


@dataclass
class DriftAnalysis:
    """Tilt deviation from the starting angle."""
    max_drift_deg: float
    is_drifting: bool
    score: float


@dataclass
class TremorAnalysis:
    """
    Zero-crossing tremor classification.

    Attributes:
        detected: Frequency in band and intensity above the noise floor
        intensity: RMS of the mean-removed magnitude (m/s^2)
        frequency_hz: crossings / (2 * duration)
        num_samples: Magnitude samples analyzed
    """
    detected: bool
    intensity: float
    frequency_hz: float
    num_samples: int


@dataclass
class StabilityResult:
    """Scored stability sub-test."""
    score: int
    issues: FrozenSet[IssueTag] = field(default_factory=frozenset)
    drift: Optional[DriftAnalysis] = None
    tremor: Optional[TremorAnalysis] = None


def motion_magnitude(sample: MotionSample) -> float:
    """
    Acceleration magnitude for tremor analysis.

    Prefers the gravity-compensated vector; falls back to the raw reading
    including gravity on devices that cannot separate it. The constant
    gravity offset is removed later by mean subtraction.
    """
    if sample.linear is not None:
        x, y, z = sample.linear
        return math.sqrt(x ** 2 + y ** 2 + z ** 2)
    return sample.magnitude


def analyze_drift(betas: Sequence[float], config: Optional[Dict] = None) -> DriftAnalysis:
    """
    Maximum absolute tilt deviation from the first reading.

    No readings yields zero drift.
    """
    stab_cfg = (config or {}).get('touch', {}).get('stability', {})

    betas = np.asarray(betas, dtype=np.float64)
    max_drift = float(np.max(np.abs(betas - betas[0]))) if betas.size else 0.0

    return DriftAnalysis(
        max_drift_deg=max_drift,
        is_drifting=max_drift > stab_cfg.get('drift_threshold_deg', 15),
        score=max(0.0, 100 - stab_cfg.get('drift_weight', 2.0) * max_drift)
    )


def count_zero_crossings(signal: np.ndarray) -> int:
    """Sign changes between consecutive samples, treating 0 as positive."""
    positive = np.asarray(signal) >= 0
    return int(np.count_nonzero(positive[1:] != positive[:-1]))


def analyze_tremor(
    magnitudes: Sequence[float],
    duration_sec: float = 10.0,
    config: Optional[Dict] = None
) -> TremorAnalysis:
    """
    Classify resting tremor from an acceleration-magnitude stream.

    Args:
        magnitudes: Magnitude per sensor tick over the measurement window
        duration_sec: Window length used to convert crossings to Hz
        config: Configuration dictionary (touch.stability section)

    Returns:
        TremorAnalysis; fewer than 10 samples is "not detected"
    """
    stab_cfg = (config or {}).get('touch', {}).get('stability', {})
    magnitudes = np.asarray(magnitudes, dtype=np.float64)

    if len(magnitudes) < stab_cfg.get('min_samples', 10):
        logger.warning(f"Too few motion samples for tremor analysis ({len(magnitudes)})")
        return TremorAnalysis(detected=False, intensity=0.0, frequency_hz=0.0, num_samples=len(magnitudes))

    ac_signal = magnitudes - np.mean(magnitudes)
    intensity = float(np.sqrt(np.mean(ac_signal ** 2)))
    frequency = count_zero_crossings(ac_signal) / (2 * duration_sec)

    in_band = (stab_cfg.get('tremor_min_frequency_hz', 3)
               <= frequency
               <= stab_cfg.get('tremor_max_frequency_hz', 12))
    significant = intensity > stab_cfg.get('tremor_min_intensity', 0.2)

    return TremorAnalysis(
        detected=bool(in_band and significant),
        intensity=intensity,
        frequency_hz=float(frequency),
        num_samples=len(magnitudes)
    )


def combine_stability(drift: DriftAnalysis, tremor: TremorAnalysis, config: Optional[Dict] = None) -> StabilityResult:
    """
    Final stability score.

        penalty = min(cap, intensity * gain) if tremor detected else 0
        score = max(0, floor(drift_score - penalty))
    """
    stab_cfg = (config or {}).get('touch', {}).get('stability', {})

    penalty = 0.0
    if tremor.detected:
        penalty = min(
            stab_cfg.get('tremor_penalty_cap', 50),
            tremor.intensity * stab_cfg.get('tremor_penalty_gain', 80)
        )

    score = max(0, int(math.floor(drift.score - penalty)))

    issues = set()
    if drift.is_drifting:
        issues.add(IssueTag.ARM_DROP)
    if tremor.detected:
        issues.add(IssueTag.RESTING_TREMOR)

    return StabilityResult(score=score, issues=frozenset(issues), drift=drift, tremor=tremor)


class StabilityPhase(Enum):
    IDLE = "idle"
    PREP = "prep"
    MEASURING = "measuring"
    DONE = "done"


class StabilityTest:
    """
    Stateful arm-hold session.

    Usage:
        test = StabilityTest(config)
        test.start(motion_source, now)    # PREP countdown begins
        test.tick(now) ...                # timer ticks drive the phases
        motion_source pushes samples while MEASURING
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        on_complete: Optional[Callable[[StabilityResult], None]] = None
    ):
        self.config = config or {}
        stab_cfg = self.config.get('touch', {}).get('stability', {})

        self.prep_duration_sec = stab_cfg.get('prep_duration_sec', 5.0)
        self.measure_duration_sec = stab_cfg.get('measure_duration_sec', 10.0)
        self.on_complete = on_complete

        self.phase = StabilityPhase.IDLE
        self.feedback = ""
        self.result: Optional[StabilityResult] = None

        self._source: Optional[MotionSource] = None
        self._subscriptions: List[Subscription] = []
        self._phase_start: Optional[float] = None
        self._betas: List[float] = []
        self._magnitudes: List[float] = []

    def start(self, source: MotionSource, now: float):
        """
        Request sensor access and begin the preparation countdown.

        Raises:
            DeviceUnavailableError: permission denied; the test stays IDLE
        """
        if self.phase in (StabilityPhase.PREP, StabilityPhase.MEASURING):
            raise RuntimeError("Stability test already running")

        if not source.request_permission():
            self.feedback = "Motion sensor permission denied"
            logger.warning("Motion sensor permission denied")
            raise DeviceUnavailableError("Motion sensor permission denied", self.feedback)

        self._source = source
        self.result = None
        self.phase = StabilityPhase.PREP
        self._phase_start = now
        self.feedback = "Hold the phone out at arm's length. Starting in 5 seconds."
        logger.info("Stability test preparing")

    def countdown(self, now: float) -> int:
        """Whole seconds left in the current phase."""
        if self.phase == StabilityPhase.PREP:
            total = self.prep_duration_sec
        elif self.phase == StabilityPhase.MEASURING:
            total = self.measure_duration_sec
        else:
            return 0
        return max(0, math.ceil(total - (now - self._phase_start)))

    def tick(self, now: float) -> Optional[StabilityResult]:
        """Advance the countdown; switches phase or finishes when due."""
        if self.phase == StabilityPhase.PREP and now - self._phase_start >= self.prep_duration_sec:
            self._begin_measurement(now)
        elif self.phase == StabilityPhase.MEASURING and now - self._phase_start >= self.measure_duration_sec:
            return self.finish()
        return None

    def _begin_measurement(self, now: float):
        try:
            self._source.start()
        except DeviceUnavailableError as e:
            logger.warning(f"Motion sensor unavailable: {e}")
            self.feedback = e.user_message
            self._reset()
            return

        self._betas = []
        self._magnitudes = []
        self._subscriptions = [
            self._source.subscribe_orientation(self.on_orientation),
            self._source.subscribe_motion(self.on_motion),
        ]
        self.phase = StabilityPhase.MEASURING
        self._phase_start = now
        self.feedback = "Close your eyes and hold still"
        logger.info("Stability measurement started")

    def _window_elapsed(self, timestamp: float) -> bool:
        if timestamp - self._phase_start >= self.measure_duration_sec:
            self.finish()
            return True
        return False

    def on_orientation(self, sample: OrientationSample):
        if self.phase != StabilityPhase.MEASURING or self._window_elapsed(sample.timestamp):
            return
        self._betas.append(float(sample.beta))

    def on_motion(self, sample: MotionSample):
        if self.phase != StabilityPhase.MEASURING or self._window_elapsed(sample.timestamp):
            return
        self._magnitudes.append(motion_magnitude(sample))

    def abort(self):
        """Cancel from any phase, releasing sensor listeners."""
        if self.phase in (StabilityPhase.PREP, StabilityPhase.MEASURING):
            logger.info("Stability test aborted")
        self._reset()
        self.result = None

    def finish(self) -> Optional[StabilityResult]:
        """
        Release the sensors and score the window.

        An empty motion or orientation stream emits no score: feedback
        carries a retry prompt and the test returns to IDLE.
        """
        if self.phase != StabilityPhase.MEASURING:
            return None

        betas, magnitudes = self._betas, self._magnitudes
        self._reset()

        try:
            self._check_window(betas, magnitudes)
        except InsufficientDataError as e:
            logger.warning(f"Stability test discarded: {e}")
            self.feedback = e.user_message
            self.result = None
            return None

        drift = analyze_drift(betas, self.config)
        tremor = analyze_tremor(magnitudes, self.measure_duration_sec, self.config)
        self.result = combine_stability(drift, tremor, self.config)
        self.phase = StabilityPhase.DONE
        self.feedback = "Done, you can lower your arm"

        logger.info(
            f"Stability test: drift={drift.max_drift_deg:.1f}deg "
            f"tremor={tremor.frequency_hz:.1f}Hz/{tremor.intensity:.3f} score={self.result.score}"
        )

        if self.on_complete is not None:
            self.on_complete(self.result)
        return self.result

    @staticmethod
    def _check_window(betas: List[float], magnitudes: List[float]):
        if not magnitudes:
            raise InsufficientDataError(
                "No motion samples in the measurement window",
                "No movement data was received, please try again"
            )
        if not betas:
            raise InsufficientDataError(
                "No orientation samples in the measurement window",
                "No tilt data was received, please try again"
            )

    @property
    def listener_count(self) -> int:
        return sum(1 for s in self._subscriptions if s.active)

    def _reset(self):
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []
        if self._source is not None and self.phase == StabilityPhase.MEASURING:
            self._source.stop()
        self._source = None
        self.phase = StabilityPhase.IDLE
        self._phase_start = None
        self._betas = []
        self._magnitudes = []
