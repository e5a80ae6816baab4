"""
Facial symmetry analysis from face-mesh landmarks.

Clinical markers extracted:
1. Eye symmetry - ratio of left/right eye opening heights
2. Brow symmetry - ratio of left/right eyebrow cluster heights
3. Mouth symmetry - ratio of mouth-corner distances to the lip center

Engineering decisions:
- Operates on MediaPipe Face Mesh topology (468 normalized 3D landmarks)
- Head pose is gated, not corrected: frames with the face too far, too
  close, tilted or turned are dropped from the scoring window
- Frames are throttled to ~15/sec; excess frames are dropped, not queued
- Scan window is a fixed 4 s; the mean of admitted samples is reduced

Clinical rationale:
- Unilateral facial droop (eye, brow, mouth corner) is a primary stroke sign
- Head yaw changes apparent left/right sizes, hence the strict depth check
- Mouth asymmetry is weighted with eyes above brows (brows move less)
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from capture.events import LandmarkFrame
from capture.interfaces import FrameSource, Subscription
from capture.throttle import FrameThrottle
from utils.errors import (
    ConstraintViolationError,
    DegenerateMeasurementError,
    InsufficientDataError,
    ScreeningError,
)
from utils.geometry import calculate_symmetry, cluster_symmetry, distance_2d
from .lighting import LightingMonitor

logger = logging.getLogger(__name__)

# Face Mesh landmark indices
LEFT_EYE = [33, 160, 158, 133, 153, 144]
RIGHT_EYE = [362, 385, 387, 263, 373, 380]
LEFT_BROW = [70, 63, 105, 66, 107]
RIGHT_BROW = [336, 296, 334, 293, 300]
LEFT_CHEEK = 234
RIGHT_CHEEK = 454
NOSE_TOP = 10
NOSE_BOTTOM = 152
MOUTH_LEFT = 61
MOUTH_RIGHT = 291
MOUTH_CENTER = 13
MIN_MESH_POINTS = RIGHT_CHEEK + 1


class PoseIssue(Enum):
    """Why a frame is (not) admitted into the scoring window."""
    OK = "ok"
    TOO_DARK = "too_dark"
    NO_FACE = "no_face"
    TOO_FAR = "too_far"
    TOO_CLOSE = "too_close"
    HEAD_TILTED = "head_tilted"
    HEAD_TURNED = "head_turned"

    @property
    def message(self) -> str:
        return POSE_MESSAGES[self]


POSE_MESSAGES = {
    PoseIssue.OK: "Position is good, hold still",
    PoseIssue.TOO_DARK: "Too dark, please turn on a light",
    PoseIssue.NO_FACE: "No face detected",
    PoseIssue.TOO_FAR: "Please move a little closer",
    PoseIssue.TOO_CLOSE: "Please move a little further away",
    PoseIssue.HEAD_TILTED: "Please keep your head level",
    PoseIssue.HEAD_TURNED: "Please do not turn your head",
}


@dataclass
class SymmetrySample:
    """Per-frame symmetry ratios, each an int in [0, 100]."""
    eye_sym: int
    brow_sym: int
    mouth_sym: int


@dataclass
class FrameAnalysis:
    """
    Per-frame analysis output.

    Attributes:
        timestamp: Frame time in seconds
        pose_issue: OK or the first violated pose rule
        face_width: Inter-cheek distance (normalized)
        tilt: Horizontal nose-line offset
        depth_asymmetry: |z(left cheek) - z(right cheek)|
        sample: Symmetry ratios, None if unmeasurable
    """
    timestamp: float
    pose_issue: PoseIssue
    face_width: float = 0.0
    tilt: float = 0.0
    depth_asymmetry: float = 0.0
    sample: Optional[SymmetrySample] = None

    @property
    def admissible(self) -> bool:
        return self.pose_issue == PoseIssue.OK and self.sample is not None


@dataclass
class VisualCaptureResult:
    """
    Reduced scan window.

    Attributes:
        eye_mean: Mean eye symmetry over admitted frames
        mouth_mean: Mean mouth symmetry
        brow_mean: Mean brow symmetry
        num_samples: Number of admitted frames
        duration_sec: Wall-clock scan length
    """
    eye_mean: float
    mouth_mean: float
    brow_mean: float
    num_samples: int
    duration_sec: float


def evaluate_pose(landmarks: np.ndarray, config: Optional[Dict] = None) -> Tuple[PoseIssue, float, float, float]:
    """
    Check head position against the pose thresholds.

    Rules are checked in order and the first violation wins:
    too far, too close, tilted, turned.

    Returns:
        (issue, face_width, tilt, depth_asymmetry)
    """
    pose_cfg = (config or {}).get('visual', {}).get('pose', {})

    left_cheek = landmarks[LEFT_CHEEK]
    right_cheek = landmarks[RIGHT_CHEEK]
    face_width = distance_2d(left_cheek, right_cheek)
    tilt = abs(float(landmarks[NOSE_TOP][0] - landmarks[NOSE_BOTTOM][0]))
    depth_asymmetry = abs(float(left_cheek[2] - right_cheek[2])) if len(left_cheek) > 2 else 0.0

    if face_width < pose_cfg.get('min_face_width', 0.25):
        issue = PoseIssue.TOO_FAR
    elif face_width > pose_cfg.get('max_face_width', 0.8):
        issue = PoseIssue.TOO_CLOSE
    elif tilt > pose_cfg.get('max_tilt', 0.08):
        issue = PoseIssue.HEAD_TILTED
    elif depth_asymmetry > pose_cfg.get('max_depth_asymmetry', 0.05):
        issue = PoseIssue.HEAD_TURNED
    else:
        issue = PoseIssue.OK

    return issue, face_width, tilt, depth_asymmetry


def compute_symmetry(landmarks: np.ndarray) -> SymmetrySample:
    """
    Eye, brow and mouth symmetry of one landmark frame.

    Raises:
        DegenerateMeasurementError: if any pair of measures is undefined
    """
    eye_sym = cluster_symmetry(landmarks[LEFT_EYE], landmarks[RIGHT_EYE])
    brow_sym = cluster_symmetry(landmarks[LEFT_BROW], landmarks[RIGHT_BROW])

    center = landmarks[MOUTH_CENTER]
    mouth_sym = calculate_symmetry(
        distance_2d(landmarks[MOUTH_LEFT], center),
        distance_2d(landmarks[MOUTH_RIGHT], center)
    )

    return SymmetrySample(eye_sym=eye_sym, brow_sym=brow_sym, mouth_sym=mouth_sym)


def analyze_landmarks(
    landmarks: Optional[np.ndarray],
    timestamp: float,
    config: Optional[Dict] = None
) -> FrameAnalysis:
    """
    Analyze a single landmark frame.

    A degenerate symmetry measurement is logged and leaves `sample` empty;
    it never produces a coerced value.

    Args:
        landmarks: (N, 2|3) normalized points, or None if no face
        timestamp: Frame time in seconds
        config: Configuration dictionary

    Returns:
        FrameAnalysis object
    """
    if landmarks is None or len(landmarks) == 0:
        return FrameAnalysis(timestamp=timestamp, pose_issue=PoseIssue.NO_FACE)

    landmarks = np.asarray(landmarks, dtype=np.float64)
    if landmarks.ndim != 2 or landmarks.shape[0] < MIN_MESH_POINTS:
        logger.debug(f"Incomplete face mesh ({landmarks.shape[0]} points) at t={timestamp:.3f}s")
        return FrameAnalysis(timestamp=timestamp, pose_issue=PoseIssue.NO_FACE)

    issue, face_width, tilt, depth_asymmetry = evaluate_pose(landmarks, config)

    try:
        sample = compute_symmetry(landmarks)
    except DegenerateMeasurementError as e:
        logger.debug(f"Degenerate symmetry at t={timestamp:.3f}s: {e}")
        sample = None

    return FrameAnalysis(
        timestamp=timestamp,
        pose_issue=issue,
        face_width=face_width,
        tilt=tilt,
        depth_asymmetry=depth_asymmetry,
        sample=sample
    )


class FacialSymmetryAnalyzer:
    """
    Stateful scan session over a stream of landmark frames.

    Session lifecycle:
        analyzer = FacialSymmetryAnalyzer(config)
        analyzer.attach(frame_source)         # optional, or call tick() directly
        analyzer.start_capture(now)           # refused if pose/lighting invalid
        analyzer.tick(frame) ...              # admits OK frames while capturing
        result = analyzer.finish()            # or automatic after 4 s

    The sample window is owned by the analyzer and discarded on finish or
    abort; nothing carries over between scans.
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        on_complete: Optional[Callable[[VisualCaptureResult], None]] = None
    ):
        self.config = config or {}
        visual_cfg = self.config.get('visual', {})

        self.capture_duration_sec = visual_cfg.get('capture_duration_sec', 4.0)
        self.throttle = FrameThrottle(visual_cfg.get('throttle_interval_ms', 66) / 1000.0)
        self.lighting = LightingMonitor(self.config)
        self.on_complete = on_complete

        self.capturing = False
        self.capture_start: Optional[float] = None
        self.samples: List[SymmetrySample] = []
        self.last_analysis: Optional[FrameAnalysis] = None
        self.result: Optional[VisualCaptureResult] = None
        self.feedback = PoseIssue.NO_FACE.message
        self._subscription: Optional[Subscription] = None

    # ------------------------------------------------------------------
    # Source wiring
    # ------------------------------------------------------------------

    def attach(self, source: FrameSource):
        """Subscribe to a frame source (replacing any earlier subscription)."""
        self.detach()
        self._subscription = source.subscribe(self.tick)

    def detach(self):
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    # ------------------------------------------------------------------
    # Per-frame processing
    # ------------------------------------------------------------------

    @property
    def pose_issue(self) -> PoseIssue:
        if self.lighting.too_dark:
            return PoseIssue.TOO_DARK
        if self.last_analysis is None:
            return PoseIssue.NO_FACE
        return self.last_analysis.pose_issue

    def tick(self, frame: LandmarkFrame) -> Optional[FrameAnalysis]:
        """
        Process one frame.

        Returns:
            FrameAnalysis, or None if the frame was throttled
        """
        if not self.throttle.admit(frame.timestamp):
            return None

        if frame.brightness is not None:
            self.lighting.update(frame.brightness, frame.timestamp)

        if self.lighting.too_dark:
            analysis = FrameAnalysis(timestamp=frame.timestamp, pose_issue=PoseIssue.TOO_DARK)
        else:
            analysis = analyze_landmarks(frame.landmarks, frame.timestamp, self.config)

        self.last_analysis = analysis
        self.feedback = analysis.pose_issue.message

        if self.capturing:
            if analysis.admissible:
                self.samples.append(analysis.sample)
            else:
                logger.debug(f"Frame at t={frame.timestamp:.3f}s dropped: {analysis.pose_issue.value}")
            self.advance(frame.timestamp)

        return analysis

    # ------------------------------------------------------------------
    # Scan session
    # ------------------------------------------------------------------

    def start_capture(self, now: float):
        """
        Begin a 4 s scan window.

        Raises:
            ConstraintViolationError: if lighting is too dark or the last
                frame's pose was not OK
        """
        issue = self.pose_issue
        if issue != PoseIssue.OK:
            logger.warning(f"Scan refused: {issue.value}")
            raise ConstraintViolationError(
                f"Cannot start facial scan: {issue.value}",
                reason=issue.value,
                user_message=issue.message
            )

        self.samples = []
        self.result = None
        self.capturing = True
        self.capture_start = now
        logger.info("Facial symmetry scan started")

    def progress(self, now: float) -> int:
        """Scan progress 0-100."""
        if self.result is not None:
            return 100
        if not self.capturing or self.capture_start is None:
            return 0
        elapsed = now - self.capture_start
        return int(min(100, max(0, elapsed / self.capture_duration_sec * 100)))

    def advance(self, now: float) -> Optional[VisualCaptureResult]:
        """
        Finish the scan once its duration has elapsed.

        Soft failures (empty window) reset the session and leave `result`
        unset; the reason is in `feedback`.
        """
        if not self.capturing or now - self.capture_start < self.capture_duration_sec:
            return None
        try:
            result = self.finish(now)
        except ScreeningError as e:
            logger.warning(f"Facial scan failed: {e}")
            self.feedback = e.user_message
            return None
        if self.on_complete is not None:
            self.on_complete(result)
        return result

    def finish(self, now: Optional[float] = None) -> VisualCaptureResult:
        """
        Reduce the sample window to per-feature means.

        Raises:
            InsufficientDataError: if no frame was admitted
        """
        samples = self.samples
        start = self.capture_start
        self._reset_window()

        if not samples:
            raise InsufficientDataError("No valid face frames in scan window")

        eye = np.mean([s.eye_sym for s in samples])
        mouth = np.mean([s.mouth_sym for s in samples])
        brow = np.mean([s.brow_sym for s in samples])

        duration = (now - start) if (now is not None and start is not None) else self.capture_duration_sec

        self.result = VisualCaptureResult(
            eye_mean=float(eye),
            mouth_mean=float(mouth),
            brow_mean=float(brow),
            num_samples=len(samples),
            duration_sec=float(duration)
        )

        logger.info(
            f"Facial scan finished: {len(samples)} samples, "
            f"eye={eye:.1f} mouth={mouth:.1f} brow={brow:.1f}"
        )
        return self.result

    def abort(self):
        """Cancel the scan and discard the window."""
        if self.capturing:
            logger.info("Facial symmetry scan aborted")
        self._reset_window()
        self.result = None

    def _reset_window(self):
        self.capturing = False
        self.capture_start = None
        self.samples = []
