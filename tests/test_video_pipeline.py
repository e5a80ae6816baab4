import pytest # pyright: ignore[reportMissingImports]
import numpy as np
from pathlib import Path

# Import modules to test
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from capture.events import LandmarkFrame
from capture.synthetic import SyntheticFrameSource
from capture.throttle import FrameThrottle
from utils.errors import ConstraintViolationError, InsufficientDataError
from video_pipeline.face_analyzer import (
    LEFT_BROW,
    LEFT_CHEEK,
    LEFT_EYE,
    MOUTH_CENTER,
    MOUTH_LEFT,
    MOUTH_RIGHT,
    NOSE_BOTTOM,
    NOSE_TOP,
    RIGHT_BROW,
    RIGHT_CHEEK,
    RIGHT_EYE,
    FacialSymmetryAnalyzer,
    PoseIssue,
    analyze_landmarks,
    compute_symmetry,
    evaluate_pose,
)
from video_pipeline.lighting import LightingMonitor, measure_brightness


def make_mesh(
    eye=(0.0625, 0.0625),
    brow=(0.03125, 0.03125),
    mouth=(0.125, 0.125),
    width=0.5,
    tilt=0.0,
    depth=0.0
):
    """Synthetic 478-point face mesh with controllable measures (dyadic values keep ratios exact)."""
    pts = np.full((478, 3), 0.5)
    pts[:, 2] = 0.0

    pts[LEFT_CHEEK] = [0.5 - width / 2, 0.5, depth]
    pts[RIGHT_CHEEK] = [0.5 + width / 2, 0.5, 0.0]
    pts[NOSE_TOP] = [0.5 + tilt, 0.25, 0.0]
    pts[NOSE_BOTTOM] = [0.5, 0.75, 0.0]

    for i, idx in enumerate(LEFT_EYE):
        pts[idx] = [0.375, 0.375 + eye[0] * (i % 2), 0.0]
    for i, idx in enumerate(RIGHT_EYE):
        pts[idx] = [0.625, 0.375 + eye[1] * (i % 2), 0.0]
    for i, idx in enumerate(LEFT_BROW):
        pts[idx] = [0.375, 0.25 + brow[0] * (i % 2), 0.0]
    for i, idx in enumerate(RIGHT_BROW):
        pts[idx] = [0.625, 0.25 + brow[1] * (i % 2), 0.0]

    pts[MOUTH_CENTER] = [0.5, 0.625, 0.0]
    pts[MOUTH_LEFT] = [0.5 - mouth[0], 0.625, 0.0]
    pts[MOUTH_RIGHT] = [0.5 + mouth[1], 0.625, 0.0]
    return pts


class TestEvaluatePose:
    """Test head pose gating rules."""

    def test_centered_face_is_ok(self):
        issue, width, tilt, depth = evaluate_pose(make_mesh())
        assert issue == PoseIssue.OK
        assert width == pytest.approx(0.5)
        assert tilt == 0.0
        assert depth == 0.0

    def test_too_far(self):
        issue, *_ = evaluate_pose(make_mesh(width=0.2))
        assert issue == PoseIssue.TOO_FAR

    def test_too_close(self):
        issue, *_ = evaluate_pose(make_mesh(width=0.9))
        assert issue == PoseIssue.TOO_CLOSE

    def test_tilted(self):
        issue, *_ = evaluate_pose(make_mesh(tilt=0.1))
        assert issue == PoseIssue.HEAD_TILTED

    def test_turned(self):
        issue, *_ = evaluate_pose(make_mesh(depth=0.1))
        assert issue == PoseIssue.HEAD_TURNED

    def test_first_rule_wins(self):
        """Too far is reported even when the head is also tilted and turned."""
        issue, *_ = evaluate_pose(make_mesh(width=0.2, tilt=0.1, depth=0.1))
        assert issue == PoseIssue.TOO_FAR

    def test_thresholds_from_config(self):
        config = {'visual': {'pose': {'max_tilt': 0.2}}}
        issue, *_ = evaluate_pose(make_mesh(tilt=0.1), config)
        assert issue == PoseIssue.OK


class TestComputeSymmetry:
    """Test per-frame symmetry ratios."""

    def test_symmetric_face(self):
        sample = compute_symmetry(make_mesh())
        assert sample.eye_sym == 100
        assert sample.brow_sym == 100
        assert sample.mouth_sym == 100

    def test_drooping_eye_and_mouth(self):
        sample = compute_symmetry(make_mesh(eye=(0.0625, 0.046875), mouth=(0.125, 0.0625)))
        assert sample.eye_sym == 75
        assert sample.mouth_sym == 50
        assert sample.brow_sym == 100


class TestAnalyzeLandmarks:
    """Test frame-level analysis."""

    def test_no_face(self):
        analysis = analyze_landmarks(None, 0.0)
        assert analysis.pose_issue == PoseIssue.NO_FACE
        assert not analysis.admissible

    def test_incomplete_mesh(self):
        analysis = analyze_landmarks(np.zeros((100, 3)), 0.0)
        assert analysis.pose_issue == PoseIssue.NO_FACE

    def test_degenerate_frame_has_no_sample(self):
        analysis = analyze_landmarks(make_mesh(eye=(0.0, 0.0)), 0.0)
        assert analysis.pose_issue == PoseIssue.OK
        assert analysis.sample is None
        assert not analysis.admissible

    def test_valid_frame_is_admissible(self):
        analysis = analyze_landmarks(make_mesh(), 1.5)
        assert analysis.admissible
        assert analysis.timestamp == 1.5


class TestFrameThrottle:
    """Test frame rate limiting."""

    def test_drops_frames_inside_interval(self):
        throttle = FrameThrottle(0.05)
        admitted = [throttle.admit(i * 0.03) for i in range(6)]
        assert admitted == [True, False, True, False, True, False]
        assert throttle.dropped == 3

    def test_reset(self):
        throttle = FrameThrottle(0.066)
        throttle.admit(0.0)
        throttle.reset()
        assert throttle.admit(0.01)
        assert throttle.dropped == 0


class TestLighting:
    """Test the too-dark gate."""

    def test_measure_brightness(self):
        image = np.full((120, 160, 3), 200, dtype=np.uint8)
        assert measure_brightness(image) == pytest.approx(200.0)

    def test_dark_detection(self):
        monitor = LightingMonitor()
        assert monitor.update(20, 0.0)
        assert monitor.too_dark

    def test_checks_are_throttled(self):
        monitor = LightingMonitor()
        monitor.update(20, 0.0)
        # Within 500 ms: ignored
        assert monitor.update(200, 0.2)
        assert not monitor.update(200, 0.6)


def run_frames(analyzer, start, stop, step=0.1, **mesh_kwargs):
    mesh = make_mesh(**mesh_kwargs)
    t = start
    while t <= stop:
        analyzer.tick(LandmarkFrame(landmarks=mesh, timestamp=t))
        t = round(t + step, 6)


class TestFacialSymmetryAnalyzer:
    """Test the scan session."""

    def test_full_scan(self):
        completed = []
        analyzer = FacialSymmetryAnalyzer(on_complete=completed.append)
        analyzer.tick(LandmarkFrame(landmarks=make_mesh(), timestamp=0.0))
        analyzer.start_capture(0.0)

        run_frames(analyzer, 0.1, 5.0)

        result = analyzer.result
        assert result is not None
        assert completed == [result]
        assert result.eye_mean == 100
        assert result.mouth_mean == 100
        assert result.brow_mean == 100
        assert result.num_samples >= 30
        assert not analyzer.capturing
        assert analyzer.samples == []

    def test_invalid_pose_frames_are_dropped(self):
        analyzer = FacialSymmetryAnalyzer()
        analyzer.tick(LandmarkFrame(landmarks=make_mesh(), timestamp=0.0))
        analyzer.start_capture(0.0)

        run_frames(analyzer, 0.1, 1.0)
        admitted = len(analyzer.samples)
        run_frames(analyzer, 1.1, 2.0, tilt=0.2)

        assert len(analyzer.samples) == admitted
        assert analyzer.feedback == PoseIssue.HEAD_TILTED.message

    def test_start_refused_with_bad_pose(self):
        analyzer = FacialSymmetryAnalyzer()
        analyzer.tick(LandmarkFrame(landmarks=make_mesh(width=0.2), timestamp=0.0))
        with pytest.raises(ConstraintViolationError) as exc_info:
            analyzer.start_capture(0.0)
        assert exc_info.value.reason == PoseIssue.TOO_FAR.value
        assert not analyzer.capturing

    def test_start_refused_when_dark(self):
        analyzer = FacialSymmetryAnalyzer()
        analyzer.tick(LandmarkFrame(landmarks=make_mesh(), timestamp=0.0, brightness=10.0))
        assert analyzer.pose_issue == PoseIssue.TOO_DARK
        with pytest.raises(ConstraintViolationError):
            analyzer.start_capture(0.0)

    def test_finish_with_empty_window(self):
        analyzer = FacialSymmetryAnalyzer()
        analyzer.tick(LandmarkFrame(landmarks=make_mesh(), timestamp=0.0))
        analyzer.start_capture(0.0)
        with pytest.raises(InsufficientDataError):
            analyzer.finish(0.5)

    def test_progress(self):
        analyzer = FacialSymmetryAnalyzer()
        assert analyzer.progress(1.0) == 0
        analyzer.tick(LandmarkFrame(landmarks=make_mesh(), timestamp=0.0))
        analyzer.start_capture(0.0)
        assert analyzer.progress(2.0) == 50

    def test_abort_discards_window(self):
        analyzer = FacialSymmetryAnalyzer()
        analyzer.tick(LandmarkFrame(landmarks=make_mesh(), timestamp=0.0))
        analyzer.start_capture(0.0)
        run_frames(analyzer, 0.1, 1.0)
        analyzer.abort()
        assert analyzer.samples == []
        assert analyzer.result is None
        assert not analyzer.capturing

    def test_attach_to_source(self):
        mesh = make_mesh()
        source = SyntheticFrameSource([LandmarkFrame(landmarks=mesh, timestamp=i * 0.1) for i in range(5)])
        analyzer = FacialSymmetryAnalyzer()
        analyzer.attach(source)
        source.start()
        source.replay()
        assert analyzer.pose_issue == PoseIssue.OK

        analyzer.detach()
        assert source.listener_count == 0
