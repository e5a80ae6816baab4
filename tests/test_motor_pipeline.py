import pytest # pyright: ignore[reportMissingImports]
import math
import numpy as np
from pathlib import Path

# Import modules to test
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from capture.events import MotionSample, OrientationSample, PointerEvent, PointerPhase
from capture.synthetic import SyntheticMotionSource
from motor_pipeline.spiral import (
    SpiralGeometry,
    SpiralTracingTest,
    compute_rmse,
    radial_error,
    score_spiral,
)
from motor_pipeline.stability import (
    StabilityPhase,
    StabilityTest,
    analyze_drift,
    analyze_tremor,
    combine_stability,
    count_zero_crossings,
    motion_magnitude,
)
from scoring.models import IssueTag
from utils.errors import DeviceUnavailableError, InsufficientDataError


def square_wave(block, total=600, low=9.75, high=10.25):
    """Magnitudes alternating between two levels every `block` samples."""
    return [high if (i // block) % 2 == 0 else low for i in range(total)]


class TestRadialError:
    """Test deviation from the ideal spiral."""

    def test_points_on_curve(self):
        geometry = SpiralGeometry()
        for theta in (1.0, 5.0, 10.0, 17.0):
            x, y = geometry.ideal_point(theta)
            assert radial_error(x, y) == pytest.approx(0.0, abs=1e-9)

    def test_offset_points(self):
        geometry = SpiralGeometry()
        for theta, delta in ((4.0, 3.0), (9.0, -4.0), (15.0, 6.0)):
            r = geometry.ideal_radius(theta) + delta
            error = radial_error(r * math.cos(theta), r * math.sin(theta))
            assert error == pytest.approx(abs(delta), abs=1e-9)

    def test_geometry_from_config(self):
        geometry = SpiralGeometry.from_config({'touch': {'spiral': {'max_radius': 60, 'loops': 2}}})
        assert geometry.max_theta == pytest.approx(4 * math.pi)
        assert geometry.ideal_radius(geometry.max_theta) == pytest.approx(60)


class TestSpiralScoring:
    """Test RMSE reduction and the score mapping."""

    def test_rmse(self):
        assert compute_rmse([3.0, 4.0, 3.0, 4.0]) == pytest.approx(math.sqrt(12.5))

    def test_rmse_empty(self):
        with pytest.raises(InsufficientDataError):
            compute_rmse([])

    def test_score(self):
        assert score_spiral(5.0, 100) == 90
        assert score_spiral(60.0, 100) == 0

    def test_sparse_trace_is_capped(self):
        assert score_spiral(1.0, 20) == 40
        assert score_spiral(40.0, 20) == 20


def trace_events(points):
    events = [PointerEvent(x=points[0][0], y=points[0][1], timestamp=0.0, phase=PointerPhase.DOWN)]
    for i, (x, y) in enumerate(points[1:], start=1):
        events.append(PointerEvent(x=x, y=y, timestamp=i * 0.016, phase=PointerPhase.MOVE))
    return events


class TestSpiralTracingTest:
    """Test the pointer-driven tracing session."""

    def test_noisy_trace_scores_by_rmse(self):
        geometry = SpiralGeometry()
        rng = np.random.default_rng(42)
        points = []
        for theta in np.linspace(3.0, geometry.max_theta, 200):
            r = geometry.ideal_radius(theta) + rng.choice([-5.0, 5.0])
            points.append((r * math.cos(theta), r * math.sin(theta)))

        completed = []
        test = SpiralTracingTest(on_complete=completed.append)
        for event in trace_events(points):
            test.handle(event)
            if test.result is not None:
                break

        result = test.result
        assert result is not None
        assert completed == [result]
        assert result.rmse == pytest.approx(5.0, abs=1e-6)
        assert result.score in (89, 90)
        assert result.num_points >= 30
        assert test.progress == 100.0
        assert test.points == []

    def test_lift_aborts_trace(self):
        geometry = SpiralGeometry()
        points = [geometry.ideal_point(theta) for theta in np.linspace(0.5, 3.0, 10)]
        test = SpiralTracingTest()
        for event in trace_events(points):
            test.handle(event)
        assert len(test.points) == 10

        test.handle(PointerEvent(x=points[-1][0], y=points[-1][1], timestamp=1.0, phase=PointerPhase.UP))

        assert test.points == []
        assert test.errors == []
        assert test.progress == 0.0
        assert test.result is None
        assert not test.drawing
        assert "lift" in test.feedback

    def test_start_outside_zone(self):
        test = SpiralTracingTest()
        test.handle(PointerEvent(x=100.0, y=0.0, timestamp=0.0, phase=PointerPhase.DOWN))
        assert not test.drawing
        assert test.feedback == "Please start from the center dot"

        # Moves without a valid start are ignored
        assert test.handle(PointerEvent(x=120.0, y=0.0, timestamp=0.1)) is None
        assert test.points == []

    def test_progress_tracks_distance(self):
        test = SpiralTracingTest()
        test.pointer_down(0.0, 0.0)
        test.pointer_move(70.0, 0.0)
        assert test.progress == pytest.approx(50.0)


class TestMotionMagnitude:
    """Test gravity-compensated vs raw acceleration selection."""

    def test_prefers_compensated_vector(self):
        sample = MotionSample(x=0.0, y=0.0, z=9.81, timestamp=0.0, linear=(3.0, 4.0, 0.0))
        assert motion_magnitude(sample) == pytest.approx(5.0)

    def test_falls_back_to_raw_reading(self):
        sample = MotionSample(x=0.0, y=3.0, z=4.0, timestamp=0.0)
        assert motion_magnitude(sample) == pytest.approx(5.0)

    def test_from_device_with_both_vectors(self):
        sample = MotionSample.from_device(0.0, acceleration=(0.0, 0.0, 0.5),
                                          acceleration_including_gravity=(0.0, 0.0, 9.81))
        assert sample.linear == (0.0, 0.0, 0.5)
        assert motion_magnitude(sample) == pytest.approx(0.5)

    def test_from_device_without_compensation(self):
        sample = MotionSample.from_device(0.0, acceleration=(None, None, None),
                                          acceleration_including_gravity=(0.0, 3.0, None))
        assert sample.linear is None
        assert (sample.x, sample.y, sample.z) == (0.0, 3.0, 0.0)
        assert motion_magnitude(sample) == pytest.approx(3.0)


class TestTremorAnalysis:
    """Test zero-crossing tremor classification."""

    def test_zero_crossings(self):
        assert count_zero_crossings(np.array([1.0, -1.0, -1.0, 0.0, 2.0, -3.0])) == 3

    def test_tremor_in_band(self):
        tremor = analyze_tremor(square_wave(6), duration_sec=10.0)
        assert tremor.frequency_hz == pytest.approx(4.95)
        assert tremor.intensity == pytest.approx(0.25)
        assert tremor.detected

    def test_slow_movement_not_tremor(self):
        tremor = analyze_tremor(square_wave(30), duration_sec=10.0)
        assert tremor.frequency_hz == pytest.approx(0.95)
        assert not tremor.detected

    def test_noise_floor(self):
        tremor = analyze_tremor(square_wave(6, low=9.95, high=10.05), duration_sec=10.0)
        assert tremor.frequency_hz == pytest.approx(4.95)
        assert not tremor.detected

    def test_too_few_samples(self):
        tremor = analyze_tremor([9.0, 11.0] * 4)
        assert not tremor.detected
        assert tremor.num_samples == 8


class TestDriftAndCombine:
    """Test drift analysis and the stability composite."""

    def test_drift(self):
        drift = analyze_drift([10.0, 12.0, -8.0])
        assert drift.max_drift_deg == 18.0
        assert drift.is_drifting
        assert drift.score == 64.0

    def test_no_readings(self):
        drift = analyze_drift([])
        assert drift.max_drift_deg == 0.0
        assert not drift.is_drifting

    def test_combine_with_tremor(self):
        drift = analyze_drift([0.0, 2.0])
        tremor = analyze_tremor(square_wave(6))
        result = combine_stability(drift, tremor)
        # drift 96, tremor penalty 0.25 * 80 = 20
        assert result.score == 76
        assert result.issues == frozenset({IssueTag.RESTING_TREMOR})

    def test_penalty_is_capped(self):
        drift = analyze_drift([0.0])
        tremor = analyze_tremor(square_wave(6, low=9.0, high=11.0))
        assert combine_stability(drift, tremor).score == 50

    def test_drift_and_tremor_flags(self):
        result = combine_stability(analyze_drift([0.0, 20.0]), analyze_tremor(square_wave(6)))
        assert result.score == 40
        assert result.issues == frozenset({IssueTag.ARM_DROP, IssueTag.RESTING_TREMOR})


def motion_log(magnitudes, start=5.0, duration=10.0):
    step = duration / len(magnitudes)
    motion = [MotionSample(x=0.0, y=0.0, z=m, timestamp=start + i * step) for i, m in enumerate(magnitudes)]
    orientation = [OrientationSample(beta=30.0, timestamp=start + i * step) for i in range(len(magnitudes))]
    return motion, orientation


class TestStabilityTest:
    """Test the arm-hold session lifecycle."""

    def test_full_session(self):
        motion, orientation = motion_log(square_wave(6))
        source = SyntheticMotionSource(motion, orientation)
        test = StabilityTest()

        test.start(source, now=0.0)
        assert test.phase == StabilityPhase.PREP
        assert source.listener_count == 0
        assert test.countdown(1.5) == 4

        test.tick(5.0)
        assert test.phase == StabilityPhase.MEASURING
        assert source.listener_count == 2

        source.replay()
        result = test.tick(15.0)

        assert result is not None
        assert result.score == 80
        assert result.issues == frozenset({IssueTag.RESTING_TREMOR})
        assert result.tremor.num_samples == 600
        assert test.phase == StabilityPhase.DONE
        assert source.listener_count == 0
        assert not source.running

    def test_samples_during_prep_are_ignored(self):
        early = [MotionSample(x=0.0, y=0.0, z=50.0, timestamp=1.0)]
        early_tilt = [OrientationSample(beta=30.0, timestamp=1.0)]
        source = SyntheticMotionSource(early, early_tilt)
        completed = []
        test = StabilityTest(on_complete=completed.append)
        test.start(source, now=0.0)
        # Source is not started until measurement begins
        source.running = True
        source.replay()
        source.running = False

        test.tick(5.0)
        assert test.tick(15.0) is None
        assert test.result is None
        assert completed == []
        assert test.phase == StabilityPhase.IDLE
        assert test.feedback == "No movement data was received, please try again"

    def test_silent_sensor_emits_no_score(self):
        source = SyntheticMotionSource()
        test = StabilityTest()
        test.start(source, now=0.0)
        test.tick(5.0)

        assert test.tick(15.0) is None
        assert test.result is None
        assert source.listener_count == 0
        assert not source.running

        # Retry is possible after a discarded window
        test.start(source, now=20.0)
        assert test.phase == StabilityPhase.PREP

    def test_missing_orientation_emits_no_score(self):
        motion, _ = motion_log(square_wave(6))
        source = SyntheticMotionSource(motion)
        test = StabilityTest()
        test.start(source, now=0.0)
        test.tick(5.0)
        source.replay()

        assert test.tick(15.0) is None
        assert test.result is None
        assert test.feedback == "No tilt data was received, please try again"

    def test_gravity_compensated_stream_is_preferred(self):
        # Raw reading is a steady 1 g; only the compensated vector trembles
        step = 10.0 / 600
        motion = [
            MotionSample.from_device(
                timestamp=5.0 + i * step,
                acceleration=(0.0, 0.0, m),
                acceleration_including_gravity=(0.0, 0.0, 9.81)
            )
            for i, m in enumerate(square_wave(6))
        ]
        _, orientation = motion_log(square_wave(6))
        source = SyntheticMotionSource(motion, orientation)
        test = StabilityTest()
        test.start(source, now=0.0)
        test.tick(5.0)
        source.replay()

        result = test.tick(15.0)
        assert result.score == 80
        assert result.issues == frozenset({IssueTag.RESTING_TREMOR})

    def test_late_sample_closes_window(self):
        motion = [MotionSample(x=0.0, y=0.0, z=9.81, timestamp=5.0 + i * 0.5) for i in range(25)]
        orientation = [OrientationSample(beta=30.0, timestamp=5.0 + i * 0.5) for i in range(25)]
        source = SyntheticMotionSource(motion, orientation)
        test = StabilityTest()
        test.start(source, now=0.0)
        test.tick(5.0)
        source.replay()

        assert test.phase == StabilityPhase.DONE
        assert test.result.tremor.num_samples == 20
        assert source.listener_count == 0

    def test_abort_releases_listeners(self):
        source = SyntheticMotionSource()
        test = StabilityTest()
        test.start(source, now=0.0)
        test.tick(5.0)
        assert source.listener_count == 2

        test.abort()
        assert test.phase == StabilityPhase.IDLE
        assert test.result is None
        assert source.listener_count == 0
        assert not source.running

    def test_permission_denied(self):
        source = SyntheticMotionSource(permission_granted=False)
        test = StabilityTest()
        with pytest.raises(DeviceUnavailableError):
            test.start(source, now=0.0)
        assert test.phase == StabilityPhase.IDLE
        assert test.feedback == "Motion sensor permission denied"

    def test_generic_subscribe_delivers_motion(self):
        source = SyntheticMotionSource([MotionSample(x=0.0, y=0.0, z=1.0, timestamp=0.0)])
        received = []
        subscription = source.subscribe(received.append)
        source.start()
        source.replay()

        assert [s.z for s in received] == [1.0]
        subscription.cancel()
        subscription.cancel()
        assert source.listener_count == 0
