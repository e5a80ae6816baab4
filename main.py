#!/usr/bin/env python3
"""
Command-line entry point for the NeuroScreen engine.

Drives the screening engine over recorded inputs and the local history
store:
1. Voice (sustained vowel WAV + reading transcript) -> AUDIO result
2. Touch (spiral pointer trace + arm-hold motion log) -> TOUCH result
3. Face (live webcam scan, needs the `capture` extra) -> VISUAL result
4. Status (weakest-link risk + daily narrative for today)
5. Backup export / import

Usage:
    python main.py vowel --audio ahh.wav --transcript "The sky is blue and the grass is green."
    python main.py touch --trace spiral.json --motion motion.json
    python main.py --calibrate touch --trace spiral.json --motion motion.json
    python main.py status
    python main.py export --output backup.json

Engineering approach:
- Recorded inputs are replayed through the same push-based sources the
  live front end uses, with sample-accurate timestamps
- Configurable thresholds (configs/thresholds.yaml)
- Every failure is logged; the process exits with code 1
"""

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Dict, List

from audio_pipeline import ReadingTest, SpeechCoherenceScorer, VowelStabilityTest, reading_pace
from capture import (
    AudioFrame,
    MotionSample,
    OrientationSample,
    PointerEvent,
    PointerPhase,
    SyntheticAudioSource,
    SyntheticMotionSource,
)
from fusion import aggregate_risk
from motor_pipeline import SpiralTracingTest, StabilityTest
from reporting import DailyReportGenerator, latest_scores_for_day, summarize_history
from scoring.models import SessionMode
from scoring.session_scorer import SessionScorer
from utils.audio_io import iter_audio_frames, load_audio
from utils.backup_io import export_backup, import_backup
from utils.config_loader import load_config
from utils.errors import ScreeningError
from utils.history_database import HistoryDatabase

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler('neuroscreen.log'),
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)

POINTER_INTERVAL_SEC = 0.016


def run_vowel(args, config: Dict, scorer: SessionScorer):
    """Replay a vowel recording, score the reading transcript, save AUDIO."""
    audio_path = Path(args.audio)
    if not audio_path.exists():
        raise FileNotFoundError(f"Audio file not found: {audio_path}")

    frame_size = config.get('audio', {}).get('vowel', {}).get('frame_size', 2048)
    audio_data, sample_rate = load_audio(str(audio_path))
    frames = [
        AudioFrame(samples=samples, sample_rate=sample_rate, timestamp=timestamp)
        for timestamp, samples in iter_audio_frames(audio_data, sample_rate, frame_size)
    ]
    logger.info(f"Loaded {audio_path.name}: {len(frames)} frames @ {sample_rate} Hz")

    source = SyntheticAudioSource(frames)
    vowel_test = VowelStabilityTest(config)
    vowel_test.start(source, now=0.0)
    source.replay()
    # Recording shorter than the window: close it with what was collected
    vowel_test.stop()

    if vowel_test.result is None:
        raise ScreeningError(f"Vowel test produced no score: {vowel_test.feedback}")

    reading_test = ReadingTest(config, scorer=SpeechCoherenceScorer.from_environment(config))
    pace = reading_pace(args.transcript, 0.0, args.reading_seconds) if args.reading_seconds else None
    reading = reading_test.score_transcript(args.transcript, pace)

    return scorer.run_audio(vowel_test.result, reading)


def _pointer_events(points: List[Dict]) -> List[PointerEvent]:
    events = []
    for i, point in enumerate(points):
        phase = PointerPhase.DOWN if i == 0 else PointerPhase.MOVE
        events.append(PointerEvent(x=float(point['x']), y=float(point['y']),
                                   timestamp=i * POINTER_INTERVAL_SEC, phase=phase))
    if events:
        events.append(PointerEvent(x=events[-1].x, y=events[-1].y,
                                   timestamp=len(points) * POINTER_INTERVAL_SEC, phase=PointerPhase.UP))
    return events


def run_touch(args, config: Dict, scorer: SessionScorer):
    """Replay a spiral trace and a motion log, save TOUCH."""
    trace_path, motion_path = Path(args.trace), Path(args.motion)
    for path in (trace_path, motion_path):
        if not path.exists():
            raise FileNotFoundError(f"Input file not found: {path}")

    with open(trace_path, 'r') as f:
        points = json.load(f)
    with open(motion_path, 'r') as f:
        motion_log = json.load(f)

    # Spiral sub-test
    spiral_test = SpiralTracingTest(config)
    for event in _pointer_events(points):
        spiral_test.handle(event)
        if spiral_test.result is not None:
            break

    if spiral_test.result is None:
        raise ScreeningError(f"Spiral test produced no score: {spiral_test.feedback}")

    # Stability sub-test: the log is spread evenly over the measurement window
    stab_cfg = config.get('touch', {}).get('stability', {})
    prep = stab_cfg.get('prep_duration_sec', 5.0)
    measure = stab_cfg.get('measure_duration_sec', 10.0)

    betas = motion_log.get('orientation', [])
    vectors = motion_log.get('motion', [])
    # Optional gravity-compensated vectors, aligned with 'motion'; null where unavailable
    linear = list(motion_log.get('linear') or [])
    linear += [None] * (len(vectors) - len(linear))
    orientation = [
        OrientationSample(beta=float(beta), timestamp=prep + measure * i / len(betas))
        for i, beta in enumerate(betas)
    ]
    motion = [
        MotionSample.from_device(
            timestamp=prep + measure * i / len(vectors),
            acceleration=lin,
            acceleration_including_gravity=v
        )
        for i, (v, lin) in enumerate(zip(vectors, linear))
    ]

    source = SyntheticMotionSource(motion, orientation)
    stability_test = StabilityTest(config)
    stability_test.start(source, now=0.0)
    stability_test.tick(prep)
    source.replay()
    stability_test.tick(prep + measure)

    if stability_test.result is None:
        raise ScreeningError(f"Stability test produced no score: {stability_test.feedback}")

    return scorer.run_touch(spiral_test.result, stability_test.result)


def run_face(args, config: Dict, scorer: SessionScorer):
    """Live webcam scan (requires MediaPipe), save VISUAL."""
    from video_pipeline import FacialSymmetryAnalyzer, PoseIssue
    from video_pipeline.landmark_source import MediaPipeLandmarkSource

    analyzer = FacialSymmetryAnalyzer(config)
    source = MediaPipeLandmarkSource(camera_index=args.camera)

    def start_when_ready(frame):
        if not analyzer.capturing and analyzer.result is None and analyzer.pose_issue == PoseIssue.OK:
            analyzer.start_capture(frame.timestamp)

    source.start()
    analyzer.attach(source)
    starter = source.subscribe(start_when_ready)
    try:
        source.run(args.timeout, until=lambda: analyzer.result is not None)
    finally:
        starter.cancel()
        analyzer.detach()
        source.stop()

    if analyzer.result is None:
        raise ScreeningError(f"Facial scan produced no score: {analyzer.feedback}")

    return scorer.run_visual(analyzer.result)


def run_status(args, config: Dict, db: HistoryDatabase):
    """Print today's risk assessment and narrative report."""
    reporting_cfg = config.get('reporting', {})
    records = db.get_history(days=reporting_cfg.get('history_days', 7))

    scores = latest_scores_for_day(records)
    summary = summarize_history(records, scores, config=config)
    assessment = aggregate_risk(scores, config)

    generator = DailyReportGenerator.from_environment(config)
    report = generator.generate(scores, db.get_baseline(), summary.history_average)

    print(f"Status: {assessment.status.value} (lowest {assessment.lowest_score}, "
          f"average {assessment.average_score:.1f})")
    for domain, score in sorted(scores.items(), key=lambda item: item[0].value):
        print(f"  {domain.value}: {score}")
    print(f"Streak: {summary.streak} day(s)" + (", improving" if summary.improving else ""))
    print(f"Report [{report.status.value}]: {report.message}")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='NeuroScreen - Self-administered neurological screening engine',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Voice test from a recording
  python main.py vowel --audio ahh.wav --transcript "The sky is blue and the grass is green."

  # Record a motor baseline
  python main.py --calibrate touch --trace spiral.json --motion motion.json

  # Today's status
  python main.py status
        """
    )

    parser.add_argument(
        '--config',
        type=str,
        default='configs/thresholds.yaml',
        help='Path to configuration YAML file (default: configs/thresholds.yaml)'
    )

    parser.add_argument(
        '--db',
        type=str,
        default='data/neuroscreen.db',
        help='Path to history database (default: data/neuroscreen.db)'
    )

    parser.add_argument(
        '--calibrate',
        action='store_true',
        help='Record a personal baseline instead of a scored test'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    vowel_parser = subparsers.add_parser('vowel', help='Voice test from a recorded vowel')
    vowel_parser.add_argument('--audio', type=str, required=True, help='Sustained vowel WAV file')
    vowel_parser.add_argument('--transcript', type=str, required=True, help='Transcript of the read-aloud prompt')
    vowel_parser.add_argument('--reading-seconds', type=float, default=None,
                              help='Reading duration, used for the pace baseline')

    touch_parser = subparsers.add_parser('touch', help='Motor test from recorded traces')
    touch_parser.add_argument('--trace', type=str, required=True, help='Spiral trace JSON ([{x, y}])')
    touch_parser.add_argument('--motion', type=str, required=True, help='Motion log JSON')

    face_parser = subparsers.add_parser('face', help='Live facial symmetry scan (webcam)')
    face_parser.add_argument('--camera', type=int, default=0, help='Camera index (default: 0)')
    face_parser.add_argument('--timeout', type=float, default=30.0, help='Give up after N seconds (default: 30)')

    subparsers.add_parser('status', help="Print today's risk status and report")

    export_parser = subparsers.add_parser('export', help='Export a backup file')
    export_parser.add_argument('--output', type=str, required=True, help='Backup JSON path')

    import_parser = subparsers.add_parser('import', help='Restore from a backup file')
    import_parser.add_argument('--input', type=str, required=True, help='Backup JSON path')

    args = parser.parse_args()

    # Validate config path
    config_path = Path(args.config)
    if not config_path.exists():
        logger.error(f"Config file not found: {config_path}")
        sys.exit(1)

    logger.info(f"Loading configuration from: {config_path}")
    config = load_config(str(config_path))

    try:
        Path(args.db).parent.mkdir(parents=True, exist_ok=True)
        db = HistoryDatabase(args.db)
        mode = SessionMode.CALIBRATION if args.calibrate else SessionMode.TEST
        scorer = SessionScorer(config, storage=db, mode=mode)

        if args.command in ('vowel', 'touch', 'face'):
            runner = {'vowel': run_vowel, 'touch': run_touch, 'face': run_face}[args.command]
            result = runner(args, config, scorer)
            if result.is_calibration:
                logger.info(f"✓ {result.domain.value} baseline recorded")
            else:
                issues = ", ".join(sorted(tag.value for tag in result.issues)) or "none"
                logger.info(f"✓ {result.domain.value} score: {result.score} (issues: {issues})")
                print(f"{result.domain.value}: {result.score} - {result.details}")

        elif args.command == 'status':
            run_status(args, config, db)

        elif args.command == 'export':
            path = export_backup(db, args.output)
            print(f"Backup written to {path}")

        elif args.command == 'import':
            outcome = import_backup(db, args.input)
            print(outcome.message)
            if not outcome.success:
                sys.exit(1)

        sys.exit(0)

    except KeyboardInterrupt:
        logger.warning("\nInterrupted by user")
        sys.exit(1)

    except Exception as e:
        logger.error(f"\n✗ ERROR: {args.command} failed with exception:")
        logger.error(f"  {type(e).__name__}: {str(e)}")
        logger.exception("Full traceback:")
        sys.exit(1)


if __name__ == '__main__':
    main()
