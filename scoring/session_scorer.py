"""
Session scorer: sequences each domain's sub-tests and emits its result.

Per domain the sub-tests run strictly in order, never interleaved:
- VISUAL: scan
- AUDIO: vowel, then reading
- TOUCH: spiral, then stability

Only one domain session is open at a time. When the last sub-test of a
domain is recorded the domain result is built:
- Test mode: composite score + findings, persisted as a history record
- Calibration mode: fixed score 100, raw metrics persisted as the
  domain's baseline; no findings are evaluated

Storage is any object with save_record(HistoryRecord), save_baseline(
DomainBaseline) and get_baseline() -> BaselineProfile | None.
"""

import logging
import time
from typing import Any, Dict, List, Optional

from audio_pipeline.reading import ReadingResult
from audio_pipeline.vowel_stability import VowelResult
from motor_pipeline.spiral import SpiralResult
from motor_pipeline.stability import StabilityResult
from video_pipeline.face_analyzer import VisualCaptureResult
from .models import BaselineProfile, Domain, DomainResult, HistoryRecord, SessionMode
from .motor_control import calibrate_touch, score_touch
from .visual_symmetry import calibrate_visual, score_visual
from .vocal_stability import calibrate_audio, score_audio

logger = logging.getLogger(__name__)

SUBTEST_ORDER = {
    Domain.VISUAL: ('scan',),
    Domain.AUDIO: ('vowel', 'reading'),
    Domain.TOUCH: ('spiral', 'stability'),
}


class DomainSession:
    """
    Ordered collection of one domain's sub-test results.

    Attributes:
        domain: Domain being tested
        mode: Test or calibration
        results: Sub-test name -> result, in completion order
    """

    def __init__(self, domain: Domain, mode: SessionMode = SessionMode.TEST):
        self.domain = domain
        self.mode = mode
        self.results: Dict[str, Any] = {}

    @property
    def pending(self) -> List[str]:
        return [name for name in SUBTEST_ORDER[self.domain] if name not in self.results]

    @property
    def next_subtest(self) -> Optional[str]:
        pending = self.pending
        return pending[0] if pending else None

    @property
    def complete(self) -> bool:
        return not self.pending

    def record(self, name: str, result: Any):
        """
        Store a sub-test result.

        Raises:
            RuntimeError: the sub-test is out of sequence or repeated
        """
        expected = self.next_subtest
        if name != expected:
            raise RuntimeError(
                f"{self.domain.value} sub-test '{name}' out of sequence (expected '{expected}')"
            )
        if result is None:
            raise ValueError(f"Sub-test '{name}' produced no result")
        self.results[name] = result


class SessionScorer:
    """
    Drives domain sessions and hands results to storage.

    Usage:
        scorer = SessionScorer(config, storage=db)
        result = scorer.run_audio(vowel_result, reading_result)
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        storage=None,
        mode: SessionMode = SessionMode.TEST
    ):
        self.config = config or {}
        self.storage = storage
        self.mode = mode
        self.active: Optional[DomainSession] = None
        self.results: Dict[Domain, DomainResult] = {}

    @property
    def calibrating(self) -> bool:
        return self.mode == SessionMode.CALIBRATION

    def begin(self, domain: Domain) -> DomainSession:
        """
        Open a domain session.

        Raises:
            RuntimeError: another domain session is still open
        """
        if self.active is not None and not self.active.complete:
            raise RuntimeError(f"{self.active.domain.value} session still in progress")
        self.active = DomainSession(domain, self.mode)
        logger.info(f"{domain.value} session started ({self.mode.value} mode)")
        return self.active

    def abort(self):
        """Discard the open session; nothing is scored or saved."""
        if self.active is not None:
            logger.info(f"{self.active.domain.value} session aborted")
        self.active = None

    def record(self, name: str, result: Any, snapshot: Optional[bytes] = None) -> Optional[DomainResult]:
        """
        Record the next sub-test of the open session.

        Returns:
            The DomainResult once the domain's last sub-test is in
        """
        if self.active is None:
            raise RuntimeError("No domain session in progress")

        self.active.record(name, result)
        if not self.active.complete:
            return None

        session, self.active = self.active, None
        domain_result = self._build_result(session)
        self._persist(domain_result, snapshot)
        self.results[domain_result.domain] = domain_result
        return domain_result

    def _baseline(self) -> Optional[BaselineProfile]:
        if self.storage is None:
            return None
        return self.storage.get_baseline()

    def _build_result(self, session: DomainSession) -> DomainResult:
        results = session.results

        if session.domain == Domain.VISUAL:
            scan: VisualCaptureResult = results['scan']
            if self.calibrating:
                return calibrate_visual(scan.eye_mean, scan.mouth_mean, scan.brow_mean)
            profile = self._baseline()
            return score_visual(
                scan.eye_mean, scan.mouth_mean, scan.brow_mean,
                baseline=profile.visual if profile else None,
                config=self.config
            )

        if session.domain == Domain.AUDIO:
            vowel: VowelResult = results['vowel']
            reading: ReadingResult = results['reading']
            if self.calibrating:
                return calibrate_audio(
                    jitter=vowel.metrics.jitter,
                    shimmer=vowel.metrics.shimmer,
                    mean_pitch_hz=vowel.metrics.mean_pitch_hz,
                    reading_pace=reading.pace,
                    coherence=reading.score
                )
            return score_audio(vowel.score, vowel.issues, reading.score, self.config)

        spiral: SpiralResult = results['spiral']
        stability: StabilityResult = results['stability']
        if self.calibrating:
            return calibrate_touch(
                spiral_rmse=spiral.rmse,
                max_drift_deg=stability.drift.max_drift_deg,
                tremor_intensity=stability.tremor.intensity,
                tremor_frequency_hz=stability.tremor.frequency_hz
            )
        return score_touch(spiral.score, stability.score, stability.issues, self.config)

    def _persist(self, result: DomainResult, snapshot: Optional[bytes]):
        if self.storage is None:
            return

        if result.is_calibration:
            self.storage.save_baseline(result.baseline)
            return

        self.storage.save_record(HistoryRecord(
            type=result.domain,
            score=result.score,
            details=result.details,
            timestamp=int(time.time() * 1000),
            snapshot=snapshot
        ))

    def run_visual(self, scan: VisualCaptureResult, snapshot: Optional[bytes] = None) -> DomainResult:
        """Score a completed face scan."""
        self.begin(Domain.VISUAL)
        try:
            return self.record('scan', scan, snapshot=snapshot)
        except (RuntimeError, ValueError):
            self.abort()
            raise

    def run_audio(self, vowel: VowelResult, reading: ReadingResult) -> DomainResult:
        """Score completed vowel and reading sub-tests, in that order."""
        self.begin(Domain.AUDIO)
        try:
            self.record('vowel', vowel)
            return self.record('reading', reading)
        except (RuntimeError, ValueError):
            self.abort()
            raise

    def run_touch(self, spiral: SpiralResult, stability: StabilityResult) -> DomainResult:
        """Score completed spiral and stability sub-tests, in that order."""
        self.begin(Domain.TOUCH)
        try:
            self.record('spiral', spiral)
            return self.record('stability', stability)
        except (RuntimeError, ValueError):
            self.abort()
            raise
