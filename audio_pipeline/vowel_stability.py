"""
Sustained-vowel stability sub-test (jitter and shimmer).

Protocol:
1. LISTENING: wait for voiced onset (frame RMS above the onset level);
   give up after 10 s of silence
2. RECORDING: for exactly 3 s from onset, collect one (pitch, RMS) pair
   per frame with a reliable pitch
3. Reduce to relative jitter and shimmer and score with fixed penalties

Clinical rationale:
- Jitter (cycle-to-cycle pitch variability) rises with impaired laryngeal
  motor control
- Shimmer (cycle-to-cycle amplitude variability) rises with poor breath
  support
- Only the large penalty raises an issue tag; the small one only lowers
  the score

Engineering approach:
- Push-driven: every frame carries its own timestamp, which drives both
  the 3 s window and the 10 s listening timeout
- The sample buffers belong to one recording window and are discarded on
  finish or abort; the microphone listener is released on every exit path
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

import numpy as np

from capture.events import AudioFrame
from capture.interfaces import AudioSource, Subscription
from scoring.models import IssueTag
from utils.errors import DeviceUnavailableError, InsufficientDataError
from .pitch import compute_rms, detect_pitch

logger = logging.getLogger(__name__)


class VowelPhase(Enum):
    """Sub-test state machine."""
    IDLE = "idle"
    LISTENING = "listening"
    RECORDING = "recording"
    DONE = "done"


@dataclass
class VowelSessionMetrics:
    """
    Relative variability of one recording window.

    Attributes:
        jitter: mean(|delta pitch|) / mean(pitch)
        shimmer: mean(|delta amplitude|) / mean(amplitude)
        mean_pitch_hz: Mean fundamental frequency
        num_samples: Number of voiced frames reduced
    """
    jitter: float
    shimmer: float
    mean_pitch_hz: float
    num_samples: int


@dataclass
class VowelResult:
    """Scored vowel sub-test."""
    score: int
    issues: FrozenSet[IssueTag] = field(default_factory=frozenset)
    metrics: Optional[VowelSessionMetrics] = None


def compute_vowel_metrics(
    pitches: Sequence[float],
    amplitudes: Sequence[float],
    min_samples: int = 15
) -> VowelSessionMetrics:
    """
    Reduce collected (pitch, amplitude) pairs to jitter and shimmer.

    Args:
        pitches: Per-frame fundamental frequencies (Hz), all > 0
        amplitudes: Per-frame RMS amplitudes, parallel to pitches
        min_samples: Minimum pairs required

    Raises:
        InsufficientDataError: fewer than min_samples pairs
    """
    pitches = np.asarray(pitches, dtype=np.float64)
    amplitudes = np.asarray(amplitudes, dtype=np.float64)

    if len(pitches) < max(2, min_samples):
        raise InsufficientDataError(
            f"Only {len(pitches)} voiced frames (need {min_samples})",
            "Recording too short, please try again"
        )

    mean_pitch = float(np.mean(pitches))
    mean_amp = float(np.mean(amplitudes))

    jitter = float(np.mean(np.abs(np.diff(pitches)))) / mean_pitch
    shimmer = float(np.mean(np.abs(np.diff(amplitudes)))) / mean_amp if mean_amp > 0 else 0.0

    return VowelSessionMetrics(
        jitter=jitter,
        shimmer=shimmer,
        mean_pitch_hz=mean_pitch,
        num_samples=len(pitches)
    )


def score_vowel(metrics: VowelSessionMetrics, config: Optional[Dict] = None) -> Tuple[int, FrozenSet[IssueTag]]:
    """
    Apply the jitter/shimmer penalty policy.

    Score starts at 100:
    - jitter > 0.025: -30 and "pitch instability"; else jitter > 0.015: -10
    - shimmer > 0.10: -30 and "breath instability"; else shimmer > 0.06: -10

    Returns:
        (score, issues)
    """
    vowel_cfg = (config or {}).get('audio', {}).get('vowel', {})
    major = vowel_cfg.get('major_penalty', 30)
    minor = vowel_cfg.get('minor_penalty', 10)

    score = 100
    issues = set()

    if metrics.jitter > vowel_cfg.get('jitter_major', 0.025):
        score -= major
        issues.add(IssueTag.PITCH_INSTABILITY)
    elif metrics.jitter > vowel_cfg.get('jitter_minor', 0.015):
        score -= minor

    if metrics.shimmer > vowel_cfg.get('shimmer_major', 0.10):
        score -= major
        issues.add(IssueTag.BREATH_INSTABILITY)
    elif metrics.shimmer > vowel_cfg.get('shimmer_minor', 0.06):
        score -= minor

    return max(0, int(score)), frozenset(issues)


class VowelStabilityTest:
    """
    Stateful sustained-vowel session.

    Usage:
        test = VowelStabilityTest(config, on_complete=handle)
        test.start(audio_source, now)
        audio_source pushes frames -> test.on_frame(frame)
        ... result in test.result once DONE
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        on_complete: Optional[Callable[[VowelResult], None]] = None
    ):
        self.config = config or {}
        vowel_cfg = self.config.get('audio', {}).get('vowel', {})

        self.onset_rms = vowel_cfg.get('onset_rms', 0.03)
        self.recording_duration_sec = vowel_cfg.get('recording_duration_sec', 3.0)
        self.listen_timeout_sec = vowel_cfg.get('listen_timeout_sec', 10.0)
        self.min_samples = vowel_cfg.get('min_samples', 15)
        self.on_complete = on_complete

        self.phase = VowelPhase.IDLE
        self.feedback = ""
        self.result: Optional[VowelResult] = None

        self._source: Optional[AudioSource] = None
        self._subscription: Optional[Subscription] = None
        self._listen_start: Optional[float] = None
        self._record_start: Optional[float] = None
        self._pitches: List[float] = []
        self._amplitudes: List[float] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, source: AudioSource, now: float):
        """
        Open the microphone and start listening for voiced onset.

        Raises:
            DeviceUnavailableError: microphone missing or denied; the test
                stays IDLE and can be retried
        """
        if self.phase in (VowelPhase.LISTENING, VowelPhase.RECORDING):
            raise RuntimeError("Vowel test already running")

        try:
            source.start()
        except DeviceUnavailableError as e:
            logger.warning(f"Microphone unavailable: {e}")
            self.feedback = e.user_message
            self.phase = VowelPhase.IDLE
            raise

        self._source = source
        self._subscription = source.subscribe(self.on_frame)
        self._listen_start = now
        self.result = None
        self.phase = VowelPhase.LISTENING
        self.feedback = "Please start saying 'Ahh'..."
        logger.info("Vowel test listening")

    def on_frame(self, frame: AudioFrame):
        """Process one microphone buffer."""
        if self.phase == VowelPhase.LISTENING:
            if self.check_timeout(frame.timestamp):
                return
            rms = compute_rms(frame.samples)
            if rms > self.onset_rms:
                # Onset frame switches state but is not collected
                self.phase = VowelPhase.RECORDING
                self._record_start = frame.timestamp
                self._pitches = []
                self._amplitudes = []
                self.feedback = "Sound detected, keep going..."
                logger.info(f"Voiced onset at t={frame.timestamp:.2f}s (rms={rms:.3f})")
            return

        if self.phase != VowelPhase.RECORDING:
            return

        rms = compute_rms(frame.samples)
        estimate = detect_pitch(frame.samples, frame.sample_rate, self.config)
        if estimate.voiced:
            self._pitches.append(estimate.frequency_hz)
            self._amplitudes.append(rms)

        if frame.timestamp - self._record_start >= self.recording_duration_sec:
            self.finish()

    def check_timeout(self, now: float) -> bool:
        """
        Abort to IDLE if no onset arrived within the listening timeout.

        Returns:
            True if the test timed out
        """
        if self.phase != VowelPhase.LISTENING or self._listen_start is None:
            return False
        if now - self._listen_start < self.listen_timeout_sec:
            return False

        logger.warning(f"No voice detected within {self.listen_timeout_sec:.0f}s")
        self._reset()
        self.feedback = "No sound detected, check the microphone or speak louder"
        return True

    def time_left(self, now: float) -> float:
        """Seconds remaining in the recording window."""
        if self.phase != VowelPhase.RECORDING:
            return self.recording_duration_sec
        return max(0.0, self.recording_duration_sec - (now - self._record_start))

    def stop(self):
        """
        Manual stop: cancels while listening, finishes while recording.
        """
        if self.phase == VowelPhase.LISTENING:
            logger.info("Vowel test cancelled while listening")
            self._reset()
        elif self.phase == VowelPhase.RECORDING:
            self.finish()

    def abort(self):
        """Cancel from any phase, discarding collected samples."""
        if self.phase in (VowelPhase.LISTENING, VowelPhase.RECORDING):
            logger.info("Vowel test aborted")
        self._reset()
        self.result = None

    def finish(self) -> Optional[VowelResult]:
        """
        Close the recording window and score it.

        Returns:
            VowelResult, or None on a too-short recording (test returns to
            IDLE with a retry prompt)
        """
        pitches, amplitudes = self._pitches, self._amplitudes
        self._reset()

        try:
            metrics = compute_vowel_metrics(pitches, amplitudes, self.min_samples)
        except InsufficientDataError as e:
            logger.warning(f"Vowel test failed: {e}")
            self.feedback = e.user_message
            return None

        score, issues = score_vowel(metrics, self.config)
        self.result = VowelResult(score=score, issues=issues, metrics=metrics)
        self.phase = VowelPhase.DONE
        self.feedback = "Done"

        logger.info(
            f"Vowel test: jitter={metrics.jitter:.4f} shimmer={metrics.shimmer:.4f} "
            f"samples={metrics.num_samples} score={score}"
        )

        if self.on_complete is not None:
            self.on_complete(self.result)
        return self.result

    @property
    def listening(self) -> bool:
        return self._subscription is not None

    def _reset(self):
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        if self._source is not None:
            self._source.stop()
            self._source = None
        self.phase = VowelPhase.IDLE
        self._listen_start = None
        self._record_start = None
        self._pitches = []
        self._amplitudes = []
