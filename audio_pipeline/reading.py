"""
Read-aloud sub-test.

The user reads a fixed prompt. An external speech recognizer pushes
partial transcripts; the transcript is treated as final once no new text
has arrived for 2.5 s and at least 3 characters were captured. The final
transcript is scored for semantic coherence against the prompt.

Reading pace:
    pace = normalized characters / (last update time - first update time)
It is recorded for the calibration baseline only and never affects the
score. It is None when fewer than two distinct update times were seen.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Dict

from utils.errors import DeviceUnavailableError, InsufficientDataError
from .coherence import CoherenceResult, SpeechCoherenceScorer

logger = logging.getLogger(__name__)

DEFAULT_PROMPT = "The sky is blue and the grass is green."


def normalize_text(text: str) -> str:
    """Keep letters and digits of any script, lower-cased."""
    return ''.join(ch.lower() for ch in (text or '') if ch.isalnum())


def reading_pace(transcript: str, first_update: Optional[float], last_update: Optional[float]) -> Optional[float]:
    """Normalized characters per second across the transcript updates."""
    if first_update is None or last_update is None:
        return None
    span = last_update - first_update
    if span <= 0:
        return None
    return len(normalize_text(transcript)) / span


class TranscriptSettler:
    """
    Decide when a streaming transcript is final.

    Each recognizer update replaces the running transcript (recognizers
    resend the whole hypothesis) and restarts the silence clock.
    """

    def __init__(self, settle_sec: float = 2.5, min_chars: int = 3):
        self.settle_sec = settle_sec
        self.min_chars = min_chars
        self.transcript = ""
        self.first_update: Optional[float] = None
        self.last_update: Optional[float] = None

    def update(self, text: str, now: float):
        if not text:
            return
        self.transcript = text
        if self.first_update is None:
            self.first_update = now
        self.last_update = now

    @property
    def char_count(self) -> int:
        return len(normalize_text(self.transcript))

    def is_settled(self, now: float) -> bool:
        if self.last_update is None or self.char_count < self.min_chars:
            return False
        return now - self.last_update >= self.settle_sec

    @property
    def pace(self) -> Optional[float]:
        return reading_pace(self.transcript, self.first_update, self.last_update)

    def reset(self):
        self.transcript = ""
        self.first_update = None
        self.last_update = None


@dataclass
class ReadingResult:
    """
    Scored reading sub-test.

    Attributes:
        score: Coherence score 0-100
        transcript: Final transcript as recognized
        pace: Characters per second, if measurable
        coherence: Full coherence judgement
    """
    score: int
    transcript: str
    pace: Optional[float]
    coherence: CoherenceResult


class ReadingTest:
    """
    Stateful read-aloud session.

    Usage:
        test = ReadingTest(config, scorer)
        test.start(now)
        test.on_transcript(partial_text, now) ...
        test.poll(now)      # finishes once the transcript has settled
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        scorer: Optional[SpeechCoherenceScorer] = None,
        recognizer_available: bool = True,
        on_complete: Optional[Callable[[ReadingResult], None]] = None
    ):
        self.config = config or {}
        reading_cfg = self.config.get('audio', {}).get('reading', {})

        self.prompt_text = reading_cfg.get('prompt_text', DEFAULT_PROMPT)
        self.settler = TranscriptSettler(
            settle_sec=reading_cfg.get('settle_sec', 2.5),
            min_chars=reading_cfg.get('min_transcript_chars', 3)
        )
        self.scorer = scorer or SpeechCoherenceScorer(self.config)
        self.recognizer_available = recognizer_available
        self.on_complete = on_complete

        self.recording = False
        self.feedback = ""
        self.result: Optional[ReadingResult] = None

    def start(self, now: float):
        """
        Begin listening for transcript updates.

        Raises:
            DeviceUnavailableError: speech recognition unsupported
        """
        if not self.recognizer_available:
            self.feedback = "Speech recognition is not supported on this device"
            logger.warning("Speech recognition unavailable")
            raise DeviceUnavailableError("Speech recognizer unavailable", self.feedback)

        self.settler.reset()
        self.result = None
        self.recording = True
        self.feedback = "Please read the sentence aloud"
        logger.info("Reading test started")

    def on_transcript(self, text: str, now: float):
        """Receive a (partial) recognizer hypothesis."""
        if self.recording:
            self.settler.update(text, now)

    def poll(self, now: float) -> Optional[ReadingResult]:
        """Finish automatically once the transcript has settled."""
        if self.recording and self.settler.is_settled(now):
            return self.finish()
        return None

    def stop(self) -> Optional[ReadingResult]:
        """Manual stop: score what was captured, or cancel if too little."""
        if not self.recording:
            return None
        return self.finish()

    def abort(self):
        if self.recording:
            logger.info("Reading test aborted")
        self.recording = False
        self.settler.reset()
        self.result = None

    def finish(self) -> Optional[ReadingResult]:
        """
        Score the captured transcript.

        Returns:
            ReadingResult, or None if too little text was captured
        """
        transcript = self.settler.transcript
        pace = self.settler.pace
        self.recording = False
        self.settler.reset()

        try:
            self.result = self.score_transcript(transcript, pace)
        except InsufficientDataError as e:
            logger.warning(f"Reading test failed: {e}")
            self.feedback = e.user_message
            return None

        if self.on_complete is not None:
            self.on_complete(self.result)
        return self.result

    def score_transcript(self, transcript: str, pace: Optional[float] = None) -> ReadingResult:
        """
        Score a finalized transcript directly.

        Raises:
            InsufficientDataError: transcript shorter than the minimum
        """
        cleaned = normalize_text(transcript)
        if len(cleaned) < self.settler.min_chars:
            raise InsufficientDataError(
                f"Transcript too short ({len(cleaned)} characters)",
                "No speech recognized, please read the sentence aloud"
            )

        coherence = self.scorer.score(cleaned, normalize_text(self.prompt_text))
        logger.info(f"Reading test: {len(cleaned)} chars, coherence={coherence.score} ({coherence.source})")

        return ReadingResult(
            score=coherence.score,
            transcript=transcript,
            pace=pace,
            coherence=coherence
        )
