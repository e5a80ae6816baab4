"""
Audio processing pipeline for voice screening.

This package implements the voice sub-tests and their shared pitch
tracker:
1. Autocorrelation pitch detection on microphone frames
2. Sustained-vowel stability (jitter and shimmer)
3. Read-aloud transcript settling, pace and semantic coherence
   (Google Gemini API, with demo and fallback scores)
"""

from .pitch import PitchEstimate, compute_rms, detect_pitch
from .vowel_stability import (
    VowelPhase,
    VowelResult,
    VowelSessionMetrics,
    VowelStabilityTest,
    compute_vowel_metrics,
    score_vowel,
)
from .coherence import (
    CoherenceResult,
    GeminiCoherenceClient,
    SpeechCoherenceScorer,
    parse_json_response,
)
from .reading import (
    ReadingResult,
    ReadingTest,
    TranscriptSettler,
    normalize_text,
    reading_pace,
)

__all__ = [
    'PitchEstimate',
    'compute_rms',
    'detect_pitch',
    'VowelPhase',
    'VowelResult',
    'VowelSessionMetrics',
    'VowelStabilityTest',
    'compute_vowel_metrics',
    'score_vowel',
    'CoherenceResult',
    'GeminiCoherenceClient',
    'SpeechCoherenceScorer',
    'parse_json_response',
    'ReadingResult',
    'ReadingTest',
    'TranscriptSettler',
    'normalize_text',
    'reading_pace',
]
