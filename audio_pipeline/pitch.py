"""
Autocorrelation pitch detection for sustained vowels.

Engineering approach:
1. Silence gate on frame RMS
2. Decimate by 4 (no anti-alias filter; the vocal band of interest sits
   far below the decimated Nyquist for typical 44.1/48 kHz input)
3. Unnormalized autocorrelation over lags covering 60-400 Hz
4. Accept the best lag only if its correlation clears an empirical floor

Clinical rationale:
- A sustained "Ahh" is close to periodic; the autocorrelation peak at the
  fundamental period is strong and unambiguous
- Breathy or unvoiced frames fail the correlation floor and are simply
  not collected, instead of contributing spurious pitch values
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np
from scipy import signal

logger = logging.getLogger(__name__)


@dataclass
class PitchEstimate:
    """
    Pitch of one audio frame.

    Attributes:
        frequency_hz: Fundamental frequency; 0 means no reliable pitch
        clarity: Peak autocorrelation value (0 when rejected)
    """
    frequency_hz: float
    clarity: float

    @property
    def voiced(self) -> bool:
        return self.frequency_hz > 0


NO_PITCH = PitchEstimate(frequency_hz=0.0, clarity=0.0)


def compute_rms(buffer: np.ndarray) -> float:
    """Root-mean-square amplitude of a sample buffer (0 for empty input)."""
    buffer = np.asarray(buffer, dtype=np.float64)
    if buffer.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(buffer ** 2)))


def autocorrelation(x: np.ndarray) -> np.ndarray:
    """
    One-sided unnormalized autocorrelation.

    Returns:
        Array r where r[lag] = sum_i x[i] * x[i + lag], for lag >= 0
    """
    full = signal.correlate(x, x, mode='full', method='direct')
    return full[len(x) - 1:]


def detect_pitch(buffer: np.ndarray, sample_rate: int, config: Optional[Dict] = None) -> PitchEstimate:
    """
    Estimate the fundamental frequency of one audio frame.

    Args:
        buffer: Mono samples in [-1, 1]
        sample_rate: Sample rate in Hz
        config: Configuration dictionary (audio.pitch section)

    Returns:
        PitchEstimate; frequency 0 for silence or non-tonal input
    """
    pitch_cfg = (config or {}).get('audio', {}).get('pitch', {})
    silence_rms = pitch_cfg.get('silence_rms', 0.02)
    factor = pitch_cfg.get('downsample_factor', 4)
    min_freq = pitch_cfg.get('min_frequency_hz', 60)
    max_freq = pitch_cfg.get('max_frequency_hz', 400)
    min_corr = pitch_cfg.get('min_correlation', 0.5)

    buffer = np.asarray(buffer, dtype=np.float64)
    if buffer.size == 0 or compute_rms(buffer) < silence_rms:
        return NO_PITCH

    # Simple decimation: every `factor`-th sample
    ds_len = len(buffer) // factor
    downsampled = buffer[:ds_len * factor:factor]
    ds_rate = sample_rate / factor

    min_lag = max(1, int(np.floor(ds_rate / max_freq)))
    max_lag = int(np.floor(ds_rate / min_freq))
    if ds_len == 0 or min_lag > max_lag:
        return NO_PITCH

    corr = autocorrelation(downsampled)
    # Lags past the buffer length have no overlapping samples
    lag_corr = np.zeros(max_lag - min_lag + 1)
    available = min(max_lag, len(corr) - 1)
    if available >= min_lag:
        lag_corr[:available - min_lag + 1] = corr[min_lag:available + 1]

    # argmax returns the first maximum, so shorter lags win ties
    best = int(np.argmax(lag_corr))
    max_corr = float(lag_corr[best])
    best_lag = min_lag + best

    if max_corr > min_corr:
        return PitchEstimate(frequency_hz=ds_rate / best_lag, clarity=max_corr)

    return NO_PITCH
