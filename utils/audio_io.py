"""
Audio I/O utilities for loading recordings and replaying them as frames.

Engineering decisions:
- Keep the native sample rate: the pitch detector derives its lag range
  from whatever rate it is given, so resampling buys nothing
- Use librosa for robust audio loading across formats
- Replay a recording as fixed-size frames with sample-accurate timestamps,
  mirroring what a live microphone callback would deliver
"""

import logging
from pathlib import Path
from typing import Iterator, Optional, Tuple

import numpy as np
import librosa

logger = logging.getLogger(__name__)


def load_audio(
    audio_path,
    sample_rate: Optional[int] = None,
    mono: bool = True
) -> Tuple[np.ndarray, int]:
    """
    Load audio file from disk.

    Args:
        audio_path: Path to audio file (str or Path)
        sample_rate: Target sample rate (None keeps the native rate)
        mono: Convert to mono if True

    Returns:
        Tuple of (audio_data, sample_rate)

    Raises:
        FileNotFoundError: If audio file doesn't exist
    """
    audio_path = Path(audio_path)
    if not audio_path.exists():
        raise FileNotFoundError(f"Audio file not found: {audio_path}")

    logger.info(f"Loading audio from {audio_path}")

    audio_data, sr = librosa.load(
        str(audio_path),
        sr=sample_rate,
        mono=mono
    )

    logger.info(f"Loaded audio: {len(audio_data)/sr:.2f}s @ {sr}Hz")

    return audio_data, int(sr)


def iter_audio_frames(
    audio_data: np.ndarray,
    sample_rate: int,
    frame_size: int = 2048,
    start_time: float = 0.0
) -> Iterator[Tuple[float, np.ndarray]]:
    """
    Split a signal into consecutive non-overlapping frames.

    The trailing partial frame is dropped, as a live analyser node only
    ever delivers full buffers.

    Args:
        audio_data: Mono signal, shape (n_samples,)
        sample_rate: Sample rate in Hz
        frame_size: Samples per frame
        start_time: Timestamp (seconds) of the first sample

    Yields:
        (timestamp_sec, frame) where timestamp is the time of the frame's
        last sample, i.e. when a live callback would have fired
    """
    audio_data = np.asarray(audio_data, dtype=np.float32)
    if len(audio_data) < frame_size:
        logger.warning(
            f"Audio shorter than one frame ({len(audio_data)} < {frame_size} samples)"
        )
        return

    frames = librosa.util.frame(audio_data, frame_length=frame_size, hop_length=frame_size)

    for i in range(frames.shape[1]):
        end_sample = (i + 1) * frame_size
        yield start_time + end_sample / sample_rate, np.ascontiguousarray(frames[:, i])
