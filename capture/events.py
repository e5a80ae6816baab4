"""
Sensor event types pushed from the capture layer into the engine.

All events are ephemeral and timestamped in seconds on a monotonic clock
shared by every source of a session. The engine never polls for them.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

import numpy as np


@dataclass
class LandmarkFrame:
    """
    Face-mesh landmarks for one video frame.

    Attributes:
        landmarks: (N, 3) array of normalized (x, y, z) points, or None
            when no face was found in the frame
        timestamp: Capture time in seconds
        brightness: Mean image luma (0-255) if the capture layer measured it
    """
    landmarks: Optional[np.ndarray]
    timestamp: float
    brightness: Optional[float] = None

    @property
    def has_face(self) -> bool:
        return self.landmarks is not None and len(self.landmarks) > 0


@dataclass
class AudioFrame:
    """Fixed-length microphone buffer."""
    samples: np.ndarray
    sample_rate: int
    timestamp: float


class PointerPhase(Enum):
    """Touch/mouse pointer lifecycle."""
    DOWN = "down"
    MOVE = "move"
    UP = "up"


@dataclass
class PointerEvent:
    """Pointer position relative to the spiral center, in reference pixels."""
    x: float
    y: float
    timestamp: float
    phase: PointerPhase = PointerPhase.MOVE


@dataclass
class MotionSample:
    """
    Triaxial acceleration at one sampling tick (m/s^2).

    Attributes:
        x, y, z: Raw reading including gravity
        timestamp: Capture time in seconds
        linear: Gravity-compensated (x, y, z) when the device provides it
    """
    x: float
    y: float
    z: float
    timestamp: float
    linear: Optional[Tuple[float, float, float]] = None

    @classmethod
    def from_device(
        cls,
        timestamp: float,
        acceleration: Optional[Sequence[Optional[float]]] = None,
        acceleration_including_gravity: Optional[Sequence[Optional[float]]] = None
    ) -> 'MotionSample':
        """
        Build a sample from the two vectors a motion sensor may report.

        Either vector may be missing, or carry None components on devices
        without a gyroscope; a partial compensated vector is discarded.
        Missing raw components read as 0.
        """
        linear = None
        if acceleration is not None and len(acceleration) == 3 and all(v is not None for v in acceleration):
            linear = tuple(float(v) for v in acceleration)

        raw = [float(v or 0.0) for v in (acceleration_including_gravity or (0.0, 0.0, 0.0))]
        return cls(x=raw[0], y=raw[1], z=raw[2], timestamp=timestamp, linear=linear)

    @property
    def magnitude(self) -> float:
        """Magnitude of the raw reading."""
        return math.sqrt(self.x ** 2 + self.y ** 2 + self.z ** 2)


@dataclass
class OrientationSample:
    """Front-back tilt angle (beta) in degrees."""
    beta: float
    timestamp: float
