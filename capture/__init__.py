"""
Capture layer: event types, source interfaces and rate limiting.

The engine depends only on these interfaces; platform bindings (camera,
microphone, motion sensors) and the in-memory sources used for headless
runs implement them.
"""

from .events import (
    AudioFrame,
    LandmarkFrame,
    MotionSample,
    OrientationSample,
    PointerEvent,
    PointerPhase,
)
from .interfaces import AudioSource, FrameSource, ListenerRegistry, MotionSource, Subscription
from .synthetic import SyntheticAudioSource, SyntheticFrameSource, SyntheticMotionSource
from .throttle import FrameThrottle

__all__ = [
    'AudioFrame',
    'LandmarkFrame',
    'MotionSample',
    'OrientationSample',
    'PointerEvent',
    'PointerPhase',
    'AudioSource',
    'FrameSource',
    'ListenerRegistry',
    'MotionSource',
    'Subscription',
    'SyntheticAudioSource',
    'SyntheticFrameSource',
    'SyntheticMotionSource',
    'FrameThrottle',
]
