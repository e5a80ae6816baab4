"""
In-memory capture sources for headless runs and tests.

Each source holds a scripted list of events and pushes them to its
listeners on replay(). listener_count exposes how many callbacks are
still attached so callers can check that none outlives its session.
"""

import logging
from typing import Callable, Iterable, List, Optional

from utils.errors import DeviceUnavailableError
from .events import AudioFrame, LandmarkFrame, MotionSample, OrientationSample
from .interfaces import AudioSource, FrameSource, ListenerRegistry, MotionSource, Subscription

logger = logging.getLogger(__name__)


class SyntheticFrameSource(FrameSource):
    """Replays a scripted sequence of LandmarkFrames."""

    def __init__(self, frames: Optional[Iterable[LandmarkFrame]] = None, available: bool = True):
        self.frames: List[LandmarkFrame] = list(frames or [])
        self.available = available
        self.running = False
        self._listeners = ListenerRegistry()

    def start(self) -> None:
        if not self.available:
            raise DeviceUnavailableError("Camera not available", "Camera access denied")
        self.running = True

    def stop(self) -> None:
        self.running = False

    def subscribe(self, callback: Callable[[LandmarkFrame], None]) -> Subscription:
        return self._listeners.add(callback)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def emit(self, frame: LandmarkFrame) -> None:
        if self.running:
            self._listeners.emit(frame)

    def replay(self) -> None:
        for frame in self.frames:
            self.emit(frame)


class SyntheticAudioSource(AudioSource):
    """Replays a scripted sequence of AudioFrames."""

    def __init__(self, frames: Optional[Iterable[AudioFrame]] = None, available: bool = True):
        self.frames: List[AudioFrame] = list(frames or [])
        self.available = available
        self.running = False
        self._listeners = ListenerRegistry()

    def start(self) -> None:
        if not self.available:
            raise DeviceUnavailableError("Microphone not available", "Microphone access denied")
        self.running = True

    def stop(self) -> None:
        self.running = False

    def subscribe(self, callback: Callable[[AudioFrame], None]) -> Subscription:
        return self._listeners.add(callback)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def emit(self, frame: AudioFrame) -> None:
        if self.running:
            self._listeners.emit(frame)

    def replay(self) -> None:
        for frame in self.frames:
            self.emit(frame)


class SyntheticMotionSource(MotionSource):
    """
    Replays scripted acceleration and orientation streams.

    Events are interleaved by timestamp on replay().
    """

    def __init__(
        self,
        motion: Optional[Iterable[MotionSample]] = None,
        orientation: Optional[Iterable[OrientationSample]] = None,
        permission_granted: bool = True
    ):
        self.motion: List[MotionSample] = list(motion or [])
        self.orientation: List[OrientationSample] = list(orientation or [])
        self.permission_granted = permission_granted
        self.running = False
        self._motion_listeners = ListenerRegistry()
        self._orientation_listeners = ListenerRegistry()

    def request_permission(self) -> bool:
        return self.permission_granted

    def start(self) -> None:
        if not self.permission_granted:
            raise DeviceUnavailableError("Motion sensor permission denied", "Sensor permission denied")
        self.running = True

    def stop(self) -> None:
        self.running = False

    def subscribe_motion(self, callback: Callable[[MotionSample], None]) -> Subscription:
        return self._motion_listeners.add(callback)

    def subscribe_orientation(self, callback: Callable[[OrientationSample], None]) -> Subscription:
        return self._orientation_listeners.add(callback)

    @property
    def listener_count(self) -> int:
        return len(self._motion_listeners) + len(self._orientation_listeners)

    def emit_motion(self, sample: MotionSample) -> None:
        if self.running:
            self._motion_listeners.emit(sample)

    def emit_orientation(self, sample: OrientationSample) -> None:
        if self.running:
            self._orientation_listeners.emit(sample)

    def replay(self) -> None:
        events = [(s.timestamp, 1, s) for s in self.motion]
        events += [(s.timestamp, 0, s) for s in self.orientation]
        # Orientation first on ties so drift has its reference before motion arrives
        events.sort(key=lambda e: (e[0], e[1]))

        logger.debug(f"Replaying {len(events)} motion/orientation events")
        for _, kind, sample in events:
            if kind == 0:
                self.emit_orientation(sample)
            else:
                self.emit_motion(sample)
