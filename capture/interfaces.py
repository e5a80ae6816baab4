"""
Capability interfaces the engine depends on instead of concrete devices.

Each source is started and stopped explicitly and pushes events to its
subscribers. Subscriptions are handles: cancelling one detaches exactly
that listener, and cancelling twice is harmless.
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

from .events import AudioFrame, LandmarkFrame, MotionSample, OrientationSample


class Subscription:
    """Handle returned by subscribe(); cancel() detaches the listener."""

    def __init__(self, unsubscribe: Callable[[], None]):
        self._unsubscribe: Optional[Callable[[], None]] = unsubscribe

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    def cancel(self) -> None:
        """Detach the listener. Safe to call more than once."""
        if self._unsubscribe is not None:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
            unsubscribe()


class ListenerRegistry:
    """Ordered callback set; add() returns the Subscription that removes the entry."""

    def __init__(self):
        self._listeners: Dict[int, Callable] = {}
        self._next_token = 0

    def add(self, callback: Callable) -> Subscription:
        token = self._next_token
        self._next_token += 1
        self._listeners[token] = callback
        return Subscription(lambda: self._listeners.pop(token, None))

    def emit(self, event) -> None:
        # Copy: a listener may cancel itself while handling the event
        for callback in list(self._listeners.values()):
            callback(event)

    def __len__(self) -> int:
        return len(self._listeners)


class FrameSource(ABC):
    """Camera + face-mesh pipeline delivering LandmarkFrames."""

    @abstractmethod
    def start(self) -> None:
        """Open the device. Raises DeviceUnavailableError on failure."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Release the device."""
        pass

    @abstractmethod
    def subscribe(self, callback: Callable[[LandmarkFrame], None]) -> Subscription:
        """Register a per-frame listener."""
        pass


class AudioSource(ABC):
    """Microphone delivering fixed-length AudioFrames."""

    @abstractmethod
    def start(self) -> None:
        """Open the microphone. Raises DeviceUnavailableError on failure."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Release the microphone."""
        pass

    @abstractmethod
    def subscribe(self, callback: Callable[[AudioFrame], None]) -> Subscription:
        """Register a per-buffer listener."""
        pass


class MotionSource(ABC):
    """Accelerometer + orientation sensor."""

    @abstractmethod
    def request_permission(self) -> bool:
        """Ask for sensor access. Returns True if granted."""
        pass

    @abstractmethod
    def start(self) -> None:
        """Begin sampling. Raises DeviceUnavailableError on failure."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop sampling."""
        pass

    @abstractmethod
    def subscribe_motion(self, callback: Callable[[MotionSample], None]) -> Subscription:
        """Register an acceleration listener."""
        pass

    @abstractmethod
    def subscribe_orientation(self, callback: Callable[[OrientationSample], None]) -> Subscription:
        """Register a tilt listener."""
        pass

    def subscribe(self, callback: Callable[[MotionSample], None]) -> Subscription:
        """Alias of subscribe_motion for symmetry with the other sources."""
        return self.subscribe_motion(callback)
