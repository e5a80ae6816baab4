"""Frame-rate throttle for callback-driven sensor streams."""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class FrameThrottle:
    """
    Admit at most one event per interval; drop the rest.

    Dropped events are never queued, so a slow consumer can not build up
    a backlog. The default of 66 ms bounds processing to ~15 updates/sec.
    """

    def __init__(self, min_interval_sec: float = 0.066):
        self.min_interval_sec = min_interval_sec
        self._last_admitted: Optional[float] = None
        self.dropped = 0

    def admit(self, timestamp: float) -> bool:
        """Return True if an event at `timestamp` should be processed."""
        if self._last_admitted is not None and timestamp - self._last_admitted < self.min_interval_sec:
            self.dropped += 1
            logger.debug(f"Throttled frame at t={timestamp:.3f}s")
            return False
        self._last_admitted = timestamp
        return True

    def reset(self):
        self._last_admitted = None
        self.dropped = 0
