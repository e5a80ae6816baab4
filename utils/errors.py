"""
Error taxonomy for the screening engine.

Every failure the engine can hit is recoverable at the sub-test or session
level. Each exception carries a short user-facing message so the caller can
surface a retry prompt without inspecting the exception type.

Categories:
- Input-insufficient: too few samples for a statistical reduction
- Constraint-violation: capture refused (bad start point, invalid pose, darkness)
- Degenerate measurement: zero-division geometry (e.g. both eye heights zero)
- Device/permission failure: missing microphone, motion sensor, recognizer
- External-service failure: narrative or coherence service unreachable
- Data-corruption on restore: malformed backup payload
"""

from typing import Optional


class ScreeningError(Exception):
    """Base class for all engine errors."""

    default_message = "Something went wrong, please try again"

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        self.user_message = user_message or self.default_message


class InsufficientDataError(ScreeningError, ValueError):
    """Too few samples were collected to reduce a sub-test to a score."""

    default_message = "Not enough data was captured, please retry"


class ConstraintViolationError(ScreeningError, ValueError):
    """Capture refused because a precondition is not met."""

    default_message = "Please adjust and try again"

    def __init__(self, message: str, reason: str, user_message: Optional[str] = None):
        super().__init__(message, user_message)
        self.reason = reason


class DegenerateMeasurementError(ScreeningError, ValueError):
    """Geometric measurement is undefined (zero or non-finite magnitudes)."""

    default_message = "Measurement unavailable for this frame"


class DeviceUnavailableError(ScreeningError, RuntimeError):
    """Sensor missing or permission denied."""

    default_message = "Device unavailable, please check permissions and retry"


class ServiceUnavailableError(ScreeningError, RuntimeError):
    """External text service failed or returned an unusable payload."""

    default_message = "Analysis service unavailable, please try later"


class BackupFormatError(ScreeningError, ValueError):
    """Backup payload is empty, not JSON, or structurally invalid."""

    default_message = "Backup file is malformed or corrupted"
