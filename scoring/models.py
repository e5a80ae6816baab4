"""
Shared data model for the screening engine.

Domain results, issue tags, typed calibration baselines and persisted
history records. Every domain test ends in exactly one DomainResult;
results are immutable once emitted.
"""

import base64
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Union


class Domain(Enum):
    """Screening domains, one composite score each."""
    VISUAL = "VISUAL"  # Facial symmetry
    AUDIO = "AUDIO"  # Voice acoustics + reading coherence
    TOUCH = "TOUCH"  # Spiral tracing + arm stability


class SessionMode(Enum):
    """Whether a session scores the user or records their baseline."""
    TEST = "test"
    CALIBRATION = "calibration"


class IssueTag(Enum):
    """Findings attached to a domain result."""
    FACIAL_ASYMMETRY = "facial_asymmetry"
    PITCH_INSTABILITY = "pitch_instability"
    BREATH_INSTABILITY = "breath_instability"
    SEMANTIC_INCOHERENCE = "semantic_incoherence"
    ARM_DROP = "arm_drop"
    RESTING_TREMOR = "resting_tremor"

    @property
    def label(self) -> str:
        """Human-readable form used in details text."""
        return self.value.replace('_', ' ')


class OverallStatus(Enum):
    """Day-level risk status from the weakest-link rule."""
    NORMAL = "NORMAL"
    CAUTION = "CAUTION"
    DANGER = "DANGER"


class NarrativeStatus(Enum):
    """Status vocabulary of the narrative report."""
    SUNNY = "SUNNY"
    CLOUDY = "CLOUDY"
    STORM = "STORM"


@dataclass(frozen=True)
class VisualBaseline:
    """Mean symmetry ratios from a calibration scan."""
    eye_sym: float
    mouth_sym: float
    brow_sym: float

    domain = Domain.VISUAL

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VisualBaseline':
        return cls(
            eye_sym=float(data['eye_sym']),
            mouth_sym=float(data['mouth_sym']),
            brow_sym=float(data['brow_sym'])
        )


@dataclass(frozen=True)
class AudioBaseline:
    """Raw voice metrics from a calibration run."""
    jitter: float
    shimmer: float
    mean_pitch_hz: float
    reading_pace: Optional[float] = None  # characters per second
    coherence: Optional[int] = None

    domain = Domain.AUDIO

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AudioBaseline':
        pace = data.get('reading_pace')
        coherence = data.get('coherence')
        return cls(
            jitter=float(data['jitter']),
            shimmer=float(data['shimmer']),
            mean_pitch_hz=float(data['mean_pitch_hz']),
            reading_pace=float(pace) if pace is not None else None,
            coherence=int(coherence) if coherence is not None else None
        )


@dataclass(frozen=True)
class TouchBaseline:
    """Raw motor metrics from a calibration run."""
    spiral_rmse: float
    max_drift_deg: float
    tremor_intensity: float
    tremor_frequency_hz: float

    domain = Domain.TOUCH

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TouchBaseline':
        return cls(
            spiral_rmse=float(data['spiral_rmse']),
            max_drift_deg=float(data['max_drift_deg']),
            tremor_intensity=float(data['tremor_intensity']),
            tremor_frequency_hz=float(data['tremor_frequency_hz'])
        )


DomainBaseline = Union[VisualBaseline, AudioBaseline, TouchBaseline]

BASELINE_TYPES = {
    Domain.VISUAL: VisualBaseline,
    Domain.AUDIO: AudioBaseline,
    Domain.TOUCH: TouchBaseline,
}


@dataclass
class BaselineProfile:
    """
    Per-domain calibration snapshot as held by the storage layer.

    Attributes:
        visual: Facial symmetry baseline, if calibrated
        audio: Voice baseline, if calibrated
        touch: Motor baseline, if calibrated
        timestamp: Epoch milliseconds of the last baseline update
    """
    visual: Optional[VisualBaseline] = None
    audio: Optional[AudioBaseline] = None
    touch: Optional[TouchBaseline] = None
    timestamp: Optional[int] = None

    def get(self, domain: Domain) -> Optional[DomainBaseline]:
        return getattr(self, domain.value.lower())

    def has_any(self) -> bool:
        return any(b is not None for b in (self.visual, self.audio, self.touch))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for domain in Domain:
            baseline = self.get(domain)
            if baseline is not None:
                data[domain.value.lower()] = baseline.to_dict()
        data['timestamp'] = self.timestamp
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BaselineProfile':
        """
        Build from a stored mapping.

        Raises:
            KeyError / ValueError / TypeError: on a malformed domain payload
        """
        kwargs: Dict[str, Any] = {}
        for domain, baseline_cls in BASELINE_TYPES.items():
            key = domain.value.lower()
            if data.get(key) is not None:
                kwargs[key] = baseline_cls.from_dict(data[key])
        timestamp = data.get('timestamp')
        return cls(timestamp=int(timestamp) if timestamp is not None else None, **kwargs)


@dataclass(frozen=True)
class DomainResult:
    """
    Final outcome of one domain's test sequence.

    Attributes:
        domain: Which domain produced the result
        score: Composite score, integer in [0, 100]
        issues: Findings (empty in calibration mode)
        details: Human-readable summary for the history record
        baseline: Raw calibration metrics (calibration mode only)
    """
    domain: Domain
    score: int
    issues: FrozenSet[IssueTag] = field(default_factory=frozenset)
    details: str = ""
    baseline: Optional[DomainBaseline] = None

    def __post_init__(self):
        """Validate score range and baseline shape."""
        if isinstance(self.score, bool) or not isinstance(self.score, int):
            raise TypeError(f"Domain score must be an int, got {type(self.score).__name__}")
        if not 0 <= self.score <= 100:
            raise ValueError(f"Domain score out of range: {self.score}")
        object.__setattr__(self, 'issues', frozenset(self.issues))
        if self.baseline is not None and not isinstance(self.baseline, BASELINE_TYPES[self.domain]):
            raise TypeError(
                f"{self.domain.value} result cannot carry a {type(self.baseline).__name__}"
            )

    @property
    def is_calibration(self) -> bool:
        return self.baseline is not None


# Largest epoch-millisecond value a SQLite INTEGER column can hold
MAX_TIMESTAMP_MS = 2 ** 63 - 1


@dataclass
class HistoryRecord:
    """
    One persisted domain test result.

    Attributes:
        type: Domain of the test
        score: Composite score [0, 100]
        details: Findings text
        timestamp: Epoch milliseconds
        snapshot: Optional opaque image blob (e.g. JPEG of the face scan)
        id: Storage-assigned identifier
    """
    type: Domain
    score: int
    details: str
    timestamp: int
    snapshot: Optional[bytes] = None
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation; snapshot is base64 encoded."""
        return {
            'id': self.id,
            'type': self.type.value,
            'score': self.score,
            'details': self.details,
            'timestamp': self.timestamp,
            'snapshot': base64.b64encode(self.snapshot).decode('ascii') if self.snapshot else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HistoryRecord':
        """
        Parse and validate a record mapping.

        Raises:
            ValueError: if any field is missing or out of range
        """
        if not isinstance(data, dict):
            raise ValueError(f"History row must be an object, got {type(data).__name__}")
        try:
            domain = Domain(data['type'])
            score = data['score']
            timestamp = data['timestamp']
        except KeyError as e:
            raise ValueError(f"History row missing field: {e}") from e

        if isinstance(score, bool) or not isinstance(score, (int, float)) or not 0 <= score <= 100:
            raise ValueError(f"Invalid history score: {score!r}")
        if (isinstance(timestamp, bool) or not isinstance(timestamp, (int, float))
                or not 0 <= timestamp <= MAX_TIMESTAMP_MS):
            raise ValueError(f"Invalid history timestamp: {timestamp!r}")

        snapshot = data.get('snapshot')
        if isinstance(snapshot, str):
            snapshot = base64.b64decode(snapshot.encode('ascii'))
        elif snapshot is not None and not isinstance(snapshot, bytes):
            raise ValueError(f"Invalid history snapshot of type {type(snapshot).__name__}")

        return cls(
            type=domain,
            score=int(score),
            details=str(data.get('details', '')),
            timestamp=int(timestamp),
            snapshot=snapshot,
            id=data.get('id')
        )
