"""Shared utilities for the neurological screening engine."""

from .audio_io import iter_audio_frames, load_audio
from .config_loader import get_nested_config, load_config
from .errors import (
    BackupFormatError,
    ConstraintViolationError,
    DegenerateMeasurementError,
    DeviceUnavailableError,
    InsufficientDataError,
    ScreeningError,
    ServiceUnavailableError,
)
from .geometry import calculate_symmetry, cluster_symmetry, distance_2d, polar_coordinates

__all__ = [
    'iter_audio_frames',
    'load_audio',
    'get_nested_config',
    'load_config',
    'BackupFormatError',
    'ConstraintViolationError',
    'DegenerateMeasurementError',
    'DeviceUnavailableError',
    'InsufficientDataError',
    'ScreeningError',
    'ServiceUnavailableError',
    'calculate_symmetry',
    'cluster_symmetry',
    'distance_2d',
    'polar_coordinates',
]
