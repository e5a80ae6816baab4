"""
Camera + MediaPipe Face Mesh binding for the FrameSource interface.

Converts each camera image into a LandmarkFrame (normalized 3D landmarks,
timestamp, mean brightness) and pushes it to subscribers. The screening
engine never imports this module; only a live front end wires it in.

Engineering decisions:
- MediaPipe Face Mesh with refine_landmarks=True, one face only
- Brightness measured here, where the image is available, on the same
  40x40 thumbnail the lighting gate uses
- Install with the optional `capture` extra
"""

import logging
import time
from typing import Callable, Optional
import warnings

import numpy as np
import cv2

from capture.events import LandmarkFrame
from capture.interfaces import FrameSource, ListenerRegistry, Subscription
from utils.errors import DeviceUnavailableError
from .lighting import measure_brightness

logger = logging.getLogger(__name__)

# Suppress MediaPipe warnings
warnings.filterwarnings('ignore', category=UserWarning, module='google.protobuf')

try:
    import mediapipe as mp
    MEDIAPIPE_AVAILABLE = True
except ImportError:
    MEDIAPIPE_AVAILABLE = False
    logger.warning("MediaPipe not installed. Live face capture unavailable.")


class MediaPipeLandmarkSource(FrameSource):
    """
    Live landmark stream from a webcam.

    Usage:
        source = MediaPipeLandmarkSource(camera_index=0)
        sub = source.subscribe(analyzer.tick)
        source.start()
        source.run(duration_sec=10)
        sub.cancel(); source.stop()
    """

    def __init__(
        self,
        camera_index: int = 0,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        brightness_downscale: int = 40
    ):
        """
        Initialize landmark source.

        Args:
            camera_index: OpenCV camera index
            min_detection_confidence: Minimum confidence for face detection
            min_tracking_confidence: Minimum confidence for landmark tracking
            brightness_downscale: Thumbnail side for brightness measurement
        """
        if not MEDIAPIPE_AVAILABLE:
            raise ImportError("MediaPipe not installed. Install with: pip install mediapipe")

        self.camera_index = camera_index
        self.min_detection_confidence = min_detection_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self.brightness_downscale = brightness_downscale

        self.capture: Optional[cv2.VideoCapture] = None
        self.face_mesh = None
        self._listeners = ListenerRegistry()

    def start(self) -> None:
        self.capture = cv2.VideoCapture(self.camera_index)
        if not self.capture.isOpened():
            self.capture = None
            raise DeviceUnavailableError(
                f"Cannot open camera {self.camera_index}",
                "Camera not available, please check permissions"
            )

        self.face_mesh = mp.solutions.face_mesh.FaceMesh(
            static_image_mode=False,
            max_num_faces=1,
            refine_landmarks=True,
            min_detection_confidence=self.min_detection_confidence,
            min_tracking_confidence=self.min_tracking_confidence
        )
        logger.info(f"Landmark source started (camera {self.camera_index})")

    def stop(self) -> None:
        if self.capture is not None:
            self.capture.release()
            self.capture = None
        if self.face_mesh is not None:
            self.face_mesh.close()
            self.face_mesh = None
        logger.info("Landmark source stopped")

    def subscribe(self, callback: Callable[[LandmarkFrame], None]) -> Subscription:
        return self._listeners.add(callback)

    def process_image(self, image_bgr: np.ndarray, timestamp: float) -> LandmarkFrame:
        """Run Face Mesh on one BGR image and wrap the result."""
        rgb = cv2.cvtColor(image_bgr, cv2.COLOR_BGR2RGB)
        results = self.face_mesh.process(rgb)

        landmarks = None
        if results.multi_face_landmarks:
            face = results.multi_face_landmarks[0]
            landmarks = np.array([[lm.x, lm.y, lm.z] for lm in face.landmark], dtype=np.float64)

        return LandmarkFrame(
            landmarks=landmarks,
            timestamp=timestamp,
            brightness=measure_brightness(image_bgr, self.brightness_downscale)
        )

    def run(self, duration_sec: float, until: Optional[Callable[[], bool]] = None):
        """
        Read frames for `duration_sec` seconds, pushing each to subscribers.

        Stops early once `until()` returns True.
        """
        if self.capture is None:
            raise DeviceUnavailableError("Landmark source not started")

        start = time.monotonic()
        while time.monotonic() - start < duration_sec:
            ok, image = self.capture.read()
            if not ok:
                logger.warning("Camera frame read failed")
                break
            self._listeners.emit(self.process_image(image, time.monotonic()))
            if until is not None and until():
                break
