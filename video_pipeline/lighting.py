"""
Lighting gate for the facial symmetry scan.

Landmark positions become unreliable in dim rooms long before the face
detector gives up, so the scan is refused when the image is too dark.

Engineering decisions:
- Brightness = mean luma of a 40x40 thumbnail (resize with area averaging)
- Re-evaluated at most every 500 ms; between checks the last verdict holds
"""

import logging
from typing import Dict, Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


def measure_brightness(image: np.ndarray, size: int = 40) -> float:
    """
    Mean brightness of an image on a 0-255 scale.

    Args:
        image: (H, W, 3) uint8 color image or (H, W) grayscale
        size: Side of the square thumbnail averaged over

    Returns:
        Mean of the per-pixel channel average
    """
    if image is None or image.size == 0:
        raise ValueError("Empty image")

    thumb = cv2.resize(image, (size, size), interpolation=cv2.INTER_AREA)
    return float(np.mean(thumb))


class LightingMonitor:
    """
    Throttled too-dark detector.

    Usage:
        monitor = LightingMonitor(config)
        monitor.update(brightness, timestamp)
        if monitor.too_dark: ...
    """

    def __init__(self, config: Optional[Dict] = None):
        visual_cfg = (config or {}).get('visual', {})
        self.luma_threshold = visual_cfg.get('luma_threshold', 40)
        self.check_interval_sec = visual_cfg.get('lighting_check_interval_ms', 500) / 1000.0
        self.downscale = visual_cfg.get('lighting_downscale', 40)

        self.brightness: Optional[float] = None
        self.too_dark = False
        self._last_check: Optional[float] = None

    def update(self, brightness: float, timestamp: float) -> bool:
        """
        Feed a brightness reading; returns the current too-dark verdict.

        Readings arriving within the check interval of the last accepted
        one are ignored.
        """
        if self._last_check is not None and timestamp - self._last_check < self.check_interval_sec:
            return self.too_dark

        self._last_check = timestamp
        self.brightness = float(brightness)
        was_dark = self.too_dark
        self.too_dark = self.brightness < self.luma_threshold

        if self.too_dark and not was_dark:
            logger.warning(f"Lighting too dark (brightness={self.brightness:.0f})")
        elif was_dark and not self.too_dark:
            logger.info(f"Lighting restored (brightness={self.brightness:.0f})")

        return self.too_dark

    def update_from_image(self, image: np.ndarray, timestamp: float) -> bool:
        """Measure and feed an image, skipping the measurement when throttled."""
        if self._last_check is not None and timestamp - self._last_check < self.check_interval_sec:
            return self.too_dark
        return self.update(measure_brightness(image, self.downscale), timestamp)

    def reset(self):
        self.brightness = None
        self.too_dark = False
        self._last_check = None
