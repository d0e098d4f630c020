# faceaccess/processing/cropping.py
"""
Face cropping relative to a detector bounding box.

- crop():        square crop of side max(w, h) * scale around the box center,
                 used by liveness (scale 2.7 keeps background context)
- crop_to_box(): the box rectangle itself, used by recognition

Both clamp to the image and return None when the clamped region is narrower
than MIN_CROP_SIZE on either axis.
"""
import math
import logging
from typing import Optional

import numpy as np

from ..core.types import BoundingBox

logger = logging.getLogger(__name__)

MIN_CROP_SIZE = 2
LIVENESS_CROP_SCALE = 2.7
RECOGNITION_CROP_SCALE = 1.0


def _round(value: float) -> int:
    """Round half away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def crop_region(image_width: int, image_height: int, bbox: BoundingBox, scale: float):
    """
    Clamped (x1, y1, x2, y2) of the scaled square crop.

    Example: bbox (100, 150, 200, 250), scale 2.7 -> center (200, 275),
    side 675, region (-137.5, -62.5)..(537.5, 612.5) before clamping.
    """
    cx, cy = bbox.center
    side = max(bbox.width, bbox.height) * scale
    half = side / 2.0

    x1 = min(max(_round(cx - half), 0), image_width)
    y1 = min(max(_round(cy - half), 0), image_height)
    x2 = min(max(_round(cx + half), 0), image_width)
    y2 = min(max(_round(cy + half), 0), image_height)
    return x1, y1, x2, y2


def _cut(image, x1, y1, x2, y2) -> Optional[np.ndarray]:
    if (x2 - x1) < MIN_CROP_SIZE or (y2 - y1) < MIN_CROP_SIZE:
        logger.debug(f"Crop region too small: ({x1}, {y1}) - ({x2}, {y2})")
        return None
    return np.array(image[y1:y2, x1:x2], copy=True)


def crop(image, bbox: BoundingBox, scale: float = LIVENESS_CROP_SCALE) -> Optional[np.ndarray]:
    """
    Square crop around the face center.

    Args:
        image: RGB image (H, W, 3)
        bbox: Detector bounding box
        scale: Side length multiplier over max(w, h)

    Returns:
        New image of size (y2 - y1, x2 - x1) or None if degenerate
    """
    height, width = image.shape[:2]
    x1, y1, x2, y2 = crop_region(width, height, bbox, scale)
    logger.debug(f"Crop bbox={bbox} scale={scale} -> ({x1}, {y1}) - ({x2}, {y2})")
    return _cut(image, x1, y1, x2, y2)


def crop_to_box(image, bbox: BoundingBox) -> Optional[np.ndarray]:
    """Direct rectangle crop of the bounding box, clamped to the image."""
    height, width = image.shape[:2]
    x1 = min(max(bbox.x, 0), width)
    y1 = min(max(bbox.y, 0), height)
    x2 = min(max(bbox.x + bbox.width, 0), width)
    y2 = min(max(bbox.y + bbox.height, 0), height)
    return _cut(image, x1, y1, x2, y2)
