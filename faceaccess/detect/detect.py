# faceaccess/detect/detect.py
"""
Face Detection module - OpenCV Haar cascade.
Cascade: haarcascade_frontalface_default.xml (bundled with opencv-python)

Returns the largest face, clamped to the image.

Thread-safe: CascadeClassifier is shared, calls are serialized with a Lock.
"""
import logging
import threading
from typing import Optional

import cv2
import numpy as np

from ..core.errors import NotInitialized
from ..core.types import BoundingBox

logger = logging.getLogger(__name__)

CASCADE_FILE = "haarcascade_frontalface_default.xml"


def default_cascade_path() -> str:
    return cv2.data.haarcascades + CASCADE_FILE


class HaarFaceDetector:
    """
    Frontal face detector.

    Args:
        cascade_path: Cascade XML (default: OpenCV's frontal face cascade)
        scale_factor: detectMultiScale pyramid step
        min_neighbors: detectMultiScale neighbor threshold
        min_size: Smallest face side in pixels
    """

    def __init__(self, cascade_path=None, scale_factor=1.1, min_neighbors=4, min_size=60):
        self._lock = threading.Lock()
        self.cascade_path = cascade_path or default_cascade_path()
        self.scale_factor = scale_factor
        self.min_neighbors = min_neighbors
        self.min_size = min_size

        try:
            self._cascade = cv2.CascadeClassifier(self.cascade_path)
        except cv2.error as e:
            raise NotInitialized(f"Cannot load face cascade {self.cascade_path}: {e}")
        if self._cascade.empty():
            raise NotInitialized(f"Cannot load face cascade: {self.cascade_path}")
        logger.info(f"[Detector] Haar cascade: {self.cascade_path}")

    def detect_faces(self, image):
        """
        All faces in an RGB image.

        Returns:
            list of (x, y, w, h), largest first
        """
        image = np.asarray(image)
        if image.ndim == 3:
            gray = cv2.cvtColor(np.ascontiguousarray(image), cv2.COLOR_RGB2GRAY)
        else:
            gray = image

        with self._lock:
            faces = self._cascade.detectMultiScale(
                gray,
                scaleFactor=self.scale_factor,
                minNeighbors=self.min_neighbors,
                flags=cv2.CASCADE_SCALE_IMAGE,
                minSize=(self.min_size, self.min_size),
            )

        boxes = [tuple(int(v) for v in face) for face in faces]
        boxes.sort(key=lambda f: f[2] * f[3], reverse=True)
        return boxes

    def detect(self, image) -> Optional[BoundingBox]:
        """Largest face as a BoundingBox, or None."""
        faces = self.detect_faces(image)
        if not faces:
            logger.debug("[Detector] no face")
            return None

        height, width = np.asarray(image).shape[:2]
        x, y, w, h = faces[0]
        bbox = BoundingBox.clamped(x, y, w, h, width, height)
        logger.debug(f"[Detector] {len(faces)} face(s), largest={bbox}")
        return bbox


# --- GLOBAL INSTANCE ---
_detector = None
_detector_lock = threading.Lock()


def get_detector():
    """Lazy initialization so importing does not load the cascade."""
    global _detector
    if _detector is None:
        with _detector_lock:
            if _detector is None:
                _detector = HaarFaceDetector()
    return _detector


def detect(image) -> Optional[BoundingBox]:
    """Detect the largest face with the shared detector."""
    return get_detector().detect(image)
