# faceaccess/processing/image_io.py
"""
Image decoding. Everything downstream works on RGB uint8 (H, W, 3).
"""
import logging
from typing import Optional

import cv2
import numpy as np

from ..core.errors import DecodeFailure

logger = logging.getLogger(__name__)


def decode_image(data: bytes, width: Optional[int] = None, height: Optional[int] = None,
                 is_bgr: bool = True) -> np.ndarray:
    """
    Decode image bytes to RGB.

    Encoded formats (JPEG/PNG/...) are tried first. If that fails and
    width/height are given, the bytes are read as raw packed 3-channel pixels.

    Args:
        data: Image bytes
        width, height: Raw frame size (only for raw input)
        is_bgr: Raw pixel order is BGR (camera default) rather than RGB

    Raises:
        DecodeFailure: bytes are neither a decodable image nor a raw frame
    """
    if not data:
        raise DecodeFailure("Empty image data")

    buf = np.frombuffer(data, dtype=np.uint8)
    frame = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    if frame is not None:
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    if width and height:
        expected = int(width) * int(height) * 3
        if buf.size >= expected:
            logger.debug(f"Decoding raw {'BGR' if is_bgr else 'RGB'} frame {width}x{height}")
            frame = buf[:expected].reshape(int(height), int(width), 3)
            if is_bgr:
                frame = frame[..., ::-1]
            return np.ascontiguousarray(frame)

    raise DecodeFailure("Could not decode image data")


def load_image(path: str) -> np.ndarray:
    """Read and decode an image file to RGB."""
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise DecodeFailure(f"Could not read {path}: {e}")
    return decode_image(data)
