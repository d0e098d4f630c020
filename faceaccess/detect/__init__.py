# faceaccess/detect/__init__.py
"""
Face Detection module.

Exports:
- HaarFaceDetector: OpenCV cascade detector adapter
- get_detector: shared lazily created detector
- detect: Quick function to detect the largest face
"""

from .detect import HaarFaceDetector, get_detector, detect

__all__ = [
    'HaarFaceDetector',
    'get_detector',
    'detect',
]
