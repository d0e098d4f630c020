# faceaccess/recognition/__init__.py
"""
Recognition module - INT8 optimized.

- liveness: MiniFASNetV2 anti-spoof classifier (80x80, BGR)
- embedding: identity embedding extractor (128x128)
- matcher: L2 nearest-identity search with thresholds
"""

from .liveness import LivenessClassifier, softmax2
from .embedding import EmbeddingExtractor
from .matcher import euclidean_distance, identify, find_duplicate, nearest_identity

__all__ = [
    'LivenessClassifier',
    'softmax2',
    'EmbeddingExtractor',
    'euclidean_distance',
    'identify',
    'find_duplicate',
    'nearest_identity',
]
