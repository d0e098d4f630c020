# faceaccess/data/__init__.py
"""
Data layer - enrolled identity storage.
"""
from .embedding_store import (
    EmbeddingStore,
    MemoryEmbeddingStore,
    JsonEmbeddingStore,
    normalize_name,
)

__all__ = [
    'EmbeddingStore',
    'MemoryEmbeddingStore',
    'JsonEmbeddingStore',
    'normalize_name',
]
