# faceaccess/core/__init__.py
"""
Core modules - Infrastructure & Configuration.

- settings: Unified configuration
- errors: Exception hierarchy
- types: Shared data types
- tflite_helper: TFLite interpreter helper
- executor: TFLite model executor
- model_factory: Factory for the verification pipeline
"""

from .settings import settings, Settings
from .errors import FaceAccessError
from .tflite_helper import get_interpreter
from .model_factory import (
    create_detector,
    create_executor,
    create_store,
    create_verification_service,
)

__all__ = [
    'settings',
    'Settings',
    'FaceAccessError',
    'get_interpreter',
    'create_detector',
    'create_executor',
    'create_store',
    'create_verification_service',
]
