# faceaccess package
"""
Face Access - on-device face verification with liveness check (INT8 TFLite)

Structure:
    faceaccess/
    ├── core/                     # Core infrastructure
    │   ├── settings.py           # Configuration
    │   ├── errors.py             # Exception hierarchy
    │   ├── types.py              # Shared data types
    │   ├── tflite_helper.py      # TFLite interpreter helper
    │   ├── executor.py           # TFLite model executor
    │   └── model_factory.py      # Factory for the pipeline
    ├── processing/               # Numeric image pipeline
    │   ├── preprocessing.py      # Resize, CLAHE, normalization, tensors
    │   ├── quantization.py       # int8 affine quantization
    │   ├── cropping.py           # Face crops
    │   └── image_io.py           # Image decoding
    ├── detect/                   # Face detection adapter
    │   └── detect.py             # OpenCV Haar cascade
    ├── recognition/              # Models on top of the executor
    │   ├── liveness.py           # Anti-spoof classifier
    │   ├── embedding.py          # Embedding extractor
    │   └── matcher.py            # L2 identity matching
    ├── data/                     # Data layer
    │   └── embedding_store.py    # Enrolled embeddings (JSON)
    ├── verification/             # Access decisions
    │   └── orchestrator.py       # verify / enroll
    ├── web/                      # Web server
    │   ├── server.py             # Flask app
    │   └── management.py         # Management API
    └── main.py                   # CLI

Usage:
    from faceaccess import create_verification_service

    service = create_verification_service()
    outcome = service.verify(image)
"""

from .core.model_factory import create_verification_service
from .core.settings import settings
from .core.types import Decision, DenialReason, VerificationOutcome
from .verification import VerificationService

__version__ = "0.1.0"

__all__ = [
    'settings',
    'create_verification_service',
    'VerificationService',
    'Decision',
    'DenialReason',
    'VerificationOutcome',
]
