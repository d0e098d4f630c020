# faceaccess/core/types.py
"""
Shared data types for the verification pipeline.

Images are RGB uint8 numpy arrays of shape (H, W, 3). Embeddings are
read-only float32 vectors.
"""
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

import numpy as np


class PreprocessingMode(Enum):
    """Illumination normalization fidelity."""
    FAST = "fast"           # CLAHE (global) + min/max gamma
    ACCURATE = "accurate"   # CLAHE (tiled) + MSRCR

    @classmethod
    def parse(cls, value) -> "PreprocessingMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown preprocessing mode: {value!r}")


class Decision(Enum):
    GRANTED = "granted"
    DENIED = "denied"


class DenialReason(Enum):
    """Why a verification was denied. Several can apply at once."""
    NO_FACE = "no_face"
    CROP_TOO_SMALL = "crop_too_small"
    SPOOF = "spoof"
    LIVENESS_UNAVAILABLE = "liveness_unavailable"
    UNKNOWN_IDENTITY = "unknown_identity"
    EMBEDDING_UNAVAILABLE = "embedding_unavailable"
    INFERENCE_FAILURE = "inference_failure"
    DIMENSION_MISMATCH = "dimension_mismatch"
    NOT_INITIALIZED = "not_initialized"
    BUSY = "busy"


@dataclass(frozen=True)
class BoundingBox:
    """Face box in image pixel coordinates."""
    x: int
    y: int
    width: int
    height: int

    def __post_init__(self):
        if self.width < 1 or self.height < 1:
            raise ValueError(f"Invalid bounding box size: {self.width}x{self.height}")

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2.0, self.y + self.height / 2.0

    @classmethod
    def clamped(cls, x, y, w, h, image_width: int, image_height: int) -> "BoundingBox":
        """Build a box clamped into [0, image_width) x [0, image_height)."""
        x = min(max(int(x), 0), image_width - 1)
        y = min(max(int(y), 0), image_height - 1)
        w = min(max(int(w), 1), image_width - x)
        h = min(max(int(h), 1), image_height - y)
        return cls(x, y, w, h)


@dataclass(frozen=True)
class TensorSpec:
    """Shape, dtype and quantization of one model tensor."""
    shape: Tuple[int, ...]
    dtype: Any
    quantization: Any  # NativeQuantization | AffineQuantization

    @property
    def size(self) -> int:
        return int(np.prod(self.shape)) if self.shape else 0

    @property
    def height(self) -> int:
        return int(self.shape[1]) if len(self.shape) >= 4 else int(self.shape[0])

    @property
    def width(self) -> int:
        return int(self.shape[2]) if len(self.shape) >= 4 else int(self.shape[1])


@dataclass(frozen=True)
class LivenessResult:
    is_live: bool
    spoof_probability: float
    real_probability: float
    threshold: float

    @property
    def is_spoof(self) -> bool:
        return not self.is_live


@dataclass(frozen=True)
class MatchResult:
    """Nearest identity and its distance. `name` is None when above threshold."""
    name: Optional[str]
    distance: float

    @property
    def matched(self) -> bool:
        return self.name is not None


@dataclass
class EnrolledIdentity:
    name: str
    embeddings: Tuple[np.ndarray, ...] = ()

    @property
    def embedding_count(self) -> int:
        return len(self.embeddings)


@dataclass
class VerificationOutcome:
    """Result of one verification attempt. Not persisted."""
    decision: Decision
    matched_identity: Optional[str] = None
    distance: float = math.inf
    is_live: bool = False
    spoof_probability: Optional[float] = None
    reasons: List[DenialReason] = field(default_factory=list)
    liveness_error: Optional[str] = None
    identity_error: Optional[str] = None

    @property
    def granted(self) -> bool:
        return self.decision == Decision.GRANTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decision": self.decision.value,
            "matched_identity": self.matched_identity,
            "distance": None if math.isinf(self.distance) else self.distance,
            "is_live": self.is_live,
            "spoof_probability": self.spoof_probability,
            "reasons": [r.value for r in self.reasons],
            "liveness_error": self.liveness_error,
            "identity_error": self.identity_error,
        }


def as_embedding(values: Sequence[float]) -> np.ndarray:
    """Copy values into a read-only 1-D float32 embedding."""
    emb = np.array(values, dtype=np.float32, copy=True).reshape(-1)
    emb.flags.writeable = False
    return emb


# === EXTERNAL INTERFACES ===

class FaceDetector(Protocol):
    def detect(self, image: np.ndarray) -> Optional[BoundingBox]:
        ...


class ModelExecutor(Protocol):
    def load(self, model_id: str) -> None:
        ...

    def get_input_spec(self, model_id: str) -> TensorSpec:
        ...

    def get_output_spec(self, model_id: str) -> TensorSpec:
        ...

    def run(self, model_id: str, tensor: np.ndarray) -> np.ndarray:
        ...

    def close(self) -> None:
        ...
