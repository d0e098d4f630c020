# faceaccess/core/errors.py
"""
Exception hierarchy for the verification pipeline.

Every pipeline stage raises a subclass of FaceAccessError; the orchestrator
maps them to a denied outcome with a reason, and the web layer maps them to
an HTTP status via `status_code`.
"""
from typing import Any, Dict, Optional


class FaceAccessError(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        status_code: HTTP status code for API responses
        details: Additional error details
    """

    code = "ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API response."""
        result = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# === Stage groups ===

class LivenessError(FaceAccessError):
    """Liveness check could not produce a decision."""


class EmbeddingError(FaceAccessError):
    """Embedding could not be extracted."""


class EnrollError(FaceAccessError):
    """Enrollment was rejected."""


# === Detection / cropping ===

class NoFaceDetected(LivenessError, EmbeddingError):
    code = "NO_FACE_DETECTED"
    status_code = 422

    def __init__(self, message: str = "No face detected"):
        super().__init__(message)


class CropTooSmall(LivenessError, EmbeddingError):
    code = "CROP_TOO_SMALL"
    status_code = 422

    def __init__(self, width: int = 0, height: int = 0):
        super().__init__(
            f"Face crop too small ({width}x{height})",
            details={"width": width, "height": height},
        )


# === Input ===

class DecodeFailure(FaceAccessError):
    code = "DECODE_FAILURE"
    status_code = 400


# === Inference ===

class InferenceFailure(LivenessError, EmbeddingError):
    """Executor error or output shape mismatch."""

    code = "INFERENCE_FAILURE"
    status_code = 500


class NotInitialized(LivenessError, EmbeddingError):
    """Model or detector is not loaded."""

    code = "NOT_INITIALIZED"
    status_code = 503


# === Matching ===

class DimensionMismatch(FaceAccessError):
    code = "DIMENSION_MISMATCH"
    status_code = 500

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Embedding length mismatch: expected {expected}, got {actual}",
            details={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


# === Enrollment ===

class AlreadyEnrolled(EnrollError):
    code = "ALREADY_ENROLLED"
    status_code = 409

    def __init__(self, name: str, distance: Optional[float] = None):
        details = {"name": name}
        if distance is not None:
            details["distance"] = distance
        super().__init__(f"Face already enrolled as '{name}'", details=details)
        self.name = name
        self.distance = distance


class VerificationInProgress(EnrollError):
    """Another verify/enroll call holds the pipeline."""

    code = "BUSY"
    status_code = 429

    def __init__(self, message: str = "A verification is already in progress"):
        super().__init__(message)
