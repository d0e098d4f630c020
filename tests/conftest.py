import math

import numpy as np
import pytest

from faceaccess.core.errors import NotInitialized
from faceaccess.core.types import BoundingBox, TensorSpec
from faceaccess.data.embedding_store import MemoryEmbeddingStore
from faceaccess.processing.quantization import AffineQuantization, NativeQuantization
from faceaccess.verification.orchestrator import VerificationService

FACE_BOX = BoundingBox(100, 150, 200, 250)

LIVENESS_INPUT = TensorSpec((1, 80, 80, 3), np.int8, AffineQuantization(0.003921, -128))
LIVENESS_OUTPUT = TensorSpec((1, 2), np.float32, NativeQuantization())
EMBEDDING_INPUT = TensorSpec((1, 128, 128, 3), np.int8, AffineQuantization(0.003921, -128))
EMBEDDING_OUTPUT = TensorSpec((1, 4), np.float32, NativeQuantization())


def logits_for(p_spoof):
    """[real, spoof] logits whose softmax gives p_spoof."""
    return np.array([[0.0, math.log(p_spoof / (1.0 - p_spoof))]], dtype=np.float32)


class FakeDetector:
    def __init__(self, bbox=FACE_BOX):
        self.bbox = bbox
        self.calls = 0

    def detect(self, image):
        self.calls += 1
        return self.bbox


class FakeExecutor:
    """
    In-memory executor. `outputs[model_id]` is an array, a callable taking
    the input tensor, or an exception instance to raise.
    """

    def __init__(self, specs=None, outputs=None, load_failures=0):
        self.specs = specs or {
            "liveness": (LIVENESS_INPUT, LIVENESS_OUTPUT),
            "embedding": (EMBEDDING_INPUT, EMBEDDING_OUTPUT),
        }
        self.outputs = outputs or {
            "liveness": logits_for(0.01),
            "embedding": np.array([[1.0, 0.0, 0.0, 0.0]], dtype=np.float32),
        }
        self.load_failures = load_failures
        self.load_calls = 0
        self.inputs = {}
        self.closed = False

    def load(self, model_id):
        self.load_calls += 1
        if self.load_failures > 0:
            self.load_failures -= 1
            raise NotInitialized(f"{model_id} not available")

    def close(self):
        self.closed = True

    def get_input_spec(self, model_id):
        return self.specs[model_id][0]

    def get_output_spec(self, model_id):
        return self.specs[model_id][1]

    def run(self, model_id, tensor):
        self.inputs.setdefault(model_id, []).append(np.array(tensor, copy=True))
        output = self.outputs[model_id]
        if isinstance(output, Exception):
            raise output
        if callable(output):
            return output(tensor)
        return np.array(output, copy=True)


@pytest.fixture
def face_image():
    rng = np.random.default_rng(7)
    return rng.integers(0, 256, size=(480, 640, 3), dtype=np.uint8)


@pytest.fixture
def detector():
    return FakeDetector()


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def store():
    return MemoryEmbeddingStore()


@pytest.fixture
def service(detector, executor, store):
    return VerificationService(detector, executor, store)
