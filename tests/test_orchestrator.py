import math
import threading

import numpy as np
import pytest

from faceaccess.core.errors import AlreadyEnrolled, InferenceFailure, NoFaceDetected, VerificationInProgress
from faceaccess.core.types import Decision, DenialReason
from faceaccess.data.embedding_store import MemoryEmbeddingStore
from faceaccess.verification.orchestrator import VerificationService

from conftest import FakeDetector, FakeExecutor, logits_for

ALICE = [1.0, 0.0, 0.0, 0.0]


def _service(embedding=ALICE, p_spoof=0.01, **kwargs):
    executor = FakeExecutor(outputs={
        "liveness": logits_for(p_spoof),
        "embedding": np.array([embedding], dtype=np.float32),
    }, load_failures=kwargs.pop("load_failures", 0))
    detector = kwargs.pop("detector", FakeDetector())
    return VerificationService(detector, executor, MemoryEmbeddingStore(), **kwargs)


def test_enrolled_live_face_is_granted(face_image):
    service = _service()
    service.store.save("Alice", ALICE)

    outcome = service.verify(face_image)

    assert outcome.decision == Decision.GRANTED
    assert outcome.granted
    assert outcome.matched_identity == "Alice"
    assert outcome.distance == 0.0
    assert outcome.is_live
    assert outcome.reasons == []


def test_spoof_is_denied_even_when_identity_matches(face_image):
    service = _service(p_spoof=0.150)
    service.store.save("Alice", ALICE)

    outcome = service.verify(face_image)

    assert outcome.decision == Decision.DENIED
    assert outcome.matched_identity == "Alice"
    assert not outcome.is_live
    assert outcome.reasons == [DenialReason.SPOOF]


def test_unknown_identity_is_denied(face_image):
    service = _service(embedding=[0.0, 3.0, 0.0, 0.0])
    service.store.save("Alice", ALICE)

    outcome = service.verify(face_image)

    assert outcome.decision == Decision.DENIED
    assert outcome.matched_identity is None
    assert outcome.distance == pytest.approx(math.sqrt(10.0))
    assert outcome.reasons == [DenialReason.UNKNOWN_IDENTITY]


def test_empty_store_is_denied_with_infinite_distance(face_image):
    outcome = _service().verify(face_image)
    assert outcome.reasons == [DenialReason.UNKNOWN_IDENTITY]
    assert math.isinf(outcome.distance)
    assert outcome.to_dict()["distance"] is None


def test_both_failures_are_reported(face_image):
    service = _service(embedding=[0.0, 3.0, 0.0, 0.0], p_spoof=0.4)
    service.store.save("Alice", ALICE)
    outcome = service.verify(face_image)
    assert outcome.reasons == [DenialReason.UNKNOWN_IDENTITY, DenialReason.SPOOF]


def test_no_face_is_denied_not_raised(face_image):
    service = _service(detector=FakeDetector(bbox=None))
    outcome = service.verify(face_image)
    assert outcome.decision == Decision.DENIED
    assert outcome.reasons == [DenialReason.NO_FACE]
    assert outcome.liveness_error and outcome.identity_error


def test_inference_failure_is_denied(face_image):
    service = _service()
    service.store.save("Alice", ALICE)
    service.executor.outputs["liveness"] = InferenceFailure("interpreter crashed")

    outcome = service.verify(face_image)

    assert outcome.decision == Decision.DENIED
    assert outcome.matched_identity == "Alice"
    assert outcome.reasons == [DenialReason.INFERENCE_FAILURE]
    assert "interpreter crashed" in outcome.liveness_error


def test_store_with_other_embedding_length_is_denied(face_image):
    service = _service()
    service.store.save("Alice", [1.0, 0.0, 0.0])

    outcome = service.verify(face_image)

    assert outcome.decision == Decision.DENIED
    assert outcome.matched_identity is None
    assert outcome.is_live
    assert outcome.reasons == [DenialReason.DIMENSION_MISMATCH]


def test_non_finite_embedding_is_denied(face_image):
    service = _service(embedding=[1.0, float("nan"), 0.0, 0.0])
    service.store.save("Alice", ALICE)

    outcome = service.verify(face_image)

    assert outcome.decision == Decision.DENIED
    assert outcome.matched_identity is None
    assert outcome.reasons == [DenialReason.INFERENCE_FAILURE]


def test_model_load_is_retried_once(face_image):
    service = _service(load_failures=1)
    service.store.save("Alice", ALICE)

    outcome = service.verify(face_image)

    assert outcome.granted
    assert service.is_initialized


def test_model_load_failing_twice_is_denied(face_image):
    service = _service(load_failures=2)
    outcome = service.verify(face_image)
    assert outcome.reasons == [DenialReason.NOT_INITIALIZED]
    assert not service.is_initialized


def test_concurrent_verify_is_busy(face_image):
    started = threading.Event()
    release = threading.Event()
    service = _service()

    def slow_embedding(tensor):
        started.set()
        release.wait(5)
        return np.array([ALICE], dtype=np.float32)

    service.executor.outputs["embedding"] = slow_embedding
    worker = threading.Thread(target=service.verify, args=(face_image,))
    worker.start()
    try:
        assert started.wait(5)
        busy = service.verify(face_image)
        assert busy.reasons == [DenialReason.BUSY]
        with pytest.raises(VerificationInProgress):
            service.enroll("Bob", face_image)
    finally:
        release.set()
        worker.join(5)


def test_enroll_stores_identity(face_image):
    service = _service()
    identity = service.enroll("  Alice ", face_image)

    assert identity.name == "Alice"
    assert identity.embedding_count == 1
    assert [i.name for i in service.list_identities()] == ["Alice"]


def test_enroll_rejects_duplicate_face(face_image):
    service = _service()
    service.store.save("Alice", [1.5, 0.0, 0.0, 0.0])

    with pytest.raises(AlreadyEnrolled) as exc:
        service.enroll("Mallory", face_image)

    assert exc.value.name == "Alice"
    assert exc.value.distance == pytest.approx(0.5)
    assert service.store.count() == 1


def test_enroll_accepts_face_beyond_duplicate_threshold(face_image):
    service = _service()
    service.store.save("Alice", [2.0, 0.0, 0.0, 0.0])
    service.enroll("Bob", face_image)
    assert service.store.identity_names() == ["Alice", "Bob"]


def test_enroll_without_face_raises(face_image):
    service = _service(detector=FakeDetector(bbox=None))
    with pytest.raises(NoFaceDetected):
        service.enroll("Alice", face_image)


def test_enroll_requires_name(face_image):
    with pytest.raises(ValueError):
        _service().enroll("", face_image)


def test_delete_identity():
    service = _service()
    service.store.save("Alice", ALICE)
    assert service.delete_identity("alice")
    assert not service.delete_identity("alice")


def test_spoof_threshold_is_clamped_at_runtime():
    service = _service()
    service.spoof_threshold = 2.0
    assert service.spoof_threshold == 0.5


def test_close_releases_models_and_reloads_on_next_verify(face_image):
    service = _service()
    service.store.save("Alice", ALICE)
    assert service.verify(face_image).granted

    service.close()

    assert service.executor.closed
    assert not service.is_initialized
    assert service.verify(face_image).granted
    assert service.executor.load_calls == 4
