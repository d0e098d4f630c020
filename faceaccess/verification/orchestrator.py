# faceaccess/verification/orchestrator.py
"""
Verification service - access decisions and enrollment.

verify(image):
    embedding -> identify against a store snapshot
    liveness  -> real / spoof
    GRANTED iff identity matched AND live; every failure becomes DENIED with
    a reason, nothing is raised.

enroll(name, image):
    embedding -> duplicate check -> store.save

Only one verify/enroll runs at a time. Models are loaded on first use; a
failed load is retried once.
"""
import logging
import threading
from typing import List

from ..core.errors import (
    AlreadyEnrolled,
    CropTooSmall,
    DimensionMismatch,
    EmbeddingError,
    InferenceFailure,
    LivenessError,
    NoFaceDetected,
    NotInitialized,
    VerificationInProgress,
)
from ..core.types import (
    Decision,
    DenialReason,
    EnrolledIdentity,
    PreprocessingMode,
    VerificationOutcome,
)
from ..data.embedding_store import normalize_name
from ..processing.cropping import LIVENESS_CROP_SCALE
from ..recognition.embedding import EmbeddingExtractor
from ..recognition.liveness import DEFAULT_SPOOF_THRESHOLD, LivenessClassifier
from ..recognition.matcher import (
    DEFAULT_DUPLICATE_THRESHOLD,
    DEFAULT_VERIFICATION_THRESHOLD,
    find_duplicate,
    identify,
)

logger = logging.getLogger(__name__)

LIVENESS_MODEL_ID = "liveness"
EMBEDDING_MODEL_ID = "embedding"
INIT_ATTEMPTS = 2


def _stage_reason(error, unavailable: DenialReason) -> DenialReason:
    if isinstance(error, NoFaceDetected):
        return DenialReason.NO_FACE
    if isinstance(error, CropTooSmall):
        return DenialReason.CROP_TOO_SMALL
    if isinstance(error, NotInitialized):
        return DenialReason.NOT_INITIALIZED
    if isinstance(error, InferenceFailure):
        return DenialReason.INFERENCE_FAILURE
    if isinstance(error, DimensionMismatch):
        return DenialReason.DIMENSION_MISMATCH
    return unavailable


class VerificationService:
    """
    Access verification on top of a detector, a model executor and a store.

    Args:
        detector: object with detect(image) -> Optional[BoundingBox]
        executor: model executor with load / get_input_spec / get_output_spec / run
        store: EmbeddingStore
        spoof_threshold: Liveness threshold, clamped to [0.001, 0.5]
        verification_threshold: Max L2 distance for a match
        duplicate_threshold: Max L2 distance for "already enrolled"
        mode: Preprocessing mode for embeddings ("fast" / "accurate")
    """

    def __init__(self, detector, executor, store,
                 spoof_threshold=DEFAULT_SPOOF_THRESHOLD,
                 verification_threshold=DEFAULT_VERIFICATION_THRESHOLD,
                 duplicate_threshold=DEFAULT_DUPLICATE_THRESHOLD,
                 mode=PreprocessingMode.FAST,
                 crop_scale=LIVENESS_CROP_SCALE,
                 clip_limit=2.0,
                 tile_grid_size=8,
                 liveness_model_id=LIVENESS_MODEL_ID,
                 embedding_model_id=EMBEDDING_MODEL_ID):
        self.detector = detector
        self.executor = executor
        self.store = store
        self.verification_threshold = float(verification_threshold)
        self.duplicate_threshold = float(duplicate_threshold)

        self.liveness = LivenessClassifier(
            detector, executor,
            model_id=liveness_model_id,
            threshold=spoof_threshold,
            crop_scale=crop_scale,
        )
        self.extractor = EmbeddingExtractor(
            detector, executor,
            model_id=embedding_model_id,
            mode=mode,
            clip_limit=clip_limit,
            tile_grid_size=tile_grid_size,
        )

        self._flight_lock = threading.Lock()
        self._initialized = False

    # === CONFIGURATION ===
    @property
    def spoof_threshold(self) -> float:
        return self.liveness.threshold

    @spoof_threshold.setter
    def spoof_threshold(self, value: float):
        self.liveness.threshold = value
        logger.info(f"Spoof threshold set to {self.liveness.threshold}")

    @property
    def preprocessing_mode(self) -> PreprocessingMode:
        return self.extractor.mode

    @preprocessing_mode.setter
    def preprocessing_mode(self, value):
        self.extractor.mode = PreprocessingMode.parse(value)

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # === INITIALIZATION ===
    def _ensure_models(self):
        """Load both models, retrying once. Raises NotInitialized."""
        if self._initialized:
            return

        model_ids = (self.liveness.model_id, self.extractor.model_id)
        for attempt in range(1, INIT_ATTEMPTS + 1):
            try:
                for model_id in model_ids:
                    self.executor.load(model_id)
            except NotInitialized as e:
                if attempt == INIT_ATTEMPTS:
                    logger.error(f"Model initialization failed: {e}")
                    raise
                logger.warning(f"Model initialization failed ({e}), retrying")
                continue
            self._initialized = True
            logger.info("Models ready: " + ", ".join(model_ids))
            return

    # === VERIFY ===
    def verify(self, image) -> VerificationOutcome:
        """
        Decide whether the face in the image may pass.

        Args:
            image: RGB image (H, W, 3) uint8

        Returns:
            VerificationOutcome; never raises for pipeline failures
        """
        if not self._flight_lock.acquire(blocking=False):
            logger.info("DENIED: verification already in progress")
            return VerificationOutcome(decision=Decision.DENIED,
                                       reasons=[DenialReason.BUSY])
        try:
            return self._verify(image)
        finally:
            self._flight_lock.release()

    def _verify(self, image) -> VerificationOutcome:
        try:
            self._ensure_models()
        except NotInitialized as e:
            return VerificationOutcome(
                decision=Decision.DENIED,
                reasons=[DenialReason.NOT_INITIALIZED],
                liveness_error=str(e),
                identity_error=str(e),
            )

        self.store.reload_if_changed()
        outcome = VerificationOutcome(decision=Decision.DENIED)
        reasons = []

        # Identity
        try:
            embedding = self.extractor.extract_embedding(image)
            match = identify(embedding, self.store.load(), self.verification_threshold)
            outcome.distance = match.distance
            outcome.matched_identity = match.name
            if not match.matched:
                reasons.append(DenialReason.UNKNOWN_IDENTITY)
        except (EmbeddingError, DimensionMismatch) as e:
            logger.warning(f"Identity check failed: {e}")
            outcome.identity_error = str(e)
            reasons.append(_stage_reason(e, DenialReason.EMBEDDING_UNAVAILABLE))

        # Liveness
        try:
            result = self.liveness.check_liveness(image)
            outcome.is_live = result.is_live
            outcome.spoof_probability = result.spoof_probability
            if not result.is_live:
                reasons.append(DenialReason.SPOOF)
        except LivenessError as e:
            logger.warning(f"Liveness check failed: {e}")
            outcome.liveness_error = str(e)
            reasons.append(_stage_reason(e, DenialReason.LIVENESS_UNAVAILABLE))

        outcome.reasons = list(dict.fromkeys(reasons))
        if outcome.matched_identity is not None and outcome.is_live and not outcome.reasons:
            outcome.decision = Decision.GRANTED

        self._log_outcome(outcome)
        return outcome

    def _log_outcome(self, outcome: VerificationOutcome):
        spoof = "n/a" if outcome.spoof_probability is None else f"{outcome.spoof_probability:.4f}"
        if outcome.granted:
            logger.info(f"GRANTED {outcome.matched_identity} "
                        f"(distance={outcome.distance:.4f}, p_spoof={spoof})")
        else:
            reasons = ", ".join(r.value for r in outcome.reasons)
            logger.info(f"DENIED [{reasons}] (nearest={outcome.matched_identity}, "
                        f"distance={outcome.distance:.4f}, p_spoof={spoof})")

    # === ENROLL ===
    def enroll(self, name, image) -> EnrolledIdentity:
        """
        Enroll a face under a display name. Liveness is not checked.

        Raises:
            ValueError: empty name
            VerificationInProgress: another verify/enroll is running
            AlreadyEnrolled: face within duplicate_threshold of an identity
            NoFaceDetected, CropTooSmall, InferenceFailure, NotInitialized,
            DimensionMismatch
        """
        name = normalize_name(name)

        if not self._flight_lock.acquire(blocking=False):
            raise VerificationInProgress()
        try:
            self._ensure_models()
            self.store.reload_if_changed()

            embedding = self.extractor.extract_embedding(image)
            duplicate = find_duplicate(embedding, self.store.load(), self.duplicate_threshold)
            if duplicate is not None:
                logger.info(f"Enrollment of {name} rejected: matches {duplicate.name} "
                            f"(distance={duplicate.distance:.4f})")
                raise AlreadyEnrolled(duplicate.name, duplicate.distance)

            display_name = self.store.save(name, embedding)
            embeddings = self.store.load().get(display_name, ())
        finally:
            self._flight_lock.release()

        logger.info(f"Enrolled {display_name} ({len(embeddings)} embeddings)")
        return EnrolledIdentity(name=display_name, embeddings=embeddings)

    # === MANAGEMENT ===
    def list_identities(self) -> List[EnrolledIdentity]:
        self.store.reload_if_changed()
        return [
            EnrolledIdentity(name=name, embeddings=embeddings)
            for name, embeddings in sorted(self.store.load().items(),
                                           key=lambda item: item[0].casefold())
        ]

    def delete_identity(self, name) -> bool:
        deleted = self.store.delete(name)
        if not deleted:
            logger.info(f"Delete: identity {name!r} not found")
        return deleted

    def close(self):
        """Release the models. A later verify/enroll loads them again."""
        with self._flight_lock:
            self.executor.close()
            self._initialized = False
