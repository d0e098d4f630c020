# faceaccess/core/model_factory.py
"""
Factory module to build the pipeline from settings.

Usage:
    from faceaccess.core.model_factory import create_verification_service

    service = create_verification_service()
    outcome = service.verify(image)
"""
import logging

from .settings import settings as default_settings

logger = logging.getLogger(__name__)


def create_executor(cfg=None, interpreter_factory=None):
    """
    TFLite executor for the liveness and embedding models.

    Args:
        cfg: Settings (None = global settings)
        interpreter_factory: Override for get_interpreter (tests)

    Returns:
        TFLiteExecutor instance
    """
    from .executor import TFLiteExecutor
    from ..verification.orchestrator import EMBEDDING_MODEL_ID, LIVENESS_MODEL_ID

    cfg = cfg or default_settings
    models = {
        LIVENESS_MODEL_ID: cfg.resolve_path(cfg.LIVENESS_MODEL),
        EMBEDDING_MODEL_ID: cfg.resolve_path(cfg.EMBEDDING_MODEL),
    }
    for model_id, path in models.items():
        logger.info(f"[Factory] {model_id} model: {path}")
    return TFLiteExecutor(models, num_threads=cfg.TFLITE_NUM_THREADS,
                          interpreter_factory=interpreter_factory)


def create_detector(cascade_path=None):
    """
    Face detector adapter.

    Returns:
        HaarFaceDetector instance
    """
    from ..detect.detect import HaarFaceDetector

    return HaarFaceDetector(cascade_path=cascade_path)


def create_store(path=None, cfg=None):
    """
    Embedding store.

    Args:
        path: JSON path (None = EMBEDDINGS_PATH); ":memory:" for no persistence

    Returns:
        JsonEmbeddingStore or MemoryEmbeddingStore
    """
    from ..data.embedding_store import JsonEmbeddingStore, MemoryEmbeddingStore

    cfg = cfg or default_settings
    if path == ":memory:":
        return MemoryEmbeddingStore()
    path = cfg.resolve_path(path or cfg.EMBEDDINGS_PATH)
    logger.info(f"[Factory] Embeddings: {path}")
    return JsonEmbeddingStore(path)


def create_verification_service(cfg=None, detector=None, executor=None, store=None):
    """
    Verification service wired from settings. Any collaborator can be
    passed in to replace the default one.
    """
    from ..verification.orchestrator import VerificationService

    cfg = cfg or default_settings
    return VerificationService(
        detector=detector if detector is not None else create_detector(),
        executor=executor if executor is not None else create_executor(cfg),
        store=store if store is not None else create_store(cfg=cfg),
        spoof_threshold=cfg.SPOOF_THRESHOLD,
        verification_threshold=cfg.VERIFICATION_THRESHOLD,
        duplicate_threshold=cfg.DUPLICATE_THRESHOLD,
        mode=cfg.PREPROCESSING_MODE,
        crop_scale=cfg.LIVENESS_CROP_SCALE,
        clip_limit=cfg.CLAHE_CLIP_LIMIT,
        tile_grid_size=cfg.CLAHE_TILE_GRID,
    )
