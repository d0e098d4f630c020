# faceaccess/recognition/embedding.py
"""
Face embedding extraction - INT8 recognition model
===================================================
Model: transfer-learningv4_int8.tflite
Input: [1, 128, 128, 3] int8 (RGB, preprocessed to [0, 1] then quantized)
Output: [1, N] int8 embedding (dequantized to float32), N = 128 or 192

The extractor holds no state besides the model id and preprocessing options.
Embeddings are not L2-normalized.
"""
import logging

import numpy as np

from ..core.errors import CropTooSmall, InferenceFailure, NoFaceDetected
from ..core.types import PreprocessingMode, as_embedding
from ..processing.cropping import crop_to_box
from ..processing.preprocessing import preprocess

logger = logging.getLogger(__name__)

DEFAULT_MODEL_ID = "embedding"
INPUT_SIZE = 128


class EmbeddingExtractor:
    """
    Identity embedding extractor.

    Args:
        detector: object with detect(image) -> Optional[BoundingBox]
        executor: model executor
        model_id: Executor model id of the embedding model
        mode: Preprocessing fidelity (fast / accurate)
        clip_limit: CLAHE clip limit for accurate mode
        tile_grid_size: CLAHE tiles per axis for accurate mode
    """

    def __init__(self, detector, executor, model_id=DEFAULT_MODEL_ID,
                 mode=PreprocessingMode.FAST, clip_limit=2.0, tile_grid_size=8):
        self.detector = detector
        self.executor = executor
        self.model_id = model_id
        self.mode = PreprocessingMode.parse(mode)
        self.clip_limit = clip_limit
        self.tile_grid_size = tile_grid_size

    @property
    def embedding_dim(self) -> int:
        """Embedding length reported by the model output shape."""
        return int(self.executor.get_output_spec(self.model_id).shape[-1])

    def _input_size(self) -> int:
        spec = self.executor.get_input_spec(self.model_id)
        if len(spec.shape) < 3:
            return INPUT_SIZE
        if spec.width != spec.height:
            raise InferenceFailure(
                f"Embedding model input must be square, got {spec.shape}"
            )
        return spec.width

    def embed_face(self, face_img) -> np.ndarray:
        """
        Compute the embedding of an already cropped face.

        Args:
            face_img: RGB face crop

        Returns:
            Read-only float32 vector of length N
        """
        in_spec = self.executor.get_input_spec(self.model_id)
        tensor = preprocess(
            face_img,
            target_size=self._input_size(),
            mode=self.mode,
            clip_limit=self.clip_limit,
            tile_grid_size=self.tile_grid_size,
        )
        model_input = in_spec.quantization.quantize(tensor)

        output = np.asarray(self.executor.run(self.model_id, model_input))
        if output.ndim != 2 or output.shape[0] != 1 or output.shape[1] < 1:
            raise InferenceFailure(
                f"Embedding model returned shape {output.shape}, expected [1, N]"
            )

        out_spec = self.executor.get_output_spec(self.model_id)
        embedding = as_embedding(out_spec.quantization.dequantize(output[0]))
        if not np.all(np.isfinite(embedding)):
            raise InferenceFailure("Embedding model returned non-finite values")
        logger.debug(f"[Embedding] dim={embedding.size} norm={float(np.linalg.norm(embedding)):.4f}")
        return embedding

    def extract_embedding(self, image) -> np.ndarray:
        """
        Detect, crop and embed the face in an image.

        Raises:
            NoFaceDetected, CropTooSmall, InferenceFailure, NotInitialized
        """
        bbox = self.detector.detect(image)
        if bbox is None:
            raise NoFaceDetected()

        face = crop_to_box(image, bbox)
        if face is None:
            raise CropTooSmall(bbox.width, bbox.height)

        logger.debug(f"[Embedding] face bbox={bbox} crop={face.shape[1]}x{face.shape[0]}")
        return self.embed_face(face)
