# faceaccess/recognition/liveness.py
"""
Liveness (anti-spoof) classifier - MiniFASNetV2 INT8
=====================================================
Model: minifasnetv2_int8.tflite
Input: [1, 80, 80, 3] int8, BGR, [0, 1] before quantization
Output: [1, 2] logits for [real, spoof]

Pipeline:
1. Detect face bbox
2. Crop a square of side max(w, h) * 2.7 around the face center
3. Resize to 80x80 (linear)
4. BGR tensor in [0, 1]
5. Quantize -> inference -> dequantize
6. 2-class softmax, spoof if p_spoof >= threshold
"""
import math
import logging
from typing import Tuple

import cv2
import numpy as np

from ..core.errors import CropTooSmall, InferenceFailure, NoFaceDetected
from ..core.settings import clamp_spoof_threshold
from ..core.types import LivenessResult
from ..processing.cropping import LIVENESS_CROP_SCALE, crop, crop_region
from ..processing.preprocessing import image_to_tensor

logger = logging.getLogger(__name__)

DEFAULT_MODEL_ID = "liveness"
DEFAULT_SPOOF_THRESHOLD = 0.088
INPUT_SIZE = 80


def softmax2(x0: float, x1: float) -> Tuple[float, float]:
    """Numerically stable softmax over two logits."""
    m = max(x0, x1)
    e0 = math.exp(x0 - m)
    e1 = math.exp(x1 - m)
    s = e0 + e1
    return e0 / s, e1 / s


class LivenessClassifier:
    """
    Real / spoof classifier on top of an external detector and executor.

    Args:
        detector: object with detect(image) -> Optional[BoundingBox]
        executor: model executor (get_input_spec / get_output_spec / run)
        model_id: Executor model id of the anti-spoof model
        threshold: Spoof probability threshold, clamped to [0.001, 0.5]
        crop_scale: Context crop multiplier
    """

    def __init__(self, detector, executor, model_id=DEFAULT_MODEL_ID,
                 threshold=DEFAULT_SPOOF_THRESHOLD, crop_scale=LIVENESS_CROP_SCALE):
        self.detector = detector
        self.executor = executor
        self.model_id = model_id
        self.crop_scale = crop_scale
        self._threshold = clamp_spoof_threshold(threshold)

    @property
    def threshold(self) -> float:
        return self._threshold

    @threshold.setter
    def threshold(self, value: float):
        self._threshold = clamp_spoof_threshold(value)

    def _input_size(self, spec) -> Tuple[int, int]:
        if len(spec.shape) >= 3:
            return spec.width, spec.height
        return INPUT_SIZE, INPUT_SIZE

    def prepare_input(self, face_crop) -> np.ndarray:
        """Resize a context crop to the model input and quantize it."""
        spec = self.executor.get_input_spec(self.model_id)
        width, height = self._input_size(spec)
        resized = cv2.resize(np.ascontiguousarray(face_crop), (width, height),
                             interpolation=cv2.INTER_LINEAR)
        tensor = image_to_tensor(resized, channel_order="bgr")
        return spec.quantization.quantize(tensor)

    def classify_crop(self, face_crop) -> Tuple[float, float]:
        """
        Run the model on a context crop.

        Returns:
            (p_real, p_spoof)
        """
        model_input = self.prepare_input(face_crop)
        output = self.executor.run(self.model_id, model_input)

        raw = np.asarray(output).reshape(-1)
        if raw.size != 2:
            raise InferenceFailure(
                f"Liveness model returned {raw.size} values, expected 2"
            )

        out_spec = self.executor.get_output_spec(self.model_id)
        logits = out_spec.quantization.dequantize(raw)
        logit_real, logit_spoof = float(logits[0]), float(logits[1])
        logger.debug(f"[Liveness] raw={raw.tolist()} logits=[{logit_real:.4f}, {logit_spoof:.4f}]")

        return softmax2(logit_real, logit_spoof)

    def check_liveness(self, image) -> LivenessResult:
        """
        Decide whether the face in the image is live.

        Args:
            image: RGB image (H, W, 3)

        Raises:
            NoFaceDetected, CropTooSmall, InferenceFailure, NotInitialized
        """
        bbox = self.detector.detect(image)
        if bbox is None:
            raise NoFaceDetected()

        face_crop = crop(image, bbox, self.crop_scale)
        if face_crop is None:
            raise CropTooSmall(*_clamped_size(image, bbox, self.crop_scale))

        p_real, p_spoof = self.classify_crop(face_crop)
        threshold = self._threshold
        is_spoof = p_spoof >= threshold

        logger.debug(f"[Liveness] p_real={p_real:.4f} p_spoof={p_spoof:.4f} "
                     f"threshold={threshold} -> {'SPOOF' if is_spoof else 'REAL'}")

        return LivenessResult(
            is_live=not is_spoof,
            spoof_probability=p_spoof,
            real_probability=p_real,
            threshold=threshold,
        )


def _clamped_size(image, bbox, scale):
    height, width = image.shape[:2]
    x1, y1, x2, y2 = crop_region(width, height, bbox, scale)
    return x2 - x1, y2 - y1
