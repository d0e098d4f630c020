# faceaccess/core/executor.py
"""
TFLite model executor.

Owns one interpreter per model id, created lazily on first use. Exposes the
tensor contract of each model (shape, dtype, quantization) and runs
inference.

Thread-safe: a single lock serializes all invoke() calls.
"""
import logging
import threading

import numpy as np

from .errors import InferenceFailure, NotInitialized
from .tflite_helper import get_interpreter
from .types import TensorSpec
from ..processing.quantization import resolve_quantization

logger = logging.getLogger(__name__)


def _tensor_spec(detail) -> TensorSpec:
    """Build a TensorSpec from an interpreter tensor detail dict."""
    shape = tuple(int(dim) for dim in detail.get('shape', ()))
    dtype = np.dtype(detail.get('dtype', np.float32))

    scale, zero_point = 0.0, 0
    quant = detail.get('quantization_parameters') or {}
    scales = quant.get('scales')
    zero_points = quant.get('zero_points')
    if scales is not None and len(scales) > 0:
        scale = float(scales[0])
        if zero_points is not None and len(zero_points) > 0:
            zero_point = int(zero_points[0])
    elif detail.get('quantization'):
        # Older runtimes only report the (scale, zero_point) tuple
        scale, zero_point = detail['quantization']
        scale, zero_point = float(scale), int(zero_point)

    # Float tensors may still carry a non-zero scale in the metadata
    if not np.issubdtype(dtype, np.integer):
        scale = 0.0

    return TensorSpec(shape=shape, dtype=dtype,
                      quantization=resolve_quantization(scale, zero_point))


class _LoadedModel:
    def __init__(self, interpreter):
        self.interpreter = interpreter
        input_detail = interpreter.get_input_details()[0]
        output_detail = interpreter.get_output_details()[0]
        self.input_index = input_detail['index']
        self.output_index = output_detail['index']
        self.input_spec = _tensor_spec(input_detail)
        self.output_spec = _tensor_spec(output_detail)


class TFLiteExecutor:
    """
    Runs TFLite models by id.

    Args:
        models: {model_id: path to .tflite}
        num_threads: Threads per interpreter
        interpreter_factory: callable(model_path, num_threads) -> Interpreter
    """

    def __init__(self, models, num_threads=4, interpreter_factory=None):
        self._models = dict(models)
        self._num_threads = num_threads
        self._interpreter_factory = interpreter_factory or get_interpreter
        self._loaded = {}

        self._load_lock = threading.Lock()
        self._inference_lock = threading.Lock()

    @property
    def model_ids(self):
        return list(self._models)

    def is_loaded(self, model_id) -> bool:
        return model_id in self._loaded

    def load(self, model_id):
        """Create the interpreter for a model if it does not exist yet."""
        self._get(model_id)

    def _get(self, model_id) -> _LoadedModel:
        model = self._loaded.get(model_id)
        if model is not None:
            return model

        with self._load_lock:
            model = self._loaded.get(model_id)
            if model is not None:
                return model

            path = self._models.get(model_id)
            if path is None:
                raise NotInitialized(f"Unknown model id: {model_id}")

            try:
                interpreter = self._interpreter_factory(path, self._num_threads)
                interpreter.allocate_tensors()
                model = _LoadedModel(interpreter)
            except ImportError as e:
                raise NotInitialized(str(e))
            except (ValueError, RuntimeError, OSError) as e:
                raise NotInitialized(f"Could not load model {model_id} ({path}): {e}")

            self._loaded[model_id] = model

        logger.info(f"[Executor] Loaded {model_id}: {path}")
        logger.info(f"[Executor] {model_id} input={model.input_spec.shape} "
                    f"{model.input_spec.dtype} {model.input_spec.quantization}")
        logger.info(f"[Executor] {model_id} output={model.output_spec.shape} "
                    f"{model.output_spec.dtype} {model.output_spec.quantization}")
        return model

    def get_input_spec(self, model_id) -> TensorSpec:
        return self._get(model_id).input_spec

    def get_output_spec(self, model_id) -> TensorSpec:
        return self._get(model_id).output_spec

    def run(self, model_id, tensor) -> np.ndarray:
        """
        Run one inference.

        Args:
            model_id: Model to run
            tensor: Input values, already quantized to the input dtype;
                reshaped to the input shape

        Returns:
            Copy of the raw output tensor (int8 or float32), output shape

        Raises:
            InferenceFailure: size mismatch or interpreter error
        """
        model = self._get(model_id)
        spec = model.input_spec

        tensor = np.asarray(tensor)
        if tensor.size != spec.size:
            raise InferenceFailure(
                f"{model_id}: input has {tensor.size} values, model expects {spec.shape}"
            )
        input_data = tensor.reshape(spec.shape).astype(spec.dtype, copy=False)

        try:
            with self._inference_lock:
                model.interpreter.set_tensor(model.input_index, input_data)
                model.interpreter.invoke()
                # Copy so the interpreter buffer can be reused
                output = np.array(model.interpreter.get_tensor(model.output_index), copy=True)
        except (ValueError, RuntimeError) as e:
            raise InferenceFailure(f"{model_id}: inference error: {e}")

        if output.size != model.output_spec.size:
            raise InferenceFailure(
                f"{model_id}: output has {output.size} values, expected {model.output_spec.shape}"
            )
        return output.reshape(model.output_spec.shape)

    def close(self):
        """Drop all loaded interpreters; the next use loads them again."""
        with self._load_lock:
            released = list(self._loaded)
            self._loaded.clear()
        if released:
            logger.info(f"[Executor] Released {', '.join(released)}")
