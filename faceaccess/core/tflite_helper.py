# faceaccess/core/tflite_helper.py
"""
Helper to create a TFLite interpreter.
Prefers tflite_runtime (lightweight, for Pi) and falls back to tensorflow.lite (PC).
"""
import logging

logger = logging.getLogger(__name__)

# Log the chosen runtime only once
_logged_runtime = False


def get_interpreter(model_path, num_threads=4):
    """
    Create a TFLite Interpreter for a model file.

    Args:
        model_path: Path to the .tflite file
        num_threads: Inference threads

    Raises:
        ImportError: neither tflite_runtime nor tensorflow is installed
    """
    global _logged_runtime

    try:
        from tflite_runtime.interpreter import Interpreter
        if not _logged_runtime:
            logger.info(f"[TFLite] Using tflite_runtime (threads={num_threads})")
            _logged_runtime = True
        return Interpreter(model_path=model_path, num_threads=num_threads)
    except ImportError:
        pass

    try:
        import tensorflow as tf
        if not _logged_runtime:
            logger.info(f"[TFLite] Using tensorflow.lite (threads={num_threads})")
            _logged_runtime = True
        return tf.lite.Interpreter(model_path=model_path, num_threads=num_threads)
    except ImportError:
        pass

    raise ImportError(
        "No TFLite interpreter found!\n"
        "Install one of:\n"
        "  - pip install tflite-runtime  (lightweight, Pi)\n"
        "  - pip install tensorflow       (full, PC)"
    )
