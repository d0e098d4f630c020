# faceaccess/processing/__init__.py
"""
Processing modules - numeric image pipeline.

- preprocessing: resize, CLAHE, fast normalization / MSRCR, tensor conversion
- quantization: float <-> int8 affine mapping
- cropping: bounding-box relative face crops
- image_io: decoding of uploaded / captured images
"""

from .preprocessing import (
    preprocess,
    image_to_tensor,
    apply_clahe,
    apply_clahe_simple,
    apply_fast_normalization,
    apply_msrcr,
)
from .quantization import (
    AffineQuantization,
    NativeQuantization,
    resolve_quantization,
    quantize,
    dequantize,
)
from .cropping import crop, crop_to_box
from .image_io import decode_image, load_image

__all__ = [
    'preprocess',
    'image_to_tensor',
    'apply_clahe',
    'apply_clahe_simple',
    'apply_fast_normalization',
    'apply_msrcr',
    'AffineQuantization',
    'NativeQuantization',
    'resolve_quantization',
    'quantize',
    'dequantize',
    'crop',
    'crop_to_box',
    'decode_image',
    'load_image',
]
