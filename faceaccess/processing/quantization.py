# faceaccess/processing/quantization.py
"""
Quantization adapter between float tensors and int8 model tensors.

    quantize:   q = round(f / scale) + zero_point, clamped to [-128, 127]
    dequantize: f = (q - zero_point) * scale

Rounding is round-half-away-from-zero. A model reporting scale == 0 is a native
float model and both directions are identity passes.

The quantization kind is resolved once per tensor at model load
(`resolve_quantization`).
"""
from dataclasses import dataclass

import numpy as np

INT8_MIN = -128
INT8_MAX = 127


def round_half_away_from_zero(values):
    """Element-wise rounding, .5 goes away from zero (np.round is half-to-even)."""
    values = np.asarray(values, dtype=np.float64)
    return np.sign(values) * np.floor(np.abs(values) + 0.5)


@dataclass(frozen=True)
class NativeQuantization:
    """Unquantized (float) tensor."""

    is_quantized = False

    def quantize(self, tensor) -> np.ndarray:
        return np.asarray(tensor, dtype=np.float32)

    def dequantize(self, values) -> np.ndarray:
        return np.asarray(values, dtype=np.float32)


@dataclass(frozen=True)
class AffineQuantization:
    """int8 affine quantization with (scale, zero_point)."""
    scale: float
    zero_point: int

    is_quantized = True

    def __post_init__(self):
        if not self.scale > 0:
            raise ValueError(f"Affine scale must be > 0, got {self.scale}")
        if not INT8_MIN <= self.zero_point <= INT8_MAX:
            raise ValueError(f"Zero point {self.zero_point} outside int8 range")

    def quantize(self, tensor) -> np.ndarray:
        scaled = np.asarray(tensor, dtype=np.float64) / self.scale
        q = round_half_away_from_zero(scaled) + self.zero_point
        return np.clip(q, INT8_MIN, INT8_MAX).astype(np.int8)

    def dequantize(self, values) -> np.ndarray:
        q = np.asarray(values, dtype=np.float64)
        return ((q - self.zero_point) * self.scale).astype(np.float32)


def resolve_quantization(scale: float, zero_point: int = 0):
    """
    Pick the quantization variant for a tensor from its model parameters.

    Args:
        scale: Quantization scale (0 means native float)
        zero_point: Quantization zero point

    Returns:
        NativeQuantization or AffineQuantization
    """
    scale = float(scale)
    if scale < 0:
        raise ValueError(f"Quantization scale must not be negative, got {scale}")
    if scale == 0:
        return NativeQuantization()
    return AffineQuantization(scale=scale, zero_point=int(zero_point))


def quantize(tensor, params) -> np.ndarray:
    """Quantize a float tensor with a resolved quantization variant."""
    return params.quantize(tensor)


def dequantize(values, params) -> np.ndarray:
    """Dequantize model output with a resolved quantization variant."""
    return params.dequantize(values)
