import numpy as np
import pytest

from faceaccess.processing.quantization import (
    AffineQuantization,
    NativeQuantization,
    dequantize,
    quantize,
    resolve_quantization,
    round_half_away_from_zero,
)


def test_quantize_half_with_uint8_style_params():
    params = resolve_quantization(0.003921, -128)
    q = quantize(np.array([0.5]), params)
    assert q.dtype == np.int8
    assert q[0] == 0


def test_dequantize_zero_with_uint8_style_params():
    params = resolve_quantization(0.003921, -128)
    value = dequantize(np.array([0], dtype=np.int8), params)
    assert value[0] == pytest.approx(0.502, abs=1e-3)


def test_round_trip_error_bounded_by_scale():
    params = AffineQuantization(scale=0.02, zero_point=3)
    values = np.linspace(-2.0, 2.0, 401)
    restored = dequantize(quantize(values, params), params)
    assert np.all(np.abs(restored - values) <= params.scale + 1e-6)


def test_quantize_clamps_to_int8_range():
    params = AffineQuantization(scale=0.01, zero_point=0)
    q = quantize(np.array([10.0, -10.0]), params)
    assert q.tolist() == [127, -128]


def test_rounding_goes_away_from_zero():
    assert round_half_away_from_zero([0.5, 1.5, 2.5, -0.5, -2.5]).tolist() == [1, 2, 3, -1, -3]


def test_zero_scale_is_native_passthrough():
    params = resolve_quantization(0.0, 5)
    assert isinstance(params, NativeQuantization)
    assert not params.is_quantized

    values = np.array([0.25, -3.5, 1000.0])
    assert np.array_equal(quantize(values, params), values.astype(np.float32))
    assert np.array_equal(dequantize(values, params), values.astype(np.float32))


def test_negative_scale_rejected():
    with pytest.raises(ValueError):
        resolve_quantization(-0.1, 0)


def test_zero_point_outside_int8_rejected():
    with pytest.raises(ValueError):
        AffineQuantization(scale=0.1, zero_point=200)
