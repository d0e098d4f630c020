import cv2
import numpy as np
import pytest

from faceaccess.core.errors import DecodeFailure
from faceaccess.processing.image_io import decode_image, load_image


def test_decode_png_returns_rgb():
    rgb = np.zeros((4, 5, 3), dtype=np.uint8)
    rgb[..., 0] = 200
    ok, buf = cv2.imencode(".png", cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR))
    assert ok

    decoded = decode_image(buf.tobytes())

    assert decoded.shape == (4, 5, 3)
    assert np.array_equal(decoded, rgb)


def test_decode_raw_bgr_frame():
    bgr = np.zeros((2, 3, 3), dtype=np.uint8)
    bgr[..., 2] = 255  # red in BGR
    decoded = decode_image(bgr.tobytes(), width=3, height=2)
    assert decoded[0, 0].tolist() == [255, 0, 0]


def test_decode_raw_rgb_frame():
    rgb = np.arange(18, dtype=np.uint8).reshape(2, 3, 3)
    decoded = decode_image(rgb.tobytes(), width=3, height=2, is_bgr=False)
    assert np.array_equal(decoded, rgb)


@pytest.mark.parametrize("data", [b"", b"garbage bytes"])
def test_undecodable_data_raises(data):
    with pytest.raises(DecodeFailure):
        decode_image(data)


def test_load_missing_file_raises(tmp_path):
    with pytest.raises(DecodeFailure):
        load_image(str(tmp_path / "nope.jpg"))
