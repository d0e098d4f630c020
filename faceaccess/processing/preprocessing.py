# faceaccess/processing/preprocessing.py
"""
Image preprocessing for the embedding model.

Pipeline (`preprocess`):
1. Resize to target_size x target_size (linear), first, so every later
   per-pixel pass runs on the small image
2. Contrast equalization
   - fast:     global luminance CLAHE (`apply_clahe_simple`)
   - accurate: tiled per-channel CLAHE (`apply_clahe`)
3. Illumination normalization
   - fast:     min/max stretch + gamma (`apply_fast_normalization`)
   - accurate: Multi-Scale Retinex with Color Restoration (`apply_msrcr`)
4. Convert to float32 tensor (H, W, C) in [0, 1]

All images are RGB uint8 (H, W, 3). Every function returns a new array.
"""
import math
import logging

import cv2
import numpy as np

from ..core.types import PreprocessingMode

logger = logging.getLogger(__name__)

# MSRCR parameters
MSRCR_SIGMAS = (15.0, 80.0, 250.0)
MSRCR_GAIN = 5.0       # G
MSRCR_OFFSET = 25.0    # b
MSRCR_ALPHA = 125.0
MSRCR_BETA = 46.0

FAST_GAMMA = 0.9
LOG_FLOOR = 1e-10


def _check_image(image):
    image = np.asarray(image)
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected (H, W, 3) image, got shape {image.shape}")
    if image.shape[0] == 0 or image.shape[1] == 0:
        raise ValueError("Image has zero width or height")
    return image


def _round_half_up(values):
    # Inputs here are non-negative
    return np.floor(values + 0.5)


def resize(image, size):
    """Resize to size x size with bilinear interpolation."""
    image = np.ascontiguousarray(_check_image(image))
    return cv2.resize(image, (int(size), int(size)), interpolation=cv2.INTER_LINEAR)


def luminance(image):
    """Integer luminance 0.299R + 0.587G + 0.114B, truncated, in [0, 255]."""
    rgb = image.astype(np.float64)
    lum = 0.299 * rgb[..., 0] + 0.587 * rgb[..., 1] + 0.114 * rgb[..., 2]
    return np.clip(lum.astype(np.int64), 0, 255)


# ============================================================================
# CONTRAST EQUALIZATION
# ============================================================================

def apply_clahe_simple(image):
    """
    Global histogram equalization on luminance.

    Each channel is scaled by new_luminance / old_luminance so hue is kept.
    Pixels with zero luminance keep their value.
    """
    image = _check_image(image)
    lum = luminance(image)

    hist = np.bincount(lum.ravel(), minlength=256)
    cdf = np.cumsum(hist)
    nonzero = cdf[cdf > 0]
    cdf_min = int(nonzero[0]) if nonzero.size else 0
    cdf_max = int(cdf[255])
    cdf_range = cdf_max - cdf_min

    if cdf_range <= 0:
        return image.copy()

    new_lum = _round_half_up((cdf[lum] - cdf_min) * 255.0 / cdf_range)
    lum_f = lum.astype(np.float64)
    scale = np.ones_like(lum_f)
    np.divide(new_lum, lum_f, out=scale, where=lum > 0)

    out = image.astype(np.float64) * scale[..., np.newaxis]
    return np.clip(out, 0, 255).astype(np.uint8)


def _clahe_channel(channel, clip_limit, tile_grid_size):
    height, width = channel.shape
    result = np.empty_like(channel)
    tile_w = int(math.ceil(width / tile_grid_size))
    tile_h = int(math.ceil(height / tile_grid_size))

    for ty in range(tile_grid_size):
        for tx in range(tile_grid_size):
            x0, y0 = tx * tile_w, ty * tile_h
            x1, y1 = min(x0 + tile_w, width), min(y0 + tile_h, height)
            if x0 >= x1 or y0 >= y1:
                continue

            tile = channel[y0:y1, x0:x1]
            hist = np.bincount(tile.ravel(), minlength=256).astype(np.int64)
            count = tile.size

            # Clip and redistribute the excess evenly
            clip_threshold = int(math.ceil(clip_limit * count / 256))
            excess = int(np.sum(np.maximum(hist - clip_threshold, 0)))
            hist = np.minimum(hist, clip_threshold) + excess // 256

            cdf = np.cumsum(hist)
            nonzero = cdf[cdf > 0]
            cdf_min = int(nonzero[0]) if nonzero.size else 0
            cdf_max = int(cdf[255])

            if cdf_max > cdf_min:
                mapped = (cdf[tile] - cdf_min) * 255 // (cdf_max - cdf_min)
                result[y0:y1, x0:x1] = np.clip(mapped, 0, 255)
            else:
                result[y0:y1, x0:x1] = tile
    return result


def apply_clahe(image, clip_limit=2.0, tile_grid_size=8):
    """
    Tiled CLAHE applied to each channel independently.

    Args:
        image: RGB uint8 image
        clip_limit: Histogram clip limit relative to a uniform histogram
        tile_grid_size: Number of tiles per axis
    """
    image = _check_image(image)
    if tile_grid_size < 1:
        raise ValueError("tile_grid_size must be >= 1")
    channels = [
        _clahe_channel(image[..., c], clip_limit, tile_grid_size)
        for c in range(3)
    ]
    return np.stack(channels, axis=-1).astype(np.uint8)


# ============================================================================
# ILLUMINATION NORMALIZATION
# ============================================================================

def apply_fast_normalization(image, gamma=FAST_GAMMA):
    """
    Stretch to the full range using the min/max of the channel mean, then
    apply gamma per channel. Identity when the image is flat.
    """
    image = _check_image(image)
    mean = (image.astype(np.int64).sum(axis=-1) // 3)
    min_val = int(mean.min())
    max_val = int(mean.max())
    value_range = max_val - min_val
    if value_range == 0:
        return image.copy()

    ratio = (image.astype(np.float64) - min_val) / value_range
    ratio = np.clip(ratio, 0.0, 1.0)
    out = np.power(ratio, gamma) * 255.0
    return np.clip(out, 0, 255).astype(np.uint8)


def safe_log10(values):
    """log10 with the argument floored at 1e-10."""
    return np.log10(np.maximum(values, LOG_FLOOR))


def gaussian_kernel_size(sigma):
    """ceil(6 * sigma), forced odd."""
    return int(math.ceil(sigma * 6)) | 1


def gaussian_blur(values, sigma):
    """
    Separable Gaussian blur with replicated (clamped) borders.

    Args:
        values: float array (H, W) or (H, W, C)
        sigma: Gaussian sigma

    Returns:
        float64 array of the same shape
    """
    ksize = gaussian_kernel_size(sigma)
    kernel = cv2.getGaussianKernel(ksize, sigma, cv2.CV_64F)
    return cv2.sepFilter2D(
        np.asarray(values, dtype=np.float64), cv2.CV_64F, kernel, kernel,
        borderType=cv2.BORDER_REPLICATE,
    )


def apply_msrcr(image, sigmas=MSRCR_SIGMAS, gain=MSRCR_GAIN, offset=MSRCR_OFFSET,
                alpha=MSRCR_ALPHA, beta=MSRCR_BETA):
    """
    Multi-Scale Retinex with Color Restoration.

        img     = pixel + 1
        retinex = mean over sigmas of log10(img) - log10(blur(img, sigma))
        color   = beta * (log10(alpha * img) - log10(R + G + B))
        out     = clamp(gain * (retinex * color + offset), 0, 255)
    """
    image = _check_image(image)
    img = image.astype(np.float64) + 1.0
    log_img = safe_log10(img)

    retinex = np.zeros_like(img)
    for sigma in sigmas:
        retinex += log_img - safe_log10(gaussian_blur(img, sigma))
    retinex /= len(sigmas)

    img_sum = img.sum(axis=-1, keepdims=True)
    color = beta * (safe_log10(alpha * img) - safe_log10(img_sum))

    out = gain * (retinex * color + offset)
    return np.clip(out, 0, 255).astype(np.uint8)


# ============================================================================
# TENSOR CONVERSION
# ============================================================================

def image_to_tensor(image, channel_order="rgb"):
    """
    Convert to float32 (H, W, C) in [0, 1].

    Args:
        image: RGB uint8 image
        channel_order: "rgb" or "bgr"
    """
    image = _check_image(image)
    order = channel_order.lower()
    if order == "bgr":
        image = image[..., ::-1]
    elif order != "rgb":
        raise ValueError(f"Unknown channel order: {channel_order}")
    return np.ascontiguousarray(image, dtype=np.float32) / np.float32(255.0)


def preprocess(image, target_size=128, mode=PreprocessingMode.FAST,
               clip_limit=2.0, tile_grid_size=8):
    """
    Full preprocessing pipeline.

    Args:
        image: RGB uint8 face crop
        target_size: Output side length
        mode: PreprocessingMode or "fast"/"accurate"
        clip_limit: CLAHE clip limit (accurate mode)
        tile_grid_size: CLAHE tiles per axis (accurate mode)

    Returns:
        float32 tensor (target_size, target_size, 3)
    """
    mode = PreprocessingMode.parse(mode)
    image = _check_image(image)
    logger.debug(f"Preprocessing {image.shape[1]}x{image.shape[0]} -> "
                 f"{target_size}x{target_size} ({mode.value})")

    resized = resize(image, target_size)

    if mode == PreprocessingMode.ACCURATE:
        equalized = apply_clahe(resized, clip_limit, tile_grid_size)
        normalized = apply_msrcr(equalized)
    else:
        equalized = apply_clahe_simple(resized)
        normalized = apply_fast_normalization(equalized)

    return image_to_tensor(normalized)
