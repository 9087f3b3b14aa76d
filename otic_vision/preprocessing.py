"""
Image preprocessing helpers for token generation.

Brings camera frames and catalog photos into one layout, an (H, W, 4)
uint8 RGBA array, so the pixel sampler can rely on an alpha channel
regardless of where the image came from.
"""

import logging
from typing import Union

import cv2
import numpy as np

from .errors import ImageLoadError

logger = logging.getLogger(__name__)

# Default bounding box for resize_image(), matches typical camera preview size
DEFAULT_MAX_WIDTH = 800
DEFAULT_MAX_HEIGHT = 600


def normalize_image(image_np: np.ndarray) -> np.ndarray:
    """Ensure image is uint8 format."""
    if image_np.dtype == np.uint16:
        return (image_np // 257).astype(np.uint8)
    if image_np.dtype != np.uint8:
        if image_np.size and image_np.max() <= 1.0:
            image_np = (image_np * 255).astype(np.uint8)
        else:
            image_np = np.clip(image_np, 0, 255).astype(np.uint8)
    return image_np


def to_rgba(image_np: np.ndarray) -> np.ndarray:
    """
    Convert an image to a 4-channel RGBA array.

    Grayscale and RGB inputs are treated as fully opaque.

    Args:
        image_np: (H, W), (H, W, 1), (H, W, 3) or (H, W, 4) array.

    Returns:
        (H, W, 4) uint8 array.

    Raises:
        ValueError: If the array does not have one of the shapes above.
    """
    image_np = normalize_image(np.asarray(image_np))

    if image_np.ndim == 3 and image_np.shape[2] == 1:
        image_np = image_np[:, :, 0]

    if image_np.ndim == 2:
        rgb = np.repeat(image_np[:, :, np.newaxis], 3, axis=2)
    elif image_np.ndim == 3 and image_np.shape[2] == 3:
        rgb = image_np
    elif image_np.ndim == 3 and image_np.shape[2] == 4:
        return image_np
    else:
        raise ValueError(f"Unsupported image shape {image_np.shape}")

    alpha = np.full(rgb.shape[:2] + (1,), 255, dtype=np.uint8)
    return np.concatenate([rgb, alpha], axis=2)


def image_from_buffer(data: Union[bytes, bytearray, np.ndarray],
                      width: int, height: int) -> np.ndarray:
    """
    Wrap a flat RGBA byte buffer (canvas ImageData layout) as an image.

    Args:
        data: width * height * 4 bytes, row-major RGBA.
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        (height, width, 4) uint8 array.
    """
    if isinstance(data, (bytes, bytearray)):
        buffer = np.frombuffer(bytes(data), dtype=np.uint8)
    else:
        buffer = np.asarray(data, dtype=np.uint8).ravel()

    expected = width * height * 4
    if buffer.size != expected:
        raise ValueError(
            f"Buffer holds {buffer.size} bytes, expected {expected} "
            f"for {width}x{height} RGBA"
        )
    return buffer.reshape(height, width, 4)


def load_image(path: str) -> np.ndarray:
    """
    Read an image file as RGBA, keeping its alpha channel if it has one.

    Raises:
        ImageLoadError: If OpenCV cannot decode the file.
    """
    image = cv2.imread(path, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ImageLoadError(f"Could not read image: {path}")

    image = normalize_image(image)
    if image.ndim == 2:
        return to_rgba(image)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    return to_rgba(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))


def resize_image(image_np: np.ndarray,
                 max_width: int = DEFAULT_MAX_WIDTH,
                 max_height: int = DEFAULT_MAX_HEIGHT) -> np.ndarray:
    """
    Downscale an image to fit inside max_width x max_height.

    Aspect ratio is preserved and images that already fit are returned
    unchanged (never upscaled).
    """
    h, w = image_np.shape[:2]
    if h == 0 or w == 0:
        return image_np

    scale = min(max_width / w, max_height / h)
    if scale >= 1.0:
        return image_np

    new_w = max(1, int(round(w * scale)))
    new_h = max(1, int(round(h * scale)))
    logger.debug(f"Resizing {w}x{h} -> {new_w}x{new_h}")
    return cv2.resize(image_np, (new_w, new_h), interpolation=cv2.INTER_AREA)
