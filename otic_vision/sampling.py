"""
Bounded pixel sampling.

Every analysis step works on a strided subset of the image's opaque
pixels rather than the full frame, so the cost of building a token does
not grow with camera resolution beyond a single pass over the strided
indices.
"""

import logging
from dataclasses import dataclass

import numpy as np

from .config import DEFAULT_ALPHA_THRESHOLD, DEFAULT_MAX_PIXELS_SAMPLE
from .preprocessing import to_rgba

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class PixelSample:
    """
    Sampled pixels of one image.

    Attributes:
        rgb: (N, 3) uint8 colors.
        xy: (N, 2) int64 pixel coordinates (x = column, y = row).
        width: Source image width.
        height: Source image height.
    """

    rgb: np.ndarray
    xy: np.ndarray
    width: int
    height: int

    def __len__(self) -> int:
        return int(self.rgb.shape[0])

    @property
    def is_empty(self) -> bool:
        return len(self) == 0


def sample_pixels(image_np: np.ndarray,
                  max_samples: int = DEFAULT_MAX_PIXELS_SAMPLE,
                  alpha_threshold: int = DEFAULT_ALPHA_THRESHOLD) -> PixelSample:
    """
    Take a uniformly strided sample of opaque pixels.

    Walks the row-major pixel order with stride
    max(1, floor(width * height / max_samples)) and keeps each visited
    pixel whose alpha exceeds alpha_threshold, stopping once max_samples
    pixels are collected. Images without an alpha channel count as fully
    opaque.

    Args:
        image_np: Image array (grayscale, RGB or RGBA).
        max_samples: Sample budget.
        alpha_threshold: Pixels with alpha <= this are skipped.

    Returns:
        PixelSample, possibly empty (fully transparent or zero-size image).
    """
    rgba = to_rgba(image_np)
    height, width = rgba.shape[:2]
    total_pixels = width * height

    step = max(1, total_pixels // max_samples)
    flat = rgba.reshape(-1, 4)

    indices = np.arange(0, total_pixels, step, dtype=np.int64)
    opaque = indices[flat[indices, 3] > alpha_threshold][:max_samples]

    rgb = flat[opaque, :3].copy()
    xy = np.stack([opaque % max(width, 1), opaque // max(width, 1)], axis=1)

    logger.debug(
        f"Sampled {len(opaque)} pixels from {width}x{height} image "
        f"(stride {step})"
    )
    return PixelSample(rgb=rgb, xy=xy, width=width, height=height)
