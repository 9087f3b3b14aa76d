"""
Scalar image statistics: brightness, contrast, color temperature and
aspect ratio.

Color temperature is a linear proxy, 6500 + 100 * (mean_r - mean_b). It
is not colorimetrically calibrated and only feeds the token hash, never
the similarity score.
"""

import logging

import numpy as np

from .models import ImageFeatures
from .sampling import PixelSample

logger = logging.getLogger(__name__)

# ITU-R BT.601 luma weights
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])
NEUTRAL_COLOR_TEMPERATURE = 6500.0
COLOR_TEMPERATURE_SCALE = 100.0


def aspect_ratio(width: int, height: int) -> float:
    return width / height if width and height else 1.0


def summarize_features(sample: PixelSample) -> ImageFeatures:
    """
    Compute scalar statistics over sampled pixels.

    An empty sample yields brightness 0, contrast 0 and the neutral
    6500 color temperature. Aspect ratio always comes from the source
    image size.
    """
    ratio = aspect_ratio(sample.width, sample.height)
    if sample.is_empty:
        return ImageFeatures(
            brightness=0.0,
            contrast=0.0,
            color_temperature=NEUTRAL_COLOR_TEMPERATURE,
            aspect_ratio=ratio,
        )

    rgb = sample.rgb.astype(np.float64)
    luma = rgb @ LUMA_WEIGHTS

    brightness = float(np.mean(luma) / 255.0)
    contrast = float((luma.max() - luma.min()) / 255.0)

    mean_r, _, mean_b = rgb.mean(axis=0)
    color_temperature = NEUTRAL_COLOR_TEMPERATURE + COLOR_TEMPERATURE_SCALE * (mean_r - mean_b)

    return ImageFeatures(
        brightness=min(1.0, max(0.0, brightness)),
        contrast=min(1.0, max(0.0, contrast)),
        color_temperature=float(color_temperature),
        aspect_ratio=ratio,
    )
