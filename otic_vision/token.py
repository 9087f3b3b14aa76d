"""
RGB token construction.

Pipeline:
    1. Sample opaque pixels (bounded budget)
    2. RGB histogram
    3. Dominant colors
    4. Quadrant profiles
    5. Scalar features
    6. Hash a truncated view of the above and stamp the creation time

The hash is a fast dedup / pre-filter key only. Two tokens with
different hashes can still be near-identical matches.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

import numpy as np

from .colors import extract_dominant_colors
from .config import TokenConfig
from .features import summarize_features
from .histograms import build_rgb_histogram
from .models import ColorCluster, ImageFeatures, RGBToken, SpatialDistribution
from .sampling import sample_pixels
from .spatial import profile_quadrants

logger = logging.getLogger(__name__)

# Fields of the truncated view that feeds the hash
HASH_HISTOGRAM_BINS = 64
HASH_DOMINANT_COLORS = 3


def compute_token_hash(histogram: np.ndarray,
                       dominant_colors: Sequence[ColorCluster],
                       features: ImageFeatures) -> str:
    """
    Deterministic 32-bit rolling hash over a JSON view of the token.

    hash = hash * 31 + code_point for each character of the compact JSON
    serialization, truncated to 32 bits and reported as 8 hex digits.
    Stable across processes, unlike the built-in hash().
    """
    payload = {
        "histogram": [float(v) for v in list(histogram)[:HASH_HISTOGRAM_BINS]],
        "dominant_colors": [c.to_dict() for c in list(dominant_colors)[:HASH_DOMINANT_COLORS]],
        "features": features.to_dict(),
    }
    serialized = json.dumps(payload, separators=(",", ":"))

    value = 0
    for char in serialized:
        value = (value * 31 + ord(char)) & 0xFFFFFFFF

    return f"{value:08x}"


def build_token(histogram: np.ndarray,
                dominant_colors: Sequence[ColorCluster],
                spatial_distribution: SpatialDistribution,
                image_features: ImageFeatures,
                generated_at: Optional[datetime] = None) -> RGBToken:
    """Compose analysis outputs into an immutable token."""
    return RGBToken(
        histogram=histogram,
        dominant_colors=tuple(dominant_colors),
        spatial_distribution=spatial_distribution,
        image_features=image_features,
        token_hash=compute_token_hash(histogram, dominant_colors, image_features),
        generated_at=generated_at or datetime.now(timezone.utc),
    )


def generate_token(image_np: np.ndarray,
                   config: Optional[TokenConfig] = None) -> RGBToken:
    """
    Generate an RGB token from an image.

    Args:
        image_np: Grayscale, RGB or RGBA uint8 image. Only pixels whose
            alpha exceeds the configured threshold contribute.
        config: Token settings (bins, sample budget, alpha threshold).

    Returns:
        RGBToken. A fully transparent or empty image produces a
        degenerate token (all-zero histogram) rather than an error.
    """
    config = config or TokenConfig()

    sample = sample_pixels(image_np, config.max_samples, config.alpha_threshold)

    token = build_token(
        histogram=build_rgb_histogram(sample, config.bins),
        dominant_colors=extract_dominant_colors(sample),
        spatial_distribution=profile_quadrants(sample),
        image_features=summarize_features(sample),
    )

    logger.info(
        f"RGB token generated: {len(sample)} samples from "
        f"{sample.width}x{sample.height}, {len(token.histogram)} bins, "
        f"{len(token.dominant_colors)} dominant colors, hash {token.token_hash}"
    )
    return token
