"""
Dominant color extraction and comparison.

Colors are quantized much more coarsely than the histogram (steps of 32
per channel) so that near-duplicate shades from lighting noise collapse
into one cluster. The largest clusters become the token's short list of
dominant colors.
"""

import logging
import math
from typing import Optional, Sequence, Tuple

import numpy as np

from .models import ColorCluster
from .sampling import PixelSample

logger = logging.getLogger(__name__)

QUANTIZATION_STEP = 32
MAX_DOMINANT_COLORS = 5
MIN_COLOR_SHARE = 0.02

# Black-to-white diagonal of the RGB cube, sqrt(3 * 255^2) ~= 441.67
MAX_RGB_DISTANCE = math.sqrt(3 * 255 ** 2)


def extract_dominant_colors(sample: PixelSample,
                            max_colors: int = MAX_DOMINANT_COLORS,
                            min_share: float = MIN_COLOR_SHARE) -> Tuple[ColorCluster, ...]:
    """
    Rank coarse color clusters by how many sampled pixels they cover.

    Args:
        sample: Sampled pixels.
        max_colors: Maximum clusters to report.
        min_share: Clusters must cover more than this fraction of samples.

    Returns:
        Clusters sorted by percentage (descending), reported with their
        quantized color values. Empty for an empty sample.
    """
    if sample.is_empty:
        return ()

    quantized = (sample.rgb.astype(np.int64) // QUANTIZATION_STEP) * QUANTIZATION_STEP
    keys = (quantized[:, 0] << 16) | (quantized[:, 1] << 8) | quantized[:, 2]
    unique_keys, counts = np.unique(keys, return_counts=True)

    # Largest clusters first, color key as a deterministic tiebreaker
    order = np.lexsort((unique_keys, -counts))

    total = len(sample)
    clusters = []
    for i in order[:max_colors]:
        count = int(counts[i])
        if count <= total * min_share:
            break
        key = int(unique_keys[i])
        clusters.append(ColorCluster(
            r=(key >> 16) & 0xFF,
            g=(key >> 8) & 0xFF,
            b=key & 0xFF,
            percentage=count / total,
        ))

    return tuple(clusters)


def rgb_distance(a: ColorCluster, b: ColorCluster) -> float:
    """Euclidean distance between two colors in RGB space."""
    return math.sqrt((a.r - b.r) ** 2 + (a.g - b.g) ** 2 + (a.b - b.b) ** 2)


def distance_to_similarity(distance: float) -> float:
    """Map an RGB distance onto [0, 1], 1 meaning identical colors."""
    return max(0.0, 1.0 - distance / MAX_RGB_DISTANCE)


def color_similarity(colors_a: Sequence[ColorCluster],
                     colors_b: Sequence[ColorCluster]) -> Optional[float]:
    """
    Dominant-color similarity of A against B.

    Every color of A is matched to its nearest color in B, and the
    resulting similarities are averaged weighted by A's percentages. The
    score is directional: A drives the search, so similarity(A, B) and
    similarity(B, A) generally differ.

    Returns:
        Similarity in [0, 1]; 0.0 if B has no dominant colors; None if A
        has none (nothing to weigh).
    """
    weight_total = sum(c.percentage for c in colors_a)
    if not colors_a or weight_total <= 0:
        return None
    if not colors_b:
        return 0.0

    weighted = 0.0
    for color_a in colors_a:
        best = max(distance_to_similarity(rgb_distance(color_a, color_b))
                   for color_b in colors_b)
        weighted += best * color_a.percentage

    return min(1.0, weighted / weight_total)
