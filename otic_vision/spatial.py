"""
Quadrant color profiling.

Two products can share a color mix but lay it out differently, e.g. a
red cap over a white bottle against a white cap over a red label. The
histogram cannot tell them apart; per-quadrant mean colors can.
"""

import logging
from typing import Optional

import numpy as np

from .colors import distance_to_similarity, rgb_distance
from .models import ColorCluster, SpatialDistribution
from .sampling import PixelSample

logger = logging.getLogger(__name__)


def profile_quadrants(sample: PixelSample) -> SpatialDistribution:
    """
    Mean color and sample share of each image quadrant.

    The image is split at width / 2 and height / 2. A quadrant's
    percentage is its sample count divided by the total sample count.
    Quadrants without samples are left as None.
    """
    if sample.is_empty:
        return SpatialDistribution()

    half_w = sample.width / 2.0
    half_h = sample.height / 2.0
    x = sample.xy[:, 0]
    y = sample.xy[:, 1]

    left = x < half_w
    top = y < half_h
    masks = {
        "top_left": left & top,
        "top_right": ~left & top,
        "bottom_left": left & ~top,
        "bottom_right": ~left & ~top,
    }

    total = len(sample)
    quadrants = {}
    for name, mask in masks.items():
        count = int(np.count_nonzero(mask))
        if count == 0:
            quadrants[name] = None
            continue
        # Round half up
        mean = np.floor(sample.rgb[mask].mean(axis=0) + 0.5).astype(int)
        quadrants[name] = ColorCluster(
            r=int(mean[0]), g=int(mean[1]), b=int(mean[2]),
            percentage=count / total,
        )

    return SpatialDistribution(**quadrants)


def spatial_similarity(dist_a: SpatialDistribution,
                       dist_b: SpatialDistribution) -> Optional[float]:
    """
    Average color similarity over the quadrants present in both tokens.

    Quadrants missing from either side are skipped rather than counted
    as maximally different.

    Returns:
        Similarity in [0, 1], or None when no quadrant is shared.
    """
    present_a = dist_a.present()
    present_b = dist_b.present()
    shared = [name for name in present_a if name in present_b]
    if not shared:
        return None

    total = sum(distance_to_similarity(rgb_distance(present_a[n], present_b[n]))
                for n in shared)
    return total / len(shared)
