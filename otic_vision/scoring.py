"""
Weighted similarity scoring between RGB tokens.

Combines three independent signals into one score in [0, 1]:
    histogram  (0.5)  cosine similarity of the RGB histograms
    colors     (0.3)  nearest-neighbor match of dominant colors
    spatial    (0.2)  mean-color distance per shared quadrant

A signal that cannot be computed for a pair (no histogram mass, no
dominant colors on the detected side, no shared quadrants) drops out of
both the numerator and the denominator, so the score stays on [0, 1]
for degenerate tokens.

The color signal is directional. Scores are always computed as
similarity(detected, stored): the detected frame's colors drive the
search into the stored token's colors.
"""

import logging
from typing import Dict, List, Mapping, Optional

from .colors import color_similarity
from .errors import ConfigurationError
from .histograms import histogram_similarity
from .models import RGBToken
from .spatial import spatial_similarity

logger = logging.getLogger(__name__)

DEFAULT_WEIGHTS = {
    "histogram": 0.5,
    "colors": 0.3,
    "spatial": 0.2,
}


def similarity_components(token_a: RGBToken, token_b: RGBToken) -> Dict[str, Optional[float]]:
    """Per-signal similarity of token_a against token_b (None = not computable)."""
    return {
        "histogram": histogram_similarity(token_a.histogram, token_b.histogram),
        "colors": color_similarity(token_a.dominant_colors, token_b.dominant_colors),
        "spatial": spatial_similarity(token_a.spatial_distribution,
                                      token_b.spatial_distribution),
    }


def combine_components(components: Mapping[str, Optional[float]],
                       weights: Mapping[str, float] = None) -> float:
    """
    Weighted average of the computable components.

    Returns:
        Score in [0, 1]; 0.0 when no component is computable.
    """
    weights = weights or DEFAULT_WEIGHTS

    total = 0.0
    weight_sum = 0.0
    for name, weight in weights.items():
        value = components.get(name)
        if value is None:
            continue
        total += weight * value
        weight_sum += weight

    if weight_sum <= 0:
        return 0.0
    return max(0.0, min(1.0, total / weight_sum))


class SimilarityEngine:
    """
    Stateless token comparator.

    Holds only its weights, so one instance can be shared across threads.
    """

    def __init__(self, weights: Mapping[str, float] = None):
        weights = dict(weights or DEFAULT_WEIGHTS)
        unknown = set(weights) - set(DEFAULT_WEIGHTS)
        if unknown:
            raise ConfigurationError(f"Unknown similarity signals: {sorted(unknown)}")
        if any(w < 0 for w in weights.values()) or sum(weights.values()) <= 0:
            raise ConfigurationError(
                f"Weights must be non-negative with a positive sum, got {weights}"
            )
        self.weights = weights

    def components(self, token_a: RGBToken, token_b: RGBToken) -> Dict[str, Optional[float]]:
        return similarity_components(token_a, token_b)

    def similarity(self, token_a: RGBToken, token_b: RGBToken) -> float:
        """Similarity of token_a (detected) against token_b (stored), in [0, 1]."""
        return combine_components(self.components(token_a, token_b), self.weights)


def compute_similarity(token_a: RGBToken, token_b: RGBToken,
                       weights: Mapping[str, float] = None) -> float:
    """Module-level shortcut for SimilarityEngine(weights).similarity()."""
    return combine_components(similarity_components(token_a, token_b), weights)


def rank_results(results: List) -> List:
    """
    Sort matches by similarity, highest first.

    The sort is stable: equal scores keep their input order, so the same
    candidate list always ranks the same way.

    Args:
        results: Objects with a `similarity_score` attribute.
    """
    return sorted(results, key=lambda m: -m.similarity_score)
