"""
RGB histogram extraction and histogram similarity.

Sampled pixels are bucketed into a bins x bins x bins RGB cube and the
counts are normalized into a probability distribution. Histograms are
compared by cosine similarity; the same comparison backs the FAISS
inner-product index used for candidate shortlisting (vectors are
L2-normalized before they enter the index).

The histogram captures the overall color mix of a product but nothing
about where the colors sit, which is why dominant colors and quadrant
profiles are scored alongside it.
"""

import logging
from typing import Optional, Tuple

import faiss
import numpy as np

from .config import DEFAULT_HISTOGRAM_BINS
from .sampling import PixelSample

logger = logging.getLogger(__name__)


def histogram_length(bins: int = DEFAULT_HISTOGRAM_BINS) -> int:
    return bins ** 3


def build_rgb_histogram(sample: PixelSample,
                        bins: int = DEFAULT_HISTOGRAM_BINS) -> np.ndarray:
    """
    Build a normalized 3D RGB histogram from sampled pixels.

    Each channel is split into `bins` equal ranges over [0, 256) and the
    flat index is r_bin * bins^2 + g_bin * bins + b_bin.

    Args:
        sample: Sampled pixels.
        bins: Bins per channel.

    Returns:
        Float64 vector of length bins^3 summing to 1.0, or all zeros if
        the sample is empty.
    """
    size = histogram_length(bins)
    if sample.is_empty:
        return np.zeros(size, dtype=np.float64)

    bin_width = 256.0 / bins
    channel_bins = np.minimum(
        (sample.rgb.astype(np.float64) / bin_width).astype(np.int64), bins - 1
    )
    flat_index = (channel_bins[:, 0] * bins * bins
                  + channel_bins[:, 1] * bins
                  + channel_bins[:, 2])

    counts = np.bincount(flat_index, minlength=size).astype(np.float64)
    return counts / len(sample)


def histogram_similarity(hist_a: np.ndarray, hist_b: np.ndarray) -> Optional[float]:
    """
    Cosine similarity between two histograms.

    Returns:
        Similarity in [0, 1]; 0.0 if the histograms have different
        lengths; None if either histogram is all zeros (no signal).
    """
    a = np.asarray(hist_a, dtype=np.float64)
    b = np.asarray(hist_b, dtype=np.float64)

    if a.shape != b.shape:
        logger.debug(f"Histogram length mismatch: {a.size} vs {b.size}")
        return 0.0

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return None

    cosine = float(np.dot(a, b) / (norm_a * norm_b))
    return max(0.0, min(1.0, cosine))


def normalize_for_index(histogram: np.ndarray) -> np.ndarray:
    """L2-normalize a histogram as float32 so inner product equals cosine."""
    vector = np.asarray(histogram, dtype=np.float32).reshape(-1)
    norm = np.linalg.norm(vector)
    if norm > 0:
        vector = vector / norm
    return vector


def search_histogram_index(index: faiss.Index,
                           query_histogram: np.ndarray,
                           k: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Search an inner-product FAISS index for the closest histograms.

    Args:
        index: FAISS index holding L2-normalized histograms.
        query_histogram: Query histogram (normalized here).
        k: Number of neighbors to retrieve.

    Returns:
        Tuple of (scores, indices) arrays, each shape (1, k').

    Raises:
        ValueError: If query dimensions don't match index.
    """
    query = normalize_for_index(query_histogram).reshape(1, -1)

    if query.shape[1] != index.d:
        raise ValueError(
            f"Query dimension {query.shape[1]} doesn't match "
            f"index dimension {index.d}"
        )

    k = min(k, index.ntotal)
    if k <= 0:
        return np.empty((1, 0), dtype=np.float32), np.empty((1, 0), dtype=np.int64)

    return index.search(query, k)
