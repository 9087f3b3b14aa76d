"""
Engine configuration.

Defaults come from environment variables so a deployment can tune them
without code changes. The values are then carried in explicit config
objects passed into each engine/service, so several tenants with
different settings can run side by side in one process.
"""

import os
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigurationError

# Histogram bins per channel: 8 -> 8x8x8 = 512 bins
DEFAULT_HISTOGRAM_BINS = int(os.environ.get("OTIC_HISTOGRAM_BINS", "8"))

# Upper bound on sampled pixels per image, independent of resolution
DEFAULT_MAX_PIXELS_SAMPLE = int(os.environ.get("OTIC_MAX_PIXELS_SAMPLE", "2000"))

# Pixels with alpha above this are sampled (128 = more than 50% opaque)
DEFAULT_ALPHA_THRESHOLD = int(os.environ.get("OTIC_ALPHA_THRESHOLD", "128"))

DEFAULT_SIMILARITY_THRESHOLD = float(os.environ.get("OTIC_SIMILARITY_THRESHOLD", "0.85"))
DEFAULT_MATCH_WORKERS = int(os.environ.get("OTIC_MATCH_WORKERS", "4"))


@dataclass(frozen=True)
class TokenConfig:
    """Settings for token generation."""

    bins: int = DEFAULT_HISTOGRAM_BINS
    max_samples: int = DEFAULT_MAX_PIXELS_SAMPLE
    alpha_threshold: int = DEFAULT_ALPHA_THRESHOLD

    def __post_init__(self):
        if self.bins <= 0:
            raise ConfigurationError(f"bins must be positive, got {self.bins}")
        if self.max_samples <= 0:
            raise ConfigurationError(
                f"max_samples must be positive, got {self.max_samples}"
            )
        if not 0 <= self.alpha_threshold <= 255:
            raise ConfigurationError(
                f"alpha_threshold must be 0-255, got {self.alpha_threshold}"
            )


@dataclass(frozen=True)
class MatchConfig:
    """
    Settings for candidate matching.

    Attributes:
        threshold: Minimum similarity (0-1) for a candidate to count as a match.
        max_workers: Thread pool size for per-candidate comparisons.
        shortlist_size: If set, only the N candidates with the closest
            histograms (FAISS pre-filter) are fully scored. None compares
            every candidate.
    """

    threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    max_workers: int = DEFAULT_MATCH_WORKERS
    shortlist_size: Optional[int] = None

    def __post_init__(self):
        if not 0.0 <= self.threshold <= 1.0:
            raise ConfigurationError(
                f"threshold must be between 0 and 1, got {self.threshold}"
            )
        if self.max_workers <= 0:
            raise ConfigurationError(
                f"max_workers must be positive, got {self.max_workers}"
            )
        if self.shortlist_size is not None and self.shortlist_size <= 0:
            raise ConfigurationError(
                f"shortlist_size must be positive, got {self.shortlist_size}"
            )
