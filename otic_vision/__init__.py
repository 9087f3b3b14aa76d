"""
otic_vision — Color-fingerprint product recognition.

Identifies which catalog product a camera frame shows without a trained
model: each image is reduced to an RGB token (color histogram, dominant
colors, quadrant profile, scalar features) and tokens are compared with
a weighted similarity score.

Modules:
    engine         OticVisionEngine orchestrator
    token          Token generation and hashing
    sampling       Bounded opaque-pixel sampling
    histograms     RGB histograms, cosine similarity, FAISS search
    colors         Dominant color extraction and matching
    spatial        Quadrant color profiles
    features       Brightness, contrast, color temperature, aspect ratio
    scoring        Weighted multi-signal similarity
    matching       Candidate matching, thresholding and ranking
    token_index    Per-tenant token store with FAISS shortlist
    observations   Similarity observation sinks
    preprocessing  Image loading, conversion and resizing
"""

from .config import MatchConfig, TokenConfig
from .engine import OticVisionEngine
from .errors import (
    ConfigurationError, CorruptTokenError, ImageLoadError,
    ObservationSinkError, OticVisionError,
)
from .matching import MatchResult, MatchService, ProductMatch, SimilarityObservation
from .models import ColorCluster, ImageFeatures, RGBToken, SpatialDistribution
from .scoring import SimilarityEngine, compute_similarity
from .token import generate_token
from .token_index import TokenIndex, build_index

__version__ = "1.0.0"
