"""
Product recognition engine.

Orchestrates the recognition pipeline for one tenant:
    1. Build an RGB token from the camera frame
    2. Fetch the tenant's stored tokens from the catalog store
    3. Optionally shortlist candidates by histogram (FAISS)
    4. Score, threshold and rank candidates (MatchService)

The store and the observation sink are collaborators passed in by the
caller; the engine holds no per-request state and can serve several
requests at once.
"""

import logging
import time
from typing import Any, Mapping, Optional

import numpy as np

from .config import MatchConfig, TokenConfig
from .matching import MatchResult, MatchService
from .models import RGBToken
from .scoring import SimilarityEngine
from .token import generate_token

logger = logging.getLogger(__name__)


class OticVisionEngine:
    """
    Visual product recognition over a tenant's catalog.

    The store must provide get_all_tokens(tenant_id); add() is needed for
    register_product(), and shortlist()/indexed_ids() for histogram
    shortlisting (see TokenIndex).
    """

    def __init__(self, store,
                 sink=None,
                 token_config: TokenConfig = None,
                 match_config: MatchConfig = None,
                 similarity: SimilarityEngine = None):
        self.store = store
        self.token_config = token_config or TokenConfig()
        self.match_config = match_config or MatchConfig()
        self.matcher = MatchService(self.match_config, similarity, sink)

    def generate_token(self, image_np: np.ndarray) -> RGBToken:
        return generate_token(image_np, self.token_config)

    def register_product(self, tenant_id: Any, product_id: Any,
                         image_np: np.ndarray,
                         metadata: Optional[Mapping[str, Any]] = None) -> RGBToken:
        """Build a token for a catalog image and store it for the tenant."""
        token = self.generate_token(image_np)
        self.store.add(tenant_id, product_id, token, metadata)
        logger.info(f"Registered product {product_id} for tenant {tenant_id}")
        return token

    def _candidates(self, tenant_id: Any, token: RGBToken) -> list:
        candidates = self.store.get_all_tokens(tenant_id) or []

        k = self.match_config.shortlist_size
        if not k or len(candidates) <= k or not hasattr(self.store, "shortlist"):
            return candidates

        shortlisted = set(self.store.shortlist(tenant_id, token, k))
        if not shortlisted and not token.is_degenerate:
            logger.warning(
                f"Histogram shortlist empty for tenant {tenant_id}, "
                f"scoring all {len(candidates)} candidates"
            )
            return candidates
        indexed = self.store.indexed_ids(tenant_id)
        # Unindexed rows (corrupt or degenerate tokens) stay in so the
        # match service still accounts for them.
        kept = []
        for candidate in candidates:
            product_id = candidate.get("id") if isinstance(candidate, Mapping) else None
            if product_id in shortlisted or product_id not in indexed:
                kept.append(candidate)
        logger.debug(f"Shortlisted {len(kept)} of {len(candidates)} candidates")
        return kept

    def match_token(self, tenant_id: Any, token: RGBToken) -> MatchResult:
        """
        Match an existing token against the tenant's catalog.

        A store failure yields an empty result carrying the error message.
        """
        start = time.perf_counter()
        try:
            candidates = self._candidates(tenant_id, token)
        except Exception as e:
            logger.error(f"Token store lookup failed for tenant {tenant_id}: {e}")
            return MatchResult(
                processing_time_ms=(time.perf_counter() - start) * 1000.0,
                error=str(e),
            )

        if not candidates:
            logger.info(f"No stored tokens for tenant {tenant_id}")

        result = self.matcher.search(token, candidates)
        result.processing_time_ms = (time.perf_counter() - start) * 1000.0
        return result

    def recognize(self, tenant_id: Any, image_np: np.ndarray) -> MatchResult:
        """Identify which of the tenant's products the image shows, if any."""
        start = time.perf_counter()
        token = self.generate_token(image_np)
        result = self.match_token(tenant_id, token)
        result.processing_time_ms = (time.perf_counter() - start) * 1000.0

        best = result.best_match
        if best is not None:
            logger.info(
                f"Recognized product {best.product_id} "
                f"({best.similarity_score * 100:.1f}%) in "
                f"{result.processing_time_ms:.1f}ms"
            )
        return result
