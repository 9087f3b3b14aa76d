"""
Candidate matching against a tenant's stored tokens.

Each candidate is scored independently on a thread pool, filtered by
the similarity threshold and ranked once all comparisons are done.
Storage and observation logging are external collaborators; a broken
stored token or a failing observation sink affects only that one
candidate, never the batch.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .config import MatchConfig
from .errors import CorruptTokenError
from .models import RGBToken
from .scoring import SimilarityEngine, rank_results

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductMatch:
    """A catalog product whose stored token matched the detected one."""

    product_id: Any
    similarity_score: float
    confidence: float
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SimilarityObservation:
    """One detected-vs-stored comparison, kept for threshold tuning."""

    product_id: Any
    detected_token: RGBToken
    similarity_score: float
    is_match: bool
    observed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "detected_token": self.detected_token.to_dict(),
            "similarity_score": self.similarity_score,
            "is_match": self.is_match,
            "observed_at": self.observed_at.isoformat(),
        }


@dataclass
class MatchResult:
    """Ranked matches plus diagnostics for one recognition attempt."""

    matches: List[ProductMatch] = field(default_factory=list)
    candidates: int = 0
    skipped: int = 0
    observation_failures: int = 0
    processing_time_ms: float = 0.0
    error: Optional[str] = None

    @property
    def best_match(self) -> Optional[ProductMatch]:
        return self.matches[0] if self.matches else None

    @property
    def confidence(self) -> float:
        return self.best_match.confidence if self.matches else 0.0

    @property
    def was_successful(self) -> bool:
        return bool(self.matches)


def _candidate_label(candidate: Any) -> str:
    if isinstance(candidate, Mapping) and "id" in candidate:
        return str(candidate["id"])
    return "<unidentified>"


class MatchService:
    """
    Ranks stored candidate tokens against a detected token.

    Candidates are mappings of the form {"id", "metadata", "token"}, where
    token is an RGBToken or its dict/JSON form.
    """

    def __init__(self,
                 config: MatchConfig = None,
                 engine: SimilarityEngine = None,
                 sink=None):
        """
        Args:
            config: Threshold and worker settings.
            engine: Similarity engine (default weights if omitted).
            sink: Optional observation sink with a record(observation)
                method. Every scored candidate is reported to it.
        """
        self.config = config or MatchConfig()
        self.engine = engine or SimilarityEngine()
        self.sink = sink

    def _evaluate(self, detected: RGBToken,
                  candidate: Mapping[str, Any]) -> Optional[Tuple[Any, Mapping, float]]:
        try:
            product_id = candidate["id"]
            stored = RGBToken.coerce(candidate["token"])
            metadata = dict(candidate.get("metadata") or {})
        except (CorruptTokenError, KeyError, TypeError, ValueError,
                AttributeError, OverflowError) as e:
            logger.warning(f"Skipping candidate {_candidate_label(candidate)}: {e}")
            return None

        score = self.engine.similarity(detected, stored)
        logger.debug(f"Candidate {product_id}: similarity {score:.4f}")
        return product_id, metadata, score

    def _record(self, observation: SimilarityObservation) -> bool:
        if self.sink is None:
            return True
        try:
            self.sink.record(observation)
            return True
        except Exception as e:
            logger.warning(
                f"Failed to record observation for {observation.product_id}: {e}"
            )
            return False

    def search(self, detected: RGBToken,
               candidates: Sequence[Mapping[str, Any]]) -> MatchResult:
        """
        Score every candidate and return the ranked matches.

        Args:
            detected: Token of the incoming frame.
            candidates: Stored catalog entries.

        Returns:
            MatchResult whose matches all score >= the threshold, sorted
            by similarity (stable for ties).
        """
        start = time.perf_counter()
        candidates = list(candidates or [])
        result = MatchResult(candidates=len(candidates))

        if not candidates:
            return result

        workers = min(self.config.max_workers, len(candidates))
        if workers <= 1:
            evaluated = [self._evaluate(detected, c) for c in candidates]
        else:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                evaluated = list(executor.map(
                    lambda c: self._evaluate(detected, c), candidates
                ))

        matches = []
        for item in evaluated:
            if item is None:
                result.skipped += 1
                continue

            product_id, metadata, score = item
            is_match = score >= self.config.threshold

            observation = SimilarityObservation(
                product_id=product_id,
                detected_token=detected,
                similarity_score=score,
                is_match=is_match,
            )
            if not self._record(observation):
                result.observation_failures += 1

            if is_match:
                matches.append(ProductMatch(
                    product_id=product_id,
                    similarity_score=score,
                    confidence=score,
                    metadata=metadata,
                ))

        result.matches = rank_results(matches)
        result.processing_time_ms = (time.perf_counter() - start) * 1000.0

        logger.info(
            f"Matching complete: {len(candidates)} candidates -> "
            f"{len(result.matches)} matches above {self.config.threshold:.2f} "
            f"({result.skipped} skipped, "
            f"{result.observation_failures} observation failures)"
        )
        return result

    def find_matches(self, detected: RGBToken,
                     candidates: Sequence[Mapping[str, Any]]) -> List[ProductMatch]:
        """Ranked matches only; see search() for diagnostics."""
        return self.search(detected, candidates).matches
