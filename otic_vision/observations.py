"""
Observation sinks.

MatchService reports every detected-vs-stored comparison to a sink so
the match threshold can be tuned offline. Observations are append-only
and never read back by the engine. Sinks signal failure by raising
ObservationSinkError; the match service logs and counts it.
"""

import json
import logging
import os
import threading
from typing import List

from .errors import ObservationSinkError
from .matching import SimilarityObservation

logger = logging.getLogger(__name__)


class MemoryObservationSink:
    """Keeps observations in a list."""

    def __init__(self):
        self.observations: List[SimilarityObservation] = []
        self._lock = threading.Lock()

    def record(self, observation: SimilarityObservation) -> None:
        with self._lock:
            self.observations.append(observation)


class LoggingObservationSink:
    """Writes a one-line summary of each observation to the log."""

    def __init__(self, level: int = logging.DEBUG):
        self.level = level

    def record(self, observation: SimilarityObservation) -> None:
        logger.log(
            self.level,
            f"Observation: product={observation.product_id} "
            f"score={observation.similarity_score:.4f} "
            f"match={observation.is_match} "
            f"hash={observation.detected_token.token_hash}"
        )


class JsonlObservationSink:
    """
    Appends observations to a JSON-lines file, one object per line.

    The parent directory is created on first write.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def record(self, observation: SimilarityObservation) -> None:
        line = json.dumps(observation.to_dict())
        try:
            with self._lock:
                directory = os.path.dirname(self.path)
                if directory:
                    os.makedirs(directory, exist_ok=True)
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
        except OSError as e:
            raise ObservationSinkError(
                f"Could not append observation to {self.path}: {e}"
            ) from e
