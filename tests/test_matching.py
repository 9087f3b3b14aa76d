"""Tests for candidate matching and ranking."""

import json

import pytest

from otic_vision.config import MatchConfig
from otic_vision.errors import ObservationSinkError
from otic_vision.matching import MatchService
from otic_vision.observations import MemoryObservationSink
from otic_vision.token import generate_token

from conftest import noise_images


class FailingSink:
    """Observation sink that always fails."""

    def __init__(self, error=ObservationSinkError("sink unavailable")):
        self.error = error
        self.calls = 0

    def record(self, observation):
        self.calls += 1
        raise self.error


@pytest.fixture
def detected(quadrant_image):
    return generate_token(quadrant_image)


@pytest.fixture
def noise_candidates():
    return [
        {"id": f"noise-{i}", "metadata": {"name": f"Noise {i}"},
         "token": generate_token(img)}
        for i, img in enumerate(noise_images(3))
    ]


class TestFindMatches:
    """Tests for thresholding and ranking."""

    def test_identical_token_matches_noise_excluded(self, detected, noise_candidates):
        candidates = noise_candidates + [
            {"id": "product", "metadata": {"name": "Product"}, "token": detected},
        ]
        matches = MatchService().find_matches(detected, candidates)

        assert [m.product_id for m in matches] == ["product"]
        assert matches[0].similarity_score >= 0.85
        assert matches[0].confidence == matches[0].similarity_score

    def test_all_matches_above_threshold(self, detected, noise_candidates,
                                         red_square_image, striped_image):
        candidates = noise_candidates + [
            {"id": "red", "token": generate_token(red_square_image)},
            {"id": "striped", "token": generate_token(striped_image)},
            {"id": "product", "token": detected},
        ]
        service = MatchService(MatchConfig(threshold=0.3))
        matches = service.find_matches(detected, candidates)
        assert all(m.similarity_score >= 0.3 for m in matches)

    def test_sorted_descending(self, detected, quadrant_image, noise_candidates):
        dimmer = quadrant_image.copy()
        dimmer[40:, 40:, :3] = 200
        candidates = noise_candidates + [
            {"id": "dimmer", "token": generate_token(dimmer)},
            {"id": "exact", "token": detected},
        ]
        matches = MatchService(MatchConfig(threshold=0.5)).find_matches(detected, candidates)

        assert [m.product_id for m in matches] == ["exact", "dimmer"]
        assert matches[0].similarity_score > matches[1].similarity_score

    def test_ties_are_stable(self, detected):
        candidates = [{"id": pid, "token": detected} for pid in ("a", "b", "c")]
        service = MatchService()
        first = [m.product_id for m in service.find_matches(detected, candidates)]
        second = [m.product_id for m in service.find_matches(detected, candidates)]
        assert first == second == ["a", "b", "c"]

    def test_metadata_passed_through(self, detected):
        metadata = {"name": "Cola 330ml", "price": 1.5}
        matches = MatchService().find_matches(
            detected, [{"id": 7, "metadata": metadata, "token": detected}]
        )
        assert matches[0].product_id == 7
        assert matches[0].metadata == metadata

    def test_empty_candidates(self, detected):
        result = MatchService().search(detected, [])
        assert result.matches == []
        assert result.candidates == 0
        assert not result.was_successful

    def test_degenerate_detection_matches_nothing(self, transparent_image,
                                                  detected, noise_candidates):
        empty = generate_token(transparent_image)
        candidates = noise_candidates + [{"id": "product", "token": detected}]
        assert MatchService().find_matches(empty, candidates) == []

    def test_serialized_tokens_accepted(self, detected):
        candidates = [
            {"id": "as-dict", "token": detected.to_dict()},
            {"id": "as-json", "token": detected.to_json()},
        ]
        matches = MatchService().find_matches(detected, candidates)
        assert [m.product_id for m in matches] == ["as-dict", "as-json"]

    def test_single_worker_same_result(self, detected, noise_candidates):
        candidates = noise_candidates + [{"id": "product", "token": detected}]
        serial = MatchService(MatchConfig(max_workers=1)).search(detected, candidates)
        parallel = MatchService(MatchConfig(max_workers=8)).search(detected, candidates)
        assert serial.matches == parallel.matches


class TestCorruptCandidates:
    """A malformed stored token only affects its own candidate."""

    def test_malformed_tokens_skipped(self, detected, noise_candidates):
        candidates = noise_candidates + [
            {"id": "broken-json", "token": "{not json"},
            {"id": "bad-histogram", "token": {"histogram": [1, 2]}},
            {"id": "wrong-type", "token": 12345},
            {"metadata": {}, "token": detected},
            None,
            {"id": "product", "token": detected},
        ]
        result = MatchService().search(detected, candidates)

        assert [m.product_id for m in result.matches] == ["product"]
        assert result.skipped == 5
        assert result.candidates == len(candidates)

    def test_overflowing_values_skipped(self, detected):
        infinite_channel = detected.to_dict()
        infinite_channel["dominant_colors"][0]["r"] = float("inf")
        huge_share = detected.to_dict()
        huge_share["dominant_colors"][0]["percentage"] = 10 ** 400
        candidates = [
            {"id": "inf-json", "token": json.dumps(infinite_channel)},
            {"id": "huge-share", "token": huge_share},
            {"id": "nested", "token": "[" * 100000 + "]" * 100000},
            {"id": "product", "token": detected},
        ]
        result = MatchService().search(detected, candidates)

        assert [m.product_id for m in result.matches] == ["product"]
        assert result.skipped == 3


class TestObservations:
    """Every scored candidate is reported to the sink."""

    def test_observation_per_candidate(self, detected, noise_candidates):
        sink = MemoryObservationSink()
        candidates = noise_candidates + [
            {"id": "product", "token": detected},
            {"id": "broken", "token": "nope"},
        ]
        MatchService(sink=sink).search(detected, candidates)

        observed = {o.product_id: o for o in sink.observations}
        assert set(observed) == {"noise-0", "noise-1", "noise-2", "product"}
        assert observed["product"].is_match
        assert not observed["noise-0"].is_match
        assert observed["product"].detected_token is detected
        assert observed["product"].similarity_score == pytest.approx(1.0)

    @pytest.mark.parametrize("error", [
        ObservationSinkError("disk full"), RuntimeError("connection reset"),
    ])
    def test_sink_failure_does_not_abort(self, detected, noise_candidates, error):
        sink = FailingSink(error)
        candidates = noise_candidates + [{"id": "product", "token": detected}]
        result = MatchService(sink=sink).search(detected, candidates)

        assert [m.product_id for m in result.matches] == ["product"]
        assert result.observation_failures == 4
        assert sink.calls == 4

    def test_observation_serializes(self, detected):
        sink = MemoryObservationSink()
        MatchService(sink=sink).search(detected, [{"id": "p", "token": detected}])
        data = sink.observations[0].to_dict()
        assert data["product_id"] == "p"
        assert data["is_match"] is True
        assert data["detected_token"]["token_hash"] == detected.token_hash
        assert "observed_at" in data


class TestMatchResult:
    """Tests for result diagnostics."""

    def test_best_match_and_confidence(self, detected):
        result = MatchService().search(detected, [{"id": "p", "token": detected}])
        assert result.best_match.product_id == "p"
        assert result.confidence == pytest.approx(1.0)
        assert result.was_successful
        assert result.processing_time_ms >= 0
