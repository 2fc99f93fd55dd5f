"""
Unit tests for cosine similarity and diversity-constrained top-K selection.
"""

import pytest

from reflective_prompts.errors import VectorizationError
from reflective_prompts.models.candidates import Candidate, ScoredCandidate
from reflective_prompts.ranking.similarity import (
    cosine_similarity,
    rank,
    select_top_k_diverse,
    sort_scored,
)


def _candidate(candidate_id: str, theme: str) -> Candidate:
    return Candidate(candidate_id=candidate_id, display_text=f"Prompt {candidate_id}?", theme=theme)


def _scored(candidate_id: str, theme: str, score: float) -> ScoredCandidate:
    return ScoredCandidate(candidate=_candidate(candidate_id, theme), score=score)


class TestCosineSimilarity:
    """Test cosine similarity properties."""

    VECTORS = [
        {"stress": 2.0, "work": 1.0},
        {"stress": 1.0, "deadline": 3.0},
        {"grate": 1.2},
        {"work": 0.5, "deadline": 0.5, "stress": 0.5},
    ]

    @pytest.mark.unit
    def test_symmetric_and_bounded(self):
        for a in self.VECTORS:
            for b in self.VECTORS:
                ab = cosine_similarity(a, b)
                assert ab == pytest.approx(cosine_similarity(b, a))
                assert 0.0 <= ab <= 1.0

    @pytest.mark.unit
    def test_identical_vectors(self):
        v = {"stress": 2.0, "work": 1.0}
        assert cosine_similarity(v, v) == pytest.approx(1.0)

    @pytest.mark.unit
    def test_disjoint_vectors(self):
        assert cosine_similarity({"stress": 1.0}, {"grate": 1.0}) == 0.0

    @pytest.mark.unit
    def test_empty_or_zero_magnitude(self):
        assert cosine_similarity({}, {"stress": 1.0}) == 0.0
        assert cosine_similarity({"stress": 0.0}, {"stress": 1.0}) == 0.0


class TestSelectTopKDiverse:
    """Test greedy selection with per-theme cap."""

    @pytest.mark.unit
    def test_theme_cap_respected(self):
        scored = sort_scored(
            [
                _scored("a1", "stress", 0.9),
                _scored("a2", "stress", 0.8),
                _scored("a3", "stress", 0.7),
                _scored("b1", "work", 0.6),
                _scored("c1", "gratitude", 0.1),
            ]
        )

        selected = select_top_k_diverse(scored, k=4, max_per_theme=2)

        assert [s.candidate_id for s in selected] == ["a1", "a2", "b1", "c1"]

    @pytest.mark.unit
    def test_never_padded(self):
        scored = sort_scored([_scored(f"a{i}", "stress", 0.5) for i in range(5)])

        selected = select_top_k_diverse(scored, k=5, max_per_theme=2)

        assert len(selected) == 2

    @pytest.mark.unit
    def test_input_not_mutated(self):
        scored = sort_scored([_scored("a1", "stress", 0.9), _scored("a2", "stress", 0.8)])
        before = list(scored)

        select_top_k_diverse(scored, k=1, max_per_theme=1)

        assert scored == before


class TestRank:
    """Test rank()."""

    @pytest.mark.unit
    def test_ties_broken_by_candidate_id(self):
        vector = {"stress": 1.0}
        candidates = [
            (_candidate("q2", "stress"), vector),
            (_candidate("q1", "work"), vector),
            (_candidate("q3", "rest"), {"grate": 1.0}),
        ]

        result = rank({"stress": 1.0}, candidates, k=3, max_per_theme=1)

        assert [s.candidate_id for s in result] == ["q1", "q2", "q3"]
        assert result[2].score == 0.0

    @pytest.mark.unit
    def test_deterministic(self):
        candidates = [
            (_candidate(f"q{i}", f"theme{i % 3}"), {"stress": float(i % 4), "work": 1.0})
            for i in range(10)
        ]
        query = {"stress": 1.0, "work": 0.5}

        first = rank(query, candidates, k=5, max_per_theme=2)
        second = rank(query, list(reversed(candidates)), k=5, max_per_theme=2)

        assert [(s.candidate_id, s.score) for s in first] == [
            (s.candidate_id, s.score) for s in second
        ]

    @pytest.mark.unit
    def test_theme_cap_on_random_like_pool(self):
        candidates = [
            (_candidate(f"q{i:02d}", f"theme{i % 2}"), {"stress": 1.0 + i, "work": 2.0})
            for i in range(12)
        ]

        result = rank({"stress": 1.0}, candidates, k=5, max_per_theme=2)

        themes = [s.theme for s in result]
        assert all(themes.count(t) <= 2 for t in set(themes))
        assert len(result) == 4

    @pytest.mark.unit
    def test_empty_pool(self):
        assert rank({"stress": 1.0}, [], k=5, max_per_theme=2) == []

    @pytest.mark.unit
    def test_empty_query(self):
        with pytest.raises(VectorizationError):
            rank({}, [(_candidate("q1", "stress"), {"stress": 1.0})], k=5, max_per_theme=2)

    @pytest.mark.unit
    @pytest.mark.parametrize("k,max_per_theme", [(0, 2), (5, 0)])
    def test_invalid_parameters(self, k, max_per_theme):
        with pytest.raises(ValueError):
            rank({"stress": 1.0}, [], k=k, max_per_theme=max_per_theme)
