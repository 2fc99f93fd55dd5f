"""
Cosine similarity and diversity-constrained top-K selection.

Selection walks the score-sorted list once and skips a candidate whose theme
already holds max_per_theme accepted slots. Ties are broken by candidate_id so
identical input always yields identical output.
"""

from typing import Dict, List, Mapping, Sequence, Tuple

import numpy as np

from ..errors import VectorizationError
from ..models.candidates import Candidate, ScoredCandidate


def cosine_similarity(v1: Mapping[str, float], v2: Mapping[str, float]) -> float:
    """
    Cosine similarity of two sparse vectors, clamped to [0, 1].

    Zero-magnitude or empty vectors score 0.0 against anything.
    """
    if not v1 or not v2:
        return 0.0

    terms = sorted(set(v1) | set(v2))
    a = np.array([v1.get(t, 0.0) for t in terms], dtype=float)
    b = np.array([v2.get(t, 0.0) for t in terms], dtype=float)

    norm_product = np.linalg.norm(a) * np.linalg.norm(b)
    if norm_product == 0:
        return 0.0

    score = float(np.dot(a, b) / norm_product)
    return min(max(score, 0.0), 1.0)


def sort_scored(scored: Sequence[ScoredCandidate]) -> List[ScoredCandidate]:
    """Score descending, candidate_id ascending."""
    return sorted(scored, key=lambda s: (-s.score, s.candidate_id))


def select_top_k_diverse(
    sorted_scored: Sequence[ScoredCandidate],
    k: int,
    max_per_theme: int,
) -> List[ScoredCandidate]:
    """
    Greedy top-K with a per-theme cap.

    Args:
        sorted_scored: Candidates already sorted by sort_scored(). Not mutated.
        k: Number to select.
        max_per_theme: Hard cap on accepted candidates sharing one theme.

    Returns:
        Up to k candidates in input order. Fewer when the cap exhausts the list;
        the result is never padded.
    """
    selected: List[ScoredCandidate] = []
    theme_count: Dict[str, int] = {}

    for scored in sorted_scored:
        if len(selected) >= k:
            break
        if theme_count.get(scored.theme, 0) >= max_per_theme:
            continue
        selected.append(scored)
        theme_count[scored.theme] = theme_count.get(scored.theme, 0) + 1

    return selected


def rank(
    query_vector: Mapping[str, float],
    candidates: Sequence[Tuple[Candidate, Mapping[str, float]]],
    k: int,
    max_per_theme: int,
) -> List[ScoredCandidate]:
    """
    Score candidates against the query and select a diverse top-K.

    Args:
        query_vector: TF-IDF vector of the user's documents
        candidates: (candidate, vector) pairs built with the same IDF map
        k: Maximum number of results
        max_per_theme: Per-theme cap

    Returns:
        Ordered list of ScoredCandidate; empty for an empty pool

    Raises:
        VectorizationError: If the query vector is empty
        ValueError: If k or max_per_theme is below 1
    """
    if k < 1:
        raise ValueError(f"k must be >= 1, got {k}")
    if max_per_theme < 1:
        raise ValueError(f"max_per_theme must be >= 1, got {max_per_theme}")
    if not query_vector:
        raise VectorizationError("Query produced no usable terms")
    if not candidates:
        return []

    scored = [
        ScoredCandidate(candidate=candidate, score=cosine_similarity(query_vector, vector))
        for candidate, vector in candidates
    ]
    return select_top_k_diverse(sort_scored(scored), k=k, max_per_theme=max_per_theme)
