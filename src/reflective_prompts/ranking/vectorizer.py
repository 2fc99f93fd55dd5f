"""Sparse TF-IDF vectors over a request-scoped IDF map."""

from collections import Counter
from typing import Dict, Mapping, Sequence

Vector = Dict[str, float]


def vectorize(terms: Sequence[str], idf: Mapping[str, float]) -> Vector:
    """
    Build a sparse term -> weight vector.

    Term frequency is the raw count within the sequence and weight = tf * idf.
    Terms missing from the IDF map are out of vocabulary and ignored.

    Examples:
        >>> vectorize(["work", "work", "rest"], {"work": 1.5})
        {'work': 3.0}
    """
    counts = Counter(terms)
    return {term: tf * idf[term] for term, tf in counts.items() if term in idf}
