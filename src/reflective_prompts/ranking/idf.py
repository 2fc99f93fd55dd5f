"""
Smoothed inverse document frequency over a request-scoped corpus.

The corpus is always the documents being compared in one ranking call
(candidate pool + the user's current documents). A fresh TfidfVectorizer is
fitted per call and only its idf weights leave this module; nothing is cached.
"""

from typing import Dict, List, Sequence

from sklearn.feature_extraction.text import TfidfVectorizer


def _pre_tokenized(terms: Sequence[str]) -> List[str]:
    # Documents arrive already normalized
    return list(terms)


def build_idf(corpus: Sequence[Sequence[str]]) -> Dict[str, float]:
    """
    Compute idf(t) = ln((N + 1) / (df(t) + 1)) + 1 for every term in the corpus.

    This is TfidfVectorizer's smooth_idf weighting; the +1 smoothing keeps
    every weight strictly positive, including terms present in all N
    documents (weight exactly 1.0). Empty documents still count towards N.

    Args:
        corpus: One term sequence per document

    Returns:
        Term -> idf weight; empty when the corpus has no terms

    Examples:
        >>> idf = build_idf([["stress", "work"], ["work"]])
        >>> idf["work"]
        1.0
        >>> round(idf["stress"], 4)
        1.4055
    """
    if not any(corpus):
        return {}

    vectorizer = TfidfVectorizer(
        analyzer=_pre_tokenized,
        smooth_idf=True,
        sublinear_tf=False,
        norm=None,
    ).fit(corpus)

    return {
        term: float(weight)
        for term, weight in zip(vectorizer.get_feature_names_out(), vectorizer.idf_)
    }
