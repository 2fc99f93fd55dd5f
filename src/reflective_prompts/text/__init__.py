"""
Text normalization module.

Public API for turning raw journal text into normalized terms.
"""

from .normalizer import (
    MIN_TERM_LENGTH,
    NORMALIZER_VERSION,
    IdentityReduction,
    PorterReduction,
    ReductionStrategy,
    SuffixStripper,
    get_reduction_strategy,
    normalize,
    tokenize,
)
from .stopwords import STOPLIST_VERSION, STOPWORDS_EN

__all__ = [
    "normalize",
    "tokenize",
    "ReductionStrategy",
    "SuffixStripper",
    "PorterReduction",
    "IdentityReduction",
    "get_reduction_strategy",
    "MIN_TERM_LENGTH",
    "NORMALIZER_VERSION",
    "STOPLIST_VERSION",
    "STOPWORDS_EN",
]
