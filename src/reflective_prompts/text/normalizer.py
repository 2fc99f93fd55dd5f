"""
Text normalizer turning raw journal text into a sequence of terms.

Steps:
- Lowercase
- Replace every non-alphanumeric run with whitespace and split
- Drop short tokens and stopwords
- Apply a pluggable reduction strategy (suffix stripping by default)

The default SuffixStripper is a heuristic, not a linguistically correct
stemmer; PorterReduction swaps in NLTK's Porter stemmer without changing any
other component's contract.
"""

import re
from abc import ABC, abstractmethod
from typing import AbstractSet, List, Optional, Tuple

from nltk.stem import PorterStemmer

from .stopwords import STOPWORDS_EN

# Version for audit trail
NORMALIZER_VERSION = "normalizer-1.1.0"

# Minimum surface token length to keep
MIN_TERM_LENGTH = 3

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


# ============================================================================
# REDUCTION STRATEGIES
# ============================================================================

class ReductionStrategy(ABC):
    """Maps a surface token to its reduced form."""

    name: str = "abstract"

    @abstractmethod
    def reduce(self, token: str) -> str:
        """Return the reduced form of a lowercase token."""


class IdentityReduction(ReductionStrategy):
    """No reduction."""

    name = "none"

    def reduce(self, token: str) -> str:
        return token


class SuffixStripper(ReductionStrategy):
    """
    Ordered suffix stripping for common English inflections.

    The first matching rule wins. Each rule only fires above a minimum word
    length so short words keep their shape.

    Examples:
        >>> SuffixStripper().reduce("worries")
        'worry'
        >>> SuffixStripper().reduce("deadlines")
        'deadline'
        >>> SuffixStripper().reduce("stressed")
        'stress'
    """

    name = "suffix"

    # (suffix, word must be longer than, replacement)
    RULES: Tuple[Tuple[str, int, str], ...] = (
        ("ies", 5, "y"),  # worries -> worry
        ("ing", 6, ""),  # working -> work
        ("ed", 5, ""),  # worked -> work
        ("ful", 6, ""),  # stressful -> stress
        ("ness", 7, ""),  # happiness -> happi
        ("ly", 5, ""),  # quickly -> quick
        ("ous", 6, ""),  # anxious -> anxi
        ("ive", 6, ""),  # creative -> creat
        ("er", 5, ""),  # worker -> work
        ("est", 6, ""),  # hardest -> hard
        ("s", 4, ""),  # deadlines -> deadline
    )

    # Plural rule must not eat the tail of these endings (stress, focus, crisis)
    PROTECTED_S_ENDINGS: Tuple[str, ...] = ("ss", "us", "is")

    def reduce(self, token: str) -> str:
        for suffix, min_length, replacement in self.RULES:
            if not token.endswith(suffix) or len(token) <= min_length:
                continue
            if suffix == "s" and token.endswith(self.PROTECTED_S_ENDINGS):
                return token
            return token[: -len(suffix)] + replacement
        return token


# Singleton for the NLTK stemmer
_porter_stemmer: Optional[PorterStemmer] = None


def get_porter_stemmer() -> PorterStemmer:
    """
    Get or initialize the NLTK Porter stemmer (singleton pattern).

    Returns:
        Shared PorterStemmer instance
    """
    global _porter_stemmer
    if _porter_stemmer is None:
        _porter_stemmer = PorterStemmer()
    return _porter_stemmer


class PorterReduction(ReductionStrategy):
    """Standard Porter stemming via NLTK."""

    name = "porter"

    def reduce(self, token: str) -> str:
        return get_porter_stemmer().stem(token)


_STRATEGIES = {
    SuffixStripper.name: SuffixStripper,
    PorterReduction.name: PorterReduction,
    IdentityReduction.name: IdentityReduction,
}


def get_reduction_strategy(name: str) -> ReductionStrategy:
    """
    Build a reduction strategy by name.

    Args:
        name: "suffix", "porter" or "none"

    Returns:
        ReductionStrategy instance

    Raises:
        ValueError: If the name is unknown
    """
    try:
        return _STRATEGIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown normalizer strategy: {name}. Supported: {sorted(_STRATEGIES)}"
        ) from None


# ============================================================================
# NORMALIZATION
# ============================================================================

def tokenize(text: str) -> List[str]:
    """
    Lowercase and split text on non-alphanumeric runs.

    Examples:
        >>> tokenize("Work deadlines, again!")
        ['work', 'deadlines', 'again']
    """
    if not text:
        return []
    return _NON_ALNUM.sub(" ", text.lower()).split()


def normalize(
    text: str,
    strategy: Optional[ReductionStrategy] = None,
    min_length: int = MIN_TERM_LENGTH,
    stopwords: Optional[AbstractSet[str]] = None,
) -> List[str]:
    """
    Turn raw text into a sequence of normalized terms.

    A token is dropped when its surface form is shorter than min_length or is a
    stopword, or when its reduced form is a stopword. Order and repetitions are
    preserved so callers can count term frequency.

    Args:
        text: Raw text (any case, any punctuation)
        strategy: Reduction strategy (default: SuffixStripper)
        min_length: Minimum surface token length
        stopwords: Stopword set (default: STOPWORDS_EN)

    Returns:
        List of terms; empty for empty or all-stopword input

    Examples:
        >>> normalize("I feel stressed about work deadlines")
        ['stress', 'work', 'deadline']
        >>> normalize("the and of")
        []
    """
    if strategy is None:
        strategy = SuffixStripper()
    if stopwords is None:
        stopwords = STOPWORDS_EN

    terms: List[str] = []
    for token in tokenize(text):
        if len(token) < min_length or token in stopwords:
            continue
        reduced = strategy.reduce(token)
        if not reduced or reduced in stopwords:
            continue
        terms.append(reduced)
    return terms
