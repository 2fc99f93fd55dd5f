"""
Version constants for the prompt ranking and insight generation pipeline.

This module defines the version constants used throughout the package to ensure
deterministic processing and a complete audit trail on cached artifacts.
"""

from .models.ranking_version import RankingVersion
from .text.normalizer import NORMALIZER_VERSION
from .text.stopwords import STOPLIST_VERSION

PACKAGE_VERSION = "1.0.0"

# Component versions (update these when implementations change)
QUESTION_BANK_VERSION = "question-bank-1.0.0"
SCORING_VERSION = "tfidf-cosine-2.0.0"
INSIGHT_PROMPT_VERSION = "insight-prompt-v1.2"

__all__ = [
    "PACKAGE_VERSION",
    "NORMALIZER_VERSION",
    "STOPLIST_VERSION",
    "QUESTION_BANK_VERSION",
    "SCORING_VERSION",
    "INSIGHT_PROMPT_VERSION",
    "get_current_ranking_version",
]


def get_current_ranking_version(reduction_strategy: str = "suffix") -> RankingVersion:
    """
    Get current ranking version configuration.

    Args:
        reduction_strategy: Name of the normalizer reduction strategy in use

    Returns:
        RankingVersion instance with current versions
    """
    return RankingVersion(
        normalizer_version=NORMALIZER_VERSION,
        reduction_strategy=reduction_strategy,
        stoplist_version=STOPLIST_VERSION,
        question_bank_version=QUESTION_BANK_VERSION,
        scoring_version=SCORING_VERSION,
    )
