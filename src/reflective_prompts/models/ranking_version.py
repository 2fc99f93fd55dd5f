"""
Ranking version model for deterministic processing.

This module defines the RankingVersion model that tracks the component versions
behind a ranking result: same version parameters + same input = same output.
"""

from pydantic import BaseModel, Field


class RankingVersion(BaseModel):
    """
    Immutable version contract for reproducible rankings.

    Same version parameters guarantee the same ordered output for the same input.
    """

    normalizer_version: str = Field(description="Normalizer algorithm version")
    reduction_strategy: str = Field(description="Suffix reduction strategy name")
    stoplist_version: str = Field(description="English stopwords list version")
    question_bank_version: str = Field(description="Candidate prompt pool version")
    scoring_version: str = Field(description="TF-IDF / cosine scoring version")

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "normalizer_version": "normalizer-1.1.0",
                "reduction_strategy": "suffix",
                "stoplist_version": "stopwords-en-journal-2025.1",
                "question_bank_version": "question-bank-1.0.0",
                "scoring_version": "tfidf-cosine-2.0.0",
            }
        },
    }

    def to_repr(self) -> str:
        """
        Short representation for logging.

        Returns:
            Compact string with the key version components.
        """
        return f"Ranking-{self.normalizer_version}-{self.reduction_strategy}-{self.scoring_version}"
