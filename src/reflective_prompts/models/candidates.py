"""
Data models for candidate prompts and ranking results.

A Candidate is built once when the question bank is loaded and never mutated;
vectors derived from it are request-scoped and live only inside a ranking call.
"""

from typing import List, Literal

from pydantic import BaseModel, Field

from .ranking_version import RankingVersion


EmotionalTone = Literal["reflective", "growth", "processing", "gratitude", "challenge"]
PromptDepth = Literal["light", "medium", "deep"]


class Candidate(BaseModel):
    """
    A predefined reflective prompt eligible for ranking.

    keyword_text is the precomputed keyword soup used for matching, kept
    separate from the text shown to the user.
    """

    candidate_id: str = Field(description="Stable prompt ID, also the ranking tie-break key")
    display_text: str = Field(description="Prompt text shown to the user")
    theme: str = Field(description="Primary theme tag, used by the diversity constraint")
    keyword_text: str = Field(default="", description="Space-separated matching keywords")
    emotional_tone: EmotionalTone = Field(default="reflective")
    depth: PromptDepth = Field(default="medium")

    model_config = {"frozen": True}

    @property
    def ranking_text(self) -> str:
        """Text fed to the normalizer: display text plus keyword soup."""
        return f"{self.display_text} {self.keyword_text}".strip()


class ScoredCandidate(BaseModel):
    """A candidate with its cosine similarity against the query."""

    candidate: Candidate
    score: float = Field(ge=0.0, le=1.0, description="Cosine similarity in [0, 1]")

    model_config = {"frozen": True}

    @property
    def candidate_id(self) -> str:
        return self.candidate.candidate_id

    @property
    def theme(self) -> str:
        return self.candidate.theme


class RankingResult(BaseModel):
    """
    Complete result of ranking the candidate pool against a user's documents.

    Includes the ordered selection plus processing metadata.
    """

    scored_candidates: List[ScoredCandidate] = Field(default_factory=list)
    ranking_version: RankingVersion

    # Parameters
    k: int = Field(ge=1)
    max_per_theme: int = Field(ge=1)

    # Statistics
    documents_analyzed: int = Field(ge=0)
    query_term_count: int = Field(ge=0)
    vocabulary_size: int = Field(ge=0, description="Distinct terms in the request corpus")
    candidate_pool_size: int = Field(ge=0)
    processing_time_ms: float = Field(ge=0.0)
