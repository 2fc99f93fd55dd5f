# Data models for prompt ranking, artifact caching and generation scheduling

from .ranking_version import RankingVersion
from .documents import Document, qualifying_documents
from .candidates import Candidate, RankingResult, ScoredCandidate
from .artifacts import (
    ArtifactType,
    CachedArtifact,
    CacheState,
    InsightContent,
    InsightTheme,
)
from .tracker import (
    GenerationPhase,
    SkipReason,
    SweepSummary,
    TrackerState,
    TriggerDecision,
    TriggerEvent,
)

__all__ = [
    "RankingVersion",
    "Document",
    "qualifying_documents",
    "Candidate",
    "ScoredCandidate",
    "RankingResult",
    "ArtifactType",
    "CachedArtifact",
    "CacheState",
    "InsightContent",
    "InsightTheme",
    "GenerationPhase",
    "SkipReason",
    "SweepSummary",
    "TrackerState",
    "TriggerDecision",
    "TriggerEvent",
]
