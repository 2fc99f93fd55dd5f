"""
Artifact models: cached AI insights and the schema oracle output must satisfy.

InsightContent is the contract an untrusted generation oracle response is
validated against before anything is written to the cache.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class ArtifactType(str, Enum):
    """Kinds of cached artifacts."""

    THEME_SUMMARY = "theme_summary"
    MONTHLY_INSIGHTS = "monthly_insights"
    WEEKLY_RECAP = "weekly_recap"
    ANNUAL_REVIEW = "annual_review"
    CUSTOM_QUERY = "custom_query"


class CacheState(str, Enum):
    """Where a (user, artifact type) pair sits in the cache state machine."""

    MISSING = "missing"
    FRESH = "fresh"  # Valid, within TTL, milestone not crossed
    EXPIRED = "expired"  # TTL passed; regenerate regardless of milestone
    MILESTONE_CROSSED = "milestone_crossed"  # Within TTL, regeneration permitted


# ============================================================================
# ORACLE OUTPUT SCHEMA
# ============================================================================

class SourceEntry(BaseModel):
    """Reference to a document that contributed to a theme."""

    date: str = Field(..., description="YYYY-MM-DD")
    title: str = Field(default="")


class InsightTheme(BaseModel):
    """A theme identified across the user's documents."""

    name: str = Field(..., min_length=1, max_length=80)
    icon: str = Field(default="", max_length=16)
    explanation: str = Field(..., min_length=1, max_length=600)
    frequency: str = Field(default="")
    source_entries: List[SourceEntry] = Field(default_factory=list)

    @field_validator("source_entries", mode="before")
    @classmethod
    def reject_string_entries(cls, v):
        """Oracles sometimes return bare strings; only objects with date+title are accepted."""
        if isinstance(v, list):
            for item in v:
                if not isinstance(item, dict):
                    raise ValueError("source_entries must be objects with date and title")
        return v


class Annotation(BaseModel):
    """A significant emotional moment tied to a date."""

    date: str
    summary: str = Field(..., min_length=1)


class InsightContent(BaseModel):
    """Validated insight payload stored as cache content."""

    summary: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    themes: List[InsightTheme] = Field(..., min_length=1, max_length=8)
    annotations: List[Annotation] = Field(default_factory=list)


# ============================================================================
# CACHE RESULT
# ============================================================================

class CachedArtifact(BaseModel):
    """What get_or_generate hands back to callers."""

    content: Dict[str, Any]
    from_cache: bool
    generated_at: datetime
    expires_at: Optional[datetime] = None
    source_doc_count: int = Field(ge=0)
    state: CacheState = Field(description="Cache state observed before serving")
