"""Artifact cache with TTL and milestone-gated regeneration."""

from .artifact_cache import ArtifactCache, milestone

__all__ = ["ArtifactCache", "milestone"]
