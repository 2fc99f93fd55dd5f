"""
Reflective prompt ranking with cached AI insights.

Scores a fixed pool of reflective prompts against a user's recent journal
entries, caches expensive insight artifacts behind a TTL + milestone policy,
and schedules background regeneration with per-user single-flight control.
"""

from .version import PACKAGE_VERSION as __version__

__all__ = ["__version__"]
