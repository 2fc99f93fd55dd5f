"""
Exception hierarchy for the reflective prompts package.

Only ValidationError and VectorizationError are meant to reach end users. The
remaining errors are raised at internal seams and absorbed by the cache or the
background scheduler, which retry on the next natural trigger.
"""


class ReflectivePromptsError(Exception):
    """Base class for all package errors."""


class ValidationError(ReflectivePromptsError):
    """
    Not enough source content to produce a result.

    Carries the required and available counts so callers can render an
    actionable message ("need N more entries").
    """

    def __init__(self, required: int, available: int, what: str = "entries"):
        self.required = required
        self.available = available
        self.missing = max(required - available, 0)
        super().__init__(
            f"Need {self.missing} more {what} (have {available}, minimum {required})"
        )


class VectorizationError(ReflectivePromptsError):
    """Normalized text produced no usable terms."""


class GenerationError(ReflectivePromptsError):
    """Generation oracle failed, timed out, or returned malformed output."""


class CacheWriteError(ReflectivePromptsError):
    """Persisting a freshly generated artifact failed."""


class LockContentionError(ReflectivePromptsError):
    """Another generation job for the same user is already in flight."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Generation already in progress for user {user_id}")
