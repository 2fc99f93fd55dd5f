"""Persistence module.

Provides SQLAlchemy models for the artifact cache, generation tracker,
prompt assignments and candidate pool, plus session management and stores.
"""

from .database import (
    build_engine,
    create_all_tables,
    drop_all_tables,
    get_engine,
    get_session_factory,
    reset_engine,
    session_scope,
)
from .models import ArtifactRow, Base, CandidateRow, PromptAssignmentRow, TrackerRow
from .stores import (
    ArtifactRecord,
    ArtifactStore,
    AssignmentRecord,
    CandidateStore,
    PromptAssignmentStore,
    TrackerStore,
)

__all__ = [
    # Database models
    "Base",
    "ArtifactRow",
    "CandidateRow",
    "PromptAssignmentRow",
    "TrackerRow",
    # Database connection
    "build_engine",
    "get_engine",
    "get_session_factory",
    "reset_engine",
    "session_scope",
    "create_all_tables",
    "drop_all_tables",
    # Stores
    "ArtifactRecord",
    "ArtifactStore",
    "AssignmentRecord",
    "CandidateStore",
    "PromptAssignmentStore",
    "TrackerStore",
]
