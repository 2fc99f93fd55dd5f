"""
SQLAlchemy models for durable state.

Tracker rows and artifact rows are the only shared mutable resources; both
live here so they survive process restarts.
"""

from sqlalchemy import JSON, Boolean, Column, Float, Index, Integer, String, TIMESTAMP
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class CandidateRow(Base):
    """Persisted copy of the candidate prompt pool."""

    __tablename__ = "candidates"

    candidate_id = Column(String, primary_key=True)  # e.g., "q002"
    display_text = Column(String, nullable=False)
    theme = Column(String, nullable=False)
    keyword_text = Column(String, nullable=False, default="")
    emotional_tone = Column(String, nullable=False, default="reflective")
    depth = Column(String, nullable=False, default="medium")
    bank_version = Column(String, nullable=False)
    created_at = Column(TIMESTAMP, server_default=func.now())

    __table_args__ = (Index("idx_candidates_theme", "theme"),)

    def __repr__(self):
        return f"<CandidateRow(candidate_id={self.candidate_id}, theme={self.theme})>"


class ArtifactRow(Base):
    """
    Cached expensive artifact (AI insight) for one user and artifact type.

    is_valid only moves from True to False. A regeneration inserts a new row
    and invalidates the previous ones.
    """

    __tablename__ = "artifacts"

    artifact_id = Column(String, primary_key=True)  # UUID
    user_id = Column(String, nullable=False)
    artifact_type = Column(String, nullable=False)  # theme_summary | weekly_recap | ...
    content = Column(JSON, nullable=False)

    # Cache invalidation tracking
    generated_at = Column(TIMESTAMP, nullable=False)
    expires_at = Column(TIMESTAMP, nullable=True)
    source_doc_count = Column(Integer, nullable=False, default=0)
    is_valid = Column(Boolean, nullable=False, default=True)

    # Generation metadata
    model_version = Column(String, nullable=True)
    generation_time_ms = Column(Integer, nullable=True)
    prompt_tokens = Column(Integer, nullable=True)
    completion_tokens = Column(Integer, nullable=True)

    created_at = Column(TIMESTAMP, server_default=func.now())

    __table_args__ = (
        Index("idx_artifacts_lookup", "user_id", "artifact_type", "is_valid"),
        Index("idx_artifacts_expires", "expires_at"),
    )

    def __repr__(self):
        return (
            f"<ArtifactRow(artifact_id={self.artifact_id}, user_id={self.user_id}, "
            f"type={self.artifact_type}, valid={self.is_valid})>"
        )


class TrackerRow(Base):
    """
    Per-user background generation state.

    in_flight is the durable half of the single-flight lock; in_flight_since
    lets a restarted process detect and release abandoned jobs. lock_token
    names the current holder, so a job whose lock was taken over cannot
    release or advance the row on behalf of its successor.
    """

    __tablename__ = "generation_tracker"

    user_id = Column(String, primary_key=True)
    last_generation_at = Column(TIMESTAMP, nullable=True)
    last_source_doc_count_mark = Column(Integer, nullable=False, default=0)
    in_flight = Column(Boolean, nullable=False, default=False)
    in_flight_since = Column(TIMESTAMP, nullable=True)
    lock_token = Column(String(36), nullable=True)  # Holder of the current lock
    strategy = Column(String, nullable=True)  # Last successful job kind
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    __table_args__ = (Index("idx_tracker_in_flight", "in_flight"),)

    def __repr__(self):
        return f"<TrackerRow(user_id={self.user_id}, in_flight={self.in_flight})>"


class PromptAssignmentRow(Base):
    """A ranked prompt served to a user, open until the user answers it."""

    __tablename__ = "prompt_assignments"

    assignment_id = Column(String, primary_key=True)  # UUID
    user_id = Column(String, nullable=False)
    candidate_id = Column(String, nullable=False)
    question_text = Column(String, nullable=False)
    theme = Column(String, nullable=False)
    relevance_score = Column(Float, nullable=False)
    rank_position = Column(Integer, nullable=False)
    generated_at = Column(TIMESTAMP, nullable=False)
    is_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(TIMESTAMP, nullable=True)

    __table_args__ = (
        Index("idx_assignments_user_open", "user_id", "is_completed"),
        Index("idx_assignments_candidate", "user_id", "candidate_id"),
    )

    def __repr__(self):
        return (
            f"<PromptAssignmentRow(assignment_id={self.assignment_id}, "
            f"candidate_id={self.candidate_id}, completed={self.is_completed})>"
        )
