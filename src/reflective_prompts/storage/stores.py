"""
Stores over the durable tables.

Every store takes an injectable session factory and returns plain records,
never live ORM rows, so callers cannot accidentally hold a session open.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import structlog
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..errors import CacheWriteError
from ..models.candidates import Candidate, ScoredCandidate
from ..models.tracker import TrackerState
from .database import session_scope
from .models import ArtifactRow, CandidateRow, PromptAssignmentRow, TrackerRow

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ArtifactRecord:
    """Detached copy of an ArtifactRow."""

    artifact_id: str
    user_id: str
    artifact_type: str
    content: Dict[str, Any]
    generated_at: datetime
    expires_at: Optional[datetime]
    source_doc_count: int
    is_valid: bool
    model_version: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


@dataclass(frozen=True)
class AssignmentRecord:
    """Detached copy of a PromptAssignmentRow."""

    assignment_id: str
    user_id: str
    candidate_id: str
    question_text: str
    theme: str
    relevance_score: float
    rank_position: int
    generated_at: datetime
    is_completed: bool
    completed_at: Optional[datetime]


def _artifact_record(row: ArtifactRow) -> ArtifactRecord:
    return ArtifactRecord(
        artifact_id=row.artifact_id,
        user_id=row.user_id,
        artifact_type=row.artifact_type,
        content=row.content,
        generated_at=row.generated_at,
        expires_at=row.expires_at,
        source_doc_count=row.source_doc_count,
        is_valid=row.is_valid,
        model_version=row.model_version,
    )


def _tracker_state(row: TrackerRow) -> TrackerState:
    return TrackerState(
        user_id=row.user_id,
        last_generation_at=row.last_generation_at,
        last_source_doc_count_mark=row.last_source_doc_count_mark or 0,
        in_flight=bool(row.in_flight),
        in_flight_since=row.in_flight_since,
        strategy=row.strategy,
    )


def _assignment_record(row: PromptAssignmentRow) -> AssignmentRecord:
    return AssignmentRecord(
        assignment_id=row.assignment_id,
        user_id=row.user_id,
        candidate_id=row.candidate_id,
        question_text=row.question_text,
        theme=row.theme,
        relevance_score=row.relevance_score,
        rank_position=row.rank_position,
        generated_at=row.generated_at,
        is_completed=bool(row.is_completed),
        completed_at=row.completed_at,
    )


# ============================================================================
# ARTIFACTS
# ============================================================================

class ArtifactStore:
    """Cache entries for expensive artifacts, keyed by (user, artifact type)."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory

    def get_latest_valid(self, user_id: str, artifact_type: str) -> Optional[ArtifactRecord]:
        """Newest row still flagged valid, or None."""
        with session_scope(self.session_factory) as session:
            row = (
                session.query(ArtifactRow)
                .filter(
                    ArtifactRow.user_id == user_id,
                    ArtifactRow.artifact_type == artifact_type,
                    ArtifactRow.is_valid.is_(True),
                )
                .order_by(ArtifactRow.generated_at.desc())
                .first()
            )
            return _artifact_record(row) if row is not None else None

    def save(
        self,
        user_id: str,
        artifact_type: str,
        content: Dict[str, Any],
        generated_at: datetime,
        expires_at: Optional[datetime],
        source_doc_count: int,
        model_version: Optional[str] = None,
        generation_time_ms: Optional[int] = None,
        prompt_tokens: Optional[int] = None,
        completion_tokens: Optional[int] = None,
    ) -> ArtifactRecord:
        """
        Insert a new valid entry and invalidate every older one in one transaction.

        Raises:
            CacheWriteError: If the database write fails
        """
        artifact_id = str(uuid.uuid4())

        try:
            with session_scope(self.session_factory) as session:
                invalidated = (
                    session.query(ArtifactRow)
                    .filter(
                        ArtifactRow.user_id == user_id,
                        ArtifactRow.artifact_type == artifact_type,
                        ArtifactRow.is_valid.is_(True),
                    )
                    .update({"is_valid": False}, synchronize_session=False)
                )

                row = ArtifactRow(
                    artifact_id=artifact_id,
                    user_id=user_id,
                    artifact_type=artifact_type,
                    content=content,
                    generated_at=generated_at,
                    expires_at=expires_at,
                    source_doc_count=source_doc_count,
                    is_valid=True,
                    model_version=model_version,
                    generation_time_ms=generation_time_ms,
                    prompt_tokens=prompt_tokens,
                    completion_tokens=completion_tokens,
                )
                session.add(row)
                session.flush()
                record = _artifact_record(row)

        except SQLAlchemyError as e:
            logger.error(
                "artifact_save_failed",
                user_id=user_id,
                artifact_type=artifact_type,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise CacheWriteError(f"Failed to cache {artifact_type} for user {user_id}") from e

        logger.info(
            "artifact_saved",
            user_id=user_id,
            artifact_type=artifact_type,
            artifact_id=artifact_id,
            source_doc_count=source_doc_count,
            invalidated=invalidated,
        )
        return record

    def mark_invalid(self, artifact_id: str) -> bool:
        """Flip one entry to invalid. Returns False if it was already invalid or missing."""
        with session_scope(self.session_factory) as session:
            updated = (
                session.query(ArtifactRow)
                .filter(ArtifactRow.artifact_id == artifact_id, ArtifactRow.is_valid.is_(True))
                .update({"is_valid": False}, synchronize_session=False)
            )
        return updated > 0

    def invalidate(self, user_id: str, artifact_type: Optional[str] = None) -> int:
        """
        Invalidate a user's entries (all types unless artifact_type is given).

        Returns:
            Number of entries invalidated
        """
        with session_scope(self.session_factory) as session:
            query = session.query(ArtifactRow).filter(
                ArtifactRow.user_id == user_id, ArtifactRow.is_valid.is_(True)
            )
            if artifact_type is not None:
                query = query.filter(ArtifactRow.artifact_type == artifact_type)
            updated = query.update({"is_valid": False}, synchronize_session=False)

        logger.info(
            "artifacts_invalidated", user_id=user_id, artifact_type=artifact_type, count=updated
        )
        return updated

    def purge_expired(self, now: datetime) -> int:
        """Delete invalid rows and rows whose TTL has passed."""
        with session_scope(self.session_factory) as session:
            deleted = (
                session.query(ArtifactRow)
                .filter(or_(ArtifactRow.is_valid.is_(False), ArtifactRow.expires_at < now))
                .delete(synchronize_session=False)
            )

        logger.info("artifacts_purged", count=deleted)
        return deleted


# ============================================================================
# GENERATION TRACKER
# ============================================================================

class TrackerStore:
    """
    Durable per-user tracker rows.

    try_acquire is a compare-and-set on in_flight: the UPDATE only matches when
    the row is free (or its lock went stale), so two processes racing on the
    same user cannot both see a rowcount of 1. The winner gets an owner token;
    release is a no-op for any other token.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory

    def get(self, user_id: str) -> TrackerState:
        """Tracker state for a user; a default state if no row exists yet."""
        with session_scope(self.session_factory) as session:
            row = session.get(TrackerRow, user_id)
            return _tracker_state(row) if row is not None else TrackerState(user_id=user_id)

    def _ensure_row(self, user_id: str) -> None:
        try:
            with session_scope(self.session_factory) as session:
                if session.get(TrackerRow, user_id) is None:
                    session.add(TrackerRow(user_id=user_id, in_flight=False))
        except IntegrityError:
            # Another worker inserted the row first
            logger.debug("tracker_row_exists", user_id=user_id)

    def try_acquire(self, user_id: str, now: datetime, stale_after: timedelta) -> Optional[str]:
        """
        Set in_flight if nobody holds it (or the holder is older than stale_after).

        Returns:
            A fresh owner token if this caller now holds the lock, else None.
            release() only acts while the row still carries that token.
        """
        self._ensure_row(user_id)
        stale_before = now - stale_after
        token = str(uuid.uuid4())

        with session_scope(self.session_factory) as session:
            updated = (
                session.query(TrackerRow)
                .filter(
                    TrackerRow.user_id == user_id,
                    or_(
                        TrackerRow.in_flight.is_(False),
                        TrackerRow.in_flight_since.is_(None),
                        TrackerRow.in_flight_since < stale_before,
                    ),
                )
                .update(
                    {"in_flight": True, "in_flight_since": now, "lock_token": token},
                    synchronize_session=False,
                )
            )

        acquired = updated == 1
        logger.debug("tracker_lock_attempt", user_id=user_id, acquired=acquired)
        return token if acquired else None

    def release(
        self,
        user_id: str,
        token: Optional[str],
        success: bool,
        now: Optional[datetime] = None,
        doc_count_mark: Optional[int] = None,
        strategy: Optional[str] = None,
    ) -> bool:
        """
        Clear in_flight. On success also advance last_generation_at and the mark.

        Nothing changes unless the row still carries token; a holder whose
        stale lock was taken over must not touch its successor's state.

        Returns:
            True if the row was updated
        """
        if token is None:
            # == None would compile to IS NULL and match a free row
            logger.warning("tracker_release_without_token", user_id=user_id)
            return False

        values: Dict[str, Any] = {"in_flight": False, "in_flight_since": None, "lock_token": None}
        if success:
            values["last_generation_at"] = now
            if doc_count_mark is not None:
                values["last_source_doc_count_mark"] = doc_count_mark
            if strategy is not None:
                values["strategy"] = strategy

        with session_scope(self.session_factory) as session:
            updated = (
                session.query(TrackerRow)
                .filter(TrackerRow.user_id == user_id, TrackerRow.lock_token == token)
                .update(values, synchronize_session=False)
            )

        if updated != 1:
            logger.warning("tracker_lock_lost", user_id=user_id, success=success)
            return False

        logger.debug("tracker_lock_released", user_id=user_id, success=success)
        return True

    def reconcile(self, now: datetime, stale_after: timedelta) -> List[str]:
        """
        Release in_flight rows held longer than stale_after.

        Returns:
            User IDs whose locks were released
        """
        stale_before = now - stale_after

        with session_scope(self.session_factory) as session:
            stuck = (
                session.query(TrackerRow.user_id)
                .filter(
                    TrackerRow.in_flight.is_(True),
                    or_(
                        TrackerRow.in_flight_since.is_(None),
                        TrackerRow.in_flight_since < stale_before,
                    ),
                )
                .all()
            )
            user_ids = [user_id for (user_id,) in stuck]

            if user_ids:
                session.query(TrackerRow).filter(TrackerRow.user_id.in_(user_ids)).update(
                    {"in_flight": False, "in_flight_since": None, "lock_token": None},
                    synchronize_session=False,
                )

        return user_ids


# ============================================================================
# PROMPT ASSIGNMENTS
# ============================================================================

class PromptAssignmentStore:
    """Ranked prompts served to users and their completion state."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory

    def replace_open(
        self, user_id: str, selected: Sequence[ScoredCandidate], generated_at: datetime
    ) -> List[AssignmentRecord]:
        """Drop the user's unanswered prompts and store a new ranked set."""
        with session_scope(self.session_factory) as session:
            removed = (
                session.query(PromptAssignmentRow)
                .filter(
                    PromptAssignmentRow.user_id == user_id,
                    PromptAssignmentRow.is_completed.is_(False),
                )
                .delete(synchronize_session=False)
            )

            rows = []
            for position, scored in enumerate(selected, start=1):
                row = PromptAssignmentRow(
                    assignment_id=str(uuid.uuid4()),
                    user_id=user_id,
                    candidate_id=scored.candidate_id,
                    question_text=scored.candidate.display_text,
                    theme=scored.theme,
                    relevance_score=scored.score,
                    rank_position=position,
                    generated_at=generated_at,
                    is_completed=False,
                )
                session.add(row)
                rows.append(row)

            session.flush()
            records = [_assignment_record(row) for row in rows]

        logger.info(
            "prompt_assignments_replaced",
            user_id=user_id,
            removed=removed,
            assigned=[r.candidate_id for r in records],
        )
        return records

    def list_open(self, user_id: str) -> List[AssignmentRecord]:
        with session_scope(self.session_factory) as session:
            rows = (
                session.query(PromptAssignmentRow)
                .filter(
                    PromptAssignmentRow.user_id == user_id,
                    PromptAssignmentRow.is_completed.is_(False),
                )
                .order_by(PromptAssignmentRow.rank_position)
                .all()
            )
            return [_assignment_record(row) for row in rows]

    def count_open(self, user_id: str) -> int:
        with session_scope(self.session_factory) as session:
            return (
                session.query(PromptAssignmentRow)
                .filter(
                    PromptAssignmentRow.user_id == user_id,
                    PromptAssignmentRow.is_completed.is_(False),
                )
                .count()
            )

    def complete(self, user_id: str, assignment_id: str, now: datetime) -> bool:
        """
        Mark an open assignment answered.

        Returns:
            False if the assignment does not exist, belongs to someone else, or
            was already completed
        """
        with session_scope(self.session_factory) as session:
            updated = (
                session.query(PromptAssignmentRow)
                .filter(
                    PromptAssignmentRow.assignment_id == assignment_id,
                    PromptAssignmentRow.user_id == user_id,
                    PromptAssignmentRow.is_completed.is_(False),
                )
                .update(
                    {"is_completed": True, "completed_at": now},
                    synchronize_session=False,
                )
            )
        return updated == 1

    def completed_candidate_ids(self, user_id: str) -> Set[str]:
        """Candidate IDs the user has already answered."""
        with session_scope(self.session_factory) as session:
            rows = (
                session.query(PromptAssignmentRow.candidate_id)
                .filter(
                    PromptAssignmentRow.user_id == user_id,
                    PromptAssignmentRow.is_completed.is_(True),
                )
                .distinct()
                .all()
            )
            return {candidate_id for (candidate_id,) in rows}


# ============================================================================
# CANDIDATES
# ============================================================================

class CandidateStore:
    """Persisted candidate pool, seeded from the built-in question bank."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory

    def seed(self, candidates: Sequence[Candidate], bank_version: str) -> int:
        """
        Upsert candidates by ID.

        Returns:
            Number of candidates written
        """
        with session_scope(self.session_factory) as session:
            for candidate in candidates:
                session.merge(
                    CandidateRow(
                        candidate_id=candidate.candidate_id,
                        display_text=candidate.display_text,
                        theme=candidate.theme,
                        keyword_text=candidate.keyword_text,
                        emotional_tone=candidate.emotional_tone,
                        depth=candidate.depth,
                        bank_version=bank_version,
                    )
                )

        logger.info("candidates_seeded", count=len(candidates), bank_version=bank_version)
        return len(candidates)

    def load(self) -> Tuple[Candidate, ...]:
        """All persisted candidates, ordered by ID. Built once per call."""
        with session_scope(self.session_factory) as session:
            rows = session.query(CandidateRow).order_by(CandidateRow.candidate_id).all()
            return tuple(
                Candidate(
                    candidate_id=row.candidate_id,
                    display_text=row.display_text,
                    theme=row.theme,
                    keyword_text=row.keyword_text,
                    emotional_tone=row.emotional_tone,
                    depth=row.depth,
                )
                for row in rows
            )
