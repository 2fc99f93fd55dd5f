"""
TTL + milestone cache for expensive generated artifacts.

Per (user, artifact type) an entry is in one of four states:

- MISSING: nothing valid stored, generate now
- EXPIRED: TTL passed, invalidate and generate now regardless of milestone
- MILESTONE_CROSSED: within TTL, but the qualifying document count moved into
  a higher milestone bucket; regenerate if cooldown and lock allow, otherwise
  serve what is stored
- FRESH: within TTL and same milestone bucket, serve

Regeneration shares the per-user lock with background jobs, so a manual
refresh never runs concurrently with an automatic one.
"""

import time
from datetime import datetime, timedelta
from typing import Optional, Sequence, Union

import structlog
from sqlalchemy.exc import SQLAlchemyError

from ..clock import Clock, utc_now
from ..config import settings
from ..errors import CacheWriteError, GenerationError, LockContentionError, ValidationError
from ..generation.oracle import GenerationOracle, OracleResponse
from ..generation.prompts import get_prompt_version
from ..models.artifacts import ArtifactType, CachedArtifact, CacheState
from ..models.documents import Document, qualifying_documents
from ..scheduling.tracker import GenerationTracker
from ..storage.stores import ArtifactRecord, ArtifactStore

logger = structlog.get_logger(__name__)


def milestone(count: int, every: int) -> int:
    """
    Highest multiple of `every` not above count.

    Examples:
        >>> milestone(5, 3)
        3
        >>> milestone(6, 3)
        6
    """
    return (count // every) * every


class ArtifactCache:
    """
    Serves cached artifacts and regenerates them through the oracle when the
    cache policy allows.

    Args:
        oracle: Generation oracle used on regeneration
        tracker: Shared tracker (per-user lock and cooldown)
        store: Durable artifact store
        ttl: Entry lifetime (default: insights_cache_ttl_hours)
        milestone_every: Milestone size M (default: insights_milestone_every)
        min_documents: Minimum qualifying documents (default: insights_min_documents)
        clock: Time source returning naive UTC
    """

    def __init__(
        self,
        oracle: GenerationOracle,
        tracker: Optional[GenerationTracker] = None,
        store: Optional[ArtifactStore] = None,
        ttl: Optional[timedelta] = None,
        milestone_every: Optional[int] = None,
        min_documents: Optional[int] = None,
        clock: Clock = utc_now,
    ):
        self.oracle = oracle
        self.tracker = tracker or GenerationTracker(clock=clock)
        self.store = store or ArtifactStore()
        self.ttl = timedelta(hours=settings.insights_cache_ttl_hours) if ttl is None else ttl
        self.milestone_every = (
            settings.insights_milestone_every if milestone_every is None else milestone_every
        )
        self.min_documents = (
            settings.insights_min_documents if min_documents is None else min_documents
        )
        self.clock = clock
        self.logger = logger.bind(component="artifact_cache")

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def classify(
        self, entry: Optional[ArtifactRecord], doc_count: int, now: datetime
    ) -> CacheState:
        """Place an entry in the cache state machine."""
        if entry is None:
            return CacheState.MISSING
        if entry.is_expired(now):
            return CacheState.EXPIRED
        if milestone(doc_count, self.milestone_every) > milestone(
            entry.source_doc_count, self.milestone_every
        ):
            return CacheState.MILESTONE_CROSSED
        return CacheState.FRESH

    def _lookup(self, user_id: str, artifact_type: str) -> Optional[ArtifactRecord]:
        try:
            return self.store.get_latest_valid(user_id, artifact_type)
        except SQLAlchemyError as e:
            # An unreadable cache is a miss
            self.logger.error(
                "cache_read_failed",
                user_id=user_id,
                artifact_type=artifact_type,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    def _cooldown_active(self, user_id: str, entry: ArtifactRecord, now: datetime) -> bool:
        if now - entry.generated_at < self.tracker.cooldown:
            return True
        return self.tracker.cooldown_active(self.tracker.state(user_id), now)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_or_generate(
        self,
        user_id: str,
        artifact_type: Union[ArtifactType, str],
        current_docs: Sequence[Document],
        force_refresh: bool = False,
    ) -> CachedArtifact:
        """
        Return the cached artifact or (re)generate it.

        Follow-up answers are excluded before counting documents.

        Args:
            user_id: Owner of the artifact
            artifact_type: Kind of artifact (e.g. theme_summary)
            current_docs: The user's current documents
            force_refresh: Bypass the milestone gate (cooldown and lock still apply)

        Returns:
            CachedArtifact with content and provenance

        Raises:
            ValidationError: Fewer qualifying documents than min_documents
            LockContentionError: Nothing cached and another job holds the lock
            GenerationError: Nothing cached and the oracle failed after retries
        """
        artifact_type = ArtifactType(artifact_type).value
        docs = qualifying_documents(current_docs)
        doc_count = len(docs)

        if doc_count < self.min_documents:
            raise ValidationError(required=self.min_documents, available=doc_count)

        now = self.clock()
        entry = self._lookup(user_id, artifact_type)
        state = self.classify(entry, doc_count, now)

        log = self.logger.bind(user_id=user_id, artifact_type=artifact_type)
        log.debug(
            "cache_state",
            state=state.value,
            doc_count=doc_count,
            force_refresh=force_refresh,
        )

        if state == CacheState.EXPIRED:
            self._expire(entry)
            entry = None

        if entry is None:
            log.info("cache_miss", state=state.value)
            return self._generate_on_miss(user_id, artifact_type, docs, state, now)

        if state == CacheState.FRESH and not force_refresh:
            log.info("cache_hit", source_doc_count=entry.source_doc_count)
            return self._serve(entry, state)

        return self._regenerate_gated(user_id, artifact_type, docs, entry, state, now)

    def invalidate(self, user_id: str, artifact_type: Optional[Union[ArtifactType, str]] = None) -> int:
        """Explicitly invalidate cached entries; returns how many were invalidated."""
        type_value = ArtifactType(artifact_type).value if artifact_type is not None else None
        return self.store.invalidate(user_id, type_value)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def _expire(self, entry: ArtifactRecord) -> None:
        try:
            self.store.mark_invalid(entry.artifact_id)
        except SQLAlchemyError as e:
            self.logger.error(
                "cache_expire_failed",
                artifact_id=entry.artifact_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    def _serve(self, entry: ArtifactRecord, state: CacheState) -> CachedArtifact:
        return CachedArtifact(
            content=entry.content,
            from_cache=True,
            generated_at=entry.generated_at,
            expires_at=entry.expires_at,
            source_doc_count=entry.source_doc_count,
            state=state,
        )

    def _generate_on_miss(
        self,
        user_id: str,
        artifact_type: str,
        docs: Sequence[Document],
        state: CacheState,
        now: datetime,
    ) -> CachedArtifact:
        token = self.tracker.try_acquire(user_id)
        if token is None:
            self.logger.info("cache_miss_lock_contended", user_id=user_id)
            raise LockContentionError(user_id)

        try:
            return self._generate(user_id, artifact_type, docs, state, now)
        finally:
            self.tracker.release(user_id, token)

    def _regenerate_gated(
        self,
        user_id: str,
        artifact_type: str,
        docs: Sequence[Document],
        entry: ArtifactRecord,
        state: CacheState,
        now: datetime,
    ) -> CachedArtifact:
        log = self.logger.bind(user_id=user_id, artifact_type=artifact_type)

        if self._cooldown_active(user_id, entry, now):
            log.info("regeneration_skipped", reason="cooldown_active", state=state.value)
            return self._serve(entry, state)

        token = self.tracker.try_acquire(user_id)
        if token is None:
            log.info("regeneration_skipped", reason="lock_contended", state=state.value)
            return self._serve(entry, state)

        try:
            return self._generate(user_id, artifact_type, docs, state, now)
        except GenerationError as e:
            log.warning(
                "regeneration_failed_serving_cached",
                error=str(e),
                state=state.value,
            )
            return self._serve(entry, state)
        finally:
            self.tracker.release(user_id, token)

    def _generate(
        self,
        user_id: str,
        artifact_type: str,
        docs: Sequence[Document],
        state: CacheState,
        now: datetime,
    ) -> CachedArtifact:
        start_time = time.time()
        response: OracleResponse = self.oracle.generate(docs)
        generation_time_ms = int((time.time() - start_time) * 1000)

        expires_at = now + self.ttl
        try:
            self.store.save(
                user_id=user_id,
                artifact_type=artifact_type,
                content=response.content,
                generated_at=now,
                expires_at=expires_at,
                source_doc_count=len(docs),
                model_version=f"{response.provider}:{response.model}/{get_prompt_version()}",
                generation_time_ms=generation_time_ms,
                prompt_tokens=response.tokens_input,
                completion_tokens=response.tokens_output,
            )
        except CacheWriteError as e:
            # Content is still good; the next successful generation overwrites
            self.logger.error(
                "cache_write_failed",
                user_id=user_id,
                artifact_type=artifact_type,
                error=str(e),
            )

        self.logger.info(
            "artifact_generated",
            user_id=user_id,
            artifact_type=artifact_type,
            state=state.value,
            source_doc_count=len(docs),
            generation_time_ms=generation_time_ms,
        )

        return CachedArtifact(
            content=response.content,
            from_cache=False,
            generated_at=now,
            expires_at=expires_at,
            source_doc_count=len(docs),
            state=state,
        )
