"""
Service facade wiring ranking, the artifact cache and background scheduling.

ReflectivePromptService is what an embedding application (or the CLI) talks
to: rank prompts for a user, fetch cached insights, and notify the service
about document creation or prompt completion.
"""

from concurrent.futures import Future
from datetime import timedelta
from typing import List, Optional, Sequence, Union

import structlog
from sqlalchemy.orm import sessionmaker

from .cache.artifact_cache import ArtifactCache
from .clock import Clock, utc_now
from .config import settings
from .generation.oracle import GenerationOracle, create_oracle
from .models.artifacts import ArtifactType, CachedArtifact
from .models.candidates import Candidate, RankingResult
from .models.tracker import SweepSummary, TriggerDecision, TriggerEvent
from .ranking import rank_documents
from .ranking.question_bank import QUESTION_BANK
from .scheduling.scheduler import GenerationScheduler
from .scheduling.tracker import GenerationTracker
from .sources import DocumentSource
from .storage.stores import (
    ArtifactStore,
    AssignmentRecord,
    CandidateStore,
    PromptAssignmentStore,
    TrackerStore,
)
from .version import QUESTION_BANK_VERSION

logger = structlog.get_logger(__name__)

FOLLOW_UP_STRATEGY = "tfidf"


class ReflectivePromptService:
    """
    Entry point for prompt ranking, insight caching and background generation.

    Args:
        documents: Where user documents are read from
        oracle: Generation oracle for insights (default: built lazily from settings)
        session_factory: SQLAlchemy session factory (default: global factory)
        clock: Time source returning naive UTC
        candidate_pool: Candidates to rank (default: built-in question bank)
        use_persisted_candidates: Load the pool from the candidates table when it is not empty
        max_workers: Background thread pool size
        reconcile_on_start: Release stale generation locks during construction
    """

    def __init__(
        self,
        documents: DocumentSource,
        oracle: Optional[GenerationOracle] = None,
        session_factory: Optional[sessionmaker] = None,
        clock: Clock = utc_now,
        candidate_pool: Optional[Sequence[Candidate]] = None,
        use_persisted_candidates: bool = False,
        max_workers: Optional[int] = None,
        reconcile_on_start: bool = True,
    ):
        self.documents = documents
        self.clock = clock
        self._oracle = oracle

        self.artifacts = ArtifactStore(session_factory)
        self.assignments = PromptAssignmentStore(session_factory)
        self.candidates = CandidateStore(session_factory)
        self.tracker = GenerationTracker(TrackerStore(session_factory), clock=clock)

        self.candidate_pool: Sequence[Candidate] = candidate_pool or QUESTION_BANK
        if use_persisted_candidates:
            persisted = self.candidates.load()
            if persisted:
                self.candidate_pool = persisted

        self._cache: Optional[ArtifactCache] = None
        self.scheduler = GenerationScheduler(
            tracker=self.tracker,
            job=self._generate_follow_up_prompts,
            doc_counter=self.documents.count_qualifying,
            outstanding_counter=self.assignments.count_open,
            max_workers=max_workers,
            reconcile_on_start=reconcile_on_start,
        )

        self.logger = logger.bind(component="reflective_prompt_service")

    @property
    def cache(self) -> ArtifactCache:
        if self._cache is None:
            oracle = self._oracle or create_oracle()
            self._cache = ArtifactCache(
                oracle=oracle,
                tracker=self.tracker,
                store=self.artifacts,
                clock=self.clock,
            )
        return self._cache

    # ------------------------------------------------------------------
    # Ranking
    # ------------------------------------------------------------------

    def _recent_documents(self, user_id: str):
        since = self.clock() - timedelta(days=settings.follow_up_lookback_days)
        return self.documents.list_documents(user_id, since=since)

    def rank(
        self,
        user_id: str,
        k: Optional[int] = None,
        max_per_theme: Optional[int] = None,
        exclude_completed: bool = True,
    ) -> RankingResult:
        """
        Rank the candidate pool against the user's recent documents.

        Synchronous and request scoped; never waits on background generation.

        Raises:
            ValidationError: No recent documents
            VectorizationError: Recent documents have no usable terms
        """
        exclude_ids = self.assignments.completed_candidate_ids(user_id) if exclude_completed else None
        return rank_documents(
            self._recent_documents(user_id),
            candidate_pool=self.candidate_pool,
            k=k,
            max_per_theme=max_per_theme,
            exclude_ids=exclude_ids,
        )

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def get_or_generate(
        self,
        user_id: str,
        artifact_type: Union[ArtifactType, str] = ArtifactType.THEME_SUMMARY,
        force_refresh: bool = False,
    ) -> CachedArtifact:
        """Cached insight for the user, regenerated when the cache policy allows."""
        docs = self.documents.list_documents(user_id)
        return self.cache.get_or_generate(user_id, artifact_type, docs, force_refresh=force_refresh)

    # ------------------------------------------------------------------
    # Background generation
    # ------------------------------------------------------------------

    def maybe_trigger_background_generation(
        self, user_id: str, event: Union[TriggerEvent, str] = TriggerEvent.DOCUMENT_CREATED
    ) -> Future:
        """Fire-and-forget trigger; returns immediately."""
        return self.scheduler.maybe_trigger_background_generation(user_id, TriggerEvent(event))

    def _generate_follow_up_prompts(self, user_id: str, decision: TriggerDecision) -> str:
        """
        Background job: re-rank from the lookback window and replace open prompts.

        Prompts the user already answered are left out of the pool.
        """
        result = self.rank(user_id)
        self.assignments.replace_open(user_id, result.scored_candidates, generated_at=self.clock())

        self.logger.info(
            "follow_up_prompts_generated",
            user_id=user_id,
            trigger_event=decision.event.value,
            prompts=len(result.scored_candidates),
            documents_analyzed=result.documents_analyzed,
        )
        return FOLLOW_UP_STRATEGY

    def generate_for_all_users(self, active_days: Optional[int] = None) -> SweepSummary:
        """
        Periodic sweep: run the gated background job for every active user.

        Intended for a weekly cron. Each user goes through the same scheduler
        and tracker gates as event triggers, so a sweep never doubles up with
        a job already running. Open prompts do not block the sweep; it
        replaces them. Blocks until every user has been handled, and one
        user's failure does not stop the others.

        Args:
            active_days: Only users with a qualifying document this recent
                (default: settings.sweep_active_days)

        Returns:
            SweepSummary of generated, skipped, failed and dropped users
        """
        days = settings.sweep_active_days if active_days is None else active_days
        user_ids = self.documents.list_user_ids(active_since=self.clock() - timedelta(days=days))
        self.logger.info("generation_sweep_started", users=len(user_ids), active_days=days)

        futures = [
            self.scheduler.maybe_trigger_background_generation(user_id, TriggerEvent.WEEKLY_SWEEP)
            for user_id in user_ids
        ]

        summary = SweepSummary(total=len(user_ids))
        for future in futures:
            summary.add(future.result())

        self.logger.info(
            "generation_sweep_completed",
            total=summary.total,
            generated=summary.generated,
            failed=summary.failed,
            dropped=summary.dropped,
            skipped=summary.skipped,
        )
        return summary

    # ------------------------------------------------------------------
    # Prompt assignments
    # ------------------------------------------------------------------

    def open_prompts(self, user_id: str) -> List[AssignmentRecord]:
        return self.assignments.list_open(user_id)

    def complete_prompt(self, user_id: str, assignment_id: str) -> bool:
        """
        Resolve a served prompt.

        When it was the last outstanding one, a PROMPTS_RESOLVED trigger is
        fired in the background.

        Returns:
            False if the assignment was unknown or already completed
        """
        completed = self.assignments.complete(user_id, assignment_id, now=self.clock())
        if not completed:
            self.logger.info("prompt_completion_ignored", user_id=user_id, assignment_id=assignment_id)
            return False

        remaining = self.assignments.count_open(user_id)
        self.logger.info("prompt_completed", user_id=user_id, remaining=remaining)
        if remaining == 0:
            self.maybe_trigger_background_generation(user_id, TriggerEvent.PROMPTS_RESOLVED)
        return True

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def seed_candidates(self) -> int:
        """Persist the built-in question bank to the candidates table."""
        return self.candidates.seed(QUESTION_BANK, QUESTION_BANK_VERSION)

    def reconcile(self) -> List[str]:
        """Release stuck generation locks."""
        return self.tracker.reconcile_stuck_locks()

    def purge_artifacts(self) -> int:
        """Delete invalidated and expired cache rows."""
        return self.artifacts.purge_expired(self.clock())

    def close(self, wait: bool = True) -> None:
        self.scheduler.shutdown(wait=wait)
