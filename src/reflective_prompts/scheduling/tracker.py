"""
Generation tracker: decides whether a background (re)generation may start.

Idle -> Checking -> Generating -> Cooldown -> Idle. The Checking phase is
evaluate(); the Generating phase is bracketed by try_acquire() and
record_success() / record_failure(). Every gate failure is a silent no-op
reported through TriggerDecision, never an exception.
"""

from datetime import datetime, timedelta
from typing import List, Optional

import structlog

from ..clock import Clock, utc_now
from ..config import settings
from ..models.tracker import SkipReason, TrackerState, TriggerDecision, TriggerEvent
from ..storage.stores import TrackerStore

logger = structlog.get_logger(__name__)


class GenerationTracker:
    """
    Per-user cooldown, threshold and single-flight control.

    State lives in the durable tracker table so decisions survive restarts
    and hold across independent processes.
    """

    def __init__(
        self,
        store: Optional[TrackerStore] = None,
        threshold: Optional[int] = None,
        cooldown: Optional[timedelta] = None,
        lock_timeout: Optional[timedelta] = None,
        clock: Clock = utc_now,
    ):
        self.store = store or TrackerStore()
        self.threshold = settings.generation_threshold if threshold is None else threshold
        self.cooldown = (
            timedelta(seconds=settings.generation_cooldown_seconds) if cooldown is None else cooldown
        )
        self.lock_timeout = (
            timedelta(seconds=settings.generation_lock_timeout_seconds)
            if lock_timeout is None
            else lock_timeout
        )
        self.clock = clock
        self.logger = logger.bind(component="generation_tracker")

    def state(self, user_id: str) -> TrackerState:
        return self.store.get(user_id)

    def _lock_is_live(self, state: TrackerState, now: datetime) -> bool:
        if not state.in_flight:
            return False
        if state.in_flight_since is None:
            return False
        return now - state.in_flight_since < self.lock_timeout

    def cooldown_active(self, state: TrackerState, now: Optional[datetime] = None) -> bool:
        """True while the cooldown window since last_generation_at is still open."""
        now = now or self.clock()
        return state.last_generation_at is not None and now - state.last_generation_at < self.cooldown

    def evaluate(
        self,
        user_id: str,
        event: TriggerEvent,
        doc_count: int,
        outstanding_prompts: int = 0,
    ) -> TriggerDecision:
        """
        Checking phase: test every gate except the lock itself.

        Args:
            user_id: User the trigger belongs to
            event: What happened (document created, prompts resolved)
            doc_count: Current number of qualifying documents
            outstanding_prompts: Unresolved prompts currently assigned

        Returns:
            TriggerDecision; should_generate is True only if all gates pass
        """
        now = self.clock()
        state = self.store.get(user_id)
        new_documents = state.new_documents_since_mark(doc_count)

        skip_reason: Optional[SkipReason] = None
        if self._lock_is_live(state, now):
            skip_reason = SkipReason.IN_FLIGHT
        elif new_documents < self.threshold:
            skip_reason = SkipReason.THRESHOLD_NOT_MET
        elif self.cooldown_active(state, now):
            skip_reason = SkipReason.COOLDOWN_ACTIVE
        elif event == TriggerEvent.DOCUMENT_CREATED and outstanding_prompts > 0:
            skip_reason = SkipReason.OUTSTANDING_PROMPTS

        decision = TriggerDecision(
            user_id=user_id,
            event=event,
            should_generate=skip_reason is None,
            doc_count=doc_count,
            new_documents=new_documents,
            skip_reason=skip_reason,
        )

        self.logger.debug(
            "trigger_evaluated",
            user_id=user_id,
            trigger_event=event.value,
            doc_count=doc_count,
            new_documents=new_documents,
            threshold=self.threshold,
            should_generate=decision.should_generate,
            skip_reason=skip_reason.value if skip_reason else None,
        )
        return decision

    def try_acquire(self, user_id: str) -> Optional[str]:
        """
        Take the durable per-user lock.

        Returns:
            Owner token to hand back to release/record_*, or None if another
            job holds the lock
        """
        return self.store.try_acquire(user_id, now=self.clock(), stale_after=self.lock_timeout)

    def release(self, user_id: str, token: str) -> bool:
        """Release the lock without advancing any scheduling state."""
        return self.store.release(user_id, token, success=False)

    def record_success(
        self, user_id: str, token: str, doc_count: int, strategy: Optional[str] = None
    ) -> bool:
        """
        Generating -> Cooldown: release, stamp last_generation_at, move the mark.

        Returns False (and changes nothing) when the lock was taken over while
        the job ran; the newer holder's result wins.
        """
        now = self.clock()
        recorded = self.store.release(
            user_id, token, success=True, now=now, doc_count_mark=doc_count, strategy=strategy
        )
        if not recorded:
            self.logger.warning("generation_result_discarded", user_id=user_id, doc_count=doc_count)
            return False

        self.logger.info(
            "generation_recorded",
            user_id=user_id,
            doc_count_mark=doc_count,
            strategy=strategy,
        )
        return True

    def record_failure(
        self, user_id: str, token: str, error: Optional[BaseException] = None
    ) -> bool:
        """Generating -> Idle: release only, so the next qualifying trigger retries."""
        released = self.store.release(user_id, token, success=False)
        self.logger.warning(
            "generation_failed",
            user_id=user_id,
            error=str(error) if error else None,
            error_type=type(error).__name__ if error else None,
            lock_released=released,
        )
        return released

    def reconcile_stuck_locks(self) -> List[str]:
        """
        Release in_flight locks older than the lock timeout.

        Run on process start: a job abandoned mid-generation is treated as failed.
        """
        released = self.store.reconcile(now=self.clock(), stale_after=self.lock_timeout)
        if released:
            self.logger.warning("stuck_locks_released", user_ids=released, count=len(released))
        else:
            self.logger.debug("no_stuck_locks")
        return released
