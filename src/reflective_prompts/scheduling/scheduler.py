"""
Fire-and-forget background generation scheduler.

Triggers are handed to a thread pool and the caller returns immediately.
Within one process a per-user threading.Lock serializes jobs; across
processes the durable in_flight row does. A trigger that finds either lock
held is dropped, not queued.
"""

import threading
import weakref
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from typing import Callable, Dict, Optional

import structlog

from ..config import settings
from ..models.tracker import SkipReason, TriggerDecision, TriggerEvent
from .tracker import GenerationTracker

logger = structlog.get_logger(__name__)

# job(user_id, decision) -> strategy name recorded on success
GenerationJob = Callable[[str, TriggerDecision], Optional[str]]
Counter = Callable[[str], int]


class GenerationScheduler:
    """
    Runs a generation job per user when the tracker's gates allow it.

    Args:
        tracker: GenerationTracker holding the durable state
        job: Work to run once the lock is held; raising marks the run failed
        doc_counter: Returns the user's current qualifying document count
        outstanding_counter: Returns the user's unresolved prompt count
        max_workers: Thread pool size
        reconcile_on_start: Release stale in_flight rows before accepting work
    """

    def __init__(
        self,
        tracker: GenerationTracker,
        job: GenerationJob,
        doc_counter: Counter,
        outstanding_counter: Optional[Counter] = None,
        max_workers: Optional[int] = None,
        reconcile_on_start: bool = True,
    ):
        self.tracker = tracker
        self.job = job
        self.doc_counter = doc_counter
        self.outstanding_counter = outstanding_counter or (lambda user_id: 0)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.generation_max_workers,
            thread_name_prefix="generation",
        )
        # An entry disappears once no running job references its lock
        self._user_locks: "weakref.WeakValueDictionary[str, threading.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._registry_lock = threading.Lock()
        self._futures: Dict[str, Future] = {}
        self.logger = logger.bind(component="generation_scheduler")

        if reconcile_on_start:
            self.tracker.reconcile_stuck_locks()

    def _user_lock(self, user_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._user_locks.get(user_id)
            if lock is None:
                lock = threading.Lock()
                self._user_locks[user_id] = lock
            return lock

    def maybe_trigger_background_generation(
        self, user_id: str, event: TriggerEvent
    ) -> Future:
        """
        Submit a trigger and return at once.

        The returned future resolves to the TriggerDecision (or None if the
        trigger was dropped before evaluation). Callers are not expected to
        wait on it; it never raises.
        """
        future = self._executor.submit(self._run, user_id, event)
        with self._registry_lock:
            self._futures[user_id] = future
        future.add_done_callback(lambda f, uid=user_id: self._forget(uid, f))

        self.logger.debug("generation_trigger_submitted", user_id=user_id, trigger_event=event.value)
        return future

    def _forget(self, user_id: str, future: Future) -> None:
        with self._registry_lock:
            if self._futures.get(user_id) is future:
                del self._futures[user_id]

    def _run(self, user_id: str, event: TriggerEvent) -> Optional[TriggerDecision]:
        user_lock = self._user_lock(user_id)
        if not user_lock.acquire(blocking=False):
            self.logger.debug("generation_trigger_dropped", user_id=user_id, reason="in_process_lock")
            return None

        try:
            return self._check_and_generate(user_id, event)
        except Exception as e:
            # Background work must never surface; the next trigger retries
            self.logger.error(
                "generation_trigger_failed",
                user_id=user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None
        finally:
            user_lock.release()

    def _check_and_generate(self, user_id: str, event: TriggerEvent) -> TriggerDecision:
        decision = self.tracker.evaluate(
            user_id,
            event,
            doc_count=self.doc_counter(user_id),
            outstanding_prompts=self.outstanding_counter(user_id),
        )
        if not decision.should_generate:
            return decision

        token = self.tracker.try_acquire(user_id)
        if token is None:
            self.logger.info("generation_lock_contended", user_id=user_id)
            return replace(decision, should_generate=False, skip_reason=SkipReason.IN_FLIGHT)

        self.logger.info(
            "generation_started",
            user_id=user_id,
            trigger_event=event.value,
            doc_count=decision.doc_count,
        )

        try:
            strategy = self.job(user_id, decision)
        except Exception as e:
            self.tracker.record_failure(user_id, token, e)
            return replace(decision, error=str(e) or type(e).__name__)

        if not self.tracker.record_success(user_id, token, decision.doc_count, strategy):
            return replace(decision, error="generation lock taken over by another job")
        return decision

    def in_flight(self, user_id: str) -> bool:
        """True while this process has a job for the user queued or running."""
        with self._registry_lock:
            future = self._futures.get(user_id)
        return future is not None and not future.done()

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        self.logger.info("generation_scheduler_stopped")
