"""
Scheduling models for the background generation tracker.

TrackerState mirrors the durable tracker row; TriggerDecision records why a
trigger did or did not start a job.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Optional


class TriggerEvent(str, Enum):
    """Events that may start a background generation."""

    DOCUMENT_CREATED = "document_created"
    PROMPTS_RESOLVED = "prompts_resolved"
    WEEKLY_SWEEP = "weekly_sweep"  # Periodic run over every active user


class GenerationPhase(str, Enum):
    """Idle -> Checking -> Generating -> Cooldown -> Idle."""

    IDLE = "idle"
    CHECKING = "checking"
    GENERATING = "generating"
    COOLDOWN = "cooldown"


class SkipReason(str, Enum):
    """Why Checking fell back to Idle."""

    THRESHOLD_NOT_MET = "threshold_not_met"
    COOLDOWN_ACTIVE = "cooldown_active"
    OUTSTANDING_PROMPTS = "outstanding_prompts"
    IN_FLIGHT = "in_flight"


@dataclass(frozen=True)
class TrackerState:
    """Per-user scheduling memory."""

    user_id: str
    last_generation_at: Optional[datetime] = None
    last_source_doc_count_mark: int = 0
    in_flight: bool = False
    in_flight_since: Optional[datetime] = None
    strategy: Optional[str] = None

    def phase(self, now: datetime, cooldown: timedelta) -> GenerationPhase:
        """Resting phase of the state machine at `now`."""
        if self.in_flight:
            return GenerationPhase.GENERATING
        if self.last_generation_at is not None and now - self.last_generation_at < cooldown:
            return GenerationPhase.COOLDOWN
        return GenerationPhase.IDLE

    def new_documents_since_mark(self, doc_count: int) -> int:
        return max(doc_count - self.last_source_doc_count_mark, 0)


@dataclass(frozen=True)
class TriggerDecision:
    """Outcome of the Checking phase."""

    user_id: str
    event: TriggerEvent
    should_generate: bool
    doc_count: int
    new_documents: int
    skip_reason: Optional[SkipReason] = None
    error: Optional[str] = None  # Set when the job ran and failed or lost its lock


@dataclass
class SweepSummary:
    """Tally of one periodic generation run over all active users."""

    total: int = 0
    generated: int = 0
    failed: int = 0
    dropped: int = 0  # Another job for the user was already running in this process
    skipped: Dict[str, int] = field(default_factory=dict)

    def add(self, decision: Optional[TriggerDecision]) -> None:
        if decision is None:
            self.dropped += 1
        elif decision.error is not None:
            self.failed += 1
        elif decision.should_generate:
            self.generated += 1
        else:
            reason = decision.skip_reason.value if decision.skip_reason else "unknown"
            self.skipped[reason] = self.skipped.get(reason, 0) + 1
