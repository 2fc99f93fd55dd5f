"""
Built-in pool of reflective prompts.

Each entry is constructed once at import time as an immutable Candidate. The
first listed theme of a prompt is its diversity tag; keyword_text holds the
hand-curated matching vocabulary.
"""

from typing import Dict, Iterable, Optional, Tuple

from ..models.candidates import Candidate
from ..version import QUESTION_BANK_VERSION


def _candidate(
    candidate_id: str,
    text: str,
    theme: str,
    keywords: Iterable[str],
    tone: str,
    depth: str,
) -> Candidate:
    return Candidate(
        candidate_id=candidate_id,
        display_text=text,
        theme=theme,
        keyword_text=" ".join(keywords),
        emotional_tone=tone,
        depth=depth,
    )


QUESTION_BANK: Tuple[Candidate, ...] = (
    # Work / stress
    _candidate(
        "q001",
        "What boundaries do you need to set to protect your energy?",
        "boundaries",
        ["boundary", "energy", "protect", "limit", "space", "overwhelm", "drain", "tired", "exhausted"],
        "reflective",
        "medium",
    ),
    _candidate(
        "q002",
        "What strategies help you manage stress effectively?",
        "stress",
        ["stress", "anxious", "worry", "overwhelm", "pressure", "deadline", "manage", "cope"],
        "processing",
        "medium",
    ),
    _candidate(
        "q003",
        "How can you communicate your needs more clearly at work?",
        "work",
        ["work", "team", "communicate", "needs", "express", "ask", "help", "support"],
        "growth",
        "medium",
    ),
    # Anxiety / nervousness
    _candidate(
        "q004",
        "What small step can you take to build confidence in challenging situations?",
        "confidence",
        ["anxious", "nervous", "afraid", "scared", "worry", "confidence", "challenge", "difficult"],
        "growth",
        "medium",
    ),
    _candidate(
        "q005",
        "When do you feel most at ease, and how can you create more of those moments?",
        "self-care",
        ["anxious", "calm", "peace", "ease", "relax", "breathe", "safe", "comfortable"],
        "reflective",
        "light",
    ),
    # Gratitude / family
    _candidate(
        "q006",
        "What relationships in your life deserve more attention?",
        "relationships",
        ["family", "friend", "love", "relationship", "connection", "time", "quality", "present"],
        "gratitude",
        "light",
    ),
    _candidate(
        "q007",
        "How did you show yourself compassion today?",
        "self-compassion",
        ["compassion", "kind", "gentle", "care", "support", "love", "accept", "forgive"],
        "gratitude",
        "light",
    ),
    # Personal growth
    _candidate(
        "q008",
        "What patterns are you noticing in your emotional responses?",
        "awareness",
        ["pattern", "notice", "realize", "aware", "recognize", "emotion", "feel", "react"],
        "processing",
        "deep",
    ),
    _candidate(
        "q009",
        "What would living more authentically look like for you?",
        "authenticity",
        ["authentic", "true", "honest", "real", "value", "believe", "important", "matter"],
        "reflective",
        "deep",
    ),
    # Time management
    _candidate(
        "q010",
        "What can you delegate or let go of to create more space?",
        "boundaries",
        ["time", "busy", "deadline", "manage", "priority", "important", "urgent", "schedule"],
        "growth",
        "medium",
    ),
    # Preparation
    _candidate(
        "q011",
        "How could more preparation support your peace of mind?",
        "preparation",
        ["prepare", "practice", "ready", "plan", "nervous", "presentation", "speaking", "public"],
        "growth",
        "medium",
    ),
    # Disconnection / balance
    _candidate(
        "q012",
        "What helps you truly disconnect and be present?",
        "mindfulness",
        ["present", "disconnect", "mindful", "aware", "moment", "now", "focus", "attention"],
        "reflective",
        "light",
    ),
    _candidate(
        "q013",
        "What are you grateful for right now?",
        "gratitude",
        ["grateful", "thankful", "appreciate", "blessing", "lucky", "fortunate", "gift"],
        "gratitude",
        "light",
    ),
    _candidate(
        "q014",
        "What was the most challenging part of your day?",
        "challenge",
        ["difficult", "hard", "challenge", "struggle", "tough", "problem", "issue"],
        "processing",
        "light",
    ),
    _candidate(
        "q015",
        "How did you practice self-care today?",
        "self-care",
        ["self-care", "care", "rest", "sleep", "exercise", "healthy", "wellness", "nurture"],
        "gratitude",
        "light",
    ),
)

_BY_ID: Dict[str, Candidate] = {c.candidate_id: c for c in QUESTION_BANK}


def load_candidate_pool(exclude_ids: Optional[Iterable[str]] = None) -> Tuple[Candidate, ...]:
    """
    Return the built-in candidate pool.

    Args:
        exclude_ids: Candidate IDs to leave out (e.g. prompts already answered)

    Returns:
        Tuple of Candidate objects in bank order
    """
    if not exclude_ids:
        return QUESTION_BANK
    excluded = set(exclude_ids)
    return tuple(c for c in QUESTION_BANK if c.candidate_id not in excluded)


def get_candidate(candidate_id: str) -> Optional[Candidate]:
    """Look up a built-in candidate by ID."""
    return _BY_ID.get(candidate_id)


__all__ = ["QUESTION_BANK", "QUESTION_BANK_VERSION", "load_candidate_pool", "get_candidate"]
