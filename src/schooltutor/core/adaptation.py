"""Difficulty adaptation and knowledge-level updates.

calculate_difficulty maps recent outcomes to a difficulty tier that drives
content generation. update_knowledge_level is the only mutator of a
profile's per-subject mastery estimate.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Sequence

import structlog

from schooltutor.core.models import KnowledgeEntry, ProgressEvent, StudentProfile

logger = structlog.get_logger(__name__)

DifficultyTier = Literal["basic", "moderate", "challenging"]

# Most recent outcomes considered
DIFFICULTY_WINDOW = 10

# A scored event counts as a success at or above this score
SUCCESS_SCORE = 70

# Success rate assumed without history
DEFAULT_SUCCESS_RATE = 0.5

# (minimum score, level delta), checked top-down
KNOWLEDGE_ADJUSTMENTS: list[tuple[float, int]] = [
    (90, 5),
    (80, 3),
    (70, 1),
    (60, 0),
]
LOW_SCORE_ADJUSTMENT = -2

MIN_LEVEL = 0
MAX_LEVEL = 100

DIFFICULTY_GUIDANCE: dict[str, str] = {
    "basic": "Use simple language, short steps and many concrete examples.",
    "moderate": "Balance explanation with guided examples and a few open questions.",
    "challenging": "Go deeper, connect ideas and include harder problems that stretch the student.",
}


def event_outcome(event: ProgressEvent) -> bool | None:
    """Success flag of an event, or None when it records no outcome.

    A performance score wins over the completed flag.
    """
    if event.performance is not None:
        return event.performance.score >= SUCCESS_SCORE
    if event.completed is not None:
        return bool(event.completed)
    return None


def success_rate(history: Sequence[ProgressEvent], window: int = DIFFICULTY_WINDOW) -> float:
    """Fraction of successes among the most recent outcomes.

    Args:
        history: Events newest-first
        window: Number of outcomes considered

    Returns:
        Success rate in [0, 1], 0.5 when there is no outcome at all
    """
    outcomes: list[bool] = []
    for event in history:
        outcome = event_outcome(event)
        if outcome is None:
            continue
        outcomes.append(outcome)
        if len(outcomes) >= window:
            break

    if not outcomes:
        return DEFAULT_SUCCESS_RATE
    return sum(outcomes) / len(outcomes)


def calculate_difficulty(history: Sequence[ProgressEvent]) -> DifficultyTier:
    """Difficulty tier for the next content.

    > 0.8 success rate is challenging, > 0.6 moderate, otherwise basic.
    Without any recorded outcome the tier is moderate.
    """
    if not any(event_outcome(e) is not None for e in history):
        return "moderate"

    rate = success_rate(history)
    if rate > 0.8:
        return "challenging"
    if rate > 0.6:
        return "moderate"
    return "basic"


def difficulty_guidance(tier: str) -> str:
    return DIFFICULTY_GUIDANCE.get(tier, DIFFICULTY_GUIDANCE["moderate"])


def knowledge_adjustment(score: float) -> int:
    """Level delta for a performance score."""
    for threshold, delta in KNOWLEDGE_ADJUSTMENTS:
        if score >= threshold:
            return delta
    return LOW_SCORE_ADJUSTMENT


def clamp_level(level: float) -> int:
    return int(max(MIN_LEVEL, min(MAX_LEVEL, level)))


def update_knowledge_level(
    profile: StudentProfile,
    subject: str,
    performance_score: float,
    now: datetime | None = None,
) -> KnowledgeEntry:
    """Shift a student's mastery estimate for a subject.

    Mutates ``profile.knowledge_level`` in place. The new level is
    clamped to [0, 100] and stamped with the current time. Each call
    applies its delta again; the caller is responsible for persisting.

    Args:
        profile: Student profile to update
        subject: Subject of the observation
        performance_score: Score in 0-100

    Returns:
        The updated knowledge entry
    """
    old_level = profile.get_knowledge_level(subject)
    delta = knowledge_adjustment(performance_score)
    timestamp = (now or datetime.now(timezone.utc)).isoformat()

    entry = KnowledgeEntry(level=clamp_level(old_level + delta), last_updated=timestamp)
    profile.knowledge_level[subject] = entry

    logger.debug(
        "knowledge_level_updated",
        student_id=profile.student_id,
        subject=subject,
        old_level=old_level,
        new_level=entry.level,
        delta=delta,
    )
    return entry
