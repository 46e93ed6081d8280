"""Metrics Engine.

Pure functions turning progress events into summary statistics. Nothing
here raises on empty or partial input: absent data degrades to 0, an empty
list, or "insufficient_data" so a report can always be rendered.

Events are expected newest-first, as returned by the progress store.
"""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, Sequence

from schooltutor.core.models import Engagement, ProgressEvent, ProgressEventType, StudentProfile

# Trend labels
IMPROVING = "improving"
DECLINING = "declining"
STABLE = "stable"
INSUFFICIENT_DATA = "insufficient_data"

SESSION_TYPES = (ProgressEventType.LEARNING_SESSION, ProgressEventType.SESSION_START)

STRONG_SUBJECT_THRESHOLD = 80
WEAK_SUBJECT_THRESHOLD = 70
MAX_SUBJECTS_LISTED = 3


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


# =============================================================================
# FIELD EXTRACTION
# =============================================================================


def performance_scores(events: Iterable[ProgressEvent]) -> list[float]:
    """Scores of events carrying a performance, in event order."""
    return [e.performance.score for e in events if e.performance is not None]


def engagement_events(events: Iterable[ProgressEvent]) -> list[ProgressEvent]:
    return [e for e in events if e.engagement is not None]


def subjects_of(events: Iterable[ProgressEvent]) -> list[str]:
    """Distinct subjects in first-seen order."""
    seen: dict[str, None] = {}
    for event in events:
        if event.subject:
            seen.setdefault(event.subject, None)
    return list(seen)


# =============================================================================
# AVERAGES AND RATES
# =============================================================================


def completion_rate(events: Sequence[ProgressEvent]) -> float:
    """Completed / events-with-completed-flag x 100 (0 if no flags)."""
    flagged = [e for e in events if e.completed is not None]
    if not flagged:
        return 0.0
    completed = sum(1 for e in flagged if e.completed)
    return completed / len(flagged) * 100


def average_time_spent(events: Sequence[ProgressEvent]) -> float:
    return _mean([e.time_spent for e in events if e.time_spent is not None])


def average_performance(events: Sequence[ProgressEvent]) -> float:
    return _mean(performance_scores(events))


def average_engagement(events: Sequence[ProgressEvent]) -> float:
    return _mean([e.engagement.score for e in engagement_events(events)])


def average_participation(events: Sequence[ProgressEvent]) -> float:
    return _mean([e.engagement.participation for e in engagement_events(events)])


def average_interaction(events: Sequence[ProgressEvent]) -> float:
    return _mean([e.engagement.interaction for e in engagement_events(events)])


def total_time_spent(events: Iterable[ProgressEvent]) -> float:
    return sum(e.time_spent or 0 for e in events)


def count_sessions(events: Iterable[ProgressEvent]) -> int:
    """Number of learning_session / session_start events."""
    return sum(1 for e in events if e.event_type in SESSION_TYPES)


# =============================================================================
# STREAKS, TRENDS AND CONSISTENCY
# =============================================================================


def _today_utc() -> date:
    return datetime.now(timezone.utc).date()


def learning_streak(events: Iterable[ProgressEvent], today: date | None = None) -> int:
    """Consecutive calendar days with activity, counted back from today.

    The walk stops at the first missing day, so a student with no activity
    today has a streak of 0.
    """
    dates = {e.date for e in events if e.timestamp}
    if not dates:
        return 0

    day = today or _today_utc()
    streak = 0
    while day.isoformat() in dates:
        streak += 1
        day -= timedelta(days=1)
    return streak


def improvement_trend(scores: Sequence[float]) -> str:
    """Compare the newest five scores with the five before them.

    Returns "improving" / "declining" when the means differ by more than
    5 points, "stable" otherwise, "insufficient_data" when there are fewer
    than two scores or no older window.
    """
    if len(scores) < 2:
        return INSUFFICIENT_DATA

    recent = scores[:5]
    older = scores[5:10]
    if not older:
        return INSUFFICIENT_DATA

    diff = _mean(recent) - _mean(older)
    if diff > 5:
        return IMPROVING
    if diff < -5:
        return DECLINING
    return STABLE


def consistency_score(scores: Sequence[float]) -> float:
    """100 minus the population standard deviation, floored at 0.

    Fewer than three scores give 0.
    """
    if len(scores) < 3:
        return 0.0
    avg = _mean(scores)
    variance = sum((s - avg) ** 2 for s in scores) / len(scores)
    return max(0.0, 100 - math.sqrt(variance))


# =============================================================================
# GRADES
# =============================================================================


def letter_grade(score: float) -> str:
    """Letter for a 0-100 score: A >= 90, B >= 80, C >= 70, D >= 60, else F."""
    if score >= 90:
        return "A"
    if score >= 80:
        return "B"
    if score >= 70:
        return "C"
    if score >= 60:
        return "D"
    return "F"


def overall_score(performance_score: float, engagement_score: float, streak_days: int) -> float:
    """Weighted blend: 0.5 performance, 0.3 engagement, 0.2 streak x 10."""
    return performance_score * 0.5 + engagement_score * 0.3 + streak_days * 10 * 0.2


def overall_grade(performance_score: float, engagement_score: float, streak_days: int) -> str:
    return letter_grade(overall_score(performance_score, engagement_score, streak_days))


# =============================================================================
# SUBJECTS
# =============================================================================


def subject_averages(events: Iterable[ProgressEvent]) -> dict[str, float]:
    """Average performance score per subject."""
    by_subject: dict[str, list[float]] = defaultdict(list)
    for event in events:
        if event.performance is not None:
            by_subject[event.subject].append(event.performance.score)
    return {subject: _mean(scores) for subject, scores in by_subject.items()}


def strong_subjects(events: Iterable[ProgressEvent]) -> list[str]:
    """Up to three subjects averaging >= 80, best first."""
    averages = subject_averages(events)
    ranked = sorted(
        (s for s, avg in averages.items() if avg >= STRONG_SUBJECT_THRESHOLD),
        key=lambda s: averages[s],
        reverse=True,
    )
    return ranked[:MAX_SUBJECTS_LISTED]


def weak_subjects(events: Iterable[ProgressEvent]) -> list[str]:
    """Up to three subjects averaging < 70, weakest first."""
    averages = subject_averages(events)
    ranked = sorted(
        (s for s, avg in averages.items() if avg < WEAK_SUBJECT_THRESHOLD),
        key=lambda s: averages[s],
    )
    return ranked[:MAX_SUBJECTS_LISTED]


# =============================================================================
# ENGAGEMENT SCORE AND DATA QUALITY
# =============================================================================


def calculate_engagement_score(
    engagement: Engagement | None,
    time_spent: float | None,
    completed: bool | None,
) -> int:
    """Engagement score for a single progress update.

    participation x 0.4 + interaction x 0.3, plus 20 for at least 15
    minutes of study and 30 for completion. Capped at 100.
    """
    score = 0.0
    if engagement is not None:
        score += engagement.participation * 0.4
        score += engagement.interaction * 0.3
    if time_spent is not None and time_spent >= 15:
        score += 20
    if completed:
        score += 30
    return min(100, round(score))


def learning_velocity(events: Sequence[ProgressEvent], days: int = 30) -> float:
    """Events per day over the analysis window."""
    return len(events) / days if events else 0.0


def data_quality(events: Sequence[ProgressEvent]) -> str:
    quality = min(100.0, len(events) / 50 * 100)
    if quality > 80:
        return "high"
    if quality > 50:
        return "medium"
    return "low"


def confidence_level(events: Sequence[ProgressEvent]) -> str:
    if len(events) > 30:
        return "high"
    if len(events) > 10:
        return "medium"
    return "low"


# =============================================================================
# SUMMARY
# =============================================================================


def progress_metrics(
    events: Sequence[ProgressEvent],
    profile: StudentProfile | None = None,
) -> dict[str, Any]:
    """Summary statistics attached to a progress query."""
    subjects = subjects_of(events)
    return {
        "total_sessions": count_sessions(events),
        "completion_rate": completion_rate(events),
        "subjects_studied": len(subjects),
        "subjects": subjects,
        "average_time_spent": round(average_time_spent(events)),
        "average_performance": round(average_performance(events), 1),
        "average_engagement": round(average_engagement(events), 1),
        "knowledge_level": {
            subject: entry.to_dict()
            for subject, entry in (profile.knowledge_level.items() if profile else [])
        },
        "last_activity": events[0].timestamp if events else None,
        "learning_velocity": learning_velocity(events),
        "calculated_at": datetime.now(timezone.utc).isoformat(),
    }
