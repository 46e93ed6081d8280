"""Analytics and scorecard aggregator.

Composes Metrics Engine outputs into one report: overview, performance,
engagement, per-subject breakdown, learning profile, rule-based
recommendations and a letter-graded scorecard. Deterministic for a given
event list and ``today``.

Several learning-profile figures have no defined algorithm yet; they are
exposed as functions that are not yet implemented and return a constant.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Sequence

from schooltutor.core import metrics
from schooltutor.core.models import ProgressEvent, ProgressEventType, StudentProfile

PERIODS: dict[str, int] = {"7d": 7, "30d": 30, "90d": 90}
DEFAULT_PERIOD = "30d"

# Minutes of study per month that earn a full time-management score
MONTHLY_TIME_TARGET = 600

LOW_SCORE = 70
LOW_PARTICIPATION = 60
SHORT_SESSION_MINUTES = 20

NO_PERFORMANCE_DATA = "No performance data available"
NO_ENGAGEMENT_DATA = "No engagement data available"


def calculate_date_range(period: str | None, now: datetime | None = None) -> tuple[str, str]:
    """ISO (start, end) for "7d", "30d" or "90d"; anything else means 30 days."""
    end = now or datetime.now(timezone.utc)
    days = PERIODS.get(period or DEFAULT_PERIOD, PERIODS[DEFAULT_PERIOD])
    start = end - timedelta(days=days)
    return start.isoformat(), end.isoformat()


# =============================================================================
# NOT YET IMPLEMENTED (constant placeholders)
# =============================================================================


def engagement_trend_not_implemented(events: Sequence[ProgressEvent]) -> str:
    """Not yet implemented: returns a constant."""
    return metrics.STABLE


def most_engaging_subjects_not_implemented(events: Sequence[ProgressEvent]) -> list[str]:
    """Not yet implemented: returns a constant."""
    return []


def peak_engagement_times_not_implemented(events: Sequence[ProgressEvent]) -> list[str]:
    """Not yet implemented: returns a constant."""
    return []


def subject_progress_trend_not_implemented(events: Sequence[ProgressEvent]) -> str:
    """Not yet implemented: returns a constant."""
    return metrics.STABLE


def adaptive_level_not_implemented(events: Sequence[ProgressEvent]) -> str:
    """Not yet implemented: returns a constant."""
    return "moderate"


def knowledge_growth_not_implemented(events: Sequence[ProgressEvent]) -> str:
    """Not yet implemented: returns a constant."""
    return "positive"


def learning_style_not_implemented(events: Sequence[ProgressEvent]) -> str:
    """Not yet implemented: returns a constant."""
    return "mixed"


def retention_rate_not_implemented(events: Sequence[ProgressEvent]) -> int:
    """Not yet implemented: returns a constant."""
    return 85


def challenge_response_not_implemented(events: Sequence[ProgressEvent]) -> str:
    """Not yet implemented: returns a constant."""
    return "positive"


# =============================================================================
# SECTIONS
# =============================================================================


def _is_learning_session(event: ProgressEvent) -> bool:
    return event.event_type is ProgressEventType.LEARNING_SESSION


def overview(events: Sequence[ProgressEvent], today: date | None = None) -> dict[str, Any]:
    day = today or datetime.now(timezone.utc).date()
    week_start = (day - timedelta(days=7)).isoformat()
    sessions = [e for e in events if _is_learning_session(e)]
    timed = [e for e in events if e.time_spent is not None]

    return {
        "total_sessions": len(sessions),
        "sessions_today": sum(1 for e in sessions if e.date == day.isoformat()),
        "sessions_this_week": sum(1 for e in sessions if e.date >= week_start),
        "total_time_spent": metrics.total_time_spent(events),
        "average_session_length": metrics.average_time_spent(timed),
        "streak_days": metrics.learning_streak(events, today=day),
        "subjects_active": len(metrics.subjects_of(events)),
    }


def performance(events: Sequence[ProgressEvent]) -> dict[str, Any]:
    scored = [e for e in events if e.performance is not None]
    if not scored:
        return {"message": NO_PERFORMANCE_DATA}

    scores = metrics.performance_scores(scored)
    recent = scores[:10]
    return {
        "average_score": sum(scores) / len(scores),
        "recent_average_score": sum(recent) / len(recent),
        "highest_score": max(scores),
        "lowest_score": min(scores),
        "improvement_trend": metrics.improvement_trend(scores),
        "consistency_score": metrics.consistency_score(scores),
        "assessments_completed": len(scored),
        "strong_subjects": metrics.strong_subjects(scored),
        "improvement_areas": metrics.weak_subjects(scored),
    }


def engagement(events: Sequence[ProgressEvent]) -> dict[str, Any]:
    engaged = metrics.engagement_events(events)
    if not engaged:
        return {"message": NO_ENGAGEMENT_DATA}

    return {
        "average_participation": metrics.average_participation(engaged),
        "average_interaction": metrics.average_interaction(engaged),
        "completion_rate": metrics.completion_rate(events),
        "engagement_trend": engagement_trend_not_implemented(engaged),
        "most_engaging_subjects": most_engaging_subjects_not_implemented(engaged),
        "peak_engagement_times": peak_engagement_times_not_implemented(engaged),
    }


def subject_breakdown(
    events: Sequence[ProgressEvent],
    subjects: Sequence[str] | None = None,
) -> dict[str, dict[str, Any]]:
    names = list(subjects) if subjects else metrics.subjects_of(events)
    breakdown: dict[str, dict[str, Any]] = {}

    for subject in names:
        subject_events = [e for e in events if e.subject == subject]
        breakdown[subject] = {
            "total_sessions": sum(1 for e in subject_events if _is_learning_session(e)),
            "average_performance": metrics.average_performance(subject_events),
            "average_engagement": metrics.average_engagement(subject_events),
            "total_time_spent": metrics.total_time_spent(subject_events),
            "completion_rate": metrics.completion_rate(subject_events),
            "last_studied": subject_events[0].timestamp if subject_events else None,
            "progress_trend": subject_progress_trend_not_implemented(subject_events),
        }
    return breakdown


def learning_profile(profile: StudentProfile, events: Sequence[ProgressEvent]) -> dict[str, Any]:
    return {
        "learning_pace": profile.learning_pace,
        "adaptive_level": adaptive_level_not_implemented(events),
        "knowledge_growth": knowledge_growth_not_implemented(events),
        "learning_style": learning_style_not_implemented(events),
        "retention_rate": retention_rate_not_implemented(events),
        "challenge_response": challenge_response_not_implemented(events),
    }


def weakest_subject(events: Sequence[ProgressEvent]) -> str | None:
    """Lowest-scoring subject when at least two subjects have scores and it is below 70."""
    averages = metrics.subject_averages(events)
    if len(averages) < 2:
        return None
    subject = min(averages, key=lambda s: averages[s])
    return subject if averages[subject] < LOW_SCORE else None


def recommendations(events: Sequence[ProgressEvent]) -> list[dict[str, str]]:
    """Rule-based study recommendations.

    Rules only fire when the data they look at exists.
    """
    perf = performance(events)
    eng = engagement(events)
    recs: list[dict[str, str]] = []

    if "average_score" in perf and perf["average_score"] < LOW_SCORE:
        recs.append({
            "type": "performance",
            "priority": "high",
            "message": "Focus on foundational concepts to improve understanding",
            "action": "Review basic concepts and practice more exercises",
        })

    if "average_participation" in eng and eng["average_participation"] < LOW_PARTICIPATION:
        recs.append({
            "type": "engagement",
            "priority": "medium",
            "message": "Increase interactive participation in learning sessions",
            "action": "Try more hands-on activities and interactive content",
        })

    weakest = weakest_subject(events)
    if weakest:
        recs.append({
            "type": "subject-focus",
            "priority": "medium",
            "message": f"Additional practice needed in {weakest}",
            "action": f"Allocate more time to {weakest} study sessions",
        })

    timed = [e for e in events if e.time_spent is not None]
    if timed and metrics.average_time_spent(timed) < SHORT_SESSION_MINUTES:
        recs.append({
            "type": "pace",
            "priority": "low",
            "message": "Consider longer study sessions for better retention",
            "action": "Aim for 25-30 minute focused learning sessions",
        })

    return recs


def _category(score: float, trend: str) -> dict[str, Any]:
    return {"score": round(score), "grade": metrics.letter_grade(score), "trend": trend}


def scorecard(
    profile: StudentProfile,
    events: Sequence[ProgressEvent],
    today: date | None = None,
) -> dict[str, Any]:
    perf = performance(events)
    eng = engagement(events)
    ov = overview(events, today=today)

    performance_score = perf.get("average_score", 0)
    participation = eng.get("average_participation", 0)
    streak = ov["streak_days"]
    time_score = min(100, ov["total_time_spent"] / MONTHLY_TIME_TARGET * 100)
    overall = metrics.overall_score(performance_score, participation, streak)

    strengths = []
    if performance_score >= 85:
        strengths.append("Academic Excellence")
    if participation >= 80:
        strengths.append("High Engagement")
    if streak >= 7:
        strengths.append("Consistent Learning")

    improvements = []
    if performance_score < LOW_SCORE:
        improvements.append("Academic Performance")
    if participation < LOW_PARTICIPATION:
        improvements.append("Active Participation")
    if streak < 3:
        improvements.append("Learning Consistency")

    goals = []
    if performance_score < 80:
        grade = f"grade {profile.grade} " if profile.grade else ""
        goals.append(f"Improve academic performance to 80% in {grade}subjects")
    if participation < 75:
        goals.append("Increase active participation in learning sessions")
    goals.append("Maintain daily learning streak for consistent progress")

    return {
        "overall_grade": metrics.letter_grade(overall),
        "overall_score": round(overall, 1),
        "categories": {
            "academic_performance": _category(
                performance_score, perf.get("improvement_trend", metrics.STABLE)
            ),
            "engagement": _category(participation, eng.get("engagement_trend", metrics.STABLE)),
            "consistency": _category(streak * 10, metrics.IMPROVING),
            "time_management": _category(time_score, metrics.STABLE),
        },
        "areas_of_strength": strengths,
        "areas_for_improvement": improvements,
        "next_goals": goals[:3],
    }


def fallback_recommendations(profile: StudentProfile, subject: str | None = None) -> list[dict[str, str]]:
    """Static study plan used when a student has no analytics yet."""
    label = subject or "General"
    recs = [
        {
            "title": f"Daily {subject or 'Study'} Practice",
            "description": f"Dedicate 30 minutes daily to {subject or 'your core subjects'} for consistent progress",
            "priority": "high",
            "subject": label,
            "estimated_time": "30 minutes",
            "difficulty": "medium",
        },
        {
            "title": "Review Class Notes",
            "description": "Review and organize your class notes within 24 hours of each lesson",
            "priority": "high",
            "subject": label,
            "estimated_time": "15 minutes",
            "difficulty": "easy",
        },
        {
            "title": "Practice Problems",
            "description": f"Work through practice problems to reinforce {subject or 'key'} concepts",
            "priority": "medium",
            "subject": label,
            "estimated_time": "45 minutes",
            "difficulty": "medium",
        },
    ]
    grade = profile.grade_number
    if grade is not None and grade >= 9:
        board = f"{profile.board} board" if profile.board else "board"
        recs.append({
            "title": "Exam Preparation Strategy",
            "description": f"Prepare for {board} exams with structured study plans",
            "priority": "high",
            "subject": label,
            "estimated_time": "60 minutes",
            "difficulty": "hard",
        })
    return recs


# =============================================================================
# REPORT
# =============================================================================


def build_analytics(
    profile: StudentProfile,
    events: Sequence[ProgressEvent],
    subjects: Sequence[str] | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Full analytics report for one student.

    Args:
        profile: Student the events belong to
        events: Events newest-first, already filtered to the time window
        subjects: Restrict the subject breakdown to these subjects
        today: Reference day for streaks and "today" counts

    Returns:
        Report dictionary; never raises on empty input
    """
    return {
        "overview": overview(events, today=today),
        "performance": performance(events),
        "engagement": engagement(events),
        "subjects": subject_breakdown(events, subjects),
        "learning": learning_profile(profile, events),
        "recommendations": recommendations(events),
        "scorecard": scorecard(profile, events, today=today),
        "metadata": {
            "data_quality": metrics.data_quality(events),
            "confidence_level": metrics.confidence_level(events),
            "event_count": len(events),
            "generated_at": datetime.now(timezone.utc).isoformat(),
        },
    }
