"""Progress service: recording progress updates and reading progress back.

Sits between the web/CLI layer and the stores. Validation errors and
unknown students are raised; the knowledge-level update that follows a
scored progress update is best-effort.
"""

from __future__ import annotations

from typing import Any, Sequence

import structlog

from schooltutor.core import analytics, metrics
from schooltutor.core.adaptation import update_knowledge_level
from schooltutor.core.errors import InvalidRequestError, StoreError
from schooltutor.core.models import (
    DEFAULT_RETENTION_DAYS,
    Engagement,
    Performance,
    ProgressEvent,
    ProgressEventType,
    StudentProfile,
    new_progress_event,
)
from schooltutor.db.profile_store import ProfileStore
from schooltutor.db.progress_store import ProgressStore

logger = structlog.get_logger(__name__)

DEFAULT_QUERY_LIMIT = 50

# Event types a caller may record directly
RECORDABLE_TYPES = (
    ProgressEventType.PROGRESS_UPDATE,
    ProgressEventType.ASSESSMENT,
    ProgressEventType.LEARNING_SESSION,
)


def _require(value: str | None, name: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidRequestError(f"{name} is required", field=name)
    return str(value).strip()


def _validate_score(value: float | None, name: str) -> None:
    if value is not None and not 0 <= value <= 100:
        raise InvalidRequestError(f"{name} must be between 0 and 100", field=name)


class ProgressService:
    """Progress updates, progress queries and analytics for students."""

    def __init__(
        self,
        profile_store: ProfileStore,
        progress_store: ProgressStore,
        retention_days: int = DEFAULT_RETENTION_DAYS,
    ):
        self.profile_store = profile_store
        self.progress_store = progress_store
        self.retention_days = retention_days

    def record_progress(
        self,
        student_id: str | None,
        subject: str | None,
        session_id: str | None = None,
        activity: str | None = None,
        score: float | None = None,
        engagement: Engagement | None = None,
        time_spent: float | None = None,
        completed: bool | None = None,
        notes: str | None = None,
        event_type: ProgressEventType = ProgressEventType.PROGRESS_UPDATE,
    ) -> dict[str, Any]:
        """Append a progress event and adjust the student's knowledge level.

        Raises:
            InvalidRequestError: If student_id or subject is missing or a value is out of range
            StudentNotFoundError: If the student is unknown or inactive
        """
        student_id = _require(student_id, "student_id")
        subject = _require(subject, "subject")
        _validate_score(score, "score")
        if time_spent is not None and time_spent < 0:
            raise InvalidRequestError("time_spent must not be negative", field="time_spent")
        if event_type not in RECORDABLE_TYPES:
            raise InvalidRequestError(f"Cannot record events of type {event_type.value}", field="type")

        profile = self.profile_store.get_active(student_id)

        event = new_progress_event(
            student_id=student_id,
            subject=subject,
            event_type=event_type,
            session_id=session_id,
            retention_days=self.retention_days,
            performance=Performance(score=score) if score is not None else None,
            engagement=engagement,
            time_spent=time_spent,
            completed=completed,
            activity=activity,
            notes=notes,
        )
        self.progress_store.append(event)

        knowledge = None
        if score is not None:
            knowledge = self._update_knowledge(profile, subject, score)

        engagement_score = metrics.calculate_engagement_score(engagement, time_spent, completed)
        logger.info(
            "progress_recorded",
            student_id=student_id,
            subject=subject,
            event_type=event_type.value,
            score=score,
            engagement_score=engagement_score,
        )
        return {
            "progress_entry": event.to_dict(),
            "engagement_score": engagement_score,
            "knowledge_level": knowledge,
        }

    def _update_knowledge(
        self, profile: StudentProfile, subject: str, score: float
    ) -> dict[str, Any] | None:
        """Apply the knowledge update; last writer wins."""
        try:
            entry = update_knowledge_level(profile, subject, score)
            self.profile_store.update(profile.student_id, {"knowledge_level": {subject: entry}})
        except StoreError as e:
            logger.warning(
                "failed_to_update_knowledge",
                student_id=profile.student_id,
                subject=subject,
                error=str(e),
            )
            return None
        return entry.to_dict()

    def get_progress(
        self,
        student_id: str | None,
        subject: str | None = None,
        start: str | None = None,
        end: str | None = None,
        limit: int | None = DEFAULT_QUERY_LIMIT,
    ) -> dict[str, Any]:
        """Events newest-first with summary metrics.

        Raises:
            InvalidRequestError: If student_id is missing
            StudentNotFoundError: If the student is unknown or inactive
        """
        student_id = _require(student_id, "student_id")
        profile = self.profile_store.get_active(student_id)

        events = self.progress_store.query(
            student_id, subject=subject, start=start, end=end, limit=limit
        )
        return {
            "student": {
                "id": profile.student_id,
                "name": profile.name,
                "grade": profile.grade,
                "board": profile.board,
                "country": profile.country,
            },
            "progress": [e.to_dict() for e in events],
            "metrics": metrics.progress_metrics(events, profile),
            "count": len(events),
        }

    def events_for_period(self, student_id: str, period: str | None) -> list[ProgressEvent]:
        start, end = analytics.calculate_date_range(period)
        return self.progress_store.query(student_id, start=start, end=end)

    def get_analytics(
        self,
        student_id: str | None,
        period: str | None = None,
        subjects: Sequence[str] | None = None,
    ) -> dict[str, Any]:
        """Analytics report for a time window ("7d", "30d", "90d").

        Raises:
            InvalidRequestError: If student_id is missing
            StudentNotFoundError: If the student is unknown or inactive
        """
        student_id = _require(student_id, "student_id")
        profile = self.profile_store.get_active(student_id)
        events = self.events_for_period(student_id, period)

        report = analytics.build_analytics(profile, events, subjects)
        report["student_id"] = student_id
        report["period"] = period if period in analytics.PERIODS else analytics.DEFAULT_PERIOD
        return report

    def get_scorecard(self, student_id: str | None, period: str | None = None) -> dict[str, Any]:
        student_id = _require(student_id, "student_id")
        profile = self.profile_store.get_active(student_id)
        events = self.events_for_period(student_id, period)
        card = analytics.scorecard(profile, events)
        card["student_id"] = student_id
        return card

    def get_recommendations(self, student_id: str, subject: str | None = None) -> dict[str, Any]:
        """Rule-based recommendations, or the static plan when they are empty."""
        profile = self.profile_store.get_active(student_id)
        events = self.progress_store.query(student_id, subject=subject, limit=DEFAULT_QUERY_LIMIT)

        recs = analytics.recommendations(events)
        if recs:
            return {"student_id": student_id, "recommendations": recs, "fallback_used": False}
        return {
            "student_id": student_id,
            "recommendations": analytics.fallback_recommendations(profile, subject),
            "fallback_used": True,
        }
