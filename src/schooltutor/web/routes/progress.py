"""Progress and analytics endpoints."""

from typing import Any

from fastapi import APIRouter, Query, status

from schooltutor.core.models import Engagement, ProgressEventType
from schooltutor.web.schemas import (
    ProgressResponse,
    ProgressUpdateRequest,
    ProgressUpdateResponse,
)
from schooltutor.web.services import get_progress_service

router = APIRouter(prefix="/api/progress", tags=["progress"])


@router.post("", response_model=ProgressUpdateResponse, status_code=status.HTTP_201_CREATED)
def record_progress(update: ProgressUpdateRequest) -> ProgressUpdateResponse:
    """Record a progress update and adjust the knowledge level."""
    engagement = None
    if update.engagement is not None:
        engagement = Engagement(**update.engagement.model_dump())

    result = get_progress_service().record_progress(
        student_id=update.student_id,
        subject=update.subject,
        session_id=update.session_id,
        activity=update.activity,
        score=update.performance.score if update.performance else None,
        engagement=engagement,
        time_spent=update.time_spent,
        completed=update.completed,
        notes=update.notes,
        event_type=ProgressEventType(update.type),
    )
    return ProgressUpdateResponse(message="Progress updated successfully", **result)


@router.get("", response_model=ProgressResponse)
def get_progress(
    student_id: str | None = None,
    subject: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
) -> ProgressResponse:
    """Progress events (newest first) with summary metrics."""
    result = get_progress_service().get_progress(
        student_id, subject=subject, start=start_date, end=end_date, limit=limit
    )
    return ProgressResponse(**result)


@router.get("/analytics")
def get_analytics(
    student_id: str | None = None,
    period: str = "30d",
    subjects: list[str] | None = Query(default=None),
) -> dict[str, Any]:
    """Analytics report for the last 7, 30 or 90 days."""
    return get_progress_service().get_analytics(student_id, period=period, subjects=subjects)


@router.get("/scorecard")
def get_scorecard(student_id: str | None = None, period: str = "30d") -> dict[str, Any]:
    """Weighted overall grade with per-category scores."""
    return get_progress_service().get_scorecard(student_id, period=period)
