"""Student and curriculum topic endpoints.

Handlers that only touch the SQLite stores are plain ``def`` so FastAPI
runs them in its threadpool.
"""

import asyncio
from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, status

from schooltutor.core.errors import DuplicateStudentError, StoreError, StudentNotFoundError
from schooltutor.core.models import CurriculumTopic, StudentProfile, generate_student_id
from schooltutor.web.schemas import (
    StudentCreate,
    StudentListResponse,
    StudentResponse,
    StudentUpdate,
    TopicCompleteRequest,
    TopicCompleteResponse,
    TopicDiscoveryResponse,
    TopicListResponse,
    TopicResponse,
)
from schooltutor.web.services import (
    get_curriculum_service,
    get_profile_store,
    get_progress_service,
)
from schooltutor.web.sessions import get_session_manager

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/students", tags=["students"])


def _to_response(profile: StudentProfile) -> StudentResponse:
    return StudentResponse(**profile.to_dict())


def _topic_response(topic: CurriculumTopic) -> TopicResponse:
    return TopicResponse(**topic.to_dict())


@router.get("", response_model=StudentListResponse)
def list_students(include_inactive: bool = False) -> StudentListResponse:
    """List students (active only by default)."""
    profiles = get_profile_store().list(active_only=not include_inactive)
    students = [_to_response(p) for p in profiles]
    return StudentListResponse(students=students, count=len(students))


@router.get("/{student_id}", response_model=StudentResponse)
def get_student(student_id: str) -> StudentResponse:
    """Get a specific student by ID."""
    profile = get_profile_store().get(student_id)

    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Student '{student_id}' not found",
        )

    return _to_response(profile)


@router.post("", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
def create_student(student_data: StudentCreate) -> StudentResponse:
    """Register a new student and seed curriculum topics for their subjects.

    Topic seeding is best-effort: the student is registered even if it fails.
    """
    name = student_data.name.strip()
    if not name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="name is required",
        )

    store = get_profile_store()

    existing = store.find_by_name(name)
    if existing:
        raise DuplicateStudentError(name, existing.student_id)

    profile = StudentProfile(
        student_id=generate_student_id(),
        name=name,
        grade=student_data.grade,
        board=student_data.board,
        country=student_data.country,
        school=student_data.school,
        subjects=student_data.subjects,
        learning_pace=student_data.learning_pace,
    )
    store.put(profile)

    response = _to_response(profile)
    if student_data.discover_topics:
        try:
            response.topics_discovered = len(get_curriculum_service().discover_topics(profile))
        except StoreError as e:
            logger.warning("topic_discovery_failed", student_id=profile.student_id, error=str(e))
            response.topics_discovered = 0
    return response


@router.put("/{student_id}", response_model=StudentResponse)
def update_student(student_id: str, update: StudentUpdate) -> StudentResponse:
    """Update profile fields; omitted fields are kept."""
    profile = get_profile_store().update(student_id, update.model_dump(exclude_none=True))
    return _to_response(profile)


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_student(student_id: str) -> None:
    """Deactivate a student (progress history is kept)."""
    if not get_profile_store().deactivate(student_id):
        raise StudentNotFoundError(student_id)


@router.get("/{student_id}/score")
async def get_student_score(student_id: str) -> dict[str, Any]:
    """Share of curriculum topics completed, plus the student's live sessions."""
    score = await asyncio.to_thread(lambda: get_curriculum_service().student_score(student_id))
    sessions = await get_session_manager().list_sessions(student_id)
    score["active_sessions"] = [s.id for s in sessions]
    return score


@router.get("/{student_id}/topics", response_model=TopicListResponse)
def list_topics(
    student_id: str,
    subject: str | None = None,
    completed: bool | None = None,
) -> TopicListResponse:
    """Curriculum topics, optionally filtered by subject or completion."""
    topics = get_curriculum_service().list_topics(student_id, subject=subject, completed=completed)
    return TopicListResponse(
        student_id=student_id,
        topics=[_topic_response(t) for t in topics],
        count=len(topics),
    )


@router.post("/{student_id}/topics/discover", response_model=TopicDiscoveryResponse)
def discover_topics(student_id: str) -> TopicDiscoveryResponse:
    """Seed topics for subjects that have none (e.g. after adding a subject)."""
    created = get_curriculum_service().discover_for_student(student_id)
    return TopicDiscoveryResponse(
        student_id=student_id,
        topics_discovered=len(created),
        topics=[_topic_response(t) for t in created],
    )


@router.put("/{student_id}/topics/{topic_id}/complete", response_model=TopicCompleteResponse)
def complete_topic(
    student_id: str,
    topic_id: str,
    body: TopicCompleteRequest | None = None,
) -> TopicCompleteResponse:
    """Mark a topic completed."""
    body = body or TopicCompleteRequest()
    topic = get_curriculum_service().complete_topic(
        student_id, topic_id, score=body.score, completed_at=body.completion_date
    )
    return TopicCompleteResponse(
        message="Topic marked as completed successfully",
        student_id=student_id,
        topic=_topic_response(topic),
    )


@router.get("/{student_id}/recommendations")
def get_recommendations(student_id: str, subject: str | None = None) -> dict[str, Any]:
    """Study recommendations from recent progress."""
    return get_progress_service().get_recommendations(student_id, subject)
