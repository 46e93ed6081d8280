"""Lesson generation endpoint."""

import structlog
from fastapi import APIRouter

from schooltutor.core.adaptation import DIFFICULTY_WINDOW, calculate_difficulty
from schooltutor.core.errors import InvalidRequestError
from schooltutor.core.generator import generate_content
from schooltutor.web.schemas import ContentRequest, ContentResponse
from schooltutor.web.services import (
    get_content_generator,
    get_profile_store,
    get_progress_store,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/content", tags=["content"])


@router.post("", response_model=ContentResponse)
def create_content(content_request: ContentRequest) -> ContentResponse:
    """Generate a lesson at the difficulty suited to the student's history.

    Runs in the threadpool: remote generation blocks for up to the
    configured timeout.
    """
    for name in ("student_id", "subject", "topic"):
        if not (getattr(content_request, name) or "").strip():
            raise InvalidRequestError(f"{name} is required", field=name)

    profile = get_profile_store().get_active(content_request.student_id)
    history = get_progress_store().query(
        profile.student_id,
        subject=content_request.subject,
        limit=DIFFICULTY_WINDOW,
        outcomes_only=True,
    )
    difficulty = calculate_difficulty(history)

    content = generate_content(
        profile,
        content_request.subject,
        content_request.topic,
        difficulty=difficulty,
        request_context={"session_id": content_request.session_id or "", "record": True},
        generator=get_content_generator(),
    )

    logger.info(
        "content_generated",
        student_id=profile.student_id,
        subject=content_request.subject,
        tier=content.tier.value,
        difficulty=difficulty,
    )
    return ContentResponse(
        content=content.text,
        tier=content.tier.value,
        difficulty=difficulty,
        metadata=content.metadata,
    )
