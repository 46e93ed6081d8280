"""Tutoring session endpoints."""

from fastapi import APIRouter, HTTPException, status

from schooltutor.core.errors import SessionNotFoundError
from schooltutor.web.schemas import (
    MessageRequest,
    ReplyResponse,
    SessionResponse,
    SessionStartRequest,
    SessionSummaryResponse,
)
from schooltutor.web.sessions import get_session_manager

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def start_session(request: SessionStartRequest) -> SessionResponse:
    """Start a tutoring session; the response carries the welcome turn."""
    session = await get_session_manager().create_session(
        request.student_id, request.subject, request.topic
    )
    return SessionResponse(**session.to_dict())


@router.get("", response_model=list[SessionResponse])
async def list_sessions(student_id: str | None = None) -> list[SessionResponse]:
    """List live sessions, optionally for one student."""
    sessions = await get_session_manager().list_sessions(student_id)
    return [SessionResponse(**s.to_dict(include_turns=False)) for s in sessions]


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str) -> SessionResponse:
    """Get a session with its full history."""
    session = await get_session_manager().get_session(session_id)

    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session '{session_id}' not found",
        )

    return SessionResponse(**session.to_dict())


@router.post("/{session_id}/messages", response_model=ReplyResponse)
async def send_message(session_id: str, request: MessageRequest) -> ReplyResponse:
    """Send a student message and get the tutor's reply."""
    reply = await get_session_manager().send_message(session_id, request.message)
    return ReplyResponse(**reply.to_dict())


@router.delete("/{session_id}", response_model=SessionSummaryResponse)
async def end_session(session_id: str) -> SessionSummaryResponse:
    """End a session and record its summary."""
    summary = await get_session_manager().end_session(session_id)

    if summary is None:
        raise SessionNotFoundError(session_id)

    return SessionSummaryResponse(**summary)
