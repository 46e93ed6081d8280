"""Session management for Web API.

Async front for the TutorEngine. Turns within one session are serialized
with a per-session lock; engine calls (which may wait on the LLM) run in
a worker thread so they do not block the event loop.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from schooltutor.core.session import TutorEngine, TutorReply, TutorSession
from schooltutor.web.services import get_tutor_engine

logger = structlog.get_logger(__name__)


class SessionManager:
    """Manages active tutoring sessions for the web layer."""

    def __init__(self, engine: TutorEngine | None = None):
        self._engine = engine
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock = asyncio.Lock()

    def _get_tutor_engine(self) -> TutorEngine:
        """Get the tutor engine instance."""
        if self._engine is None:
            self._engine = get_tutor_engine()
        return self._engine

    async def _session_lock(self, session_id: str) -> asyncio.Lock:
        async with self._lock:
            return self._locks.setdefault(session_id, asyncio.Lock())

    async def create_session(self, student_id: str, subject: str, topic: str) -> TutorSession:
        """Start a new tutoring session.

        Args:
            student_id: ID of the student
            subject: Subject to study
            topic: Topic within the subject

        Returns:
            The created TutorSession (welcome turn included)
        """
        engine = self._get_tutor_engine()
        session = await asyncio.to_thread(engine.start_session, student_id, subject, topic)

        logger.info(
            "session_created",
            session_id=session.id,
            student_id=student_id,
            subject=subject,
        )
        return session

    async def get_session(self, session_id: str) -> TutorSession | None:
        """Get a session by ID."""
        return self._get_tutor_engine().get_session(session_id)

    async def send_message(self, session_id: str, text: str) -> TutorReply:
        """Process a student message and return the tutor's reply."""
        engine = self._get_tutor_engine()
        lock = await self._session_lock(session_id)

        async with lock:
            reply = await asyncio.to_thread(engine.send_message, session_id, text)

        logger.info(
            "input_processed",
            session_id=session_id,
            text_length=len(text),
            tier=reply.tier.value,
        )
        return reply

    async def end_session(self, session_id: str) -> dict[str, Any] | None:
        """End a session.

        Returns:
            Session summary, or None if not found
        """
        engine = self._get_tutor_engine()
        lock = await self._session_lock(session_id)

        async with lock:
            summary = await asyncio.to_thread(engine.end_session, session_id)

        async with self._lock:
            self._locks.pop(session_id, None)
        return summary

    async def list_sessions(self, student_id: str | None = None) -> list[TutorSession]:
        """List active sessions, optionally for one student."""
        return self._get_tutor_engine().list_sessions(student_id)


# Global session manager instance
_session_manager: SessionManager | None = None


def get_session_manager() -> SessionManager:
    """Get the global session manager instance."""
    global _session_manager
    if _session_manager is None:
        _session_manager = SessionManager()
    return _session_manager


def reset_session_manager() -> None:
    """Reset the session manager (for testing)."""
    global _session_manager
    _session_manager = None
