"""Tutoring session state machine.

A TutorSession holds the conversation and its LearningState across turns.
Phases only move forward:

    introduction -> learning -> practice -> assessment

Each student turn resolves the difficulty from the student's history in
the subject, asks the content generator for a reply, updates the learning
counters and appends a chat_interaction progress event. Ending a session
projects it into a learning_session event and discards it; the session
object itself is never persisted.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog

from schooltutor.core.adaptation import (
    DIFFICULTY_WINDOW,
    calculate_difficulty,
    update_knowledge_level,
)
from schooltutor.core.errors import (
    InvalidRequestError,
    SessionNotFoundError,
    StoreError,
    StudentNotFoundError,
)
from schooltutor.core.generator import ContentGenerator, GenerationRequest, GenerationTier
from schooltutor.core.metrics import calculate_engagement_score
from schooltutor.core.models import (
    DEFAULT_RETENTION_DAYS,
    ConversationTurn,
    Engagement,
    Performance,
    ProgressEvent,
    ProgressEventType,
    StudentProfile,
    new_progress_event,
    utc_now_iso,
)
from schooltutor.core.session_store import InMemorySessionStore, SessionStore
from schooltutor.core.templates import Intent, classify_intent, is_assessment_request
from schooltutor.db.profile_store import ProfileStore
from schooltutor.db.progress_store import ProgressStore

logger = structlog.get_logger(__name__)

# Student turns spent in learning before moving to practice
LEARNING_TURNS = 4

# Practice answers before moving to assessment
PRACTICE_ANSWERS = 3

MAX_UNDERSTANDING = 10

# Answers that admit not knowing are never counted as correct
UNSURE_PATTERNS = [
    r"\bdon'?t\s+know\b",
    r"\bno\s+idea\b",
    r"\bnot\s+sure\b",
    r"\bi\s+give\s+up\b",
]


class LearningPhase(Enum):
    """Phases of a tutoring session."""

    INTRODUCTION = "introduction"
    LEARNING = "learning"
    PRACTICE = "practice"
    ASSESSMENT = "assessment"


def default_sections(topic: str) -> list[str]:
    """Generic outline used to track progress through a topic."""
    return [
        f"Introduction to {topic}",
        f"Core concepts of {topic}",
        f"Worked examples of {topic}",
        f"Applying {topic}",
        f"Review of {topic}",
    ]


@dataclass
class LearningState:
    """Where the student is within the session."""

    current_phase: LearningPhase = LearningPhase.INTRODUCTION
    topic_sections: list[str] = field(default_factory=list)
    current_section_index: int = 0
    questions_asked: int = 0
    correct_answers: int = 0
    understanding_level: int = 0
    turns_in_phase: int = 0

    @property
    def current_section(self) -> str:
        if not self.topic_sections:
            return ""
        return self.topic_sections[self.current_section_index]

    @property
    def sections_covered(self) -> bool:
        return bool(self.topic_sections) and (
            self.current_section_index >= len(self.topic_sections) - 1
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_phase": self.current_phase.value,
            "topic_sections": list(self.topic_sections),
            "current_section_index": self.current_section_index,
            "questions_asked": self.questions_asked,
            "correct_answers": self.correct_answers,
            "understanding_level": self.understanding_level,
        }


@dataclass
class TutorSession:
    """A live tutoring conversation."""

    id: str
    student_id: str
    subject: str
    topic: str
    turns: list[ConversationTurn] = field(default_factory=list)
    state: LearningState = field(default_factory=LearningState)
    started_at: str = ""
    last_activity: str = ""
    metadata: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.started_at:
            self.started_at = utc_now_iso()
        if not self.last_activity:
            self.last_activity = self.started_at
        if not self.state.topic_sections:
            self.state.topic_sections = default_sections(self.topic)

    @property
    def student_turns(self) -> int:
        return sum(1 for t in self.turns if t.role == "student")

    def minutes_elapsed(self, now: datetime | None = None) -> float:
        started = datetime.fromisoformat(self.started_at)
        end = now or datetime.now(timezone.utc)
        return max(0.0, (end - started).total_seconds() / 60)

    def to_dict(self, include_turns: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "student_id": self.student_id,
            "subject": self.subject,
            "topic": self.topic,
            "learning_state": self.state.to_dict(),
            "started_at": self.started_at,
            "last_activity": self.last_activity,
            "metadata": dict(self.metadata),
            "turn_count": len(self.turns),
        }
        if include_turns:
            data["turns"] = [t.to_dict() for t in self.turns]
        return data


@dataclass
class TutorReply:
    """Outcome of one student turn."""

    session: TutorSession
    turn: ConversationTurn
    tier: GenerationTier
    difficulty: str
    intent: Intent
    phase_changed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session.id,
            "reply": self.turn.to_dict(),
            "tier": self.tier.value,
            "difficulty": self.difficulty,
            "intent": self.intent.value,
            "phase": self.session.state.current_phase.value,
            "phase_changed": self.phase_changed,
            "learning_state": self.session.state.to_dict(),
        }


# =============================================================================
# TRANSITIONS AND HEURISTICS
# =============================================================================


def is_unsure(text: str) -> bool:
    text_lower = text.lower()
    return any(re.search(p, text_lower) for p in UNSURE_PATTERNS)


def next_phase(state: LearningState, intent: Intent, text: str) -> LearningPhase:
    """Phase after the current student turn. Moves at most one step."""
    phase = state.current_phase

    if phase is LearningPhase.INTRODUCTION:
        return LearningPhase.LEARNING

    if phase is LearningPhase.LEARNING:
        if (
            intent is Intent.PRACTICE
            or state.turns_in_phase >= LEARNING_TURNS
            or state.sections_covered
        ):
            return LearningPhase.PRACTICE
        return phase

    if phase is LearningPhase.PRACTICE:
        if is_assessment_request(text) or state.questions_asked >= PRACTICE_ANSWERS:
            return LearningPhase.ASSESSMENT
        return phase

    return phase


def _shift_understanding(state: LearningState, delta: int) -> None:
    state.understanding_level = max(0, min(MAX_UNDERSTANDING, state.understanding_level + delta))


def update_learning_state(
    state: LearningState,
    text: str,
    intent: Intent,
    answered_phase: LearningPhase,
) -> None:
    """Update counters from a student message.

    In practice and assessment, a message that is not itself a question or
    a request is an answer to the tutor's question. It counts as correct
    unless the student says they are confused or unsure.
    """
    is_question = "?" in text
    answering = answered_phase in (LearningPhase.PRACTICE, LearningPhase.ASSESSMENT)

    if answering and not is_question and intent in (Intent.GENERIC, Intent.HELP):
        state.questions_asked += 1
        if intent is Intent.HELP or is_unsure(text):
            _shift_understanding(state, -1)
        else:
            state.correct_answers += 1
            _shift_understanding(state, 1)
        return

    if intent is Intent.HELP:
        _shift_understanding(state, -1)
    elif intent is Intent.CONTINUATION:
        _shift_understanding(state, 1)


# =============================================================================
# ENGINE
# =============================================================================


class TutorEngine:
    """Runs tutoring sessions on top of the stores and the generator."""

    def __init__(
        self,
        profile_store: ProfileStore,
        progress_store: ProgressStore,
        generator: ContentGenerator | None = None,
        session_store: SessionStore | None = None,
        retention_days: int = DEFAULT_RETENTION_DAYS,
    ):
        self.profile_store = profile_store
        self.progress_store = progress_store
        self.generator = generator or ContentGenerator()
        self.sessions = session_store or InMemorySessionStore()
        self.retention_days = retention_days

    # -- session lifecycle -----------------------------------------------------

    def start_session(
        self,
        student_id: str,
        subject: str,
        topic: str,
        session_id: str | None = None,
    ) -> TutorSession:
        """Start a session and generate the welcome turn.

        Raises:
            InvalidRequestError: If student_id, subject or topic is missing
            StudentNotFoundError: If the student is unknown or inactive
        """
        for name, value in (("student_id", student_id), ("subject", subject), ("topic", topic)):
            if not value or not value.strip():
                raise InvalidRequestError(f"{name} is required", field=name)

        profile = self._load_profile(student_id)

        session = TutorSession(
            id=session_id or str(uuid.uuid4())[:8],
            student_id=student_id,
            subject=subject,
            topic=topic,
            metadata={
                "grade": profile.grade if profile else "",
                "board": profile.board if profile else "",
                "country": profile.country if profile else "",
            },
        )

        welcome = self.generator.generate(
            GenerationRequest(
                kind="welcome",
                subject=subject,
                topic=topic,
                student=profile,
                difficulty=calculate_difficulty(self._recent_outcomes(student_id, subject)),
                session_id=session.id,
                student_id=student_id,
                metadata=session.metadata,
            )
        )
        session.turns.append(ConversationTurn(role="tutor", content=welcome.text))
        self.sessions.put(session.id, session)

        self._record(
            new_progress_event(
                student_id=student_id,
                subject=subject,
                event_type=ProgressEventType.SESSION_START,
                session_id=session.id,
                retention_days=self.retention_days,
                activity=topic,
                content={"topic": topic, "tier": welcome.tier.value},
            )
        )

        logger.info(
            "session_started",
            session_id=session.id,
            student_id=student_id,
            subject=subject,
            topic=topic,
            tier=welcome.tier.value,
        )
        return session

    def send_message(self, session_id: str, text: str) -> TutorReply:
        """Process one student message and return the tutor's reply.

        Raises:
            SessionNotFoundError: If the session is unknown or expired
            InvalidRequestError: If the message is empty
        """
        session = self.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if not text or not text.strip():
            raise InvalidRequestError("message is required", field="message")

        text = text.strip()
        state = session.state
        session.turns.append(ConversationTurn(role="student", content=text))

        intent = classify_intent(text)
        if intent is Intent.CONTINUATION and state.topic_sections:
            state.current_section_index = min(
                state.current_section_index + 1, len(state.topic_sections) - 1
            )

        answered_phase = state.current_phase
        state.turns_in_phase += 1
        new_phase = next_phase(state, intent, text)
        phase_changed = new_phase is not state.current_phase
        if phase_changed:
            logger.info(
                "session_phase_changed",
                session_id=session.id,
                from_phase=state.current_phase.value,
                to_phase=new_phase.value,
            )
            state.current_phase = new_phase
            state.turns_in_phase = 0

        difficulty = calculate_difficulty(
            self._recent_outcomes(session.student_id, session.subject)
        )
        profile = self._load_profile_quietly(session.student_id)

        content = self.generator.generate(
            GenerationRequest(
                kind="reply",
                subject=session.subject,
                topic=session.topic,
                student=profile,
                difficulty=difficulty,
                message=text,
                history=session.turns[:-1],
                phase=state.current_phase.value,
                session_id=session.id,
                student_id=session.student_id,
                metadata=session.metadata,
            )
        )

        reply = ConversationTurn(role="tutor", content=content.text)
        session.turns.append(reply)
        update_learning_state(state, text, intent, answered_phase)
        session.last_activity = reply.timestamp
        self.sessions.put(session.id, session)

        self._record(
            new_progress_event(
                student_id=session.student_id,
                subject=session.subject,
                event_type=ProgressEventType.CHAT_INTERACTION,
                session_id=session.id,
                retention_days=self.retention_days,
                activity=session.topic,
                content={
                    "user_message": text,
                    "ai_response": content.text,
                    "tier": content.tier.value,
                    "intent": intent.value,
                    "phase": state.current_phase.value,
                    "difficulty": difficulty,
                },
            )
        )
        self._touch(session.student_id)

        return TutorReply(
            session=session,
            turn=reply,
            tier=content.tier,
            difficulty=difficulty,
            intent=intent,
            phase_changed=phase_changed,
        )

    def end_session(self, session_id: str) -> dict[str, Any] | None:
        """Close a session, persist its summary event and discard it.

        Returns:
            Summary of the session, or None if it was unknown
        """
        session = self.get_session(session_id)
        if session is None:
            return None

        event = self._session_summary_event(session)
        self._record(event)
        if event.performance is not None:
            self._update_knowledge(session.student_id, session.subject, event.performance.score)

        self.sessions.delete(session_id)
        logger.info(
            "session_ended",
            session_id=session_id,
            student_id=session.student_id,
            phase=session.state.current_phase.value,
            minutes=event.time_spent,
        )

        return {
            "session_id": session.id,
            "student_id": session.student_id,
            "subject": session.subject,
            "topic": session.topic,
            "final_phase": session.state.current_phase.value,
            "time_spent": event.time_spent,
            "completed": event.completed,
            "performance": event.performance.to_dict() if event.performance else None,
            "engagement": event.engagement.to_dict() if event.engagement else None,
            "learning_state": session.state.to_dict(),
        }

    def get_session(self, session_id: str) -> TutorSession | None:
        return self.sessions.get(session_id)

    def list_sessions(self, student_id: str | None = None) -> list[TutorSession]:
        sessions = self.sessions.values()
        if student_id is not None:
            sessions = [s for s in sessions if s.student_id == student_id]
        return sessions

    # -- helpers ---------------------------------------------------------------

    def _session_summary_event(self, session: TutorSession) -> ProgressEvent:
        state = session.state
        minutes = round(session.minutes_elapsed(), 1)
        completed = state.current_phase is LearningPhase.ASSESSMENT

        performance = None
        if state.questions_asked:
            performance = Performance(
                score=round(state.correct_answers / state.questions_asked * 100, 1)
            )

        observed = Engagement(
            participation=min(100, session.student_turns * 10),
            interaction=min(100, state.understanding_level * 10),
        )
        engagement = Engagement(
            participation=observed.participation,
            interaction=observed.interaction,
            score=calculate_engagement_score(observed, minutes, completed),
        )

        return new_progress_event(
            student_id=session.student_id,
            subject=session.subject,
            event_type=ProgressEventType.LEARNING_SESSION,
            session_id=session.id,
            retention_days=self.retention_days,
            performance=performance,
            engagement=engagement,
            time_spent=minutes,
            completed=completed,
            activity=session.topic,
            content={
                "topic": session.topic,
                "final_phase": state.current_phase.value,
                "turns": len(session.turns),
                "understanding_level": state.understanding_level,
            },
        )

    def _load_profile(self, student_id: str) -> StudentProfile | None:
        """Profile for a new session.

        An unknown or inactive student is an error. A store failure is not:
        the session starts without a profile and generation degrades.
        """
        try:
            profile = self.profile_store.get(student_id)
        except StoreError as e:
            logger.warning("profile_lookup_failed", student_id=student_id, error=str(e))
            return None
        if profile is None or not profile.is_active:
            raise StudentNotFoundError(student_id)
        return profile

    def _load_profile_quietly(self, student_id: str) -> StudentProfile | None:
        try:
            return self.profile_store.get(student_id)
        except StoreError as e:
            logger.warning("profile_lookup_failed", student_id=student_id, error=str(e))
            return None

    def _recent_outcomes(self, student_id: str, subject: str) -> list[ProgressEvent]:
        try:
            return self.progress_store.query(
                student_id, subject=subject, limit=DIFFICULTY_WINDOW, outcomes_only=True
            )
        except StoreError as e:
            logger.warning("history_lookup_failed", student_id=student_id, error=str(e))
            return []

    def _record(self, event: ProgressEvent) -> None:
        """Append a progress event; failures never break the session."""
        try:
            self.progress_store.append(event)
        except StoreError as e:
            logger.warning(
                "failed_to_record_event",
                event_type=event.event_type.value,
                session_id=event.session_id,
                error=str(e),
            )

    def _touch(self, student_id: str) -> None:
        try:
            self.profile_store.touch(student_id)
        except StoreError as e:
            logger.warning("failed_to_touch_profile", student_id=student_id, error=str(e))

    def _update_knowledge(self, student_id: str, subject: str, score: float) -> None:
        try:
            profile = self.profile_store.get(student_id)
            if profile is None:
                return
            entry = update_knowledge_level(profile, subject, score)
            self.profile_store.update(student_id, {"knowledge_level": {subject: entry}})
        except StoreError as e:
            logger.warning("failed_to_update_knowledge", student_id=student_id, error=str(e))
