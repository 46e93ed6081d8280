"""Domain records: student profiles, curriculum topics and progress events.

StudentProfile is the one mutable record per student. ProgressEvent is an
immutable, timestamped fact; events expire after the retention window.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Literal

LearningPace = Literal["slow", "medium", "fast"]

LEARNING_PACES: tuple[str, ...] = ("slow", "medium", "fast")

# Level assumed for a subject the student has no estimate for yet
DEFAULT_KNOWLEDGE_LEVEL = 50

DEFAULT_RETENTION_DAYS = 365

# Fields counted by StudentProfile.profile_completeness
_COMPLETENESS_FIELDS = ("name", "grade", "board", "country", "school")


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def generate_student_id() -> str:
    """Generate a new student id (e.g. "stu3f9a12bc")."""
    return f"stu{uuid.uuid4().hex[:8]}"


def generate_topic_id() -> str:
    return f"topic_{uuid.uuid4().hex[:12]}"


class ProgressEventType(Enum):
    """Kinds of progress events."""

    LEARNING_SESSION = "learning_session"
    SESSION_START = "session_start"
    CONTENT_GENERATED = "content_generated"
    CHAT_INTERACTION = "chat_interaction"
    ASSESSMENT = "assessment"
    PROGRESS_UPDATE = "progress_update"


@dataclass
class KnowledgeEntry:
    """Mastery estimate for one subject."""

    level: int = DEFAULT_KNOWLEDGE_LEVEL
    last_updated: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"level": self.level, "last_updated": self.last_updated}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KnowledgeEntry:
        return cls(
            level=int(data.get("level", DEFAULT_KNOWLEDGE_LEVEL)),
            last_updated=data.get("last_updated", ""),
        )


@dataclass
class StudentProfile:
    """Identity, curriculum metadata and knowledge map for one student."""

    student_id: str
    name: str
    grade: str = ""
    board: str = ""
    country: str = ""
    school: str = ""
    subjects: list[str] = field(default_factory=list)
    learning_pace: LearningPace = "medium"
    knowledge_level: dict[str, KnowledgeEntry] = field(default_factory=dict)
    is_active: bool = True
    created_at: str = ""
    updated_at: str = ""
    last_interaction: str = ""

    def __post_init__(self):
        """Set timestamps if not provided."""
        now = utc_now_iso()
        if not self.created_at:
            self.created_at = now
        if not self.updated_at:
            self.updated_at = now
        if not self.last_interaction:
            self.last_interaction = self.created_at

    @property
    def profile_completeness(self) -> int:
        """Percentage of the identity fields that are filled."""
        filled = sum(1 for name in _COMPLETENESS_FIELDS if getattr(self, name))
        return round(filled / len(_COMPLETENESS_FIELDS) * 100)

    @property
    def grade_number(self) -> int | None:
        """Numeric grade if the grade string starts with digits ("9", "10th")."""
        digits = ""
        for char in self.grade.strip():
            if not char.isdigit():
                break
            digits += char
        return int(digits) if digits else None

    def get_knowledge_level(self, subject: str) -> int:
        """Current level for a subject (50 when unknown)."""
        entry = self.knowledge_level.get(subject)
        return entry.level if entry else DEFAULT_KNOWLEDGE_LEVEL

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "student_id": self.student_id,
            "name": self.name,
            "grade": self.grade,
            "board": self.board,
            "country": self.country,
            "school": self.school,
            "subjects": list(self.subjects),
            "learning_pace": self.learning_pace,
            "knowledge_level": {
                subject: entry.to_dict()
                for subject, entry in self.knowledge_level.items()
            },
            "is_active": self.is_active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "last_interaction": self.last_interaction,
            "profile_completeness": self.profile_completeness,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StudentProfile:
        """Create from dictionary (inverse of to_dict)."""
        return cls(
            student_id=data["student_id"],
            name=data.get("name", ""),
            grade=data.get("grade", ""),
            board=data.get("board", ""),
            country=data.get("country", ""),
            school=data.get("school", ""),
            subjects=list(data.get("subjects", [])),
            learning_pace=data.get("learning_pace", "medium"),
            knowledge_level={
                subject: KnowledgeEntry.from_dict(entry)
                for subject, entry in data.get("knowledge_level", {}).items()
            },
            is_active=bool(data.get("is_active", True)),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
            last_interaction=data.get("last_interaction", ""),
        )


@dataclass
class CurriculumTopic:
    """One curriculum topic assigned to a student in a subject.

    Topics are seeded per subject when a student is registered and are only
    ever changed by marking them completed.
    """

    topic_id: str
    student_id: str
    subject: str
    name: str
    description: str = ""
    chapter: int = 1
    difficulty: str = "beginner"
    duration_minutes: int = 60
    objectives: list[str] = field(default_factory=list)
    prerequisites: list[str] = field(default_factory=list)
    board: str = ""
    grade: str = ""
    is_completed: bool = False
    completion_score: float | None = None
    completed_at: str = ""
    created_at: str = ""

    def __post_init__(self):
        if not self.created_at:
            self.created_at = utc_now_iso()

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic_id": self.topic_id,
            "student_id": self.student_id,
            "subject": self.subject,
            "name": self.name,
            "description": self.description,
            "chapter": self.chapter,
            "difficulty": self.difficulty,
            "duration_minutes": self.duration_minutes,
            "objectives": list(self.objectives),
            "prerequisites": list(self.prerequisites),
            "board": self.board,
            "grade": self.grade,
            "is_completed": self.is_completed,
            "completion_score": self.completion_score,
            "completed_at": self.completed_at,
            "created_at": self.created_at,
        }


@dataclass
class ConversationTurn:
    """One message in a tutoring conversation."""

    role: Literal["tutor", "student"]
    content: str
    timestamp: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = utc_now_iso()

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}


@dataclass(frozen=True)
class Performance:
    """Outcome of an activity, score in 0-100."""

    score: float

    def to_dict(self) -> dict[str, Any]:
        return {"score": self.score}


@dataclass(frozen=True)
class Engagement:
    """Engagement observations for an activity."""

    participation: float = 0.0
    interaction: float = 0.0
    score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "participation": self.participation,
            "interaction": self.interaction,
            "score": self.score,
        }


@dataclass(frozen=True)
class ProgressEvent:
    """Immutable fact about a learning interaction.

    Ordering is by ``timestamp`` only (sortable ISO-8601 UTC string).
    """

    student_id: str
    timestamp: str
    session_id: str
    subject: str
    event_type: ProgressEventType
    performance: Performance | None = None
    engagement: Engagement | None = None
    time_spent: float | None = None
    completed: bool | None = None
    activity: str | None = None
    notes: str | None = None
    content: dict[str, Any] = field(default_factory=dict)
    expires_at: int = 0

    @property
    def date(self) -> str:
        """Calendar date part of the timestamp (YYYY-MM-DD)."""
        return self.timestamp[:10]

    @property
    def score(self) -> float | None:
        return self.performance.score if self.performance else None

    def with_expiry(self, retention_days: int = DEFAULT_RETENTION_DAYS) -> ProgressEvent:
        """Copy with expires_at set from the timestamp and retention window."""
        written = datetime.fromisoformat(self.timestamp.replace("Z", "+00:00"))
        if written.tzinfo is None:
            written = written.replace(tzinfo=timezone.utc)
        expiry = written + timedelta(days=retention_days)
        return replace(self, expires_at=int(expiry.timestamp()))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "student_id": self.student_id,
            "timestamp": self.timestamp,
            "session_id": self.session_id,
            "subject": self.subject,
            "type": self.event_type.value,
            "performance": self.performance.to_dict() if self.performance else None,
            "engagement": self.engagement.to_dict() if self.engagement else None,
            "time_spent": self.time_spent,
            "completed": self.completed,
            "activity": self.activity,
            "notes": self.notes,
            "content": dict(self.content),
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProgressEvent:
        """Create from dictionary (inverse of to_dict)."""
        performance = data.get("performance")
        engagement = data.get("engagement")
        return cls(
            student_id=data["student_id"],
            timestamp=data["timestamp"],
            session_id=data.get("session_id", ""),
            subject=data.get("subject", ""),
            event_type=ProgressEventType(data.get("type", "progress_update")),
            performance=Performance(**performance) if performance else None,
            engagement=Engagement(**engagement) if engagement else None,
            time_spent=data.get("time_spent"),
            completed=data.get("completed"),
            activity=data.get("activity"),
            notes=data.get("notes"),
            content=dict(data.get("content") or {}),
            expires_at=int(data.get("expires_at") or 0),
        )


def new_progress_event(
    student_id: str,
    subject: str,
    event_type: ProgressEventType,
    session_id: str | None = None,
    timestamp: str | None = None,
    retention_days: int = DEFAULT_RETENTION_DAYS,
    **fields: Any,
) -> ProgressEvent:
    """Build a ProgressEvent with timestamp, session id and expiry filled in.

    Args:
        student_id: Owner of the event
        subject: Subject the event belongs to
        event_type: Kind of event
        session_id: Session id (a new uuid when omitted)
        timestamp: ISO timestamp (now when omitted)
        retention_days: Days until the event expires
        **fields: Optional ProgressEvent fields (performance, engagement, ...)

    Returns:
        New immutable event
    """
    event = ProgressEvent(
        student_id=student_id,
        timestamp=timestamp or utc_now_iso(),
        session_id=session_id or str(uuid.uuid4()),
        subject=subject,
        event_type=event_type,
        **fields,
    )
    return event.with_expiry(retention_days)
