"""Pydantic schemas for Web API.

Serialization models for students, curriculum topics, progress, analytics,
content and tutoring sessions.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


# =============================================================================
# STUDENT SCHEMAS
# =============================================================================


class KnowledgeEntryResponse(BaseModel):
    """Mastery estimate for one subject."""

    level: int
    last_updated: str


class StudentCreate(BaseModel):
    """Request body for creating a student."""

    name: str = Field(default="", max_length=100)
    grade: str = Field(default="", max_length=20)
    board: str = Field(default="", max_length=50)
    country: str = Field(default="", max_length=60)
    school: str = Field(default="", max_length=120)
    subjects: list[str] = Field(default_factory=list)
    learning_pace: Literal["slow", "medium", "fast"] = "medium"
    discover_topics: bool = True


class StudentUpdate(BaseModel):
    """Request body for updating a student (all fields optional)."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    grade: str | None = None
    board: str | None = None
    country: str | None = None
    school: str | None = None
    subjects: list[str] | None = None
    learning_pace: Literal["slow", "medium", "fast"] | None = None


class StudentResponse(BaseModel):
    """Response for a student."""

    student_id: str
    name: str
    grade: str
    board: str
    country: str
    school: str
    subjects: list[str]
    learning_pace: str
    knowledge_level: dict[str, KnowledgeEntryResponse]
    is_active: bool
    created_at: str
    updated_at: str
    last_interaction: str
    profile_completeness: int
    topics_discovered: int | None = None


class StudentListResponse(BaseModel):
    """Response for list of students."""

    students: list[StudentResponse]
    count: int


# =============================================================================
# CURRICULUM SCHEMAS
# =============================================================================


class TopicResponse(BaseModel):
    """One curriculum topic."""

    topic_id: str
    student_id: str
    subject: str
    name: str
    description: str
    chapter: int
    difficulty: str
    duration_minutes: int
    objectives: list[str]
    prerequisites: list[str]
    board: str
    grade: str
    is_completed: bool
    completion_score: float | None
    completed_at: str
    created_at: str


class TopicListResponse(BaseModel):
    """Topics of a student."""

    student_id: str
    topics: list[TopicResponse]
    count: int


class TopicDiscoveryResponse(BaseModel):
    """Topics created by a discovery run."""

    student_id: str
    topics_discovered: int
    topics: list[TopicResponse]


class TopicCompleteRequest(BaseModel):
    """Request body for marking a topic completed (score 100 when omitted)."""

    score: float | None = Field(default=None, ge=0, le=100)
    completion_date: str | None = None


class TopicCompleteResponse(BaseModel):
    """Result of marking a topic completed."""

    message: str
    student_id: str
    topic: TopicResponse


# =============================================================================
# PROGRESS SCHEMAS
# =============================================================================


class EngagementIn(BaseModel):
    """Engagement observations sent with a progress update."""

    participation: float = Field(default=0, ge=0, le=100)
    interaction: float = Field(default=0, ge=0, le=100)
    score: float = Field(default=0, ge=0, le=100)


class PerformanceIn(BaseModel):
    """Performance sent with a progress update."""

    score: float


class ProgressUpdateRequest(BaseModel):
    """Request body for recording progress.

    student_id and subject are validated by the service so that a missing
    value is reported as 400 rather than 422.
    """

    student_id: str | None = None
    subject: str | None = None
    session_id: str | None = None
    type: Literal["progress_update", "assessment", "learning_session"] = "progress_update"
    activity: str | None = None
    performance: PerformanceIn | None = None
    engagement: EngagementIn | None = None
    time_spent: float | None = None
    completed: bool | None = None
    notes: str | None = None


class ProgressUpdateResponse(BaseModel):
    """Response after recording progress."""

    message: str
    progress_entry: dict[str, Any]
    engagement_score: int
    knowledge_level: KnowledgeEntryResponse | None = None


class ProgressResponse(BaseModel):
    """Progress events with summary metrics."""

    student: dict[str, Any]
    progress: list[dict[str, Any]]
    metrics: dict[str, Any]
    count: int


# =============================================================================
# CONTENT SCHEMAS
# =============================================================================


class ContentRequest(BaseModel):
    """Request body for lesson generation."""

    student_id: str | None = None
    subject: str | None = None
    topic: str | None = None
    session_id: str | None = None


class ContentResponse(BaseModel):
    """Generated lesson."""

    content: str
    tier: str
    difficulty: str
    metadata: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# SESSION SCHEMAS
# =============================================================================


class SessionStartRequest(BaseModel):
    """Request body for starting a tutoring session."""

    student_id: str = Field(default="")
    subject: str = Field(default="")
    topic: str = Field(default="")


class TurnResponse(BaseModel):
    """One message in a session."""

    role: Literal["tutor", "student"]
    content: str
    timestamp: str


class LearningStateResponse(BaseModel):
    """Learning state of a session."""

    current_phase: str
    topic_sections: list[str]
    current_section_index: int
    questions_asked: int
    correct_answers: int
    understanding_level: int


class SessionResponse(BaseModel):
    """Response for a session."""

    id: str
    student_id: str
    subject: str
    topic: str
    learning_state: LearningStateResponse
    started_at: str
    last_activity: str
    metadata: dict[str, str]
    turn_count: int
    turns: list[TurnResponse] = Field(default_factory=list)


class MessageRequest(BaseModel):
    """Request body for a student message."""

    message: str = Field(default="", max_length=4000)


class ReplyResponse(BaseModel):
    """Tutor reply to a student message."""

    session_id: str
    reply: TurnResponse
    tier: str
    difficulty: str
    intent: str
    phase: str
    phase_changed: bool
    learning_state: LearningStateResponse


class SessionSummaryResponse(BaseModel):
    """Summary returned when a session ends."""

    session_id: str
    student_id: str
    subject: str
    topic: str
    final_phase: str
    time_spent: float | None
    completed: bool | None
    performance: dict[str, Any] | None = None
    engagement: dict[str, Any] | None = None
    learning_state: LearningStateResponse


# =============================================================================
# HEALTH SCHEMAS
# =============================================================================


class HealthResponse(BaseModel):
    """Response for health check."""

    status: str
    version: str
    timestamp: str
