"""Tiered content/response generator.

Content comes from an ordered list of strategies and the first success
wins:

1. RemoteGenerationStrategy: the external LLM service
2. TemplateGenerationStrategy: local templates chosen by intent
3. StaticPlaceholderStrategy: an informative "temporarily unavailable" text

A strategy signals failure by raising GenerationError. The generator itself
never raises: a remote timeout falls straight through to the next tier
without retrying.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Sequence

import structlog

from schooltutor.config.app_config import get_provider_config, load_app_config
from schooltutor.core.adaptation import difficulty_guidance
from schooltutor.core.errors import StoreError
from schooltutor.core.models import (
    ConversationTurn,
    ProgressEventType,
    StudentProfile,
    new_progress_event,
)
from schooltutor.core.templates import (
    DEFAULT_GRADE,
    TemplateContext,
    classify_intent,
    render_lesson,
    render_placeholder,
    render_response,
    render_welcome,
)
from schooltutor.db.progress_store import ProgressStore
from schooltutor.llm.client import (
    DEFAULT_CONFIG_PATH,
    GenerationError,
    LLMClient,
    LLMConfig,
)
from schooltutor.utils.text_utils import truncate

logger = structlog.get_logger(__name__)

RequestKind = Literal["lesson", "welcome", "reply"]

# Turns of conversation embedded in the remote prompt
HISTORY_WINDOW = 10

PHASE_GUIDANCE: dict[str, str] = {
    "introduction": "Introduce the topic and find out what the student already knows.",
    "learning": "Explain the current section clearly, one idea at a time.",
    "practice": "Give practice questions and feedback on the student's answers.",
    "assessment": "Check understanding with short assessment questions and summarize progress.",
}


class GenerationTier(Enum):
    """Which strategy produced a piece of content."""

    REMOTE = "remote"
    TEMPLATE = "template"
    STATIC = "static"


@dataclass
class GenerationRequest:
    """Everything a strategy needs to produce lesson or reply text."""

    kind: RequestKind
    subject: str
    topic: str
    student: StudentProfile | None = None
    difficulty: str = "moderate"
    message: str = ""
    history: Sequence[ConversationTurn] = field(default_factory=list)
    phase: str = "introduction"
    session_id: str = ""
    student_id: str = ""
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def grade(self) -> str:
        if self.student and self.student.grade:
            return self.student.grade
        return self.metadata.get("grade", "")

    @property
    def message_count(self) -> int:
        return len(self.history)


@dataclass
class GeneratedContent:
    """Generated text plus where it came from."""

    text: str
    tier: GenerationTier
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "tier": self.tier.value, "metadata": dict(self.metadata)}


# =============================================================================
# PROMPTS
# =============================================================================


def build_system_prompt(request: GenerationRequest) -> str:
    """System context describing the tutor and the student."""
    student = request.student
    grade = request.grade or DEFAULT_GRADE
    board = (student.board if student else "") or request.metadata.get("board", "")
    country = (student.country if student else "") or request.metadata.get("country", "")

    curriculum = f"Grade {grade}"
    if board:
        curriculum += f", {board} curriculum"
    if country:
        curriculum += f", {country}"

    return (
        f"You are a patient, encouraging {request.subject} tutor for a student in "
        f"{curriculum}. Explain with age-appropriate language and examples, use "
        f"Markdown headings and lists, and end with a question that keeps the "
        f"student thinking.\n"
        f"Difficulty: {request.difficulty}. {difficulty_guidance(request.difficulty)}\n"
        f"Phase: {request.phase}. {PHASE_GUIDANCE.get(request.phase, '')}"
    )


def _format_history(history: Sequence[ConversationTurn], window: int) -> str:
    recent = list(history)[-window:]
    return "\n".join(f"- {turn.role}: {truncate(turn.content, 300)}" for turn in recent)


def build_user_prompt(request: GenerationRequest, history_window: int = HISTORY_WINDOW) -> str:
    """User prompt for the remote tier."""
    student = request.student
    lines = [
        f"Subject: {request.subject}",
        f"Topic: {request.topic}",
        f"Grade: {request.grade or DEFAULT_GRADE}",
    ]
    if student:
        if student.board:
            lines.append(f"Board: {student.board}")
        if student.country:
            lines.append(f"Country: {student.country}")
        lines.append(f"Knowledge level: {student.get_knowledge_level(request.subject)}/100")

    if request.history:
        lines.append("")
        lines.append("Recent conversation:")
        lines.append(_format_history(request.history, history_window))

    lines.append("")
    if request.kind == "lesson":
        lines.append(
            f"Write a complete {request.difficulty} lesson on {request.topic} with an "
            f"introduction, key concepts, a worked example and three practice questions."
        )
    elif request.kind == "welcome":
        lines.append(
            f"Welcome the student to a new session on {request.topic} and start "
            f"teaching the first idea right away."
        )
    else:
        lines.append(f"Student message: {request.message}")
        lines.append("Reply as the tutor, continuing the conversation above.")

    return "\n".join(lines)


# =============================================================================
# STRATEGIES
# =============================================================================


class GenerationStrategy(ABC):
    """One way of producing content. Raises GenerationError on failure."""

    tier: GenerationTier

    @abstractmethod
    def generate(self, request: GenerationRequest) -> str:
        """Text for the request."""


class RemoteGenerationStrategy(GenerationStrategy):
    """Tier 1: a single call to the external LLM service."""

    tier = GenerationTier.REMOTE

    def __init__(
        self,
        client: LLMClient | None = None,
        timeout: float | None = None,
        history_window: int = HISTORY_WINDOW,
    ):
        self._client = client
        self._timeout = timeout
        self.history_window = history_window

    def _get_client(self) -> LLMClient:
        """Get or create LLM client."""
        if self._client is None:
            timeout = self._timeout
            if timeout is None:
                timeout = load_app_config().tutor.generation_timeout
            try:
                self._client = LLMClient(llm_config(), timeout=timeout)
            except Exception as e:
                raise GenerationError(f"Cannot create LLM client: {e}") from e
        return self._client

    def generate(self, request: GenerationRequest) -> str:
        client = self._get_client()
        return client.generate(
            build_user_prompt(request, self.history_window),
            build_system_prompt(request),
        )


class TemplateGenerationStrategy(GenerationStrategy):
    """Tier 2: local templates, needs the student's profile."""

    tier = GenerationTier.TEMPLATE

    def generate(self, request: GenerationRequest) -> str:
        student = request.student
        if student is None:
            raise GenerationError("No student profile available for local generation")

        ctx = TemplateContext(
            subject=request.subject,
            topic=request.topic,
            grade=request.grade or DEFAULT_GRADE,
            student_name=student.name or "there",
            difficulty=request.difficulty,
            message=request.message,
            message_count=request.message_count,
        )
        if request.kind == "lesson":
            return render_lesson(ctx)
        if request.kind == "welcome":
            return render_welcome(ctx)
        return render_response(classify_intent(request.message), ctx)


class StaticPlaceholderStrategy(GenerationStrategy):
    """Tier 3: always succeeds."""

    tier = GenerationTier.STATIC

    def generate(self, request: GenerationRequest) -> str:
        student = request.student
        return render_placeholder(
            session_id=request.session_id,
            subject=request.subject,
            topic=request.topic,
            student_id=request.student_id or (student.student_id if student else ""),
            grade=request.grade,
            board=(student.board if student else "") or request.metadata.get("board", ""),
            country=(student.country if student else "") or request.metadata.get("country", ""),
        )


def llm_config() -> LLMConfig:
    """LLM settings from configs/models.yaml, else the default provider in app config."""
    if DEFAULT_CONFIG_PATH.exists():
        return LLMConfig.from_yaml(DEFAULT_CONFIG_PATH)

    provider_name = load_app_config().tutor.default_provider
    provider = get_provider_config(provider_name)
    if provider is None:
        return LLMConfig()
    return LLMConfig.for_provider(
        provider_name,
        provider.default_model,
        base_url=provider.base_url or "",
        api_key=provider.get_api_key(),
    )


def default_strategies(client: LLMClient | None = None) -> list[GenerationStrategy]:
    return [
        RemoteGenerationStrategy(client, history_window=load_app_config().tutor.history_window),
        TemplateGenerationStrategy(),
        StaticPlaceholderStrategy(),
    ]


# =============================================================================
# GENERATOR
# =============================================================================


class ContentGenerator:
    """Runs strategies in order; the first non-empty result wins."""

    def __init__(
        self,
        strategies: list[GenerationStrategy] | None = None,
        progress_store: ProgressStore | None = None,
    ):
        self.strategies = strategies if strategies is not None else default_strategies()
        self.progress_store = progress_store
        self._placeholder = StaticPlaceholderStrategy()

    @property
    def tiers(self) -> list[GenerationTier]:
        return [s.tier for s in self.strategies]

    def generate(self, request: GenerationRequest, record: bool = False) -> GeneratedContent:
        """Produce content for a request.

        Args:
            request: What to generate
            record: Persist the result as a progress event (best-effort)

        Returns:
            GeneratedContent from the first tier that succeeded
        """
        failures: list[dict[str, str]] = []

        for strategy in self.strategies:
            try:
                text = strategy.generate(request)
            except GenerationError as e:
                logger.warning(
                    "generation_tier_failed",
                    tier=strategy.tier.value,
                    kind=request.kind,
                    error=str(e),
                )
                failures.append({"tier": strategy.tier.value, "error": str(e)})
                continue
            except Exception as e:
                logger.error(
                    "generation_tier_crashed",
                    tier=strategy.tier.value,
                    kind=request.kind,
                    error=str(e),
                )
                failures.append({"tier": strategy.tier.value, "error": str(e)})
                continue

            if not text or not text.strip():
                failures.append({"tier": strategy.tier.value, "error": "empty output"})
                continue

            content = self._result(text, strategy.tier, request, failures)
            break
        else:
            # Custom strategy lists may omit the static tier
            content = self._result(
                self._placeholder.generate(request), GenerationTier.STATIC, request, failures
            )

        logger.info(
            "content_generated",
            kind=request.kind,
            tier=content.tier.value,
            subject=request.subject,
            topic=request.topic,
            failed_tiers=len(failures),
        )

        if record:
            self._record(request, content)
        return content

    def _result(
        self,
        text: str,
        tier: GenerationTier,
        request: GenerationRequest,
        failures: list[dict[str, str]],
    ) -> GeneratedContent:
        metadata: dict[str, Any] = {
            "kind": request.kind,
            "difficulty": request.difficulty,
            "phase": request.phase,
            "fallback_used": tier is not GenerationTier.REMOTE,
        }
        if request.kind == "reply":
            metadata["intent"] = classify_intent(request.message).value
        if failures:
            metadata["failures"] = failures
        return GeneratedContent(text=text, tier=tier, metadata=metadata)

    def _record(self, request: GenerationRequest, content: GeneratedContent) -> None:
        """Persist generated content as a progress event (best-effort)."""
        student_id = request.student_id or (request.student.student_id if request.student else "")
        if self.progress_store is None or not student_id:
            return

        if request.kind == "reply":
            event_type = ProgressEventType.CHAT_INTERACTION
            payload = {"user_message": request.message, "ai_response": content.text}
        else:
            event_type = ProgressEventType.CONTENT_GENERATED
            payload = {"kind": request.kind, "topic": request.topic}
        payload["tier"] = content.tier.value
        payload["difficulty"] = request.difficulty

        try:
            self.progress_store.append(
                new_progress_event(
                    student_id=student_id,
                    subject=request.subject,
                    event_type=event_type,
                    session_id=request.session_id or None,
                    activity=request.topic,
                    content=payload,
                )
            )
        except StoreError as e:
            logger.warning("failed_to_record_generation", error=str(e), student_id=student_id)


def generate_content(
    student: StudentProfile | None,
    subject: str,
    topic: str,
    difficulty: str = "moderate",
    request_context: dict[str, Any] | None = None,
    generator: ContentGenerator | None = None,
) -> GeneratedContent:
    """Generate a lesson for a student; always returns non-empty text.

    Args:
        student: Student profile (None degrades to the static tier)
        subject: Subject of the lesson
        topic: Topic of the lesson
        difficulty: Difficulty tier
        request_context: Optional session_id, history and metadata
        generator: Generator to use (default strategies when omitted)

    Returns:
        GeneratedContent from the first tier that succeeded
    """
    context = request_context or {}
    request = GenerationRequest(
        kind="lesson",
        subject=subject,
        topic=topic,
        student=student,
        difficulty=difficulty,
        history=context.get("history", []),
        session_id=context.get("session_id", ""),
        student_id=context.get("student_id", student.student_id if student else ""),
        metadata=context.get("metadata", {}),
    )
    return (generator or ContentGenerator()).generate(request, record=context.get("record", False))
