"""Tests for intent classification and offline templates."""

import pytest

from schooltutor.core.templates import (
    OFFLINE_NOTE,
    Intent,
    TemplateContext,
    classify_intent,
    continuation_stage,
    is_assessment_request,
    render_lesson,
    render_placeholder,
    render_response,
    render_welcome,
    subject_emoji,
)


class TestClassifyIntent:
    """Tests for classify_intent."""

    @pytest.mark.parametrize(
        "text,intent",
        [
            ("What is a fraction?", Intent.EXPLANATION),
            ("Can you explain photosynthesis", Intent.EXPLANATION),
            ("Show me an example", Intent.EXAMPLE),
            ("Give me some practice problems", Intent.PRACTICE),
            ("I need help, this is confusing", Intent.HELP),
            ("continue", Intent.CONTINUATION),
            ("next please", Intent.CONTINUATION),
            ("3/4", Intent.GENERIC),
        ],
    )
    def test_intents(self, text, intent):
        assert classify_intent(text) == intent

    def test_first_matching_intent_wins(self):
        """Explanation is checked before example."""
        assert classify_intent("Explain it with an example") == Intent.EXPLANATION

    def test_case_insensitive(self):
        assert classify_intent("PRACTICE") == Intent.PRACTICE


class TestAssessmentRequest:
    """Tests for is_assessment_request."""

    @pytest.mark.parametrize("text", ["test me", "Give me a quiz", "assess me please"])
    def test_detected(self, text):
        assert is_assessment_request(text)

    def test_not_detected(self):
        assert not is_assessment_request("tell me more")


class TestTemplates:
    """Tests for rendered templates."""

    @pytest.fixture
    def ctx(self):
        return TemplateContext(
            subject="Mathematics",
            topic="Fractions",
            grade="7",
            student_name="Asha",
            message="what is a fraction",
        )

    def test_every_intent_renders_offline_note(self, ctx):
        for intent in Intent:
            text = render_response(intent, ctx)
            assert "Fractions" in text
            assert OFFLINE_NOTE in text

    def test_welcome_mentions_student_and_grade(self, ctx):
        text = render_welcome(ctx)
        assert "Asha" in text
        assert "Grade 7" in text

    def test_lesson_uses_difficulty(self, ctx):
        ctx.difficulty = "challenging"
        assert "challenging lesson" in render_lesson(ctx)

    def test_subject_emoji(self):
        assert subject_emoji("Mathematics") == "🔢"
        assert subject_emoji("Underwater Basket Weaving") == "📖"

    def test_continuation_stage(self):
        assert continuation_stage(0) == "building on the basics"
        assert continuation_stage(4) == "exploring more advanced ideas"
        assert continuation_stage(10) == "applying what you've learned"


class TestPlaceholder:
    """Tests for the static placeholder."""

    def test_includes_identifiers(self):
        text = render_placeholder(
            session_id="abc123",
            subject="Science",
            topic="Cells",
            student_id="stu00000001",
            grade="8",
            board="CBSE",
        )
        assert "temporarily unavailable" in text
        assert "abc123" in text
        assert "stu00000001" in text
        assert "CBSE" in text
        assert "Country" not in text

    def test_without_session(self):
        text = render_placeholder(session_id="", subject="Science", topic="Cells")
        assert "n/a" in text
