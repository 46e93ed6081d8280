"""Tests for the tutoring session state machine and TutorEngine."""

from unittest.mock import MagicMock

import pytest

from schooltutor.core.errors import (
    InvalidRequestError,
    SessionNotFoundError,
    StoreError,
    StudentNotFoundError,
)
from schooltutor.core.generator import GenerationTier
from schooltutor.core.models import ProgressEventType
from schooltutor.core.session import (
    LEARNING_TURNS,
    LearningPhase,
    LearningState,
    TutorEngine,
    default_sections,
    next_phase,
    update_learning_state,
)
from schooltutor.core.templates import Intent


class TestNextPhase:
    """Tests for phase transitions."""

    def test_introduction_moves_to_learning(self):
        state = LearningState()
        assert next_phase(state, Intent.GENERIC, "hi") is LearningPhase.LEARNING

    def test_practice_intent_moves_to_practice(self):
        state = LearningState(current_phase=LearningPhase.LEARNING, topic_sections=default_sections("x"))
        assert next_phase(state, Intent.PRACTICE, "practice") is LearningPhase.PRACTICE

    def test_learning_turns_move_to_practice(self):
        state = LearningState(
            current_phase=LearningPhase.LEARNING,
            topic_sections=default_sections("x"),
            turns_in_phase=LEARNING_TURNS,
        )
        assert next_phase(state, Intent.GENERIC, "ok") is LearningPhase.PRACTICE

    def test_learning_stays(self):
        state = LearningState(
            current_phase=LearningPhase.LEARNING, topic_sections=default_sections("x"), turns_in_phase=1
        )
        assert next_phase(state, Intent.EXPLANATION, "explain") is LearningPhase.LEARNING

    def test_assessment_request_moves_to_assessment(self):
        state = LearningState(current_phase=LearningPhase.PRACTICE, topic_sections=default_sections("x"))
        assert next_phase(state, Intent.GENERIC, "quiz me") is LearningPhase.ASSESSMENT

    def test_assessment_is_terminal(self):
        state = LearningState(current_phase=LearningPhase.ASSESSMENT, topic_sections=default_sections("x"))
        assert next_phase(state, Intent.PRACTICE, "practice") is LearningPhase.ASSESSMENT


class TestUpdateLearningState:
    """Tests for counters and understanding."""

    def test_answer_in_practice_counts(self):
        state = LearningState(current_phase=LearningPhase.PRACTICE)
        update_learning_state(state, "three quarters", Intent.GENERIC, LearningPhase.PRACTICE)
        assert state.questions_asked == 1
        assert state.correct_answers == 1
        assert state.understanding_level == 1

    def test_unsure_answer_not_correct(self):
        state = LearningState(current_phase=LearningPhase.PRACTICE, understanding_level=3)
        update_learning_state(state, "I don't know", Intent.GENERIC, LearningPhase.PRACTICE)
        assert state.questions_asked == 1
        assert state.correct_answers == 0
        assert state.understanding_level == 2

    def test_question_in_learning_not_counted(self):
        state = LearningState(current_phase=LearningPhase.LEARNING)
        update_learning_state(state, "what is a fraction?", Intent.EXPLANATION, LearningPhase.LEARNING)
        assert state.questions_asked == 0

    def test_understanding_bounds(self):
        state = LearningState(current_phase=LearningPhase.LEARNING)
        update_learning_state(state, "help", Intent.HELP, LearningPhase.LEARNING)
        assert state.understanding_level == 0

        state.understanding_level = 10
        update_learning_state(state, "continue", Intent.CONTINUATION, LearningPhase.LEARNING)
        assert state.understanding_level == 10


class TestStartSession:
    """Tests for TutorEngine.start_session."""

    def test_starts_in_introduction_with_welcome(self, engine, student):
        session = engine.start_session(student.student_id, "Mathematics", "Fractions")

        assert session.state.current_phase is LearningPhase.INTRODUCTION
        assert len(session.turns) == 1
        assert session.turns[0].role == "tutor"
        assert "Asha" in session.turns[0].content
        assert session.state.topic_sections[0].startswith("Introduction")
        assert session.metadata["board"] == "CBSE"

    def test_records_session_start(self, engine, student, progress_store):
        session = engine.start_session(student.student_id, "Mathematics", "Fractions")
        events = progress_store.query(student.student_id)
        assert [e.event_type for e in events] == [ProgressEventType.SESSION_START]
        assert events[0].session_id == session.id

    def test_unknown_student(self, engine):
        with pytest.raises(StudentNotFoundError):
            engine.start_session("stu_missing", "Mathematics", "Fractions")

    def test_inactive_student(self, engine, student, profile_store):
        profile_store.deactivate(student.student_id)
        with pytest.raises(StudentNotFoundError):
            engine.start_session(student.student_id, "Mathematics", "Fractions")

    @pytest.mark.parametrize("field", ["student_id", "subject", "topic"])
    def test_missing_field(self, engine, student, field):
        args = {"student_id": student.student_id, "subject": "Mathematics", "topic": "Fractions"}
        args[field] = " "
        with pytest.raises(InvalidRequestError) as exc_info:
            engine.start_session(**args)
        assert exc_info.value.field == field

    def test_profile_store_failure_degrades(self, progress_store, offline_generator):
        """Without a readable profile the welcome is the static placeholder."""
        profiles = MagicMock()
        profiles.get.side_effect = StoreError("database is locked")
        engine = TutorEngine(profiles, progress_store, generator=offline_generator)

        session = engine.start_session("stu00000001", "Science", "Cells")
        assert "temporarily unavailable" in session.turns[0].content

    def test_unique_ids(self, engine, student):
        s1 = engine.start_session(student.student_id, "Mathematics", "Fractions")
        s2 = engine.start_session(student.student_id, "Mathematics", "Fractions")
        assert s1.id != s2.id


class TestSendMessage:
    """Tests for TutorEngine.send_message."""

    @pytest.fixture
    def session(self, engine, student):
        return engine.start_session(student.student_id, "Mathematics", "Fractions")

    def test_first_message_enters_learning(self, engine, session):
        reply = engine.send_message(session.id, "What is a fraction?")

        assert reply.phase_changed is True
        assert session.state.current_phase is LearningPhase.LEARNING
        assert reply.tier is GenerationTier.TEMPLATE
        assert reply.intent is Intent.EXPLANATION
        assert reply.difficulty == "moderate"
        assert [t.role for t in session.turns] == ["tutor", "student", "tutor"]

    def test_full_walk_to_assessment(self, engine, session):
        engine.send_message(session.id, "Explain fractions")
        engine.send_message(session.id, "Give me practice problems")
        assert session.state.current_phase is LearningPhase.PRACTICE

        for answer in ("one half", "three quarters", "I don't know"):
            engine.send_message(session.id, answer)
        assert session.state.questions_asked == 3
        assert session.state.correct_answers == 2

        reply = engine.send_message(session.id, "ok")
        assert reply.phase_changed is True
        assert session.state.current_phase is LearningPhase.ASSESSMENT

    def test_phase_never_goes_back(self, engine, session):
        engine.send_message(session.id, "hi")
        engine.send_message(session.id, "practice please")
        engine.send_message(session.id, "test me")
        assert session.state.current_phase is LearningPhase.ASSESSMENT

        engine.send_message(session.id, "explain fractions again")
        assert session.state.current_phase is LearningPhase.ASSESSMENT

    def test_continuation_advances_section(self, engine, session):
        engine.send_message(session.id, "hi")
        engine.send_message(session.id, "next")
        assert session.state.current_section_index == 1

    def test_records_chat_interaction(self, engine, session, progress_store, student):
        engine.send_message(session.id, "What is a fraction?")
        event = progress_store.query(student.student_id, limit=1)[0]
        assert event.event_type is ProgressEventType.CHAT_INTERACTION
        assert event.content["user_message"] == "What is a fraction?"
        assert event.content["ai_response"]

    def test_unknown_session(self, engine):
        with pytest.raises(SessionNotFoundError):
            engine.send_message("nope", "hello")

    def test_empty_message(self, engine, session):
        with pytest.raises(InvalidRequestError):
            engine.send_message(session.id, "   ")

    def test_store_failure_does_not_break_turn(self, student, profile_store, offline_generator):
        progress = MagicMock()
        progress.query.side_effect = StoreError("disk I/O error")
        progress.append.side_effect = StoreError("disk I/O error")
        engine = TutorEngine(profile_store, progress, generator=offline_generator)

        session = engine.start_session(student.student_id, "Mathematics", "Fractions")
        reply = engine.send_message(session.id, "explain")
        assert reply.turn.content


class TestEndSession:
    """Tests for TutorEngine.end_session."""

    def test_summary_and_event(self, engine, student, progress_store, profile_store):
        session = engine.start_session(student.student_id, "Mathematics", "Fractions")
        engine.send_message(session.id, "hi")
        engine.send_message(session.id, "practice")
        engine.send_message(session.id, "one half")
        engine.send_message(session.id, "one third")

        summary = engine.end_session(session.id)

        assert summary["final_phase"] == "practice"
        assert summary["completed"] is False
        assert summary["performance"] == {"score": 100.0}
        assert engine.get_session(session.id) is None

        event = progress_store.query(student.student_id, limit=1)[0]
        assert event.event_type is ProgressEventType.LEARNING_SESSION
        assert event.time_spent is not None

        # 100% session score raises the knowledge level by 5
        profile = profile_store.get(student.student_id)
        assert profile.get_knowledge_level("Mathematics") == 55

    def test_unknown_session(self, engine):
        assert engine.end_session("nope") is None

    def test_no_answers_no_performance(self, engine, student):
        session = engine.start_session(student.student_id, "Mathematics", "Fractions")
        summary = engine.end_session(session.id)
        assert summary["performance"] is None


class TestDifficultyAcrossLongSessions:
    """Difficulty keeps following scored history however long the chat runs."""

    def test_chat_turns_do_not_push_scores_out_of_the_window(
        self, engine, student, progress_store, make_event
    ):
        for day in range(10):
            progress_store.append(
                make_event(days_ago=day, score=95, event_type=ProgressEventType.ASSESSMENT)
            )

        session = engine.start_session(student.student_id, "Mathematics", "Fractions")
        replies = [engine.send_message(session.id, f"tell me more {i}") for i in range(55)]

        events = progress_store.query(student.student_id, subject="Mathematics")
        assert len(events) > 55
        assert {r.difficulty for r in replies} == {"challenging"}

    def test_unscored_history_stays_moderate(self, engine, student):
        session = engine.start_session(student.student_id, "Science", "Cells")
        reply = engine.send_message(session.id, "hello")
        assert reply.difficulty == "moderate"
