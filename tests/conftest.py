"""Shared fixtures: isolated SQLite stores, students and progress events."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from schooltutor.config.app_config import clear_config_cache
from schooltutor.core.curriculum import CurriculumService
from schooltutor.core.generator import (
    ContentGenerator,
    StaticPlaceholderStrategy,
    TemplateGenerationStrategy,
)
from schooltutor.core.models import (
    Engagement,
    Performance,
    ProgressEventType,
    StudentProfile,
    new_progress_event,
)
from schooltutor.core.session import TutorEngine
from schooltutor.core.session_store import InMemorySessionStore
from schooltutor.db.database import reset_db_path
from schooltutor.db.profile_store import ProfileStore
from schooltutor.db.progress_store import ProgressStore
from schooltutor.db.topic_store import TopicStore


@pytest.fixture(autouse=True)
def _isolated_config():
    """Every test starts from a fresh config cache and default db path."""
    clear_config_cache()
    reset_db_path()
    yield
    clear_config_cache()
    reset_db_path()


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "db" / "test.db"


@pytest.fixture
def profile_store(db_path) -> ProfileStore:
    return ProfileStore(db_path)


@pytest.fixture
def progress_store(db_path) -> ProgressStore:
    return ProgressStore(db_path)


@pytest.fixture
def topic_store(db_path) -> TopicStore:
    return TopicStore(db_path)


@pytest.fixture
def curriculum(profile_store, topic_store) -> CurriculumService:
    return CurriculumService(profile_store, topic_store)


@pytest.fixture
def student(profile_store) -> StudentProfile:
    """A registered, active grade 8 student."""
    profile = StudentProfile(
        student_id="stu00000001",
        name="Asha",
        grade="8",
        board="CBSE",
        country="India",
        school="Greenwood High",
        subjects=["Mathematics", "Science"],
    )
    profile_store.put(profile)
    return profile


@pytest.fixture
def make_event():
    """Factory for progress events at a given day offset from a fixed date."""
    base = datetime(2024, 1, 3, 10, 0, tzinfo=timezone.utc)

    def _make(
        days_ago: int = 0,
        subject: str = "Mathematics",
        score: float | None = None,
        participation: float | None = None,
        time_spent: float | None = None,
        completed: bool | None = None,
        event_type: ProgressEventType = ProgressEventType.LEARNING_SESSION,
        student_id: str = "stu00000001",
        minutes: int = 0,
    ):
        timestamp = base - timedelta(days=days_ago) + timedelta(minutes=minutes)
        return new_progress_event(
            student_id=student_id,
            subject=subject,
            event_type=event_type,
            timestamp=timestamp.isoformat(),
            retention_days=365 * 100,
            performance=Performance(score=score) if score is not None else None,
            engagement=(
                Engagement(participation=participation, score=participation)
                if participation is not None
                else None
            ),
            time_spent=time_spent,
            completed=completed,
        )

    return _make


@pytest.fixture
def offline_generator(progress_store) -> ContentGenerator:
    """Generator without the remote tier (no network in tests)."""
    return ContentGenerator(
        strategies=[TemplateGenerationStrategy(), StaticPlaceholderStrategy()],
        progress_store=progress_store,
    )


@pytest.fixture
def engine(profile_store, progress_store, offline_generator) -> TutorEngine:
    return TutorEngine(
        profile_store=profile_store,
        progress_store=progress_store,
        generator=offline_generator,
        session_store=InMemorySessionStore(),
    )
