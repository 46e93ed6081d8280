"""Process-wide service instances for the Web API.

Stores, generator, tutor engine, progress and curriculum services are created lazily
from the application config and shared by all requests.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from schooltutor.config.app_config import load_app_config
from schooltutor.core.curriculum import CurriculumService
from schooltutor.core.generator import ContentGenerator
from schooltutor.core.progress import ProgressService
from schooltutor.core.session import TutorEngine
from schooltutor.core.session_store import InMemorySessionStore
from schooltutor.db.profile_store import ProfileStore
from schooltutor.db.progress_store import ProgressStore
from schooltutor.db.topic_store import TopicStore

logger = structlog.get_logger(__name__)

_profile_store: ProfileStore | None = None
_progress_store: ProgressStore | None = None
_content_generator: ContentGenerator | None = None
_tutor_engine: TutorEngine | None = None
_progress_service: ProgressService | None = None
_topic_store: TopicStore | None = None
_curriculum_service: CurriculumService | None = None


def _db_path() -> Path:
    return Path(load_app_config().storage.db_path)


def get_profile_store() -> ProfileStore:
    """Get the global profile store."""
    global _profile_store
    if _profile_store is None:
        _profile_store = ProfileStore(_db_path())
        logger.info("profile_store_ready", path=str(_profile_store.db_path))
    return _profile_store


def get_progress_store() -> ProgressStore:
    """Get the global progress store."""
    global _progress_store
    if _progress_store is None:
        _progress_store = ProgressStore(_db_path())
    return _progress_store


def get_topic_store() -> TopicStore:
    """Get the global curriculum topic store."""
    global _topic_store
    if _topic_store is None:
        _topic_store = TopicStore(_db_path())
    return _topic_store


def get_content_generator() -> ContentGenerator:
    """Get the global content generator (remote, template, static)."""
    global _content_generator
    if _content_generator is None:
        _content_generator = ContentGenerator(progress_store=get_progress_store())
    return _content_generator


def get_tutor_engine() -> TutorEngine:
    """Get the global tutor engine instance."""
    global _tutor_engine
    if _tutor_engine is None:
        config = load_app_config()
        _tutor_engine = TutorEngine(
            profile_store=get_profile_store(),
            progress_store=get_progress_store(),
            generator=get_content_generator(),
            session_store=InMemorySessionStore(ttl_seconds=config.tutor.session_ttl_seconds),
            retention_days=config.storage.retention_days,
        )
    return _tutor_engine


def get_progress_service() -> ProgressService:
    """Get the global progress service."""
    global _progress_service
    if _progress_service is None:
        _progress_service = ProgressService(
            profile_store=get_profile_store(),
            progress_store=get_progress_store(),
            retention_days=load_app_config().storage.retention_days,
        )
    return _progress_service


def get_curriculum_service() -> CurriculumService:
    """Get the global curriculum service."""
    global _curriculum_service
    if _curriculum_service is None:
        _curriculum_service = CurriculumService(get_profile_store(), get_topic_store())
    return _curriculum_service


def reset_services() -> None:
    """Drop all service instances (for testing)."""
    global _profile_store, _progress_store, _content_generator, _tutor_engine, _progress_service
    global _topic_store, _curriculum_service
    _profile_store = None
    _progress_store = None
    _content_generator = None
    _tutor_engine = None
    _progress_service = None
    _topic_store = None
    _curriculum_service = None
