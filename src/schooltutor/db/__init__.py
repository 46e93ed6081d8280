"""Database module for SQLite persistence.

Provides:
- Database connection management
- Schema initialization
- Profile store (one record per student)
- Progress store (append-only event log)
"""

from schooltutor.db.database import get_db, init_db
from schooltutor.db.profile_store import ProfileStore
from schooltutor.db.progress_store import ProgressStore

__all__ = ["get_db", "init_db", "ProfileStore", "ProgressStore"]
