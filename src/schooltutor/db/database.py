"""SQLite database connection and schema management.

Provides connection management and schema initialization for the profile
and progress stores.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import structlog

from schooltutor.core.errors import StoreError

logger = structlog.get_logger(__name__)

# Default database location
DEFAULT_DB_PATH = Path("data/db/schooltutor.db")

# Current database path (module-level for simplicity in CLI context)
_db_path: Path | None = None


def init_db(db_path: Path | None = None) -> Path:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to data/db/schooltutor.db

    Returns:
        Path of the initialized database
    """
    global _db_path
    _db_path = db_path or DEFAULT_DB_PATH

    with get_db(_db_path) as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))
    return _db_path


def reset_db_path() -> None:
    """Forget the database chosen by init_db (for testing)."""
    global _db_path
    _db_path = None


@contextmanager
def get_db(db_path: Path | None = None) -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Commits on success and rolls back on error. ``sqlite3.Error`` is
    re-raised as StoreError.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db() as conn:
            rows = conn.execute("SELECT * FROM students").fetchall()
    """
    path = db_path or _db_path or DEFAULT_DB_PATH

    # Ensure directory exists
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        conn = sqlite3.connect(path)
    except sqlite3.Error as e:
        raise StoreError(f"Cannot open database {path}: {e}") from e

    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        yield conn
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        raise StoreError(str(e)) from e
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def ensure_schema(db_path: Path | None = None) -> None:
    """Create tables in the given database without changing the default path."""
    with get_db(db_path) as conn:
        _create_schema(conn)


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency. Progress events have no foreign
    key to students: profiles are soft-deleted, never removed.
    """
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS students (
            student_id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            grade TEXT NOT NULL DEFAULT '',
            board TEXT NOT NULL DEFAULT '',
            country TEXT NOT NULL DEFAULT '',
            school TEXT NOT NULL DEFAULT '',
            subjects TEXT NOT NULL DEFAULT '[]',
            learning_pace TEXT NOT NULL DEFAULT 'medium'
                CHECK(learning_pace IN ('slow', 'medium', 'fast')),
            knowledge_level TEXT NOT NULL DEFAULT '{}',
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            last_interaction TEXT NOT NULL DEFAULT ''
        );

        -- Append-only; ordering is by timestamp, ties by insertion order
        CREATE TABLE IF NOT EXISTS progress_events (
            event_id INTEGER PRIMARY KEY AUTOINCREMENT,
            student_id TEXT NOT NULL,
            timestamp TEXT NOT NULL,
            session_id TEXT NOT NULL,
            subject TEXT NOT NULL DEFAULT '',
            event_type TEXT NOT NULL,
            payload TEXT NOT NULL,
            expires_at INTEGER NOT NULL
        );

        CREATE TABLE IF NOT EXISTS curriculum_topics (
            topic_id TEXT PRIMARY KEY,
            student_id TEXT NOT NULL REFERENCES students(student_id),
            subject TEXT NOT NULL,
            name TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            chapter INTEGER NOT NULL DEFAULT 1,
            difficulty TEXT NOT NULL DEFAULT 'beginner',
            duration_minutes INTEGER NOT NULL DEFAULT 60,
            objectives TEXT NOT NULL DEFAULT '[]',
            prerequisites TEXT NOT NULL DEFAULT '[]',
            board TEXT NOT NULL DEFAULT '',
            grade TEXT NOT NULL DEFAULT '',
            is_completed INTEGER NOT NULL DEFAULT 0,
            completion_score REAL,
            completed_at TEXT NOT NULL DEFAULT '',
            created_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_students_name ON students(name);
        CREATE INDEX IF NOT EXISTS idx_topics_student
            ON curriculum_topics(student_id, subject, chapter);
        CREATE INDEX IF NOT EXISTS idx_progress_student_ts
            ON progress_events(student_id, timestamp);
        CREATE INDEX IF NOT EXISTS idx_progress_subject
            ON progress_events(student_id, subject);
        CREATE INDEX IF NOT EXISTS idx_progress_expires ON progress_events(expires_at);
        """
    )
