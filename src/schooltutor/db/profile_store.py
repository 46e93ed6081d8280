"""Profile store: one mutable record per student (SQLite).

Profiles are never removed; deactivate() clears the active flag so the
student's progress events keep a valid owner.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any

import structlog

from schooltutor.core.errors import InvalidRequestError, StudentNotFoundError
from schooltutor.core.models import (
    LEARNING_PACES,
    KnowledgeEntry,
    StudentProfile,
    utc_now_iso,
)
from schooltutor.db.database import ensure_schema, get_db

logger = structlog.get_logger(__name__)

# Fields accepted by update()
UPDATABLE_FIELDS = (
    "name",
    "grade",
    "board",
    "country",
    "school",
    "subjects",
    "learning_pace",
    "knowledge_level",
    "is_active",
    "last_interaction",
)


def _row_to_profile(row: sqlite3.Row) -> StudentProfile:
    """Convert database row to StudentProfile."""
    knowledge = json.loads(row["knowledge_level"] or "{}")
    return StudentProfile(
        student_id=row["student_id"],
        name=row["name"],
        grade=row["grade"],
        board=row["board"],
        country=row["country"],
        school=row["school"],
        subjects=json.loads(row["subjects"] or "[]"),
        learning_pace=row["learning_pace"],
        knowledge_level={
            subject: KnowledgeEntry.from_dict(entry) for subject, entry in knowledge.items()
        },
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        last_interaction=row["last_interaction"],
    )


def _coerce_knowledge(value: Any) -> KnowledgeEntry:
    if isinstance(value, KnowledgeEntry):
        return value
    if isinstance(value, dict):
        return KnowledgeEntry.from_dict(value)
    raise InvalidRequestError("knowledge_level entries must be objects", field="knowledge_level")


class ProfileStore:
    """SQLite-backed student profiles."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path
        ensure_schema(db_path)

    def get(self, student_id: str) -> StudentProfile | None:
        """Get a profile by id (active or not)."""
        with get_db(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM students WHERE student_id = ?", (student_id,)
            ).fetchone()
        return _row_to_profile(row) if row else None

    def get_active(self, student_id: str) -> StudentProfile:
        """Get an active profile or raise StudentNotFoundError."""
        profile = self.get(student_id)
        if profile is None or not profile.is_active:
            raise StudentNotFoundError(student_id)
        return profile

    def put(self, profile: StudentProfile) -> None:
        """Insert or replace a profile."""
        with get_db(self.db_path) as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO students (
                    student_id, name, grade, board, country, school, subjects,
                    learning_pace, knowledge_level, is_active,
                    created_at, updated_at, last_interaction
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    profile.student_id,
                    profile.name,
                    profile.grade,
                    profile.board,
                    profile.country,
                    profile.school,
                    json.dumps(profile.subjects),
                    profile.learning_pace,
                    json.dumps(
                        {s: e.to_dict() for s, e in profile.knowledge_level.items()}
                    ),
                    int(profile.is_active),
                    profile.created_at,
                    profile.updated_at,
                    profile.last_interaction,
                ),
            )
        logger.debug("profile_saved", student_id=profile.student_id)

    def update(self, student_id: str, partial: dict[str, Any]) -> StudentProfile:
        """Merge fields into a profile and refresh updated_at.

        ``knowledge_level`` is merged per subject, other fields replace the
        stored value. Unknown keys are ignored. Concurrent updates are
        last-writer-wins.

        Raises:
            StudentNotFoundError: If the student does not exist
            InvalidRequestError: If a value is malformed
        """
        profile = self.get(student_id)
        if profile is None:
            raise StudentNotFoundError(student_id)

        for key, value in partial.items():
            if key not in UPDATABLE_FIELDS or value is None:
                continue
            if key == "knowledge_level":
                for subject, entry in value.items():
                    profile.knowledge_level[subject] = _coerce_knowledge(entry)
            elif key == "learning_pace":
                if value not in LEARNING_PACES:
                    raise InvalidRequestError(
                        f"learning_pace must be one of {', '.join(LEARNING_PACES)}",
                        field="learning_pace",
                    )
                profile.learning_pace = value
            elif key == "subjects":
                profile.subjects = list(value)
            else:
                setattr(profile, key, value)

        profile.updated_at = utc_now_iso()
        self.put(profile)
        return profile

    def list(self, active_only: bool = True) -> list[StudentProfile]:
        """List profiles ordered by creation time."""
        query = "SELECT * FROM students"
        if active_only:
            query += " WHERE is_active = 1"
        query += " ORDER BY created_at"
        with get_db(self.db_path) as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_profile(row) for row in rows]

    def find_by_name(self, name: str) -> StudentProfile | None:
        """Find an active profile by name (case-insensitive)."""
        with get_db(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM students WHERE lower(name) = lower(?) AND is_active = 1",
                (name.strip(),),
            ).fetchone()
        return _row_to_profile(row) if row else None

    def deactivate(self, student_id: str) -> bool:
        """Soft-delete a student. Returns False if unknown or already inactive."""
        profile = self.get(student_id)
        if profile is None or not profile.is_active:
            return False
        self.update(student_id, {"is_active": False})
        logger.info("student_deactivated", student_id=student_id)
        return True

    def touch(self, student_id: str) -> None:
        """Record an interaction without refreshing updated_at."""
        with get_db(self.db_path) as conn:
            conn.execute(
                "UPDATE students SET last_interaction = ? WHERE student_id = ?",
                (utc_now_iso(), student_id),
            )
