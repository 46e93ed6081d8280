"""Topic store: curriculum topics per student and subject (SQLite).

Topics are created in bulk when a student's curriculum is seeded. After
that the only change is marking a topic completed.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path

import structlog

from schooltutor.core.errors import TopicNotFoundError
from schooltutor.core.models import CurriculumTopic, utc_now_iso
from schooltutor.db.database import ensure_schema, get_db

logger = structlog.get_logger(__name__)


def _row_to_topic(row: sqlite3.Row) -> CurriculumTopic:
    """Convert database row to CurriculumTopic."""
    return CurriculumTopic(
        topic_id=row["topic_id"],
        student_id=row["student_id"],
        subject=row["subject"],
        name=row["name"],
        description=row["description"],
        chapter=row["chapter"],
        difficulty=row["difficulty"],
        duration_minutes=row["duration_minutes"],
        objectives=json.loads(row["objectives"] or "[]"),
        prerequisites=json.loads(row["prerequisites"] or "[]"),
        board=row["board"],
        grade=row["grade"],
        is_completed=bool(row["is_completed"]),
        completion_score=row["completion_score"],
        completed_at=row["completed_at"],
        created_at=row["created_at"],
    )


class TopicStore:
    """SQLite-backed curriculum topics."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path
        ensure_schema(db_path)

    def add_many(self, topics: list[CurriculumTopic]) -> None:
        """Insert topics in one transaction."""
        if not topics:
            return
        with get_db(self.db_path) as conn:
            conn.executemany(
                """
                INSERT INTO curriculum_topics (
                    topic_id, student_id, subject, name, description, chapter,
                    difficulty, duration_minutes, objectives, prerequisites,
                    board, grade, is_completed, completion_score, completed_at,
                    created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        t.topic_id,
                        t.student_id,
                        t.subject,
                        t.name,
                        t.description,
                        t.chapter,
                        t.difficulty,
                        t.duration_minutes,
                        json.dumps(t.objectives),
                        json.dumps(t.prerequisites),
                        t.board,
                        t.grade,
                        int(t.is_completed),
                        t.completion_score,
                        t.completed_at,
                        t.created_at,
                    )
                    for t in topics
                ],
            )
        logger.debug("topics_added", student_id=topics[0].student_id, count=len(topics))

    def list(
        self,
        student_id: str,
        subject: str | None = None,
        completed: bool | None = None,
    ) -> list[CurriculumTopic]:
        """Topics of a student ordered by subject and chapter."""
        query = "SELECT * FROM curriculum_topics WHERE student_id = ?"
        params: list = [student_id]
        if subject:
            query += " AND subject = ?"
            params.append(subject)
        if completed is not None:
            query += " AND is_completed = ?"
            params.append(int(completed))
        query += " ORDER BY subject, chapter, created_at"

        with get_db(self.db_path) as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_topic(row) for row in rows]

    def subjects_with_topics(self, student_id: str) -> set[str]:
        with get_db(self.db_path) as conn:
            rows = conn.execute(
                "SELECT DISTINCT subject FROM curriculum_topics WHERE student_id = ?",
                (student_id,),
            ).fetchall()
        return {row["subject"] for row in rows}

    def mark_completed(
        self,
        student_id: str,
        topic_id: str,
        score: float = 100,
        completed_at: str | None = None,
    ) -> CurriculumTopic:
        """Mark a topic completed. Completing it again overwrites score and date.

        Raises:
            TopicNotFoundError: If the student has no such topic
        """
        with get_db(self.db_path) as conn:
            cursor = conn.execute(
                """
                UPDATE curriculum_topics
                SET is_completed = 1, completion_score = ?, completed_at = ?
                WHERE student_id = ? AND topic_id = ?
                """,
                (score, completed_at or utc_now_iso(), student_id, topic_id),
            )
            if cursor.rowcount == 0:
                raise TopicNotFoundError(student_id, topic_id)
            row = conn.execute(
                "SELECT * FROM curriculum_topics WHERE topic_id = ?", (topic_id,)
            ).fetchone()

        logger.info("topic_completed", student_id=student_id, topic_id=topic_id, score=score)
        return _row_to_topic(row)
