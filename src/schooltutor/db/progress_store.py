"""Progress store: append-only, time-ordered event log per student (SQLite).

Events are immutable once written. The only removal is TTL expiry:
expired events are hidden from queries and deleted by purge_expired().
"""

from __future__ import annotations

import json
import sqlite3
import time
from pathlib import Path

import structlog

from schooltutor.core.models import ProgressEvent
from schooltutor.db.database import ensure_schema, get_db

logger = structlog.get_logger(__name__)


def _row_to_event(row: sqlite3.Row) -> ProgressEvent:
    """Convert database row to ProgressEvent."""
    return ProgressEvent.from_dict(json.loads(row["payload"]))


class ProgressStore:
    """SQLite-backed progress event log."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path
        ensure_schema(db_path)

    def append(self, event: ProgressEvent) -> ProgressEvent:
        """Append an event. The stored payload is the event's to_dict()."""
        with get_db(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO progress_events (
                    student_id, timestamp, session_id, subject,
                    event_type, payload, expires_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event.student_id,
                    event.timestamp,
                    event.session_id,
                    event.subject,
                    event.event_type.value,
                    json.dumps(event.to_dict()),
                    event.expires_at,
                ),
            )
        logger.debug(
            "progress_event_appended",
            student_id=event.student_id,
            event_type=event.event_type.value,
            subject=event.subject,
        )
        return event

    def query(
        self,
        student_id: str,
        subject: str | None = None,
        start: str | None = None,
        end: str | None = None,
        limit: int | None = None,
        now: float | None = None,
        outcomes_only: bool = False,
    ) -> list[ProgressEvent]:
        """Events of a student, newest first.

        Args:
            student_id: Owner of the events
            subject: Only events of this subject
            start: Inclusive lower bound on timestamp (ISO string)
            end: Inclusive upper bound on timestamp (ISO string)
            limit: Maximum number of events
            now: Epoch seconds used for expiry (current time by default)
            outcomes_only: Only events with a performance score or a completed
                flag, so ``limit`` counts outcomes rather than chat turns

        Returns:
            Non-expired events ordered by timestamp descending
        """
        clauses = ["student_id = ?", "(expires_at = 0 OR expires_at > ?)"]
        params: list = [student_id, int(now if now is not None else time.time())]

        if subject:
            clauses.append("subject = ?")
            params.append(subject)
        if start:
            clauses.append("timestamp >= ?")
            params.append(start)
        if end:
            clauses.append("timestamp <= ?")
            params.append(end)
        if outcomes_only:
            clauses.append(
                "(json_extract(payload, '$.performance') IS NOT NULL"
                " OR json_extract(payload, '$.completed') IS NOT NULL)"
            )

        sql = (
            "SELECT payload FROM progress_events WHERE "
            + " AND ".join(clauses)
            + " ORDER BY timestamp DESC, event_id DESC"
        )
        if limit is not None and limit > 0:
            sql += " LIMIT ?"
            params.append(limit)

        with get_db(self.db_path) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_event(row) for row in rows]

    def purge_expired(self, now: float | None = None) -> int:
        """Delete events past their expiry. Returns the number removed."""
        cutoff = int(now if now is not None else time.time())
        with get_db(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM progress_events WHERE expires_at > 0 AND expires_at <= ?",
                (cutoff,),
            )
            removed = cursor.rowcount
        logger.info("expired_events_purged", removed=removed)
        return removed
