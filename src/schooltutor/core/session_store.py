"""Session store: where live tutoring sessions are kept between turns.

Sessions are ephemeral. The in-memory store serves a single process; a
multi-process deployment needs a shared key-value backend implementing
the same get/put/delete interface.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_SESSION_TTL = 3600


class SessionStore(ABC):
    """Key-value interface for live sessions."""

    @abstractmethod
    def get(self, session_id: str) -> Any | None:
        """Session by id, or None when unknown or expired."""

    @abstractmethod
    def put(self, session_id: str, session: Any) -> None:
        """Store a session and restart its expiry."""

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Remove a session. Returns False if it was not there."""

    @abstractmethod
    def values(self) -> list[Any]:
        """All live sessions."""


class InMemorySessionStore(SessionStore):
    """Process-local store; entries expire after ``ttl_seconds`` without a put."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_SESSION_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def _expired(self, stored_at: float) -> bool:
        return self.ttl_seconds > 0 and self._clock() - stored_at > self.ttl_seconds

    def get(self, session_id: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                return None
            stored_at, session = entry
            if self._expired(stored_at):
                del self._entries[session_id]
                logger.info("session_expired", session_id=session_id)
                return None
            return session

    def put(self, session_id: str, session: Any) -> None:
        with self._lock:
            self._entries[session_id] = (self._clock(), session)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._entries.pop(session_id, None) is not None

    def values(self) -> list[Any]:
        """Live (non-expired) sessions."""
        with self._lock:
            expired = [sid for sid, (at, _) in self._entries.items() if self._expired(at)]
            for sid in expired:
                del self._entries[sid]
            return [session for _, session in self._entries.values()]

    def __len__(self) -> int:
        return len(self.values())
