"""Curriculum topics and the topic-completion score.

Each subject a student takes is seeded with a short chapter sequence
(introduction, core concepts, advanced applications) scaled to the
student's grade. The student score is the share of those topics marked
completed, overall and per subject.
"""

from __future__ import annotations

import math
from typing import Any

import structlog

from schooltutor.core.errors import InvalidRequestError
from schooltutor.core.models import (
    CurriculumTopic,
    StudentProfile,
    generate_topic_id,
    utc_now_iso,
)
from schooltutor.db.profile_store import ProfileStore
from schooltutor.db.topic_store import TopicStore

logger = structlog.get_logger(__name__)

DEFAULT_COMPLETION_SCORE = 100


def fallback_topics(subject: str, grade: str) -> list[dict[str, Any]]:
    """The three-chapter sequence used for any subject and grade."""
    grade_label = grade or "all"
    return [
        {
            "name": f"Introduction to {subject}",
            "description": f"Fundamental concepts and principles of {subject} for grade {grade_label} students",
            "chapter": 1,
            "difficulty": "beginner",
            "duration_minutes": 60,
            "objectives": [
                f"Understand basic concepts of {subject}",
                "Build foundational knowledge",
                "Prepare for advanced topics",
            ],
            "prerequisites": [],
        },
        {
            "name": f"Core Concepts in {subject}",
            "description": f"Essential topics and skills required for mastery of {subject}",
            "chapter": 2,
            "difficulty": "intermediate",
            "duration_minutes": 90,
            "objectives": [
                f"Apply {subject} concepts",
                "Solve practical problems",
                "Connect theory to practice",
            ],
            "prerequisites": [f"Introduction to {subject}"],
        },
        {
            "name": f"Advanced {subject} Applications",
            "description": f"Real-world applications and advanced problem-solving in {subject}",
            "chapter": 3,
            "difficulty": "advanced",
            "duration_minutes": 120,
            "objectives": [
                f"Master advanced {subject} concepts",
                "Solve complex problems",
                "Apply to real scenarios",
            ],
            "prerequisites": [f"Core Concepts in {subject}"],
        },
    ]


def completion_percentage(completed: int, total: int) -> int:
    """Completed share of ``total`` as a whole percentage, halves rounded up."""
    if total <= 0:
        return 0
    return math.floor(completed / total * 100 + 0.5)


class CurriculumService:
    """Seeds, lists and completes curriculum topics; computes the student score."""

    def __init__(self, profile_store: ProfileStore, topic_store: TopicStore):
        self.profile_store = profile_store
        self.topic_store = topic_store

    def discover_topics(self, profile: StudentProfile) -> list[CurriculumTopic]:
        """Seed topics for every subject of the profile that has none yet.

        Returns:
            The topics created (empty when every subject is already seeded)
        """
        seeded = self.topic_store.subjects_with_topics(profile.student_id)
        created: list[CurriculumTopic] = []
        for subject in profile.subjects:
            if subject in seeded:
                continue
            for entry in fallback_topics(subject, profile.grade):
                created.append(
                    CurriculumTopic(
                        topic_id=generate_topic_id(),
                        student_id=profile.student_id,
                        subject=subject,
                        board=profile.board,
                        grade=profile.grade,
                        **entry,
                    )
                )
            seeded.add(subject)

        self.topic_store.add_many(created)
        logger.info(
            "curriculum_topics_discovered",
            student_id=profile.student_id,
            count=len(created),
        )
        return created

    def discover_for_student(self, student_id: str) -> list[CurriculumTopic]:
        """discover_topics for an active student looked up by id."""
        return self.discover_topics(self.profile_store.get_active(student_id))

    def list_topics(
        self,
        student_id: str,
        subject: str | None = None,
        completed: bool | None = None,
    ) -> list[CurriculumTopic]:
        self.profile_store.get_active(student_id)
        return self.topic_store.list(student_id, subject=subject, completed=completed)

    def complete_topic(
        self,
        student_id: str,
        topic_id: str,
        score: float | None = None,
        completed_at: str | None = None,
    ) -> CurriculumTopic:
        """Mark a topic completed with a score (100 when omitted).

        Raises:
            StudentNotFoundError: If the student is unknown or inactive
            TopicNotFoundError: If the student has no such topic
            InvalidRequestError: If the score is outside 0-100
        """
        if score is None:
            score = DEFAULT_COMPLETION_SCORE
        if not 0 <= score <= 100:
            raise InvalidRequestError("score must be between 0 and 100", field="score")
        self.profile_store.get_active(student_id)
        return self.topic_store.mark_completed(student_id, topic_id, score, completed_at)

    def student_score(self, student_id: str) -> dict[str, Any]:
        """Completed topics over total topics, as a percentage.

        A student with no topics scores 0.
        """
        self.profile_store.get_active(student_id)
        topics = self.topic_store.list(student_id)

        breakdown: dict[str, dict[str, int]] = {}
        for topic in topics:
            entry = breakdown.setdefault(topic.subject, {"total_topics": 0, "completed_topics": 0})
            entry["total_topics"] += 1
            entry["completed_topics"] += int(topic.is_completed)
        for entry in breakdown.values():
            entry["score"] = completion_percentage(entry["completed_topics"], entry["total_topics"])

        completed = sum(1 for t in topics if t.is_completed)
        score = completion_percentage(completed, len(topics))
        logger.debug(
            "student_score_computed",
            student_id=student_id,
            completed=completed,
            total=len(topics),
            score=score,
        )
        return {
            "student_id": student_id,
            "total_topics": len(topics),
            "completed_topics": completed,
            "score": score,
            "percentage": score,
            "subject_breakdown": breakdown,
            "last_updated": utc_now_iso(),
        }
