"""Tests for ProgressService."""

from unittest.mock import MagicMock

import pytest

from schooltutor.core.errors import InvalidRequestError, StoreError, StudentNotFoundError
from schooltutor.core.models import Engagement, ProgressEventType
from schooltutor.core.progress import ProgressService


@pytest.fixture
def service(profile_store, progress_store):
    return ProgressService(profile_store, progress_store)


class TestRecordProgress:
    """Tests for record_progress."""

    def test_records_and_updates_knowledge(self, service, student, profile_store):
        result = service.record_progress(
            student.student_id,
            "Mathematics",
            score=92,
            engagement=Engagement(participation=80, interaction=60),
            time_spent=20,
            completed=True,
        )

        # 32 + 18 + 20 + 30
        assert result["engagement_score"] == 100
        assert result["knowledge_level"]["level"] == 55
        assert result["progress_entry"]["type"] == "progress_update"
        assert profile_store.get(student.student_id).get_knowledge_level("Mathematics") == 55

    def test_without_score_knowledge_untouched(self, service, student):
        result = service.record_progress(student.student_id, "Science", time_spent=5)
        assert result["knowledge_level"] is None

    @pytest.mark.parametrize("student_id,subject", [(None, "Science"), ("stu00000001", ""), ("", None)])
    def test_missing_fields(self, service, student, student_id, subject):
        with pytest.raises(InvalidRequestError):
            service.record_progress(student_id, subject)

    def test_score_out_of_range(self, service, student):
        with pytest.raises(InvalidRequestError) as exc_info:
            service.record_progress(student.student_id, "Science", score=120)
        assert exc_info.value.field == "score"

    def test_session_events_not_recordable(self, service, student):
        with pytest.raises(InvalidRequestError):
            service.record_progress(
                student.student_id, "Science", event_type=ProgressEventType.CHAT_INTERACTION
            )

    def test_unknown_student(self, service):
        with pytest.raises(StudentNotFoundError):
            service.record_progress("stu_missing", "Science", score=50)

    def test_knowledge_failure_is_not_fatal(self, student, progress_store):
        profiles = MagicMock()
        profiles.get_active.return_value = student
        profiles.update.side_effect = StoreError("database is locked")
        service = ProgressService(profiles, progress_store)

        result = service.record_progress(student.student_id, "Science", score=80)
        assert result["knowledge_level"] is None
        assert len(progress_store.query(student.student_id)) == 1


class TestGetProgress:
    """Tests for get_progress."""

    def test_newest_first_with_metrics(self, service, student):
        for score in (60, 70, 80):
            service.record_progress(student.student_id, "Mathematics", score=score)

        result = service.get_progress(student.student_id)

        assert result["count"] == 3
        assert [e["performance"]["score"] for e in result["progress"]] == [80, 70, 60]
        assert result["metrics"]["average_performance"] == 70
        assert result["student"]["name"] == "Asha"

    def test_subject_filter_and_limit(self, service, student):
        service.record_progress(student.student_id, "Mathematics", score=60)
        service.record_progress(student.student_id, "Science", score=70)
        service.record_progress(student.student_id, "Science", score=80)

        result = service.get_progress(student.student_id, subject="Science", limit=1)
        assert result["count"] == 1
        assert result["progress"][0]["performance"]["score"] == 80

    def test_missing_student_id(self, service):
        with pytest.raises(InvalidRequestError):
            service.get_progress(None)


class TestAnalytics:
    """Tests for get_analytics, get_scorecard and get_recommendations."""

    def test_analytics_report(self, service, student):
        service.record_progress(student.student_id, "Mathematics", score=65)

        report = service.get_analytics(student.student_id, period="7d")

        assert report["student_id"] == student.student_id
        assert report["period"] == "7d"
        assert report["performance"]["average_score"] == 65
        assert report["overview"]["streak_days"] == 1

    def test_unknown_period_defaults(self, service, student):
        assert service.get_analytics(student.student_id, period="1y")["period"] == "30d"

    def test_scorecard(self, service, student):
        card = service.get_scorecard(student.student_id)
        assert card["student_id"] == student.student_id
        assert card["overall_grade"] == "F"

    def test_recommendations_from_rules(self, service, student):
        service.record_progress(student.student_id, "Mathematics", score=50)
        result = service.get_recommendations(student.student_id)
        assert result["fallback_used"] is False
        assert result["recommendations"][0]["type"] == "performance"

    def test_recommendations_fallback(self, service, student):
        result = service.get_recommendations(student.student_id, "Science")
        assert result["fallback_used"] is True
        assert result["recommendations"][0]["subject"] == "Science"
