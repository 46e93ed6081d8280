"""Tests for the analytics report and scorecard."""

from datetime import date, datetime, timezone

import pytest

from schooltutor.core import analytics


TODAY = date(2024, 1, 3)


class TestScorecard:
    """Tests for scorecard."""

    def test_weighted_grade(self, student, make_event):
        """Average 92, participation 85 and a 7 day streak give 85.5, a B."""
        events = [make_event(days_ago=d, score=92, participation=85) for d in range(7)]
        card = analytics.scorecard(student, events, today=TODAY)

        assert card["overall_score"] == 85.5
        assert card["overall_grade"] == "B"
        assert card["categories"]["academic_performance"]["grade"] == "A"
        assert card["categories"]["consistency"]["score"] == 70
        assert "Academic Excellence" in card["areas_of_strength"]
        assert "Consistent Learning" in card["areas_of_strength"]

    def test_empty_events(self, student):
        card = analytics.scorecard(student, [], today=TODAY)
        assert card["overall_score"] == 0
        assert card["overall_grade"] == "F"
        assert "Learning Consistency" in card["areas_for_improvement"]
        assert len(card["next_goals"]) == 3

    def test_time_management_capped(self, student, make_event):
        events = [make_event(time_spent=1000)]
        card = analytics.scorecard(student, events, today=TODAY)
        assert card["categories"]["time_management"]["score"] == 100


class TestRecommendations:
    """Tests for rule-based recommendations."""

    def test_low_average_only(self, make_event):
        """Average 65 with nothing else flagged gives exactly one performance entry."""
        events = [make_event(score=60), make_event(score=70)]
        recs = analytics.recommendations(events)

        assert len(recs) == 1
        assert recs[0]["type"] == "performance"
        assert recs[0]["priority"] == "high"

    def test_low_participation(self, make_event):
        events = [make_event(score=90, participation=40)]
        recs = analytics.recommendations(events)
        assert [r["type"] for r in recs] == ["engagement"]

    def test_weak_subject(self, make_event):
        events = [
            make_event(subject="Mathematics", score=95),
            make_event(subject="Science", score=55),
        ]
        recs = analytics.recommendations(events)
        focus = [r for r in recs if r["type"] == "subject-focus"]
        assert len(focus) == 1
        assert "Science" in focus[0]["message"]

    def test_short_sessions(self, make_event):
        events = [make_event(time_spent=10)]
        recs = analytics.recommendations(events)
        assert [r["type"] for r in recs] == ["pace"]

    def test_no_data_no_recommendations(self):
        assert analytics.recommendations([]) == []

    def test_deterministic(self, make_event):
        events = [make_event(score=50, participation=30, time_spent=5)]
        assert analytics.recommendations(events) == analytics.recommendations(events)


class TestFallbackRecommendations:
    """Tests for the static study plan."""

    def test_three_items_below_grade_nine(self, student):
        recs = analytics.fallback_recommendations(student, "Mathematics")
        assert len(recs) == 3
        assert recs[0]["title"] == "Daily Mathematics Practice"

    def test_exam_item_from_grade_nine(self, student):
        student.grade = "10th"
        recs = analytics.fallback_recommendations(student)
        assert len(recs) == 4
        assert "CBSE board" in recs[-1]["description"]


class TestSections:
    """Tests for individual report sections."""

    def test_performance_without_scores(self, make_event):
        assert analytics.performance([make_event()]) == {"message": analytics.NO_PERFORMANCE_DATA}

    def test_engagement_without_data(self):
        assert analytics.engagement([]) == {"message": analytics.NO_ENGAGEMENT_DATA}

    def test_overview(self, make_event):
        events = [make_event(0, time_spent=30), make_event(1, time_spent=20), make_event(10)]
        ov = analytics.overview(events, today=TODAY)
        assert ov["total_sessions"] == 3
        assert ov["sessions_today"] == 1
        assert ov["sessions_this_week"] == 2
        assert ov["total_time_spent"] == 50
        assert ov["streak_days"] == 2

    def test_subject_breakdown_restricted(self, make_event):
        events = [make_event(subject="Mathematics", score=80), make_event(subject="Science", score=60)]
        breakdown = analytics.subject_breakdown(events, ["Science"])
        assert list(breakdown) == ["Science"]
        assert breakdown["Science"]["average_performance"] == 60

    def test_placeholders_are_constant(self, make_event, student):
        profile_section = analytics.learning_profile(student, [make_event(score=10)])
        assert profile_section["learning_style"] == "mixed"
        assert profile_section["retention_rate"] == 85


class TestBuildAnalytics:
    """Tests for the full report."""

    def test_sections_present(self, student, make_event):
        report = analytics.build_analytics(student, [make_event(score=80)], today=TODAY)
        for key in ("overview", "performance", "engagement", "subjects", "learning",
                    "recommendations", "scorecard", "metadata"):
            assert key in report
        assert report["metadata"]["confidence_level"] == "low"

    def test_empty_never_raises(self, student):
        report = analytics.build_analytics(student, [], today=TODAY)
        assert report["overview"]["total_sessions"] == 0
        assert report["subjects"] == {}


class TestDateRange:
    """Tests for calculate_date_range."""

    @pytest.mark.parametrize("period,days", [("7d", 7), ("30d", 30), ("90d", 90), ("1y", 30), (None, 30)])
    def test_periods(self, period, days):
        now = datetime(2024, 4, 1, tzinfo=timezone.utc)
        start, end = analytics.calculate_date_range(period, now=now)
        assert end == now.isoformat()
        assert (now - datetime.fromisoformat(start)).days == days
