"""Tests for the metrics engine."""

from datetime import date

import pytest

from schooltutor.core import metrics
from schooltutor.core.models import Engagement, ProgressEventType


TODAY = date(2024, 1, 3)


class TestLearningStreak:
    """Tests for learning_streak."""

    def test_three_consecutive_days(self, make_event):
        """Events on 3, 2 and 1 January give a streak of 3."""
        events = [make_event(0), make_event(1), make_event(2)]
        assert metrics.learning_streak(events, today=TODAY) == 3

    def test_gap_stops_the_walk(self, make_event):
        """Missing 2 January gives a streak of 1."""
        events = [make_event(0), make_event(2)]
        assert metrics.learning_streak(events, today=TODAY) == 1

    def test_no_activity_today(self, make_event):
        """Yesterday's activity alone does not count."""
        events = [make_event(1), make_event(2)]
        assert metrics.learning_streak(events, today=TODAY) == 0

    def test_several_events_same_day(self, make_event):
        """Multiple events on one day count once."""
        events = [make_event(0, minutes=5), make_event(0), make_event(1)]
        assert metrics.learning_streak(events, today=TODAY) == 2

    def test_empty(self):
        assert metrics.learning_streak([], today=TODAY) == 0


class TestImprovementTrend:
    """Tests for improvement_trend (scores newest-first)."""

    @pytest.mark.parametrize("scores", [[], [80]])
    def test_fewer_than_two_scores(self, scores):
        assert metrics.improvement_trend(scores) == metrics.INSUFFICIENT_DATA

    def test_no_older_window(self):
        """Five or fewer scores have nothing to compare with."""
        assert metrics.improvement_trend([90, 80, 70]) == metrics.INSUFFICIENT_DATA

    def test_improving(self):
        scores = [90, 90, 90, 90, 90, 70, 70, 70, 70, 70]
        assert metrics.improvement_trend(scores) == metrics.IMPROVING

    def test_declining(self):
        scores = [60, 60, 60, 60, 60, 80, 80, 80, 80, 80]
        assert metrics.improvement_trend(scores) == metrics.DECLINING

    def test_stable_within_five_points(self):
        scores = [75, 75, 75, 75, 75, 71, 71, 71, 71, 71]
        assert metrics.improvement_trend(scores) == metrics.STABLE

    def test_only_first_ten_scores_used(self):
        """Scores beyond the tenth are ignored."""
        scores = [80] * 10 + [0] * 20
        assert metrics.improvement_trend(scores) == metrics.STABLE


class TestConsistencyScore:
    """Tests for consistency_score."""

    def test_fewer_than_three(self):
        assert metrics.consistency_score([90, 10]) == 0

    def test_identical_scores(self):
        assert metrics.consistency_score([70, 70, 70]) == 100

    def test_never_negative(self):
        """A spread wider than 100 points is floored at 0."""
        assert metrics.consistency_score([0, 0, 0, 1000, 1000, 1000]) == 0

    def test_in_range(self):
        value = metrics.consistency_score([55, 70, 95, 40])
        assert 0 <= value <= 100


class TestLetterGrade:
    """Tests for letter_grade boundaries."""

    @pytest.mark.parametrize(
        "score,grade",
        [(100, "A"), (90, "A"), (89.9, "B"), (80, "B"), (70, "C"), (60, "D"), (59.9, "F"), (0, "F")],
    )
    def test_boundaries(self, score, grade):
        assert metrics.letter_grade(score) == grade

    def test_overall_grade_weighting(self):
        """0.5 x 92 + 0.3 x 85 + 0.2 x 70 = 85.5, a B."""
        assert metrics.overall_score(92, 85, 7) == pytest.approx(85.5)
        assert metrics.overall_grade(92, 85, 7) == "B"


class TestRates:
    """Tests for averages and rates."""

    def test_completion_rate_ignores_unflagged(self, make_event):
        events = [make_event(completed=True), make_event(completed=False), make_event()]
        assert metrics.completion_rate(events) == 50

    def test_completion_rate_empty(self):
        assert metrics.completion_rate([]) == 0

    def test_averages_skip_missing_fields(self, make_event):
        events = [make_event(score=80, time_spent=20), make_event(score=60), make_event()]
        assert metrics.average_performance(events) == 70
        assert metrics.average_time_spent(events) == 20
        assert metrics.total_time_spent(events) == 20

    def test_count_sessions(self, make_event):
        events = [
            make_event(),
            make_event(event_type=ProgressEventType.SESSION_START),
            make_event(event_type=ProgressEventType.CHAT_INTERACTION),
        ]
        assert metrics.count_sessions(events) == 2


class TestSubjects:
    """Tests for strong and weak subject detection."""

    def test_strong_and_weak(self, make_event):
        events = [
            make_event(subject="Mathematics", score=92),
            make_event(subject="Science", score=55),
            make_event(subject="English", score=75),
        ]
        assert metrics.strong_subjects(events) == ["Mathematics"]
        assert metrics.weak_subjects(events) == ["Science"]

    def test_subjects_of_keeps_first_seen_order(self, make_event):
        events = [make_event(subject="Science"), make_event(subject="Mathematics"), make_event(subject="Science")]
        assert metrics.subjects_of(events) == ["Science", "Mathematics"]


class TestEngagementScore:
    """Tests for calculate_engagement_score."""

    def test_weights(self):
        engagement = Engagement(participation=50, interaction=50)
        # 20 + 15 + 20 (>= 15 minutes) + 30 (completed)
        assert metrics.calculate_engagement_score(engagement, 15, True) == 85

    def test_capped_at_100(self):
        engagement = Engagement(participation=100, interaction=100)
        assert metrics.calculate_engagement_score(engagement, 60, True) == 100

    def test_nothing_observed(self):
        assert metrics.calculate_engagement_score(None, None, None) == 0


class TestProgressMetrics:
    """Tests for the progress summary."""

    def test_empty_events(self):
        summary = metrics.progress_metrics([])
        assert summary["total_sessions"] == 0
        assert summary["completion_rate"] == 0
        assert summary["last_activity"] is None

    def test_includes_knowledge(self, make_event, student):
        from schooltutor.core.adaptation import update_knowledge_level

        update_knowledge_level(student, "Mathematics", 95)
        summary = metrics.progress_metrics([make_event(score=95)], student)
        assert summary["knowledge_level"]["Mathematics"]["level"] == 55
        assert summary["subjects"] == ["Mathematics"]
