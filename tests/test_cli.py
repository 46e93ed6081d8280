"""Tests for the tutor CLI."""

import pytest
from typer.testing import CliRunner

from schooltutor.cli.commands import app
from schooltutor.core.generator import (
    ContentGenerator,
    StaticPlaceholderStrategy,
    TemplateGenerationStrategy,
)
from schooltutor.web import services

runner = CliRunner()


@pytest.fixture(autouse=True)
def workspace(tmp_path, monkeypatch):
    """Run every command in an empty directory with the offline generator."""
    monkeypatch.chdir(tmp_path)
    services.reset_services()
    monkeypatch.setattr(
        services,
        "_content_generator",
        ContentGenerator(
            strategies=[TemplateGenerationStrategy(), StaticPlaceholderStrategy()],
            progress_store=services.get_progress_store(),
        ),
    )
    yield tmp_path
    services.reset_services()


@pytest.fixture
def student_id():
    result = runner.invoke(app, ["add-student", "Asha", "--grade", "8", "--subjects", "Mathematics"])
    assert result.exit_code == 0
    return services.get_profile_store().find_by_name("Asha").student_id


class TestStudentCommands:
    """Tests for init-db, add-student and students."""

    def test_init_db(self, workspace):
        result = runner.invoke(app, ["init-db"])
        assert result.exit_code == 0
        assert (workspace / "data" / "db" / "schooltutor.db").exists()

    def test_add_and_list(self, student_id):
        result = runner.invoke(app, ["students"])
        assert result.exit_code == 0
        assert "Asha" in result.output

    def test_duplicate_name(self, student_id):
        result = runner.invoke(app, ["add-student", "asha"])
        assert result.exit_code == 1

    def test_invalid_pace(self):
        result = runner.invoke(app, ["add-student", "Ravi", "--pace", "turbo"])
        assert result.exit_code == 1

    def test_no_students(self):
        result = runner.invoke(app, ["students"])
        assert "No students registered" in result.output


class TestProgressCommands:
    """Tests for record, report, history and purge-expired."""

    def test_record_and_history(self, student_id):
        result = runner.invoke(
            app,
            ["record", student_id, "Mathematics", "--score", "92", "--minutes", "20", "--activity", "Quiz"],
        )
        assert result.exit_code == 0
        assert "Knowledge level (Mathematics): 55" in result.output

        history = runner.invoke(app, ["history", student_id])
        assert "progress_update" in history.output
        assert "Quiz" in history.output

    def test_record_invalid_score(self, student_id):
        result = runner.invoke(app, ["record", student_id, "Mathematics", "--score", "150"])
        assert result.exit_code == 1

    def test_report(self, student_id):
        runner.invoke(app, ["record", student_id, "Mathematics", "--score", "65"])
        result = runner.invoke(app, ["report", student_id, "--period", "7d"])
        assert result.exit_code == 0
        assert "Overall grade" in result.output

    def test_report_unknown_student(self, student_id):
        result = runner.invoke(app, ["report", "stu_missing"])
        assert result.exit_code == 1
        assert student_id in result.output

    def test_purge_expired(self):
        result = runner.invoke(app, ["purge-expired"])
        assert result.exit_code == 0
        assert "Removed 0" in result.output


class TestTutoringCommands:
    """Tests for lesson, chat and score."""

    def test_lesson(self, student_id):
        result = runner.invoke(app, ["lesson", student_id, "Mathematics", "Fractions"])
        assert result.exit_code == 0
        assert "source: template" in result.output

    def test_chat(self, student_id):
        result = runner.invoke(
            app,
            ["chat", student_id, "Mathematics", "Fractions"],
            input="What is a fraction?\nexit\n",
        )
        assert result.exit_code == 0
        assert "Session finished" in result.output
        assert "Phase reached: learning" in result.output

    def test_chat_treats_other_words_as_messages(self, student_id):
        result = runner.invoke(
            app,
            ["chat", student_id, "Mathematics", "Fractions"],
            input="salir\nquit\n",
        )
        assert result.exit_code == 0
        assert "Phase reached: learning" in result.output

    def test_score_before_any_topic_is_completed(self, student_id):
        result = runner.invoke(app, ["score", student_id])
        assert result.exit_code == 0
        assert "Score: 0% (0/3 topics completed)" in result.output


class TestCurriculumCommands:
    """Tests for topics, discover-topics and complete-topic."""

    def test_add_student_seeds_topics(self, student_id):
        result = runner.invoke(app, ["topics", student_id])
        assert result.exit_code == 0
        assert "Introduction to Mathematics" in result.output

    def test_complete_topic_raises_score(self, student_id):
        topic = services.get_topic_store().list(student_id)[0]

        result = runner.invoke(app, ["complete-topic", student_id, topic.topic_id, "--score", "90"])
        assert result.exit_code == 0
        assert "Completed" in result.output

        result = runner.invoke(app, ["score", student_id])
        assert "Score: 33% (1/3 topics completed)" in result.output
        assert "Mathematics: 33%" in result.output

    def test_complete_unknown_topic(self, student_id):
        result = runner.invoke(app, ["complete-topic", student_id, "topic_missing"])
        assert result.exit_code == 1

    def test_discover_after_opting_out(self):
        runner.invoke(app, ["add-student", "Ravi", "--subjects", "Science", "--no-topics"])
        ravi = services.get_profile_store().find_by_name("Ravi").student_id
        assert services.get_topic_store().list(ravi) == []

        result = runner.invoke(app, ["discover-topics", ravi])
        assert result.exit_code == 0
        assert "3 topic(s) added" in result.output
