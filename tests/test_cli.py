"""Tests for the CLI interface."""

import json
import os
import tempfile
from pathlib import Path

import pytest
from typer.testing import CliRunner

from readpace.cli import app
from readpace.config import reset_config
from readpace.content import ContentManager
from readpace.db.sqlite import get_db, reset_db
from readpace.reading import SessionManager


@pytest.fixture(autouse=True)
def setup_test_db():
    """Set up a test database for each test."""
    reset_db()
    reset_config()

    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    os.environ["READPACE_DB_PATH"] = db_path

    yield

    # Cleanup
    reset_db()
    reset_config()
    if "READPACE_DB_PATH" in os.environ:
        del os.environ["READPACE_DB_PATH"]
    if Path(db_path).exists():
        Path(db_path).unlink()


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def content_id() -> str:
    """A short stored text."""
    return ContentManager(get_db()).create_content("one two three four five", title="Short").id


@pytest.fixture
def finished_session_id(content_id) -> str:
    """A completed session over the short text."""
    sessions = SessionManager(get_db())
    session = sessions.start_session(content_id, "word", 300, user_id="reader")
    return sessions.finish_session(session.id).id


class TestCLIBasics:
    """Tests for basic CLI functionality."""

    def test_help(self, runner: CliRunner):
        """Test that help command works."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Speed-reading trainer" in result.stdout

    def test_version(self, runner: CliRunner):
        """Test version command."""
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.stdout


class TestContentCommands:
    """Tests for add and contents commands."""

    def test_add_text(self, runner: CliRunner):
        """Test adding pasted text."""
        result = runner.invoke(app, ["add", "Read these five words now", "--title", "Five"])
        assert result.exit_code == 0
        assert "Added: Five (5 words)" in result.stdout

    def test_add_file(self, runner: CliRunner, tmp_path):
        """Test adding a text file."""
        path = tmp_path / "story.txt"
        path.write_text("Once upon a time.", encoding="utf-8")

        result = runner.invoke(app, ["add", "--file", str(path)])
        assert result.exit_code == 0
        assert "story" in result.stdout

    def test_add_nothing(self, runner: CliRunner):
        """Test that add needs text or a file."""
        result = runner.invoke(app, ["add"])
        assert result.exit_code == 1
        assert "Error" in result.stdout

    def test_add_blank(self, runner: CliRunner):
        """Test that blank text is rejected."""
        result = runner.invoke(app, ["add", "   "])
        assert result.exit_code == 1

    def test_contents_empty(self, runner: CliRunner):
        """Test listing with no content."""
        result = runner.invoke(app, ["contents"])
        assert result.exit_code == 0
        assert "No content yet" in result.stdout

    def test_contents(self, runner: CliRunner, content_id):
        """Test listing stored content."""
        result = runner.invoke(app, ["contents"])
        assert result.exit_code == 0
        assert "Short" in result.stdout


class TestReadCommand:
    """Tests for the read command."""

    def test_read_to_completion(self, runner: CliRunner, content_id):
        """Test reading a short text and earning XP."""
        result = runner.invoke(app, ["read", content_id, "--pace", "1000", "--user", "reader"])
        assert result.exit_code == 0
        assert "Session Complete" in result.stdout
        assert "5 / 5" in result.stdout
        assert "XP" in result.stdout

    def test_read_invalid_pace(self, runner: CliRunner, content_id):
        """Test that an out-of-range pace is rejected."""
        result = runner.invoke(app, ["read", content_id, "--pace", "50"])
        assert result.exit_code == 1
        assert "Pace must be between" in result.stdout

    def test_read_unknown_content(self, runner: CliRunner):
        """Test reading content that does not exist."""
        result = runner.invoke(app, ["read", "missing"])
        assert result.exit_code == 1
        assert "Content not found" in result.stdout


class TestQuizCommand:
    """Tests for the quiz command."""

    def test_quiz(self, runner: CliRunner, finished_session_id, sample_questions, tmp_path):
        """Test loading questions and grading answers."""
        path = tmp_path / "questions.json"
        path.write_text(json.dumps(sample_questions), encoding="utf-8")

        result = runner.invoke(
            app,
            ["quiz", finished_session_id, "--questions", str(path), "--answers", "0,1,2,3,3"],
        )
        assert result.exit_code == 0
        assert "80%" in result.stdout
        assert "+16 XP" in result.stdout

    def test_quiz_without_questions(self, runner: CliRunner, finished_session_id):
        """Test grading before questions exist."""
        result = runner.invoke(app, ["quiz", finished_session_id, "--answers", "0,1,2,3,0"])
        assert result.exit_code == 1
        assert "No questions found" in result.stdout

    def test_quiz_bad_answers(self, runner: CliRunner, finished_session_id, sample_questions, tmp_path):
        """Test that non-numeric answers are rejected."""
        path = tmp_path / "questions.json"
        path.write_text(json.dumps(sample_questions), encoding="utf-8")

        result = runner.invoke(
            app, ["quiz", finished_session_id, "--questions", str(path), "--answers", "a,b"]
        )
        assert result.exit_code == 1


class TestXPCommands:
    """Tests for xp and level commands."""

    def test_xp_and_level(self, runner: CliRunner):
        """Test awarding XP and viewing the level."""
        result = runner.invoke(app, ["xp", "reader", "400", "--description", "Challenge won"])
        assert result.exit_code == 0
        assert "+400 XP" in result.stdout
        assert "Level up" in result.stdout

        result = runner.invoke(app, ["level", "reader"])
        assert result.exit_code == 0
        assert "Level 2" in result.stdout
        assert "Total XP: 400" in result.stdout

    def test_xp_non_positive(self, runner: CliRunner):
        """Test that non-positive awards are rejected."""
        result = runner.invoke(app, ["xp", "reader", "0"])
        assert result.exit_code == 1

    def test_level_unknown_user(self, runner: CliRunner):
        """Test the level of an unknown user."""
        result = runner.invoke(app, ["level", "nobody"])
        assert result.exit_code == 1
        assert "User not found" in result.stdout


class TestHistoryAndStats:
    """Tests for history and stats commands."""

    def test_empty(self, runner: CliRunner):
        """Test both commands with no sessions."""
        assert "No reading sessions yet" in runner.invoke(app, ["history"]).stdout
        assert "No completed sessions yet" in runner.invoke(app, ["stats"]).stdout

    def test_history(self, runner: CliRunner, finished_session_id):
        """Test listing sessions."""
        result = runner.invoke(app, ["history"])
        assert result.exit_code == 0
        assert "Reading History" in result.stdout

    def test_stats(self, runner: CliRunner, finished_session_id):
        """Test the summary and recent breakdown."""
        result = runner.invoke(app, ["stats"])
        assert result.exit_code == 0
        assert "Reading Summary" in result.stdout

        result = runner.invoke(app, ["stats", "--days", "7"])
        assert result.exit_code == 0
        assert "Last 7 Days" in result.stdout

    def test_stats_period(self, runner: CliRunner, finished_session_id):
        """Test a preset period."""
        result = runner.invoke(app, ["stats", "--period", "week"])
        assert result.exit_code == 0
        assert "Last 7 Days" in result.stdout

    def test_stats_days_and_period_conflict(self, runner: CliRunner):
        """Test that --days and --period cannot be combined."""
        result = runner.invoke(app, ["stats", "--days", "7", "--period", "today"])
        assert result.exit_code == 1
        assert "not both" in result.stdout

    def test_stats_export(self, runner: CliRunner, finished_session_id, tmp_path: Path):
        """Test exporting sessions to CSV."""
        output = tmp_path / "sessions.csv"
        result = runner.invoke(app, ["stats", "--export", str(output)])

        assert result.exit_code == 0
        assert "Exported 1 sessions" in result.stdout
        lines = output.read_text(encoding="utf-8").splitlines()
        assert lines[0] == "date,mode,duration_ms,words_read,wpm,score_percent"
        assert len(lines) == 2
