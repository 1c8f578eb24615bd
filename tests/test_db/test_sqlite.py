"""Tests for SQLite database operations."""

import pytest

from readpace.db.models import (
    ComprehensionQuestion,
    ComprehensionResult,
    ReadingContent,
    ReadingSessionRecord,
    User,
    XPTransaction,
)
from readpace.db.sqlite import Database, get_db, reset_db
from readpace.errors import NotFoundError, StateError


@pytest.fixture
def stored_session(db: Database, sample_content: ReadingContent) -> ReadingSessionRecord:
    """An active session record."""
    return db.create_session(
        session_id="session-1",
        content_id=sample_content.id,
        mode="word",
        pace_wpm=300,
        user_id="reader",
    )


class TestDatabaseCreation:
    """Tests for database initialization."""

    def test_database_creates_tables(self, db: Database):
        """Test that database creates all required tables."""
        with db.get_session() as session:
            for model in (
                User,
                ReadingContent,
                ReadingSessionRecord,
                ComprehensionQuestion,
                ComprehensionResult,
                XPTransaction,
            ):
                session.query(model).first()

    def test_database_path_created(self, db: Database):
        """Test that database file is created."""
        assert db.db_path.exists()

    def test_in_memory_database(self):
        """Test that an in-memory database shares one connection."""
        database = Database(":memory:")
        database.create_tables()
        database.get_or_create_user("u1")

        assert database.get_user("u1") is not None

    def test_global_instance(self, db: Database):
        """Test that get_db caches one instance."""
        reset_db()
        try:
            assert get_db() is get_db()
        finally:
            reset_db()


class TestSessionRecords:
    """Tests for reading session rows."""

    def test_create_session(self, stored_session: ReadingSessionRecord):
        """Test that new sessions start with zeroed progress."""
        assert stored_session.ended_at is None
        assert stored_session.words_read == 0
        assert stored_session.duration_ms == 0
        assert stored_session.computed_wpm == 0.0
        assert stored_session.started_at is not None
        assert not stored_session.is_completed

    def test_complete_once(self, db: Database, stored_session: ReadingSessionRecord):
        """Test that a session is completed exactly once."""
        record = db.complete_session(
            stored_session.id, words_read=15, duration_ms=3000, computed_wpm=300.0
        )
        assert record.is_completed
        assert record.computed_wpm == 300.0

        with pytest.raises(StateError):
            db.complete_session(stored_session.id, words_read=20, duration_ms=4000, computed_wpm=300.0)
        assert db.get_session_record(stored_session.id).words_read == 15

    def test_complete_missing(self, db: Database):
        """Test completing an unknown session."""
        with pytest.raises(NotFoundError):
            db.complete_session("missing", words_read=1, duration_ms=1, computed_wpm=60000.0)

    def test_update_pace(self, db: Database, stored_session: ReadingSessionRecord):
        """Test recording a pace change on an active session."""
        assert db.update_session_pace(stored_session.id, 450).pace_wpm == 450

        db.complete_session(stored_session.id, words_read=1, duration_ms=200, computed_wpm=300.0)
        with pytest.raises(StateError):
            db.update_session_pace(stored_session.id, 500)

    def test_completed_sessions_filter(self, db: Database, sample_content, stored_session):
        """Test that only completed sessions are returned."""
        db.create_session(session_id="session-2", content_id=sample_content.id, mode="chunk", pace_wpm=300, chunk_size=3)
        db.complete_session(stored_session.id, words_read=15, duration_ms=3000, computed_wpm=300.0)

        assert [s.id for s in db.get_completed_sessions()] == [stored_session.id]
        assert db.get_completed_sessions(mode="chunk") == []
        assert len(db.get_completed_sessions(user_id="reader")) == 1


class TestComprehension:
    """Tests for question and result rows."""

    def test_questions_ordered(self, db: Database, stored_session):
        """Test that questions come back ordered by index."""
        db.create_questions(
            stored_session.id,
            [
                {"index": 2, "prompt": "Second?", "options": ["a", "b", "c", "d"], "correct_index": 1},
                {"index": 1, "prompt": "First?", "options": ["a", "b", "c", "d"], "correct_index": 0},
            ],
        )
        questions = db.get_questions(stored_session.id)

        assert [q.index for q in questions] == [1, 2]
        assert questions[0].get_options() == ["a", "b", "c", "d"]

    def test_result_once(self, db: Database, stored_session):
        """Test that a session has at most one result."""
        result = db.create_result(stored_session.id, [0, 1, 2, 3, 0], 100)
        assert result.get_answers() == [0, 1, 2, 3, 0]

        with pytest.raises(StateError):
            db.create_result(stored_session.id, [0, 0, 0, 0, 0], 40)

    def test_results_for_sessions(self, db: Database, stored_session):
        """Test batch result lookup."""
        db.create_result(stored_session.id, [0, 0, 0, 0, 0], 40)

        assert len(db.get_results_for_sessions([stored_session.id, "other"])) == 1
        assert db.get_results_for_sessions([]) == []


class TestXPLedger:
    """Tests for XP transaction rows."""

    def test_total_xp(self, db: Database):
        """Test summing the ledger."""
        assert db.get_total_xp("reader") == 0

        db.create_xp_transaction("reader", 10, "session")
        db.create_xp_transaction("reader", 15, "quiz", metadata={"score": 80})

        assert db.get_total_xp("reader") == 25
        assert db.get_user("reader") is not None

    def test_user_created_once(self, db: Database):
        """Test that get_or_create_user is idempotent."""
        first = db.get_or_create_user("reader", display_name="Reader")
        second = db.get_or_create_user("reader", display_name="Changed")

        assert first.id == second.id
        assert second.display_name == "Reader"
        assert second.streak_days == 0
