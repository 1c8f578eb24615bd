"""Tests for XPManager."""

from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from readpace.db.schemas import ReadingMode, ReadingSessionResponse, XPEventType
from readpace.errors import NotFoundError, StateError, ValidationError
from readpace.xp.manager import XPManager, get_xp_manager, reset_xp_manager


@pytest.fixture
def manager(db, config):
    """Create an XPManager with test database."""
    return XPManager(db, config)


def make_session(words_read=95, completed=True) -> ReadingSessionResponse:
    """A session response as returned by SessionManager."""
    now = datetime.now(timezone.utc)
    return ReadingSessionResponse(
        id="session-1",
        content_id="content-1",
        user_id="reader",
        device_id=None,
        mode=ReadingMode.WORD,
        pace_wpm=300,
        chunk_size=None,
        started_at=now - timedelta(seconds=30),
        ended_at=now if completed else None,
        words_read=words_read,
        duration_ms=30000 if completed else 0,
        computed_wpm=words_read * 2.0 if completed else 0.0,
    )


class TestRecordXp:
    """Tests for appending to the ledger."""

    def test_record(self, manager):
        """Test a simple award."""
        award = manager.record_xp("reader", 50, XPEventType.CHALLENGE, "Daily challenge")

        assert award.transaction.amount == 50
        assert award.transaction.event_type == XPEventType.CHALLENGE
        assert award.total_xp == 50
        assert award.level_before == 1
        assert award.level_after == 1
        assert award.level_up is False

    def test_level_up(self, manager):
        """Test crossing a level threshold."""
        manager.record_xp("reader", 300, "challenge")
        award = manager.record_xp("reader", 100, "milestone")

        assert award.total_xp == 400
        assert award.level_before == 1
        assert award.level_after == 2
        assert award.level_up is True

    @pytest.mark.parametrize("amount", [0, -5, 2.5, True])
    def test_invalid_amount(self, manager, amount):
        """Test that only positive integers are accepted."""
        with pytest.raises(ValidationError):
            manager.record_xp("reader", amount, "challenge")

        assert manager.get_total_xp("reader") == 0

    def test_invalid_event_type(self, manager):
        """Test that unknown event kinds are rejected."""
        with pytest.raises(ValidationError):
            manager.record_xp("reader", 10, "bogus")

    def test_creates_user(self, manager, db):
        """Test that the first award creates the user."""
        manager.record_xp("newcomer", 10, "session")

        assert db.get_user("newcomer") is not None

    def test_metadata_stored(self, manager, db):
        """Test that metadata is kept with the transaction."""
        manager.record_xp("reader", 10, "session", metadata={"session_id": "abc"})

        stored = db.get_xp_transactions("reader")[0]
        assert stored.get_metadata() == {"session_id": "abc"}


class TestTotalsAndLevels:
    """Tests for derived totals and levels."""

    def test_empty_ledger(self, manager):
        """Test that an unknown user has no XP and is level 1."""
        assert manager.get_total_xp("nobody") == 0
        assert manager.get_level_progress("nobody").level == 1

    def test_total_is_sum(self, manager):
        """Test that the total is the sum of the ledger."""
        for amount in (10, 20, 30):
            manager.record_xp("reader", amount, "challenge")

        assert manager.get_total_xp("reader") == 60

    def test_level_follows_ledger(self, manager):
        """Test that the level is recomputed from the total."""
        manager.record_xp("reader", 901, "milestone")

        assert manager.get_level_progress("reader").level == 3

    def test_transactions_newest_first(self, manager):
        """Test transaction listing."""
        manager.record_xp("reader", 10, "challenge")
        manager.record_xp("reader", 20, "challenge")

        transactions = manager.get_transactions("reader")
        assert [t.amount for t in transactions] == [20, 10]

    def test_profile(self, manager):
        """Test the combined profile view."""
        manager.get_or_create_user("reader", display_name="Reader One")
        manager.record_xp("reader", 120, "challenge")

        profile = manager.get_profile("reader")
        assert profile.display_name == "Reader One"
        assert profile.total_xp == 120
        assert profile.progress.level == 1
        assert len(profile.recent_transactions) == 1

    def test_profile_unknown_user(self, manager):
        """Test that profiles need an existing user."""
        with pytest.raises(NotFoundError):
            manager.get_profile("nobody")


class TestRewards:
    """Tests for session and quiz rewards."""

    def test_session_xp(self, manager):
        """Test one XP per ten words read."""
        award = manager.award_session_xp("reader", make_session(words_read=95))

        assert award.transaction.amount == 9
        assert award.transaction.event_type == XPEventType.SESSION

    def test_session_xp_minimum(self, manager):
        """Test that any reading earns at least one XP."""
        award = manager.award_session_xp("reader", make_session(words_read=3))

        assert award.transaction.amount == 1

    def test_session_without_words(self, manager):
        """Test that reading nothing earns nothing."""
        assert manager.award_session_xp("reader", make_session(words_read=0)) is None
        assert manager.get_total_xp("reader") == 0

    def test_session_not_completed(self, manager):
        """Test that active sessions cannot be rewarded."""
        with pytest.raises(StateError):
            manager.award_session_xp("reader", make_session(completed=False))

    def test_quiz_xp(self, manager):
        """Test two XP per full ten percent."""
        award = manager.award_quiz_xp("reader", SimpleNamespace(session_id="s1", score_percent=80))

        assert award.transaction.amount == 16
        assert award.transaction.event_type == XPEventType.QUIZ

    def test_quiz_xp_low_score(self, manager):
        """Test that a score under ten percent earns nothing."""
        assert manager.award_quiz_xp("reader", SimpleNamespace(session_id="s1", score_percent=0)) is None


class TestStreaks:
    """Tests for daily streaks."""

    def test_first_day(self, manager):
        """Test that the first activity starts a streak."""
        update = manager.update_streak("reader", today=date(2024, 3, 1))

        assert update.current_streak == 1
        assert update.streak_continued is False
        assert update.award.transaction.amount == 5

    def test_same_day_is_noop(self, manager):
        """Test that a second activity on the same day changes nothing."""
        manager.update_streak("reader", today=date(2024, 3, 1))
        update = manager.update_streak("reader", today=date(2024, 3, 1))

        assert update.current_streak == 1
        assert update.award is None
        assert manager.get_total_xp("reader") == 5

    def test_consecutive_days(self, manager):
        """Test that consecutive days extend the streak."""
        manager.update_streak("reader", today=date(2024, 3, 1))
        update = manager.update_streak("reader", today=date(2024, 3, 2))

        assert update.current_streak == 2
        assert update.streak_continued is True
        assert manager.get_total_xp("reader") == 10

    def test_gap_resets(self, manager, db):
        """Test that a missed day restarts the streak."""
        manager.update_streak("reader", today=date(2024, 3, 1))
        manager.update_streak("reader", today=date(2024, 3, 2))
        update = manager.update_streak("reader", today=date(2024, 3, 5))

        assert update.current_streak == 1
        assert update.streak_broken is True
        assert db.get_user("reader").streak_days == 1


class TestGlobalManager:
    """Tests for the global manager instance."""

    def test_get_xp_manager_is_cached(self, db):
        """Test that the global manager is created once."""
        reset_xp_manager()
        try:
            assert get_xp_manager(db) is get_xp_manager()
        finally:
            reset_xp_manager()
