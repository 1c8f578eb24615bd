"""XP manager: append-only ledger, reward policy and daily streaks."""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Optional, Protocol

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from ..config import Config, get_config
from ..db.schemas import (
    ReadingSessionResponse,
    XPEventType,
    XPTransactionCreate,
    XPTransactionResponse,
)
from ..db.sqlite import Database, get_db
from ..errors import NotFoundError, StateError, ValidationError
from .leveling import LevelProgress, level_from_xp, level_progress

logger = logging.getLogger(__name__)


class ScoredResult(Protocol):
    session_id: str
    score_percent: int


@dataclass
class XPAward:
    """Result of appending one transaction to the ledger."""

    transaction: XPTransactionResponse
    total_xp: int
    level_before: int
    level_after: int

    @property
    def level_up(self) -> bool:
        return self.level_after > self.level_before


@dataclass
class StreakUpdate:
    """Result of registering a day of reading activity."""

    current_streak: int
    streak_continued: bool = False
    streak_broken: bool = False
    award: Optional[XPAward] = None


@dataclass
class UserProfile:
    """A user's derived progress: XP, level and recent activity."""

    user_id: str
    display_name: Optional[str]
    total_xp: int
    progress: LevelProgress
    streak_days: int
    recent_transactions: list[XPTransactionResponse] = field(default_factory=list)


class XPManager:
    """Manages the XP ledger and derived levels."""

    def __init__(self, db: Optional[Database] = None, config: Optional[Config] = None):
        """Initialize XP manager.

        Args:
            db: Database instance
            config: Configuration with reward amounts
        """
        self.db = db or get_db()
        self.config = config or get_config()

    # -------------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------------

    def record_xp(
        self,
        user_id: str,
        amount: int,
        event_type: XPEventType | str,
        description: str = "",
        metadata: Optional[dict[str, Any]] = None,
    ) -> XPAward:
        """Append an XP transaction to a user's ledger.

        Args:
            user_id: User earning the XP (created on first use)
            amount: Positive number of XP
            event_type: session, quiz, challenge, streak or milestone
            description: Human-readable reason
            metadata: Optional extra details stored as JSON

        Returns:
            XPAward with the new total and the level before and after

        Raises:
            ValidationError: If the amount is not a positive integer
        """
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError(f"XP amount must be an integer, got {amount!r}")

        try:
            request = XPTransactionCreate(
                user_id=user_id,
                amount=amount,
                event_type=event_type,
                description=description,
                metadata=metadata,
            )
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e

        with self.db.get_session() as s:
            return self._record(s, request)

    def get_total_xp(self, user_id: str) -> int:
        """Sum of a user's ledger, 0 when empty."""
        return self.db.get_total_xp(user_id)

    def get_level_progress(self, user_id: str) -> LevelProgress:
        """Level and progress derived from a user's total XP."""
        return level_progress(self.get_total_xp(user_id))

    def get_transactions(self, user_id: str, limit: int = 20) -> list[XPTransactionResponse]:
        """A user's most recent transactions, newest first."""
        return [
            XPTransactionResponse.model_validate(t)
            for t in self.db.get_xp_transactions(user_id, limit=limit)
        ]

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    def get_or_create_user(self, user_id: str, display_name: Optional[str] = None):
        """Get a user, creating them on first use."""
        if not user_id:
            raise ValidationError("User ID is required")
        return self.db.get_or_create_user(user_id, display_name)

    def get_profile(self, user_id: str, recent: int = 5) -> UserProfile:
        """Get a user's XP, level, streak and recent transactions.

        Raises:
            NotFoundError: If the user does not exist
        """
        user = self.db.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")

        total = self.get_total_xp(user_id)
        return UserProfile(
            user_id=user.id,
            display_name=user.display_name,
            total_xp=total,
            progress=level_progress(total),
            streak_days=user.streak_days,
            recent_transactions=self.get_transactions(user_id, limit=recent),
        )

    # -------------------------------------------------------------------------
    # Rewards
    # -------------------------------------------------------------------------

    def award_session_xp(
        self, user_id: str, session: ReadingSessionResponse
    ) -> Optional[XPAward]:
        """Reward a completed reading session.

        One XP per ``words_per_xp`` words read, at least one when anything
        was read. Sessions with no words read earn nothing.

        Raises:
            StateError: If the session has not completed
        """
        if not session.is_completed:
            raise StateError(f"Session not completed: {session.id}")
        if session.words_read <= 0:
            return None

        amount = max(1, session.words_read // self.config.words_per_xp)
        return self.record_xp(
            user_id,
            amount,
            XPEventType.SESSION,
            f"Read {session.words_read} words at {session.computed_wpm:.0f} WPM",
            metadata={
                "session_id": session.id,
                "mode": session.mode.value,
                "words_read": session.words_read,
                "computed_wpm": session.computed_wpm,
            },
        )

    def award_quiz_xp(self, user_id: str, result: ScoredResult) -> Optional[XPAward]:
        """Reward a graded quiz: ``quiz_xp_per_step`` XP per full 10%."""
        amount = result.score_percent // 10 * self.config.quiz_xp_per_step
        if amount <= 0:
            return None

        return self.record_xp(
            user_id,
            amount,
            XPEventType.QUIZ,
            f"Comprehension score {result.score_percent}%",
            metadata={"session_id": result.session_id, "score_percent": result.score_percent},
        )

    def update_streak(self, user_id: str, today: Optional[date] = None) -> StreakUpdate:
        """Register reading activity for a day and extend the streak.

        The first activity or one after a gap starts a streak of 1, the day
        after the last counted day extends it, and a second activity on the
        same day changes nothing. Each counted day earns ``streak_xp``.

        Args:
            user_id: Reader
            today: Day of activity (default: today)
        """
        if today is None:
            today = date.today()

        with self.db.get_session() as s:
            user = self.db.get_or_create_user(user_id, session=s)
            last = date.fromisoformat(user.last_streak_date) if user.last_streak_date else None

            if last == today:
                return StreakUpdate(current_streak=user.streak_days)

            update = StreakUpdate(current_streak=1)
            if last is not None and last == today - timedelta(days=1):
                update.current_streak = user.streak_days + 1
                update.streak_continued = True
            elif last is not None:
                update.streak_broken = True
                logger.info("Streak of %d days broken for %s", user.streak_days, user_id)

            user.streak_days = update.current_streak
            user.last_streak_date = today.isoformat()

            if self.config.streak_xp > 0:
                update.award = self._record(
                    s,
                    XPTransactionCreate(
                        user_id=user_id,
                        amount=self.config.streak_xp,
                        event_type=XPEventType.STREAK,
                        description=f"Day {update.current_streak} reading streak",
                        metadata={"date": today.isoformat(), "streak": update.current_streak},
                    ),
                )
            return update

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _record(self, s: Session, request: XPTransactionCreate) -> XPAward:
        before = self.db.get_total_xp(request.user_id, session=s)
        transaction = self.db.create_xp_transaction(
            request.user_id,
            request.amount,
            request.event_type.value,
            request.description,
            request.metadata,
            session=s,
        )
        total = before + request.amount

        award = XPAward(
            transaction=XPTransactionResponse.model_validate(transaction),
            total_xp=total,
            level_before=level_from_xp(before),
            level_after=level_from_xp(total),
        )
        logger.info(
            "Awarded %d XP to %s for %s (total %d)",
            request.amount,
            request.user_id,
            request.event_type.value,
            total,
        )
        if award.level_up:
            logger.info("User %s reached level %d", request.user_id, award.level_after)
        return award


# Global XP manager instance
_xp_manager: Optional[XPManager] = None


def get_xp_manager(db: Optional[Database] = None) -> XPManager:
    """Get or create the global XP manager instance."""
    global _xp_manager
    if _xp_manager is None:
        _xp_manager = XPManager(db)
    return _xp_manager


def reset_xp_manager() -> None:
    """Reset the global XP manager. Used for testing."""
    global _xp_manager
    _xp_manager = None
