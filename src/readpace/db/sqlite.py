"""SQLite database operations.

Handles database connection, session management, and CRUD operations.
Reading sessions are created once and updated once (on completion);
comprehension results and XP transactions are insert-only.
"""

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Optional

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..errors import NotFoundError, StateError
from .models import (
    Base,
    ComprehensionQuestion,
    ComprehensionResult,
    ReadingContent,
    ReadingSessionRecord,
    User,
    XPTransaction,
    utc_now,
)

logger = logging.getLogger(__name__)


class Database:
    """Database connection and operations manager."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses
                     READPACE_DB_PATH env var or default location.
        """
        if db_path is None:
            db_path = os.environ.get(
                "READPACE_DB_PATH",
                str(Path.home() / ".readpace" / "readpace.db"),
            )

        self.db_path = Path(db_path)
        self._is_memory = str(db_path) == ":memory:"

        if not self._is_memory:
            self._ensure_directory()

        # For in-memory databases, use StaticPool to reuse the same connection
        # This ensures all sessions share the same in-memory database
        if self._is_memory:
            self.engine = create_engine(
                "sqlite:///:memory:",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={"check_same_thread": False},
            )
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop all database tables. Use with caution!"""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ========================================================================
    # User Operations
    # ========================================================================

    def get_user(self, user_id: str, session: Optional[Session] = None) -> Optional[User]:
        """Get a user by ID."""

        def _get(s: Session) -> Optional[User]:
            return s.get(User, user_id)

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                user = _get(s)
                if user:
                    s.expunge(user)
                return user

    def get_or_create_user(
        self,
        user_id: str,
        display_name: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> User:
        """Get a user by ID, creating the row on first use."""

        def _get_or_create(s: Session) -> User:
            user = s.get(User, user_id)
            if user is None:
                user = User(id=user_id, display_name=display_name, streak_days=0)
                s.add(user)
                s.flush()
                logger.debug("Created user %s", user_id)
            return user

        if session:
            return _get_or_create(session)
        else:
            with self.get_session() as s:
                user = _get_or_create(s)
                s.expunge(user)
                return user

    # ========================================================================
    # Content Operations
    # ========================================================================

    def create_content(
        self,
        text: str,
        word_count: int,
        language: str,
        source: str,
        title: Optional[str] = None,
        created_by_user_id: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> ReadingContent:
        """Create a new reading content record."""

        def _create(s: Session) -> ReadingContent:
            content = ReadingContent(
                text=text,
                word_count=word_count,
                language=language,
                source=source,
                title=title,
                created_by_user_id=created_by_user_id,
            )
            s.add(content)
            s.flush()
            return content

        if session:
            return _create(session)
        else:
            with self.get_session() as s:
                content = _create(s)
                s.expunge(content)
                return content

    def get_content(
        self, content_id: str, session: Optional[Session] = None
    ) -> Optional[ReadingContent]:
        """Get reading content by ID."""

        def _get(s: Session) -> Optional[ReadingContent]:
            return s.get(ReadingContent, content_id)

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                content = _get(s)
                if content:
                    s.expunge(content)
                return content

    def get_recent_content(
        self,
        user_id: Optional[str] = None,
        limit: int = 10,
        session: Optional[Session] = None,
    ) -> list[ReadingContent]:
        """Get recently created content, newest first."""

        def _get(s: Session) -> list[ReadingContent]:
            stmt = select(ReadingContent)
            if user_id:
                stmt = stmt.where(ReadingContent.created_by_user_id == user_id)
            stmt = stmt.order_by(ReadingContent.created_at.desc()).limit(limit)
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                contents = _get(s)
                for content in contents:
                    s.expunge(content)
                return contents

    # ========================================================================
    # Reading Session Operations
    # ========================================================================

    def create_session(
        self,
        session_id: str,
        content_id: str,
        mode: str,
        pace_wpm: int,
        chunk_size: Optional[int] = None,
        user_id: Optional[str] = None,
        device_id: Optional[str] = None,
        started_at: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> ReadingSessionRecord:
        """Create a new, active reading session record."""

        def _create(s: Session) -> ReadingSessionRecord:
            record = ReadingSessionRecord(
                id=session_id,
                content_id=content_id,
                user_id=user_id,
                device_id=device_id,
                mode=mode,
                pace_wpm=pace_wpm,
                chunk_size=chunk_size,
                started_at=started_at or utc_now(),
                ended_at=None,
                words_read=0,
                duration_ms=0,
                computed_wpm=0.0,
            )
            s.add(record)
            s.flush()
            return record

        if session:
            return _create(session)
        else:
            with self.get_session() as s:
                record = _create(s)
                s.expunge(record)
                return record

    def get_session_record(
        self, session_id: str, session: Optional[Session] = None
    ) -> Optional[ReadingSessionRecord]:
        """Get a reading session by ID."""

        def _get(s: Session) -> Optional[ReadingSessionRecord]:
            return s.get(ReadingSessionRecord, session_id)

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                record = _get(s)
                if record:
                    s.expunge(record)
                return record

    def update_session_pace(
        self, session_id: str, pace_wpm: int, session: Optional[Session] = None
    ) -> ReadingSessionRecord:
        """Record the latest pace of an active session."""

        def _update(s: Session) -> ReadingSessionRecord:
            record = s.get(ReadingSessionRecord, session_id)
            if record is None:
                raise NotFoundError(f"Session not found: {session_id}")
            if record.ended_at is not None:
                raise StateError(f"Session already completed: {session_id}")
            record.pace_wpm = pace_wpm
            s.flush()
            return record

        if session:
            return _update(session)
        else:
            with self.get_session() as s:
                record = _update(s)
                s.expunge(record)
                return record

    def complete_session(
        self,
        session_id: str,
        words_read: int,
        duration_ms: int,
        computed_wpm: float,
        pace_wpm: Optional[int] = None,
        ended_at: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> ReadingSessionRecord:
        """Write the final metrics of a session. Allowed exactly once.

        Raises:
            NotFoundError: If the session does not exist
            StateError: If the session has already ended
        """

        def _complete(s: Session) -> ReadingSessionRecord:
            record = s.get(ReadingSessionRecord, session_id)
            if record is None:
                raise NotFoundError(f"Session not found: {session_id}")
            if record.ended_at is not None:
                raise StateError(f"Session already completed: {session_id}")

            record.ended_at = ended_at or utc_now()
            record.words_read = words_read
            record.duration_ms = duration_ms
            record.computed_wpm = computed_wpm
            if pace_wpm is not None:
                record.pace_wpm = pace_wpm
            s.flush()
            return record

        if session:
            return _complete(session)
        else:
            with self.get_session() as s:
                record = _complete(s)
                s.expunge(record)
                return record

    def get_sessions_for_content(
        self, content_id: str, session: Optional[Session] = None
    ) -> list[ReadingSessionRecord]:
        """Get all sessions over a piece of content, oldest first."""

        def _get(s: Session) -> list[ReadingSessionRecord]:
            stmt = (
                select(ReadingSessionRecord)
                .where(ReadingSessionRecord.content_id == content_id)
                .order_by(ReadingSessionRecord.started_at)
            )
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                records = _get(s)
                for record in records:
                    s.expunge(record)
                return records

    def get_recent_sessions(
        self,
        limit: int = 10,
        completed_only: bool = False,
        user_id: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> list[ReadingSessionRecord]:
        """Get recent sessions, most recent first."""

        def _get(s: Session) -> list[ReadingSessionRecord]:
            stmt = select(ReadingSessionRecord)
            if completed_only:
                stmt = stmt.where(ReadingSessionRecord.ended_at.is_not(None))
            if user_id:
                stmt = stmt.where(ReadingSessionRecord.user_id == user_id)
            stmt = stmt.order_by(ReadingSessionRecord.started_at.desc()).limit(limit)
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                records = _get(s)
                for record in records:
                    s.expunge(record)
                return records

    def get_completed_sessions(
        self,
        user_id: Optional[str] = None,
        device_id: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
        mode: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> list[ReadingSessionRecord]:
        """Get completed sessions, filtered by owner, end time range and mode.

        Args:
            user_id: Only sessions for this user
            device_id: Only sessions from this device
            start: Earliest ended_at (ISO datetime, inclusive)
            end: Latest ended_at (ISO datetime, inclusive)
            mode: Only sessions in this reading mode
        """

        def _get(s: Session) -> list[ReadingSessionRecord]:
            stmt = select(ReadingSessionRecord).where(
                ReadingSessionRecord.ended_at.is_not(None)
            )
            if user_id:
                stmt = stmt.where(ReadingSessionRecord.user_id == user_id)
            if device_id:
                stmt = stmt.where(ReadingSessionRecord.device_id == device_id)
            if start:
                stmt = stmt.where(ReadingSessionRecord.ended_at >= start)
            if end:
                stmt = stmt.where(ReadingSessionRecord.ended_at <= end)
            if mode:
                stmt = stmt.where(ReadingSessionRecord.mode == mode)
            stmt = stmt.order_by(ReadingSessionRecord.ended_at)
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                records = _get(s)
                for record in records:
                    s.expunge(record)
                return records

    # ========================================================================
    # Comprehension Operations
    # ========================================================================

    def create_questions(
        self,
        session_id: str,
        questions: list[dict[str, Any]],
        session: Optional[Session] = None,
    ) -> list[ComprehensionQuestion]:
        """Store a question set for a session.

        Args:
            session_id: Session the questions belong to
            questions: Dicts with index, prompt, options, correct_index
        """

        def _create(s: Session) -> list[ComprehensionQuestion]:
            rows = []
            for q in questions:
                row = ComprehensionQuestion(
                    session_id=session_id,
                    index=q["index"],
                    prompt=q["prompt"],
                    correct_index=q["correct_index"],
                )
                row.set_options(q["options"])
                s.add(row)
                rows.append(row)
            s.flush()
            return rows

        if session:
            return _create(session)
        else:
            with self.get_session() as s:
                rows = _create(s)
                for row in rows:
                    s.expunge(row)
                return rows

    def get_questions(
        self, session_id: str, session: Optional[Session] = None
    ) -> list[ComprehensionQuestion]:
        """Get the question set for a session, ordered by index."""

        def _get(s: Session) -> list[ComprehensionQuestion]:
            stmt = (
                select(ComprehensionQuestion)
                .where(ComprehensionQuestion.session_id == session_id)
                .order_by(ComprehensionQuestion.index)
            )
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                rows = _get(s)
                for row in rows:
                    s.expunge(row)
                return rows

    def create_result(
        self,
        session_id: str,
        answers: list[int],
        score_percent: int,
        session: Optional[Session] = None,
    ) -> ComprehensionResult:
        """Store the grading record for a session. Allowed exactly once.

        Raises:
            StateError: If the session already has a result
        """

        def _create(s: Session) -> ComprehensionResult:
            stmt = select(ComprehensionResult).where(
                ComprehensionResult.session_id == session_id
            )
            if s.execute(stmt).scalar_one_or_none() is not None:
                raise StateError(f"Answers already submitted for session: {session_id}")

            result = ComprehensionResult(session_id=session_id, score_percent=score_percent)
            result.set_answers(answers)
            s.add(result)
            s.flush()
            return result

        if session:
            return _create(session)
        else:
            with self.get_session() as s:
                result = _create(s)
                s.expunge(result)
                return result

    def get_result(
        self, session_id: str, session: Optional[Session] = None
    ) -> Optional[ComprehensionResult]:
        """Get the grading record for a session."""

        def _get(s: Session) -> Optional[ComprehensionResult]:
            stmt = select(ComprehensionResult).where(
                ComprehensionResult.session_id == session_id
            )
            return s.execute(stmt).scalar_one_or_none()

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                result = _get(s)
                if result:
                    s.expunge(result)
                return result

    def get_results_for_sessions(
        self, session_ids: list[str], session: Optional[Session] = None
    ) -> list[ComprehensionResult]:
        """Get grading records for a set of sessions."""

        def _get(s: Session) -> list[ComprehensionResult]:
            if not session_ids:
                return []
            stmt = select(ComprehensionResult).where(
                ComprehensionResult.session_id.in_(session_ids)
            )
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                results = _get(s)
                for result in results:
                    s.expunge(result)
                return results

    # ========================================================================
    # XP Ledger Operations
    # ========================================================================

    def create_xp_transaction(
        self,
        user_id: str,
        amount: int,
        event_type: str,
        description: str = "",
        metadata: Optional[dict[str, Any]] = None,
        session: Optional[Session] = None,
    ) -> XPTransaction:
        """Append an entry to the XP ledger."""

        def _create(s: Session) -> XPTransaction:
            self.get_or_create_user(user_id, session=s)
            transaction = XPTransaction(
                user_id=user_id,
                amount=amount,
                event_type=event_type,
                description=description,
            )
            transaction.set_metadata(metadata)
            s.add(transaction)
            s.flush()
            return transaction

        if session:
            return _create(session)
        else:
            with self.get_session() as s:
                transaction = _create(s)
                s.expunge(transaction)
                return transaction

    def get_xp_transactions(
        self, user_id: str, limit: int = 20, session: Optional[Session] = None
    ) -> list[XPTransaction]:
        """Get a user's XP transactions, most recent first."""

        def _get(s: Session) -> list[XPTransaction]:
            stmt = (
                select(XPTransaction)
                .where(XPTransaction.user_id == user_id)
                .order_by(XPTransaction.created_at.desc())
                .limit(limit)
            )
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                transactions = _get(s)
                for transaction in transactions:
                    s.expunge(transaction)
                return transactions

    def get_total_xp(self, user_id: str, session: Optional[Session] = None) -> int:
        """Sum a user's XP ledger."""

        def _sum(s: Session) -> int:
            stmt = select(func.coalesce(func.sum(XPTransaction.amount), 0)).where(
                XPTransaction.user_id == user_id
            )
            return int(s.execute(stmt).scalar_one())

        if session:
            return _sum(session)
        else:
            with self.get_session() as s:
                return _sum(s)


# Global database instance
_db: Optional[Database] = None


def get_db(db_path: Optional[str] = None) -> Database:
    """Get or create the global database instance."""
    global _db
    if _db is None:
        _db = Database(db_path)
        _db.create_tables()
    return _db


def reset_db() -> None:
    """Reset the global database instance. Used for testing."""
    global _db
    _db = None
