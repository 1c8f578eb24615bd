"""SQLAlchemy ORM models for local SQLite database.

Tables:
- users: Readers who earn XP (no stored XP total or level)
- reading_content: Immutable text bodies to read
- reading_sessions: One playback attempt over a piece of content
- comprehension_questions: Generated questions for a session
- comprehension_results: One grading record per session
- xp_transactions: Append-only XP ledger
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import ForeignKey, Integer, Float, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .schemas import ContentSource, Language, ReadingMode


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string for primary keys."""
    return str(uuid4())


def utc_now() -> str:
    """Current UTC time as an ISO string."""
    return datetime.now(timezone.utc).isoformat()


class User(Base):
    """User model - a reader identified by an opaque id."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_uuid)
    display_name: Mapped[Optional[str]] = mapped_column(String(200))

    # Streak tracking
    streak_days: Mapped[int] = mapped_column(Integer, default=0)
    last_streak_date: Mapped[Optional[str]] = mapped_column(String(10))  # ISO date

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), default=utc_now)
    updated_at: Mapped[str] = mapped_column(String(32), default=utc_now, onupdate=utc_now)

    # Relationships
    xp_transactions: Mapped[list["XPTransaction"]] = relationship(
        "XPTransaction", back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, streak_days={self.streak_days})>"


class ReadingContent(Base):
    """Reading content model - text is never modified after creation."""

    __tablename__ = "reading_content"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    language: Mapped[str] = mapped_column(String(5), default=Language.EN.value)
    source: Mapped[str] = mapped_column(String(10), default=ContentSource.PASTE.value)
    title: Mapped[Optional[str]] = mapped_column(String(500))
    text: Mapped[str] = mapped_column(Text, nullable=False)
    word_count: Mapped[int] = mapped_column(Integer, nullable=False)
    created_by_user_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    created_at: Mapped[str] = mapped_column(String(32), default=utc_now, index=True)

    # Relationships
    sessions: Mapped[list["ReadingSessionRecord"]] = relationship(
        "ReadingSessionRecord", back_populates="content"
    )

    def __repr__(self) -> str:
        return f"<ReadingContent(id={self.id}, words={self.word_count})>"


class ReadingSessionRecord(Base):
    """Reading session model - persisted state of one playback attempt."""

    __tablename__ = "reading_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    content_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("reading_content.id"), nullable=False, index=True
    )
    user_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    device_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)

    # Pacing
    mode: Mapped[str] = mapped_column(String(10), default=ReadingMode.WORD.value)
    pace_wpm: Mapped[int] = mapped_column(Integer, nullable=False)
    chunk_size: Mapped[Optional[int]] = mapped_column(Integer)

    # Timing
    started_at: Mapped[str] = mapped_column(String(32), default=utc_now, index=True)
    ended_at: Mapped[Optional[str]] = mapped_column(String(32), index=True)  # None while active

    # Progress
    words_read: Mapped[int] = mapped_column(Integer, default=0)
    duration_ms: Mapped[int] = mapped_column(Integer, default=0)
    computed_wpm: Mapped[float] = mapped_column(Float, default=0.0)

    # Relationships
    content: Mapped["ReadingContent"] = relationship("ReadingContent", back_populates="sessions")
    questions: Mapped[list["ComprehensionQuestion"]] = relationship(
        "ComprehensionQuestion",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="ComprehensionQuestion.index",
    )
    result: Mapped[Optional["ComprehensionResult"]] = relationship(
        "ComprehensionResult", back_populates="session", uselist=False
    )

    def __repr__(self) -> str:
        return f"<ReadingSessionRecord(id={self.id}, mode={self.mode}, ended={self.ended_at})>"

    @property
    def is_completed(self) -> bool:
        """Check if the session has ended."""
        return self.ended_at is not None


class ComprehensionQuestion(Base):
    """Comprehension question model - one multiple-choice question."""

    __tablename__ = "comprehension_questions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    session_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("reading_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    index: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-based
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    options: Mapped[str] = mapped_column(Text, nullable=False)  # JSON array
    correct_index: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    session: Mapped["ReadingSessionRecord"] = relationship(
        "ReadingSessionRecord", back_populates="questions"
    )

    def __repr__(self) -> str:
        return f"<ComprehensionQuestion(session_id={self.session_id}, index={self.index})>"

    def get_options(self) -> list[str]:
        """Get options as list."""
        return json.loads(self.options) if self.options else []

    def set_options(self, options: list[str]) -> None:
        """Set options from list."""
        self.options = json.dumps(options)


class ComprehensionResult(Base):
    """Comprehension result model - written once per session."""

    __tablename__ = "comprehension_results"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    session_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("reading_sessions.id"), nullable=False, unique=True, index=True
    )
    answers: Mapped[str] = mapped_column(Text, nullable=False)  # JSON array
    score_percent: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_at: Mapped[str] = mapped_column(String(32), default=utc_now)

    # Relationships
    session: Mapped["ReadingSessionRecord"] = relationship(
        "ReadingSessionRecord", back_populates="result"
    )

    def __repr__(self) -> str:
        return f"<ComprehensionResult(session_id={self.session_id}, score={self.score_percent})>"

    def get_answers(self) -> list[int]:
        """Get answers as list."""
        return json.loads(self.answers) if self.answers else []

    def set_answers(self, answers: list[int]) -> None:
        """Set answers from list."""
        self.answers = json.dumps(answers)


class XPTransaction(Base):
    """XP transaction model - append-only ledger entry."""

    __tablename__ = "xp_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False, index=True
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    event_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, default="")
    metadata_json: Mapped[Optional[str]] = mapped_column("metadata", Text)
    created_at: Mapped[str] = mapped_column(String(32), default=utc_now, index=True)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="xp_transactions")

    def __repr__(self) -> str:
        return f"<XPTransaction(user_id={self.user_id}, amount={self.amount}, type={self.event_type})>"

    def get_metadata(self) -> dict[str, Any]:
        """Get metadata as dict."""
        return json.loads(self.metadata_json) if self.metadata_json else {}

    def set_metadata(self, metadata: Optional[dict[str, Any]]) -> None:
        """Set metadata from dict."""
        self.metadata_json = json.dumps(metadata) if metadata else None
