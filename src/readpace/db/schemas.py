"""Pydantic schemas for data validation.

These schemas define the structure of reading content, sessions,
comprehension questions/results and the XP ledger as they cross the
boundary between callers and storage.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class ReadingMode(str, Enum):
    """How content is partitioned into display units."""

    WORD = "word"
    CHUNK = "chunk"
    PARAGRAPH = "paragraph"


class ContentSource(str, Enum):
    """Where reading content came from."""

    PASTE = "paste"
    UPLOAD = "upload"
    AI = "ai"


class Language(str, Enum):
    """Supported content languages."""

    EN = "en"
    VI = "vi"


class XPEventType(str, Enum):
    """Kind of event that produced an XP transaction."""

    SESSION = "session"
    QUIZ = "quiz"
    CHALLENGE = "challenge"
    STREAK = "streak"
    MILESTONE = "milestone"


# ============================================================================
# Reading Content Schemas
# ============================================================================


class ContentCreate(BaseModel):
    """Schema for creating reading content."""

    text: str = Field(..., min_length=1)
    language: Language = Language.EN
    source: ContentSource = ContentSource.PASTE
    title: Optional[str] = Field(None, max_length=500)


class ContentResponse(BaseModel):
    """Schema for reading content response."""

    id: str
    text: str
    language: Language
    source: ContentSource
    title: Optional[str]
    word_count: int
    created_by_user_id: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


# ============================================================================
# Reading Session Schemas
# ============================================================================


class SessionStart(BaseModel):
    """Schema for starting a reading session.

    Pace and chunk-size bounds (and whether a chunk size is allowed for the
    mode) are checked against the configured limits by the playback engine;
    this schema only enforces their shape.
    """

    content_id: str = Field(..., min_length=1)
    mode: ReadingMode
    pace_wpm: int = Field(..., gt=0)
    chunk_size: Optional[int] = None
    user_id: Optional[str] = None
    device_id: Optional[str] = None


class SessionComplete(BaseModel):
    """Schema for a client-reported session completion."""

    words_read: int = Field(..., ge=0)
    duration_ms: int = Field(..., ge=0)


class ReadingSessionResponse(BaseModel):
    """Schema for reading session response."""

    id: str
    content_id: str
    user_id: Optional[str]
    device_id: Optional[str]
    mode: ReadingMode
    pace_wpm: int
    chunk_size: Optional[int]
    started_at: datetime
    ended_at: Optional[datetime]
    words_read: int
    duration_ms: int
    computed_wpm: float

    model_config = {"from_attributes": True}

    @property
    def is_completed(self) -> bool:
        """Whether the session has ended."""
        return self.ended_at is not None


# ============================================================================
# Comprehension Schemas
# ============================================================================


class Question(BaseModel):
    """A multiple-choice comprehension question."""

    index: int = Field(..., ge=1)
    prompt: str = Field(..., min_length=1)
    options: list[str]
    correct_index: int = Field(..., ge=0)

    model_config = {"from_attributes": True}

    @field_validator("options", mode="before")
    @classmethod
    def parse_options(cls, v: Any) -> Any:
        """Accept the JSON-encoded options column as stored."""
        if isinstance(v, str):
            return json.loads(v)
        return v


class AnswerSubmission(BaseModel):
    """Schema for submitting quiz answers."""

    session_id: str = Field(..., min_length=1)
    answers: list[int]


class ComprehensionResultResponse(BaseModel):
    """Schema for comprehension result response."""

    id: str
    session_id: str
    answers: list[int]
    score_percent: int
    completed_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("answers", mode="before")
    @classmethod
    def parse_answers(cls, v: Any) -> Any:
        """Accept the JSON-encoded answers column as stored."""
        if isinstance(v, str):
            return json.loads(v)
        return v


# ============================================================================
# XP Schemas
# ============================================================================


class XPTransactionCreate(BaseModel):
    """Schema for appending an XP transaction to the ledger."""

    user_id: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0)
    event_type: XPEventType
    description: str = ""
    metadata: Optional[dict[str, Any]] = None


class XPTransactionResponse(BaseModel):
    """Schema for XP transaction response."""

    id: str
    user_id: str
    amount: int
    event_type: XPEventType
    description: str
    created_at: datetime

    model_config = {"from_attributes": True}
