"""Database module for local SQLite storage."""

from .models import (
    ComprehensionQuestion,
    ComprehensionResult,
    ReadingContent,
    ReadingSessionRecord,
    User,
    XPTransaction,
)
from .schemas import (
    ContentSource,
    Language,
    ReadingMode,
    ReadingSessionResponse,
    XPEventType,
)
from .sqlite import Database, get_db

__all__ = [
    "ComprehensionQuestion",
    "ComprehensionResult",
    "ReadingContent",
    "ReadingSessionRecord",
    "User",
    "XPTransaction",
    "ContentSource",
    "Language",
    "ReadingMode",
    "ReadingSessionResponse",
    "XPEventType",
    "Database",
    "get_db",
]
