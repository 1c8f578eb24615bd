"""Content manager for pasted, uploaded and generated reading text."""

import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from ..db.models import ReadingContent
from ..db.schemas import ContentCreate, ContentSource, Language
from ..db.sqlite import Database, get_db
from ..errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 60


def count_words(text: str) -> int:
    """Count whitespace-delimited words in text."""
    return len(text.split())


def extract_title(text: str, max_length: int = TITLE_MAX_LENGTH) -> str:
    """Derive a title from the first non-empty line of text."""
    for line in text.splitlines():
        line = line.strip()
        if line:
            if len(line) <= max_length:
                return line
            return line[: max_length - 3].rstrip() + "..."
    return "Untitled"


class ContentManager:
    """Manages reading content."""

    def __init__(self, db: Optional[Database] = None):
        """Initialize content manager.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    def create_content(
        self,
        text: str,
        language: Language | str = Language.EN,
        source: ContentSource | str = ContentSource.PASTE,
        title: Optional[str] = None,
        created_by_user_id: Optional[str] = None,
    ) -> ReadingContent:
        """Store a new piece of reading content.

        Args:
            text: Body text; paragraphs separated by blank lines
            language: Language tag (en, vi)
            source: Where the text came from (paste, upload, ai)
            title: Optional title (default: first line of text)
            created_by_user_id: User who added the content

        Returns:
            Created ReadingContent

        Raises:
            ValidationError: If the text has no words or fields are invalid
        """
        try:
            data = ContentCreate(text=text, language=language, source=source, title=title)
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e

        word_count = count_words(data.text)
        if word_count == 0:
            raise ValidationError("Content must contain at least one word")

        content = self.db.create_content(
            text=data.text,
            word_count=word_count,
            language=data.language.value,
            source=data.source.value,
            title=data.title or extract_title(data.text),
            created_by_user_id=created_by_user_id,
        )
        logger.info("Created content %s (%d words)", content.id, word_count)
        return content

    def create_from_file(
        self,
        path: Path,
        language: Language | str = Language.EN,
        title: Optional[str] = None,
        created_by_user_id: Optional[str] = None,
    ) -> ReadingContent:
        """Store the contents of a UTF-8 text file as uploaded content."""
        text = Path(path).read_text(encoding="utf-8")
        return self.create_content(
            text,
            language=language,
            source=ContentSource.UPLOAD,
            title=title or Path(path).stem,
            created_by_user_id=created_by_user_id,
        )

    def get_content(self, content_id: str) -> ReadingContent:
        """Get content by ID.

        Raises:
            NotFoundError: If no content has this ID
        """
        content = self.db.get_content(content_id)
        if content is None:
            raise NotFoundError(f"Content not found: {content_id}")
        return content

    def get_recent_content(
        self, user_id: Optional[str] = None, limit: int = 10
    ) -> list[ReadingContent]:
        """Get recently added content, newest first."""
        return self.db.get_recent_content(user_id=user_id, limit=limit)
