"""Pytest configuration and shared fixtures.

This module provides fixtures for testing the readpace application,
including temporary databases, configuration and sample content.
"""

import os
import tempfile
from dataclasses import replace
from pathlib import Path
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from readpace.config import Config, reset_config
from readpace.content import ContentManager
from readpace.db.models import ReadingContent
from readpace.db.sqlite import Database, reset_db


SAMPLE_TEXT = """The quick brown fox jumps over the lazy dog.

Reading faster is a skill that improves with practice and attention.

Short paragraphs help."""


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)
    yield db_path
    # Cleanup
    if db_path.exists():
        db_path.unlink()


@pytest.fixture(scope="function")
def db(temp_db_path: Path) -> Generator[Database, None, None]:
    """Create a test database instance."""
    # Reset any global state
    reset_db()
    reset_config()

    # Set environment variable for test database
    os.environ["READPACE_DB_PATH"] = str(temp_db_path)

    database = Database(str(temp_db_path))
    database.create_tables()
    yield database

    # Cleanup
    reset_db()
    reset_config()
    database.engine.dispose()
    if "READPACE_DB_PATH" in os.environ:
        del os.environ["READPACE_DB_PATH"]


@pytest.fixture(scope="function")
def session(db: Database) -> Generator[Session, None, None]:
    """Create a database session for testing."""
    with db.get_session() as sess:
        yield sess


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def config(temp_db_path: Path) -> Config:
    """Default configuration pointed at the test database."""
    return Config(
        db_path=temp_db_path,
        log_level="WARNING",
        min_pace_wpm=100,
        max_pace_wpm=1000,
        min_chunk_size=2,
        max_chunk_size=8,
        question_count=5,
        option_count=4,
        streak_xp=5,
        words_per_xp=10,
        quiz_xp_per_step=2,
    )


@pytest.fixture
def fast_config(config: Config) -> Config:
    """Configuration allowing very fast paces so timed tests stay short."""
    return replace(config, max_pace_wpm=60000)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_text() -> str:
    """Three paragraphs, 23 words."""
    return SAMPLE_TEXT


@pytest.fixture
def sample_content(db: Database, sample_text: str) -> ReadingContent:
    """Stored sample content."""
    return ContentManager(db).create_content(sample_text, title="Sample")


@pytest.fixture
def sample_questions() -> list[dict]:
    """Five well-formed generated questions; correct answers 0, 1, 2, 3, 0."""
    return [
        {
            "prompt": f"Question {i + 1}?",
            "options": ["A", "B", "C", "D"],
            "correctIndex": i % 4,
        }
        for i in range(5)
    ]
