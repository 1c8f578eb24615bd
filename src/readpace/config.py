"""Configuration management for readpace.

Loads configuration from environment variables and provides defaults.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


@dataclass
class Config:
    """Application configuration."""

    # Database
    db_path: Path

    # Logging
    log_level: str

    # Pace bounds (words per minute)
    min_pace_wpm: int
    max_pace_wpm: int

    # Chunk size bounds (words per chunk)
    min_chunk_size: int
    max_chunk_size: int

    # Quiz
    question_count: int
    option_count: int

    # XP rewards
    streak_xp: int
    words_per_xp: int
    quiz_xp_per_step: int

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get(
            "READPACE_DB_PATH",
            str(Path.home() / ".readpace" / "readpace.db"),
        )
        db_path = Path(db_path_str).expanduser()

        return cls(
            db_path=db_path,
            log_level=os.environ.get("READPACE_LOG_LEVEL", "WARNING").upper(),
            min_pace_wpm=int(os.environ.get("READPACE_MIN_PACE", "100")),
            max_pace_wpm=int(os.environ.get("READPACE_MAX_PACE", "1000")),
            min_chunk_size=int(os.environ.get("READPACE_MIN_CHUNK", "2")),
            max_chunk_size=int(os.environ.get("READPACE_MAX_CHUNK", "8")),
            question_count=int(os.environ.get("READPACE_QUESTION_COUNT", "5")),
            option_count=4,
            streak_xp=int(os.environ.get("READPACE_STREAK_XP", "5")),
            words_per_xp=int(os.environ.get("READPACE_WORDS_PER_XP", "10")),
            quiz_xp_per_step=int(os.environ.get("READPACE_QUIZ_XP_PER_STEP", "2")),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not isinstance(logging.getLevelName(self.log_level), int):
            errors.append(f"Unknown log level: {self.log_level}")

        if not 0 < self.min_pace_wpm <= self.max_pace_wpm:
            errors.append(
                f"Invalid pace range: {self.min_pace_wpm}-{self.max_pace_wpm} WPM"
            )

        if not 1 < self.min_chunk_size <= self.max_chunk_size:
            errors.append(
                f"Invalid chunk size range: {self.min_chunk_size}-{self.max_chunk_size}"
            )

        if self.question_count < 1:
            errors.append("Question count must be at least 1")

        if self.words_per_xp < 1:
            errors.append("READPACE_WORDS_PER_XP must be at least 1")

        # Check database directory is writable
        if str(self.db_path) != ":memory:" and not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        return errors


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
