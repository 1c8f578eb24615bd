"""Reading session management.

Keeps a registry of live playback engines keyed by session id, persists a
session row when playback starts and writes its final metrics exactly once
when it completes (by finishing early or by reaching the end of the text).
"""

import logging
import threading
from typing import Callable, Optional
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from ..config import Config, get_config
from ..db.models import ReadingSessionRecord
from ..db.schemas import ReadingMode, ReadingSessionResponse, SessionComplete, SessionStart
from ..db.sqlite import Database, get_db
from ..errors import NotFoundError, StateError, ValidationError
from .engine import (
    PlaybackEngine,
    StateChange,
    compute_wpm,
    validate_chunk_size,
    validate_pace,
)

logger = logging.getLogger(__name__)

# Client-reported speeds above this are rejected as implausible
MAX_PLAUSIBLE_WPM = 2000


def validate_session_metrics(words_read: int, duration_ms: int, total_words: int) -> list[str]:
    """Check client-reported session metrics, return list of errors."""
    errors = []

    if words_read < 0:
        errors.append("Words read cannot be negative")

    if duration_ms <= 0:
        errors.append("Duration must be positive")

    if words_read > total_words:
        errors.append(f"Words read ({words_read}) cannot exceed total words ({total_words})")

    wpm = compute_wpm(words_read, duration_ms)
    if wpm > MAX_PLAUSIBLE_WPM:
        errors.append(f"Computed WPM ({wpm:.0f}) seems unrealistically high")

    return errors


class SessionManager:
    """Manages reading sessions and their live playback engines."""

    def __init__(self, db: Optional[Database] = None, config: Optional[Config] = None):
        """Initialize session manager.

        Args:
            db: Database instance
            config: Configuration with pace and chunk-size bounds
        """
        self.db = db or get_db()
        self.config = config or get_config()
        self._engines: dict[str, PlaybackEngine] = {}
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start_session(
        self,
        content_id: str,
        mode: ReadingMode | str,
        pace_wpm: int,
        chunk_size: Optional[int] = None,
        user_id: Optional[str] = None,
        device_id: Optional[str] = None,
        on_change: Optional[Callable[[StateChange], None]] = None,
    ) -> ReadingSessionResponse:
        """Start a new reading session in the IDLE state.

        Args:
            content_id: ID of the content to read
            mode: word, chunk or paragraph
            pace_wpm: Target pace in words per minute
            chunk_size: Words per chunk (chunk mode only)
            user_id: Reader, for XP and analytics
            device_id: Device, for anonymous analytics
            on_change: Called with every StateChange of this session

        Returns:
            New session with no words read and no elapsed time

        Raises:
            ValidationError: If pace or chunk size is invalid
            NotFoundError: If the content does not exist
        """
        try:
            request = SessionStart(
                content_id=content_id,
                mode=mode,
                pace_wpm=pace_wpm,
                chunk_size=chunk_size,
                user_id=user_id,
                device_id=device_id,
            )
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e

        cfg = self.config
        validate_pace(request.pace_wpm, cfg.min_pace_wpm, cfg.max_pace_wpm)
        validate_chunk_size(request.mode, request.chunk_size, cfg.min_chunk_size, cfg.max_chunk_size)

        content = self.db.get_content(request.content_id)
        if content is None:
            raise NotFoundError(f"Content not found: {request.content_id}")

        session_id = str(uuid4())
        engine = PlaybackEngine(
            session_id,
            content.text,
            request.mode,
            request.pace_wpm,
            request.chunk_size,
            min_pace=cfg.min_pace_wpm,
            max_pace=cfg.max_pace_wpm,
            min_chunk=cfg.min_chunk_size,
            max_chunk=cfg.max_chunk_size,
            on_change=on_change,
            on_complete=self._persist_completion,
        )

        record = self.db.create_session(
            session_id=session_id,
            content_id=content.id,
            mode=request.mode.value,
            pace_wpm=request.pace_wpm,
            chunk_size=request.chunk_size,
            user_id=request.user_id,
            device_id=request.device_id,
            started_at=engine.started_at.isoformat(),
        )
        with self._lock:
            self._engines[session_id] = engine

        logger.info(
            "Started session %s: %s mode at %d WPM over content %s",
            session_id,
            request.mode.value,
            request.pace_wpm,
            content.id,
        )
        return ReadingSessionResponse.model_validate(record)

    def play(self, session_id: str) -> StateChange:
        """Start or resume playback."""
        return self._get_engine(session_id).play()

    def pause(self, session_id: str) -> StateChange:
        """Pause playback, keeping position and elapsed time."""
        return self._get_engine(session_id).pause()

    def adjust_pace(self, session_id: str, new_pace_wpm: int) -> StateChange:
        """Change pace for the rest of the session.

        Raises:
            ValidationError: If the pace is outside the supported range
        """
        change = self._get_engine(session_id).adjust_pace(new_pace_wpm)
        try:
            self.db.update_session_pace(session_id, change.pace_wpm)
        except StateError:
            # Completed in between; completion already stored the final pace
            logger.debug("Session %s completed before its pace was stored", session_id)
        return change

    def finish_session(self, session_id: str) -> ReadingSessionResponse:
        """End a session early (or at any point) and persist its metrics.

        Raises:
            NotFoundError: If the session does not exist
            StateError: If the session has already completed
        """
        self._get_engine(session_id).finish()
        return self.get_session(session_id)

    def complete_session(
        self, session_id: str, words_read: int, duration_ms: int
    ) -> ReadingSessionResponse:
        """Complete a session from client-reported metrics.

        Used when playback ran on the client rather than in a live engine.

        Raises:
            ValidationError: If the metrics are malformed or implausible
            NotFoundError: If the session does not exist
            StateError: If the session has completed or is playing here
        """
        try:
            request = SessionComplete(words_read=words_read, duration_ms=duration_ms)
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e

        record = self._get_record(session_id)
        if record.is_completed:
            raise StateError(f"Session already completed: {session_id}")
        with self._lock:
            if session_id in self._engines:
                raise StateError(f"Session {session_id} is driven by live playback; finish it instead")

        content = self.db.get_content(record.content_id)
        if content is None:
            raise NotFoundError(f"Content not found for session: {session_id}")

        errors = validate_session_metrics(request.words_read, request.duration_ms, content.word_count)
        if errors:
            raise ValidationError("; ".join(errors))

        record = self.db.complete_session(
            session_id,
            words_read=request.words_read,
            duration_ms=request.duration_ms,
            computed_wpm=compute_wpm(request.words_read, request.duration_ms),
        )
        logger.info("Completed session %s from client metrics", session_id)
        return ReadingSessionResponse.model_validate(record)

    def shutdown(self) -> None:
        """Finish every live session, persisting partial progress."""
        with self._lock:
            engines = list(self._engines.values())
        for engine in engines:
            try:
                engine.finish()
            except StateError:
                # Reached the end on its own since the registry was read
                logger.debug("Session %s already completed at shutdown", engine.session_id)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_session(self, session_id: str) -> ReadingSessionResponse:
        """Get a session, with live progress if it is still playing.

        Raises:
            NotFoundError: If the session does not exist
        """
        record = self._get_record(session_id)
        response = ReadingSessionResponse.model_validate(record)

        with self._lock:
            engine = self._engines.get(session_id)
        if engine is not None and not engine.is_completed:
            change = engine.snapshot()
            response = response.model_copy(
                update={
                    "pace_wpm": change.pace_wpm,
                    "words_read": change.words_read,
                    "duration_ms": change.duration_ms,
                    "computed_wpm": 0.0,
                }
            )
        return response

    def get_live_state(self, session_id: str) -> StateChange:
        """Current playback snapshot of a live session."""
        return self._get_engine(session_id).snapshot()

    def get_sessions_for_content(self, content_id: str) -> list[ReadingSessionResponse]:
        """All sessions over a piece of content, oldest first."""
        return [
            ReadingSessionResponse.model_validate(r)
            for r in self.db.get_sessions_for_content(content_id)
        ]

    def get_recent_sessions(
        self,
        limit: int = 10,
        completed_only: bool = False,
        user_id: Optional[str] = None,
    ) -> list[ReadingSessionResponse]:
        """Recent sessions, most recent first."""
        return [
            ReadingSessionResponse.model_validate(r)
            for r in self.db.get_recent_sessions(
                limit=limit, completed_only=completed_only, user_id=user_id
            )
        ]

    def active_session_ids(self) -> list[str]:
        """IDs of sessions with a live engine."""
        with self._lock:
            return list(self._engines)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _get_record(self, session_id: str) -> ReadingSessionRecord:
        record = self.db.get_session_record(session_id)
        if record is None:
            raise NotFoundError(f"Session not found: {session_id}")
        return record

    def _get_engine(self, session_id: str) -> PlaybackEngine:
        with self._lock:
            engine = self._engines.get(session_id)
        if engine is not None:
            return engine

        record = self._get_record(session_id)
        if record.is_completed:
            raise StateError(f"Session already completed: {session_id}")
        raise NotFoundError(f"No live playback for session: {session_id}")

    def _persist_completion(self, engine: PlaybackEngine) -> None:
        """Write final metrics once the engine reaches COMPLETED."""
        try:
            self.db.complete_session(
                engine.session_id,
                words_read=engine.words_read,
                duration_ms=engine.duration_ms,
                computed_wpm=engine.computed_wpm,
                pace_wpm=engine.pace_wpm,
                ended_at=engine.ended_at.isoformat() if engine.ended_at else None,
            )
        finally:
            with self._lock:
                self._engines.pop(engine.session_id, None)


# Global session manager instance
_session_manager: Optional[SessionManager] = None


def get_session_manager(db: Optional[Database] = None) -> SessionManager:
    """Get or create the global session manager instance."""
    global _session_manager
    if _session_manager is None:
        _session_manager = SessionManager(db)
    return _session_manager


def reset_session_manager() -> None:
    """Reset the global session manager. Used for testing."""
    global _session_manager
    _session_manager = None
