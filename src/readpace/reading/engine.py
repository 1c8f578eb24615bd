"""Playback state machine for a single reading session.

States: IDLE -> PLAYING <-> PAUSED -> COMPLETED. COMPLETED is terminal and
is reached either by advancing past the last unit or by an explicit finish.

Each engine owns one timer and one lock. Every mutation, including timer
ticks, runs under the lock, and each scheduled tick carries a generation
number so that a tick scheduled before a pause, pace change or finish is
discarded instead of advancing the session.
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from ..db.schemas import ReadingMode
from ..errors import StateError, ValidationError
from .units import DisplayUnit, build_units, total_words, unit_interval_ms

logger = logging.getLogger(__name__)

DEFAULT_MIN_PACE = 100
DEFAULT_MAX_PACE = 1000
DEFAULT_MIN_CHUNK = 2
DEFAULT_MAX_CHUNK = 8


class PlaybackState(str, Enum):
    """State of a playback engine."""

    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    COMPLETED = "completed"


class PlaybackEvent(str, Enum):
    """What caused a state change."""

    START = "start"
    PLAY = "play"
    PAUSE = "pause"
    ADVANCE = "advance"
    ADJUST_PACE = "adjust_pace"
    FINISH = "finish"
    COMPLETE = "complete"  # Advanced past the last unit
    ERROR = "error"  # Timer failure, fatal to this session


@dataclass(frozen=True)
class StateChange:
    """Snapshot reported to the caller after every transition or advance."""

    session_id: str
    event: PlaybackEvent
    state: PlaybackState
    position: int  # Index of the unit on screen (== unit count once exhausted)
    total_units: int
    words_read: int
    total_words: int
    duration_ms: int
    pace_wpm: int
    unit: Optional[DisplayUnit] = None  # Unit just read, on ADVANCE

    @property
    def progress_percent(self) -> float:
        """Share of the content's words read so far."""
        if self.total_words == 0:
            return 0.0
        return self.words_read / self.total_words * 100


def compute_wpm(words_read: int, duration_ms: int) -> float:
    """Actual reading speed; 0 while no time has elapsed."""
    if duration_ms <= 0:
        return 0.0
    return round(words_read * 60_000 / duration_ms, 2)


def validate_pace(pace_wpm: int, min_pace: int = DEFAULT_MIN_PACE, max_pace: int = DEFAULT_MAX_PACE) -> None:
    """Reject a pace outside the supported range."""
    if isinstance(pace_wpm, bool) or not isinstance(pace_wpm, int):
        raise ValidationError(f"Pace must be an integer, got {pace_wpm!r}")
    if not min_pace <= pace_wpm <= max_pace:
        raise ValidationError(f"Pace must be between {min_pace} and {max_pace} WPM")


def validate_chunk_size(
    mode: ReadingMode | str,
    chunk_size: Optional[int],
    min_chunk: int = DEFAULT_MIN_CHUNK,
    max_chunk: int = DEFAULT_MAX_CHUNK,
) -> None:
    """Chunk size is required in range for chunk mode and forbidden otherwise."""
    mode = ReadingMode(mode)
    if mode == ReadingMode.CHUNK:
        if chunk_size is not None and (isinstance(chunk_size, bool) or not isinstance(chunk_size, int)):
            raise ValidationError(f"Chunk size must be an integer, got {chunk_size!r}")
        if chunk_size is None or not min_chunk <= chunk_size <= max_chunk:
            raise ValidationError(
                f"Chunk size must be between {min_chunk} and {max_chunk} for chunk mode"
            )
    elif chunk_size is not None:
        raise ValidationError(f"Chunk size should not be specified for {mode.value} mode")


class PlaybackEngine:
    """Drives one session through the playback state machine."""

    def __init__(
        self,
        session_id: str,
        text: str,
        mode: ReadingMode | str,
        pace_wpm: int,
        chunk_size: Optional[int] = None,
        *,
        min_pace: int = DEFAULT_MIN_PACE,
        max_pace: int = DEFAULT_MAX_PACE,
        min_chunk: int = DEFAULT_MIN_CHUNK,
        max_chunk: int = DEFAULT_MAX_CHUNK,
        on_change: Optional[Callable[[StateChange], None]] = None,
        on_complete: Optional[Callable[["PlaybackEngine"], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        """Validate settings and partition content. Starts in IDLE.

        Args:
            session_id: Session this engine drives
            text: Content body
            mode: word, chunk or paragraph
            pace_wpm: Target pace in words per minute
            chunk_size: Words per chunk (chunk mode only)
            min_pace: Lowest accepted pace
            max_pace: Highest accepted pace
            min_chunk: Smallest accepted chunk size
            max_chunk: Largest accepted chunk size
            on_change: Called with every StateChange (under the session lock)
            on_complete: Called once when the session reaches COMPLETED
            clock: Monotonic clock in seconds
            timer_factory: threading.Timer-compatible factory

        Raises:
            ValidationError: If pace or chunk size is out of range, or the
                content has no words
        """
        try:
            self.mode = ReadingMode(mode)
        except ValueError as e:
            raise ValidationError(f"Unknown reading mode: {mode!r}") from e
        validate_pace(pace_wpm, min_pace, max_pace)
        validate_chunk_size(self.mode, chunk_size, min_chunk, max_chunk)

        self.session_id = session_id
        self.chunk_size = chunk_size
        self.units = build_units(text, self.mode, chunk_size)
        if not self.units:
            raise ValidationError("Content has no words to read")
        self.total_words = total_words(self.units)

        self._min_pace = min_pace
        self._max_pace = max_pace
        self._on_change = on_change
        self._on_complete = on_complete
        self._clock = clock
        self._timer_factory = timer_factory

        self._lock = threading.RLock()
        self._state = PlaybackState.IDLE
        self._pace_wpm = pace_wpm
        self._position = 0
        self._words_read = 0
        self._duration_ms = 0.0  # Folded PLAYING time before the current segment
        self._segment_start: Optional[float] = None
        self._unit_elapsed_ms = 0.0  # Time the current unit was shown before _unit_start
        self._unit_start: Optional[float] = None
        self._timer: Optional[threading.Timer] = None
        self._generation = 0

        self.started_at = datetime.now(timezone.utc)
        self.ended_at: Optional[datetime] = None
        self._computed_wpm = 0.0

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def pace_wpm(self) -> int:
        return self._pace_wpm

    @property
    def position(self) -> int:
        return self._position

    @property
    def words_read(self) -> int:
        return self._words_read

    @property
    def duration_ms(self) -> int:
        """Elapsed PLAYING time, including the running segment."""
        with self._lock:
            return int(self._running_duration_ms(self._clock()))

    @property
    def computed_wpm(self) -> float:
        """Frozen actual WPM once completed; live value before that."""
        with self._lock:
            if self._state == PlaybackState.COMPLETED:
                return self._computed_wpm
            return compute_wpm(self._words_read, self.duration_ms)

    @property
    def is_completed(self) -> bool:
        return self._state == PlaybackState.COMPLETED

    @property
    def current_unit(self) -> Optional[DisplayUnit]:
        """Unit on screen, or None once the content is exhausted."""
        if self._position < len(self.units):
            return self.units[self._position]
        return None

    def snapshot(self, event: PlaybackEvent = PlaybackEvent.START, unit: Optional[DisplayUnit] = None) -> StateChange:
        """Consistent view of live progress."""
        with self._lock:
            return StateChange(
                session_id=self.session_id,
                event=event,
                state=self._state,
                position=self._position,
                total_units=len(self.units),
                words_read=self._words_read,
                total_words=self.total_words,
                duration_ms=int(self._running_duration_ms(self._clock())),
                pace_wpm=self._pace_wpm,
                unit=unit,
            )

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def play(self) -> StateChange:
        """IDLE/PAUSED -> PLAYING. Resumes the current unit where it left off."""
        with self._lock:
            self._ensure_active("play")
            if self._state == PlaybackState.PLAYING:
                return self.snapshot(PlaybackEvent.PLAY)

            now = self._clock()
            self._state = PlaybackState.PLAYING
            self._segment_start = now
            self._unit_start = now
            change = self._emit(PlaybackEvent.PLAY)
            self._schedule(self._remaining_unit_ms(now))
            return change

    def pause(self) -> StateChange:
        """PLAYING -> PAUSED. Keeps position and elapsed time."""
        with self._lock:
            self._ensure_active("pause")
            if self._state != PlaybackState.PLAYING:
                return self.snapshot(PlaybackEvent.PAUSE)

            now = self._clock()
            self._cancel_timer()

            # Units whose display time already ran out count as read
            elapsed = self._current_unit_elapsed_ms(now)
            while self._state == PlaybackState.PLAYING:
                interval = self._interval_ms(self.units[self._position])
                if elapsed < interval:
                    break
                elapsed -= interval
                self._advance(now)
            if self._state == PlaybackState.COMPLETED:
                return self.snapshot(PlaybackEvent.COMPLETE)

            self._unit_elapsed_ms = elapsed
            self._unit_start = None
            self._duration_ms = self._running_duration_ms(now)
            self._segment_start = None
            self._state = PlaybackState.PAUSED
            return self._emit(PlaybackEvent.PAUSE)

    def adjust_pace(self, new_pace_wpm: int) -> StateChange:
        """Change the pace for subsequent advances without losing position.

        Raises:
            ValidationError: If the pace is outside the supported range
            StateError: If the session is completed
        """
        with self._lock:
            self._ensure_active("adjust pace")
            validate_pace(new_pace_wpm, self._min_pace, self._max_pace)

            if self._state == PlaybackState.PLAYING:
                now = self._clock()
                self._cancel_timer()
                self._unit_elapsed_ms = self._current_unit_elapsed_ms(now)
                self._unit_start = now
                self._pace_wpm = new_pace_wpm
                change = self._emit(PlaybackEvent.ADJUST_PACE)
                self._schedule(self._remaining_unit_ms(now))
                return change

            self._pace_wpm = new_pace_wpm
            return self._emit(PlaybackEvent.ADJUST_PACE)

    def finish(self) -> StateChange:
        """End the session now. Partial completion is a valid end."""
        with self._lock:
            self._ensure_active("finish")
            return self._complete(self._clock(), PlaybackEvent.FINISH)

    # -------------------------------------------------------------------------
    # Internals (call with the lock held)
    # -------------------------------------------------------------------------

    def _ensure_active(self, action: str) -> None:
        if self._state == PlaybackState.COMPLETED:
            raise StateError(f"Cannot {action}: session {self.session_id} is completed")

    def _interval_ms(self, unit: DisplayUnit) -> float:
        if self.mode == ReadingMode.CHUNK:
            return unit_interval_ms(self.chunk_size, self._pace_wpm)
        return unit_interval_ms(max(1, unit.word_count), self._pace_wpm)

    def _running_duration_ms(self, now: float) -> float:
        if self._segment_start is None:
            return self._duration_ms
        return self._duration_ms + (now - self._segment_start) * 1000

    def _current_unit_elapsed_ms(self, now: float) -> float:
        if self._unit_start is None:
            return self._unit_elapsed_ms
        return self._unit_elapsed_ms + (now - self._unit_start) * 1000

    def _remaining_unit_ms(self, now: float) -> float:
        unit = self.units[self._position]
        return max(0.0, self._interval_ms(unit) - self._current_unit_elapsed_ms(now))

    def _schedule(self, delay_ms: float) -> None:
        self._generation += 1
        generation = self._generation
        try:
            timer = self._timer_factory(delay_ms / 1000, self._tick, args=(generation,))
            timer.daemon = True
            timer.start()
        except Exception:
            logger.exception("Could not schedule playback for session %s", self.session_id)
            self._timer = None
            self._complete(self._clock(), PlaybackEvent.ERROR)
            return
        self._timer = timer

    def _cancel_timer(self) -> None:
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _tick(self, generation: int) -> None:
        """Timer callback: show the next unit."""
        try:
            with self._lock:
                if generation != self._generation or self._state != PlaybackState.PLAYING:
                    return
                self._timer = None
                now = self._clock()
                self._advance(now)
                if self._state == PlaybackState.PLAYING:
                    self._schedule(self._remaining_unit_ms(now))
        except Exception:
            logger.exception("Playback failed for session %s", self.session_id)
            self._fail()

    def _fail(self) -> None:
        with self._lock:
            if self._state != PlaybackState.COMPLETED:
                self._complete(self._clock(), PlaybackEvent.ERROR)

    def _advance(self, now: float) -> None:
        unit = self.units[self._position]
        self._words_read = min(self.total_words, self._words_read + unit.word_count)
        self._position += 1
        self._unit_elapsed_ms = 0.0
        self._unit_start = now
        self._emit(PlaybackEvent.ADVANCE, unit)

        if self._position >= len(self.units):
            self._complete(now, PlaybackEvent.COMPLETE)

    def _complete(self, now: float, event: PlaybackEvent) -> StateChange:
        self._cancel_timer()
        self._duration_ms = self._running_duration_ms(now)
        self._segment_start = None
        self._unit_start = None
        self._state = PlaybackState.COMPLETED
        self.ended_at = datetime.now(timezone.utc)
        self._computed_wpm = compute_wpm(self._words_read, int(self._duration_ms))

        logger.info(
            "Session %s completed (%s): %d/%d words in %d ms",
            self.session_id,
            event.value,
            self._words_read,
            self.total_words,
            int(self._duration_ms),
        )
        # Persist before listeners see COMPLETED
        try:
            if self._on_complete is not None:
                self._on_complete(self)
        finally:
            change = self._emit(event)
        return change

    def _emit(self, event: PlaybackEvent, unit: Optional[DisplayUnit] = None) -> StateChange:
        change = self.snapshot(event, unit)
        if self._on_change is not None:
            try:
                self._on_change(change)
            except Exception:
                logger.exception("State change listener failed for session %s", self.session_id)
        return change
