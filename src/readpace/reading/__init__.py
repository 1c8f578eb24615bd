"""Paced reading sessions: display units, playback engine and registry."""

from .engine import (
    PlaybackEngine,
    PlaybackEvent,
    PlaybackState,
    StateChange,
    compute_wpm,
)
from .session import (
    SessionManager,
    get_session_manager,
    validate_session_metrics,
)
from .units import DisplayUnit, build_units

__all__ = [
    "PlaybackEngine",
    "PlaybackEvent",
    "PlaybackState",
    "StateChange",
    "compute_wpm",
    "SessionManager",
    "get_session_manager",
    "validate_session_metrics",
    "DisplayUnit",
    "build_units",
]
