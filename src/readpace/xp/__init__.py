"""XP ledger and non-linear leveling."""

from .leveling import (
    LevelProgress,
    cumulative_xp,
    level_from_xp,
    level_progress,
    xp_required_for_level,
)
from .manager import StreakUpdate, UserProfile, XPAward, XPManager

__all__ = [
    "LevelProgress",
    "StreakUpdate",
    "UserProfile",
    "XPAward",
    "XPManager",
    "cumulative_xp",
    "level_from_xp",
    "level_progress",
    "xp_required_for_level",
]
