"""XP to level conversion.

Level is never stored: it is always recomputed from a user's total XP so it
cannot drift from the ledger.

Level n requires ``floor(100 * n ** 1.5)`` XP; a user is at the highest
level whose cumulative requirement they have met (never below level 1).
"""

import math
from dataclasses import dataclass

from ..errors import ValidationError

BASE_XP = 100


@dataclass(frozen=True)
class LevelProgress:
    """Where a total XP amount sits on the leveling curve."""

    level: int
    current_xp: int
    xp_for_next_level: int
    progress_percent: float


def xp_required_for_level(level: int) -> int:
    """XP needed to complete a single level (n >= 1)."""
    if level < 1:
        raise ValidationError(f"Level must be at least 1, got {level}")
    # floor(100 * n^1.5) == isqrt(100^2 * n^3), computed exactly
    return math.isqrt(BASE_XP * BASE_XP * level**3)


def cumulative_xp(level: int) -> int:
    """Total XP needed to have completed levels 1..n (0 for n = 0)."""
    if level < 0:
        raise ValidationError(f"Level cannot be negative, got {level}")
    return sum(xp_required_for_level(n) for n in range(1, level + 1))


def level_from_xp(total_xp: int) -> int:
    """Largest level whose cumulative requirement is met; at least 1."""
    if total_xp < 0:
        raise ValidationError(f"Total XP cannot be negative, got {total_xp}")

    level = 1
    threshold = cumulative_xp(2)
    while threshold <= total_xp:
        level += 1
        threshold += xp_required_for_level(level + 1)
    return level


def level_progress(total_xp: int) -> LevelProgress:
    """Level and progress toward the next one for a total XP amount."""
    level = level_from_xp(total_xp)
    current_xp = total_xp - cumulative_xp(level - 1)
    xp_for_next_level = xp_required_for_level(level + 1)
    progress = min(100.0, current_xp / xp_for_next_level * 100)

    return LevelProgress(
        level=level,
        current_xp=current_xp,
        xp_for_next_level=xp_for_next_level,
        progress_percent=progress,
    )
