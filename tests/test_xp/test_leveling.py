"""Tests for the leveling curve."""

import pytest

from readpace.errors import ValidationError
from readpace.xp.leveling import (
    cumulative_xp,
    level_from_xp,
    level_progress,
    xp_required_for_level,
)


class TestXpRequiredForLevel:
    """Tests for per-level requirements."""

    @pytest.mark.parametrize(
        "level,expected",
        [(1, 100), (2, 282), (3, 519), (4, 800), (5, 1118), (9, 2700), (10, 3162)],
    )
    def test_known_values(self, level, expected):
        """Test floor(100 * n^1.5) at known points."""
        assert xp_required_for_level(level) == expected

    def test_strictly_increasing(self):
        """Test that each level costs more than the last."""
        values = [xp_required_for_level(n) for n in range(1, 60)]
        assert all(a < b for a, b in zip(values, values[1:]))

    def test_level_zero_rejected(self):
        """Test that levels start at 1."""
        with pytest.raises(ValidationError):
            xp_required_for_level(0)


class TestCumulativeXp:
    """Tests for cumulative requirements."""

    def test_values(self):
        """Test running sums of the per-level requirement."""
        assert cumulative_xp(0) == 0
        assert cumulative_xp(1) == 100
        assert cumulative_xp(2) == 382
        assert cumulative_xp(5) == 2819

    def test_negative_rejected(self):
        """Test that negative levels are rejected."""
        with pytest.raises(ValidationError):
            cumulative_xp(-1)


class TestLevelFromXp:
    """Tests for the inverse lookup."""

    @pytest.mark.parametrize("xp", [0, 1, 99, 100, 381])
    def test_level_one(self, xp):
        """Test that low totals are level 1."""
        assert level_from_xp(xp) == 1

    def test_boundaries(self):
        """Test levels at and just below each cumulative threshold."""
        assert level_from_xp(382) == 2
        assert level_from_xp(900) == 2
        assert level_from_xp(901) == 3

    @pytest.mark.parametrize("level", range(1, 25))
    def test_round_trip(self, level):
        """Test that a cumulative threshold maps back to its level."""
        assert level_from_xp(cumulative_xp(level)) == level

    def test_monotonic(self):
        """Test that more XP never lowers the level."""
        levels = [level_from_xp(x) for x in range(0, 20000, 37)]
        assert levels == sorted(levels)

    def test_negative_rejected(self):
        """Test that negative totals are rejected."""
        with pytest.raises(ValidationError):
            level_from_xp(-1)


class TestLevelProgress:
    """Tests for progress toward the next level."""

    def test_zero_xp(self):
        """Test a brand new user."""
        progress = level_progress(0)

        assert progress.level == 1
        assert progress.current_xp == 0
        assert progress.xp_for_next_level == 282
        assert progress.progress_percent == 0.0

    def test_formula(self):
        """Test current and next-level XP at level 2."""
        progress = level_progress(382)

        assert progress.level == 2
        assert progress.current_xp == 382 - 100
        assert progress.xp_for_next_level == 519
        assert progress.progress_percent == pytest.approx(282 / 519 * 100)

    @pytest.mark.parametrize(
        "level,expected", [(1, 35.5), (2, 54.3), (3, 64.9), (4, 71.6)]
    )
    def test_level_boundary_follows_formula(self, level, expected):
        """Test that reaching a level measures its XP against the next requirement."""
        progress = level_progress(cumulative_xp(level))

        assert progress.level == level
        assert progress.current_xp == xp_required_for_level(level)
        assert round(progress.progress_percent, 1) == expected

    def test_capped_at_100(self):
        """Test that progress never exceeds 100 percent."""
        assert level_progress(381).progress_percent == 100.0

    def test_in_range(self):
        """Test that progress stays within 0-100."""
        for x in range(0, 10000, 53):
            assert 0 <= level_progress(x).progress_percent <= 100
