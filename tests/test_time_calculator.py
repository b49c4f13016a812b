"""
Unit tests for interval arithmetic and time parsing.
"""

from datetime import datetime, timezone

import pytest

from salon.domain.scheduling.time_calculator import (
    Interval,
    from_minutes,
    overlaps,
    to_minutes,
)


class TestOverlaps:
    """Test the half-open overlap rule."""

    def test_overlapping_intervals(self):
        assert overlaps(540, 570, 555, 600)

    def test_overlap_is_symmetric(self):
        pairs = [
            ((540, 570), (555, 600)),
            ((540, 600), (560, 570)),
            ((540, 570), (570, 600)),
            ((540, 570), (600, 630)),
        ]
        for (a_start, a_end), (b_start, b_end) in pairs:
            assert overlaps(a_start, a_end, b_start, b_end) == overlaps(
                b_start, b_end, a_start, a_end
            )

    def test_touching_intervals_do_not_overlap(self):
        """An interval ending exactly when another starts does not conflict."""
        assert not overlaps(540, 570, 570, 600)
        assert not overlaps(570, 600, 540, 570)

    def test_containment_overlaps(self):
        assert overlaps(540, 720, 600, 630)

    def test_works_with_datetimes(self):
        a = datetime(2030, 1, 7, 14, 15, tzinfo=timezone.utc)
        b = datetime(2030, 1, 7, 14, 45, tzinfo=timezone.utc)
        c = datetime(2030, 1, 7, 15, 0, tzinfo=timezone.utc)
        assert overlaps(a, c, b, c)
        assert not overlaps(a, b, b, c)


class TestMinuteConversion:
    """Test HH:MM <-> minute offset conversion."""

    def test_to_minutes(self):
        assert to_minutes("00:00") == 0
        assert to_minutes("09:15") == 555
        assert to_minutes("18:45:00") == 1125

    def test_from_minutes(self):
        assert from_minutes(555) == "09:15"
        assert from_minutes(24 * 60) == "24:00"

    def test_invalid_time_rejected(self):
        with pytest.raises(ValueError):
            to_minutes("9:15am")
        with pytest.raises(ValueError):
            to_minutes("25:00")

    def test_out_of_range_minutes_rejected(self):
        with pytest.raises(ValueError):
            from_minutes(-1)


class TestInterval:
    """Test the Interval value type."""

    def test_empty_interval_rejected(self):
        with pytest.raises(ValueError):
            Interval(600, 600)

    def test_clip_inside_bounds(self):
        assert Interval(-120, 660).clip(0, 1440) == Interval(0, 660)

    def test_clip_outside_bounds(self):
        assert Interval(1500, 1600).clip(0, 1440) is None

    def test_interval_overlaps(self):
        assert Interval(540, 570).overlaps(Interval(555, 585))
        assert not Interval(540, 570).overlaps(Interval(570, 600))
