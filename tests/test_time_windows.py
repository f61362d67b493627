"""Tests for window arithmetic."""

from unittest.mock import patch

import pytest

from ratelimiter.core.time_windows import window_sequence, window_start
from ratelimiter.exceptions import InvalidInputError

# 2022-01-01T00:00:00Z
JAN_1_2022 = 1640995200


class TestWindowStart:
    """Tests for window_start."""

    def test_floors_to_window(self):
        """A timestamp inside a window maps to the window start."""
        assert window_start(JAN_1_2022 + 30, 60) == JAN_1_2022

    def test_aligned_timestamp_is_its_own_window(self):
        assert window_start(JAN_1_2022, 60) == JAN_1_2022

    def test_fractional_timestamp(self):
        assert window_start(JAN_1_2022 + 59.999, 60) == JAN_1_2022

    def test_returns_int(self):
        assert isinstance(window_start(JAN_1_2022 + 0.5, 60), int)

    @pytest.mark.parametrize("timestamp", [0, 1, 59, 60, 61, 899.5, JAN_1_2022 + 12345.6])
    @pytest.mark.parametrize("size", [1, 10, 60, 900])
    def test_alignment_and_idempotence(self, timestamp, size):
        """window_start(t) <= t < window_start(t) + size, and it is idempotent."""
        start = window_start(timestamp, size)
        assert start <= timestamp < start + size
        assert start % size == 0
        assert window_start(start, size) == start

    def test_rejects_non_positive_size(self):
        with pytest.raises(InvalidInputError):
            window_start(JAN_1_2022, 0)


class TestWindowSequence:
    """Tests for window_sequence."""

    def test_windows_between_start_and_end(self):
        """Every aligned window in range is returned, ascending."""
        windows = window_sequence(JAN_1_2022, JAN_1_2022 + 179, 60)
        assert windows == [JAN_1_2022, JAN_1_2022 + 60, JAN_1_2022 + 120]

    def test_unaligned_start_includes_its_window(self):
        windows = window_sequence(JAN_1_2022 + 30, JAN_1_2022 + 90, 60)
        assert windows == [JAN_1_2022, JAN_1_2022 + 60]

    def test_sliding_horizon(self):
        """A full horizon yields window / size + 1 aligned windows."""
        now = 1672531200
        windows = window_sequence(now - 60, now, 10)
        assert windows == [
            1672531140, 1672531150, 1672531160, 1672531170,
            1672531180, 1672531190, 1672531200,
        ]

    @pytest.mark.parametrize(
        "start,end,size",
        [(0, 0, 60), (10, 500, 60), (JAN_1_2022 + 7, JAN_1_2022 + 3601, 900), (5, 6, 1)],
    )
    def test_sequence_length(self, start, end, size):
        windows = window_sequence(start, end, size)
        expected = (window_start(end, size) - window_start(start, size)) // size + 1
        assert len(windows) == expected

    def test_missing_start_raises(self):
        with pytest.raises(InvalidInputError, match="Must provide a start time"):
            window_sequence(None, JAN_1_2022, 60)

    def test_end_before_start_is_empty(self):
        assert window_sequence(JAN_1_2022 + 60, JAN_1_2022, 60) == []

    def test_end_before_start_in_same_window_is_empty(self):
        assert window_sequence(JAN_1_2022 + 50, JAN_1_2022 + 10, 60) == []

    def test_end_defaults_to_now(self):
        with patch("ratelimiter.core.time_windows.time.time", return_value=JAN_1_2022 + 125):
            windows = window_sequence(JAN_1_2022, size_seconds=60)
        assert windows == [JAN_1_2022, JAN_1_2022 + 60, JAN_1_2022 + 120]
