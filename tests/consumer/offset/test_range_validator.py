"""Tests for offset range clamping."""

import pytest

from streamreset.consumer.offset import TopicPartition
from streamreset.consumer.offset.range_validator import check_offset_range, clamp


class TestClamp:
    """Test clamp."""

    @pytest.mark.parametrize("requested,expected", [
        (50, 50),
        (10, 10),
        (100, 100),
        (5, 10),
        (150, 100),
        (-1, 10),
    ])
    def test_clamp(self, requested, expected):
        """Test values inside, on and outside the range [10, 100]."""
        assert clamp(requested, 10, 100) == expected

    @pytest.mark.parametrize("requested", [-5, 0, 10, 42, 100, 1000])
    def test_idempotent(self, requested):
        """Test clamping a clamped value changes nothing."""
        once = clamp(requested, 10, 100)

        assert clamp(once, 10, 100) == once
        assert 10 <= once <= 100

    def test_empty_partition(self):
        """Test partition whose beginning equals its end."""
        assert clamp(7, 3, 3) == 3
        assert clamp(0, 3, 3) == 3


class TestCheckOffsetRange:
    """Test check_offset_range."""

    def test_clamps_each_partition(self):
        """Test per-partition clamping."""
        tp0 = TopicPartition("/s:a", 0)
        tp1 = TopicPartition("/s:a", 1)
        tp2 = TopicPartition("/s:a", 2)

        result = check_offset_range(
            {tp0: 5, tp1: 500, tp2: 50},
            {tp0: 10, tp1: 10, tp2: 10},
            {tp0: 100, tp1: 100, tp2: 100},
        )

        assert result == {tp0: 10, tp1: 100, tp2: 50}

    def test_empty(self):
        """Test nothing requested."""
        assert check_offset_range({}, {}, {}) == {}
