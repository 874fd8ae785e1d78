"""Unit tests for retry backoff."""

import pytest

from src.jobs.models import compute_backoff_seconds


class TestComputeBackoffSeconds:
    """Tests for compute_backoff_seconds."""

    @pytest.mark.parametrize(
        ("attempts", "expected"),
        [(0, 5), (1, 5), (2, 5), (3, 8), (4, 16), (5, 32), (7, 128), (9, 512)],
    )
    def test_exponential_with_floor(self, attempts: int, expected: int) -> None:
        """Test delays grow as powers of two above the five second floor."""
        assert compute_backoff_seconds(attempts) == expected

    def test_capped_at_fifteen_minutes(self) -> None:
        """Test the ceiling caps large attempt counts."""
        assert compute_backoff_seconds(10) == 900
        assert compute_backoff_seconds(64) == 900

    def test_monotonic(self) -> None:
        """Test the delay never shrinks as attempts grow."""
        delays = [compute_backoff_seconds(n) for n in range(20)]

        assert delays == sorted(delays)

    def test_custom_bounds(self) -> None:
        """Test floor and ceiling are configurable."""
        assert compute_backoff_seconds(1, floor=1, ceiling=10) == 2
        assert compute_backoff_seconds(6, floor=1, ceiling=10) == 10
