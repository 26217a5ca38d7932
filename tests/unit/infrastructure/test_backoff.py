"""Tests for the backoff calculator."""

from __future__ import annotations

import pytest

from indexarr.infrastructure.health import BackoffConfig, next_backoff


class TestDefaultCurve:
    @pytest.mark.parametrize("failures", [0, 1, 2, 3, 4])
    def test_below_threshold_is_zero(self, failures: int) -> None:
        assert next_backoff(failures) == 0.0

    def test_threshold_starts_at_five_minutes(self) -> None:
        assert next_backoff(5) == 300.0

    def test_doubles_per_failure(self) -> None:
        assert next_backoff(6) == 600.0
        assert next_backoff(7) == 1200.0

    def test_capped_at_six_hours(self) -> None:
        assert next_backoff(12) == 21_600.0
        assert next_backoff(10_000) == 21_600.0

    def test_non_decreasing(self) -> None:
        values = [next_backoff(n) for n in range(0, 40)]
        assert values == sorted(values)
        assert max(values) <= 21_600.0


class TestCustomPolicy:
    def test_custom_threshold_and_initial(self) -> None:
        cfg = BackoffConfig(failure_threshold=2, initial_seconds=10, multiplier=3)
        assert next_backoff(1, cfg) == 0.0
        assert next_backoff(2, cfg) == 10.0
        assert next_backoff(3, cfg) == 30.0

    def test_initial_above_cap_is_capped(self) -> None:
        cfg = BackoffConfig(initial_seconds=100, max_seconds=50)
        assert next_backoff(5, cfg) == 50.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"failure_threshold": 0},
            {"initial_seconds": -1},
            {"multiplier": 0.5},
            {"max_seconds": -1},
        ],
    )
    def test_invalid_policy_rejected(self, kwargs: dict[str, float]) -> None:
        with pytest.raises(ValueError):
            BackoffConfig(**kwargs)
