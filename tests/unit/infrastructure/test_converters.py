"""Tests for infrastructure converters."""

from __future__ import annotations

from indexarr.infrastructure.common.converters import to_float, to_int


class TestToInt:
    def test_none_returns_none(self) -> None:
        assert to_int(None) is None

    def test_int_passthrough(self) -> None:
        assert to_int(42) == 42

    def test_float_truncates(self) -> None:
        assert to_int(4.9) == 4

    def test_bool_is_not_a_number(self) -> None:
        assert to_int(True) is None

    def test_string_with_separators(self) -> None:
        assert to_int("1,234") == 1234
        assert to_int("1 234") == 1234

    def test_negative_string(self) -> None:
        assert to_int("-12") == -12

    def test_empty_string_returns_none(self) -> None:
        assert to_int("") is None

    def test_non_numeric_string_returns_none(self) -> None:
        assert to_int("n/a") is None


class TestToFloat:
    def test_decimal_point(self) -> None:
        assert to_float("0.5") == 0.5

    def test_decimal_comma(self) -> None:
        assert to_float("1,5") == 1.5

    def test_number_passthrough(self) -> None:
        assert to_float(2) == 2.0

    def test_invalid(self) -> None:
        assert to_float("free") is None
        assert to_float(None) is None
