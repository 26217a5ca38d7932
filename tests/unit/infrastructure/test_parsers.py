"""Tests for infrastructure parsers."""

from __future__ import annotations

from datetime import datetime, timezone

from indexarr.infrastructure.common.parsers import (
    extract_info_hash,
    parse_date,
    parse_size_to_bytes,
)


class TestParseSizeToBytes:
    def test_empty_string_returns_zero(self) -> None:
        assert parse_size_to_bytes("") == 0

    def test_raw_digits(self) -> None:
        assert parse_size_to_bytes("1234") == 1234

    def test_bytes(self) -> None:
        assert parse_size_to_bytes("500 B") == 500

    def test_megabytes(self) -> None:
        assert parse_size_to_bytes("500 MB") == 500 * 1024**2

    def test_gigabytes(self) -> None:
        assert parse_size_to_bytes("4.5 GB") == int(4.5 * 1024**3)

    def test_binary_suffix(self) -> None:
        assert parse_size_to_bytes("4.5 GiB") == int(4.5 * 1024**3)

    def test_decimal_comma(self) -> None:
        assert parse_size_to_bytes("4,5 GB") == int(4.5 * 1024**3)

    def test_thousands_separator(self) -> None:
        assert parse_size_to_bytes("1,234.5 MB") == int(1234.5 * 1024**2)

    def test_no_space_between_value_and_unit(self) -> None:
        assert parse_size_to_bytes("1.2TB") == int(1.2 * 1024**4)

    def test_invalid_string_returns_zero(self) -> None:
        assert parse_size_to_bytes("invalid") == 0


class TestParseDate:
    def test_none_and_empty(self) -> None:
        assert parse_date(None) is None
        assert parse_date("") is None

    def test_unix_seconds(self) -> None:
        assert parse_date(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)
        assert parse_date("86400") == datetime(1970, 1, 2, tzinfo=timezone.utc)

    def test_unix_milliseconds(self) -> None:
        assert parse_date(1_700_000_000_000) == datetime.fromtimestamp(
            1_700_000_000, tz=timezone.utc
        )

    def test_rfc1123(self) -> None:
        assert parse_date("Tue, 10 Jun 2025 12:00:00 GMT") == datetime(
            2025, 6, 10, 12, 0, tzinfo=timezone.utc
        )

    def test_iso8601_with_offset_is_converted_to_utc(self) -> None:
        assert parse_date("2025-06-10T14:00:00+02:00") == datetime(
            2025, 6, 10, 12, 0, tzinfo=timezone.utc
        )

    def test_naive_iso_is_utc(self) -> None:
        parsed = parse_date("2025-06-10 12:00")
        assert parsed is not None
        assert parsed.tzinfo is not None

    def test_garbage_returns_none(self) -> None:
        assert parse_date("last tuesday-ish") is None


class TestExtractInfoHash:
    def test_from_magnet(self) -> None:
        magnet = "magnet:?xt=urn:btih:ABCDEF0123456789ABCDEF0123456789ABCDEF01&dn=x"
        assert extract_info_hash(magnet) == "abcdef0123456789abcdef0123456789abcdef01"

    def test_missing(self) -> None:
        assert extract_info_hash(None) is None
        assert extract_info_hash("https://example.com/file.torrent") is None
