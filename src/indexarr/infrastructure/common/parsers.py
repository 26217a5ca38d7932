"""Parsing utilities for data extraction."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

_SIZE_RE = re.compile(r"([\d.,]+)\s*([KMGTP]?)(I?B)?\b", re.IGNORECASE)
_INFO_HASH_RE = re.compile(r"urn:btih:([a-z0-9]{32,40})", re.IGNORECASE)

_MULTIPLIERS = {
    "": 1,
    "K": 1024,
    "M": 1024**2,
    "G": 1024**3,
    "T": 1024**4,
    "P": 1024**5,
}


def _parse_number(raw: str) -> float | None:
    txt = raw.strip()
    if "," in txt and "." in txt:
        # "1,234.5" (thousands comma) or "1.234,5" (decimal comma)
        if txt.rfind(",") > txt.rfind("."):
            txt = txt.replace(".", "").replace(",", ".")
        else:
            txt = txt.replace(",", "")
    elif "," in txt:
        head, _, tail = txt.rpartition(",")
        txt = f"{head}{tail}" if len(tail) == 3 else f"{head}.{tail}"
    try:
        return float(txt)
    except ValueError:
        return None


def parse_size_to_bytes(size_str: str) -> int:
    """Parse size string to bytes.

    Supports formats:
        - "1234" (raw bytes)
        - "4.5 GB" / "4.5 GiB" / "4,5 GB"
        - "500 MB"
        - "1.2 TB"

    Args:
        size_str: Size string.

    Returns:
        Size in bytes (int), 0 when unparseable.
    """
    if not size_str:
        return 0

    stripped = size_str.strip()
    if stripped.isdigit():
        return int(stripped)

    match = _SIZE_RE.search(stripped)
    if not match or not (match.group(2) or match.group(3)):
        return 0

    value = _parse_number(match.group(1))
    if value is None:
        return 0

    return int(value * _MULTIPLIERS[match.group(2).upper()])


def parse_date(raw: str | int | float | None) -> datetime | None:
    """Parse a publish date into an aware UTC datetime.

    Accepts RFC 1123 (``Tue, 10 Jun 2025 12:00:00 GMT``), ISO 8601 and unix
    timestamps in seconds or milliseconds.
    """
    if raw is None or raw == "":
        return None

    numeric = isinstance(raw, str) and raw.strip().isdigit()
    if isinstance(raw, (int, float)) or numeric:
        ts = float(raw)
        if ts > 1e11:  # milliseconds
            ts /= 1000.0
        return datetime.fromtimestamp(ts, tz=timezone.utc)

    text = raw.strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError):
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def extract_info_hash(magnet_url: str | None) -> str | None:
    """Return the lower-cased BTIH from a magnet URI, if present."""
    if not magnet_url:
        return None
    match = _INFO_HASH_RE.search(magnet_url)
    return match.group(1).lower() if match else None
