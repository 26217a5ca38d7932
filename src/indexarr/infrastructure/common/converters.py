"""Type conversion utilities."""

from __future__ import annotations


def to_int(raw: str | int | float | None) -> int | None:
    """Convert string or number to int, return None if invalid.

    Handles various formats:
        - None → None
        - int → int (passthrough)
        - "123" → 123
        - "1,234" → 1234
        - "1 234" → 1234
        - "" → None
        - invalid → None

    Args:
        raw: Input value.

    Returns:
        Integer or None if conversion fails.
    """
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, int):
        return raw

    if isinstance(raw, float):
        return int(raw)

    if isinstance(raw, str):
        # Drop separators, keep digits (and a leading minus)
        txt = raw.strip()
        negative = txt.startswith("-")
        digits = "".join(ch for ch in txt if ch.isdigit())
        if not digits:
            return None
        return -int(digits) if negative else int(digits)

    return None


def to_float(raw: str | int | float | None) -> float | None:
    """Convert to float; ``"1,5"`` is read as 1.5. Returns None if invalid."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    txt = raw.strip().replace(",", ".")
    try:
        return float(txt)
    except ValueError:
        return None
