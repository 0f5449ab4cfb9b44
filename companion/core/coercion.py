"""
Safe coercion of loosely-typed payload values.

Attempt Store rows arrive from SQL, JSON and older client formats. These
helpers never raise: anything unusable collapses to a default so downstream
aggregation can run on partial records.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Any

# Integer timestamps above this are epoch milliseconds, below are seconds
_EPOCH_MS_CUTOFF = 100_000_000_000


def safe_number(value: Any, default: float = 0.0) -> float:
    """
    Convert a value to a finite float.

    Args:
        value: Raw value (number, numeric string, None, anything else)
        default: Returned when the value is missing or not numeric

    Returns:
        Float value, or default
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return default
    else:
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def safe_int(value: Any, default: int = 0) -> int:
    """Convert a value to an int, rounding floats."""
    return int(round(safe_number(value, float(default))))


def safe_text(value: Any, default: str = "") -> str:
    """Convert a value to a string; None becomes the default."""
    if value is None:
        return default
    if isinstance(value, str):
        return value
    return str(value)


_TRUE_TEXT = frozenset({"true", "t", "yes", "y", "1"})
_FALSE_TEXT = frozenset({"false", "f", "no", "n", "0"})


def safe_bool(value: Any, default: bool | None = None) -> bool | None:
    """
    Convert a flag to a bool.

    Accepts bools, numbers (non-zero is True) and the strings
    "true"/"false", "yes"/"no", "1"/"0" in any case. Anything else returns
    the default.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_TEXT:
            return True
        if text in _FALSE_TEXT:
            return False
        return default
    if isinstance(value, (int, float)):
        if math.isnan(value):
            return default
        return value != 0
    return default


def ensure_utc(moment: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse a timestamp in any of the formats the store has used.

    Accepts datetime, date, ISO-8601 strings (with or without "Z"), and epoch
    numbers (milliseconds or seconds). Unparseable values return None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return _from_epoch(float(value))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return _from_epoch(float(text))
        except ValueError:
            pass
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def _from_epoch(number: float) -> datetime | None:
    if math.isnan(number) or math.isinf(number) or number < 0:
        return None
    seconds = number / 1000.0 if number >= _EPOCH_MS_CUTOFF else number
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
