"""Time and slot arithmetic.

Days are `datetime.date` values and times of day are plain integers counting
minutes since midnight. Text like "09:30" or "2026-02-03" only appears at the
boundary (JSON, SQLite, spreadsheets, UI) and is converted here.
"""

from __future__ import annotations

from datetime import date
from typing import Union

from .models import TimeFormatError


MINUTES_PER_DAY = 24 * 60


def parse_hhmm(value: Union[str, int]) -> int:
    """Convert 'HH:MM' into minutes since midnight.

    Integers are passed through so callers can mix stored offsets and text.
    """

    if isinstance(value, int):
        return value

    text = str(value or "").strip()
    parts = text.split(":")
    if len(parts) != 2 or not parts[0].isdigit() or not parts[1].isdigit():
        raise TimeFormatError(f"Invalid time (expected HH:MM): {value!r}")

    hours, minutes = int(parts[0]), int(parts[1])
    if hours > 24 or minutes > 59 or (hours == 24 and minutes != 0):
        raise TimeFormatError(f"Time out of range: {value!r}")
    return hours * 60 + minutes


def format_hhmm(minutes: int) -> str:
    if minutes < 0 or minutes > MINUTES_PER_DAY:
        raise TimeFormatError(f"Minute offset out of range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes(value: Union[str, int], minutes: int) -> str:
    return format_hhmm(parse_hhmm(value) + int(minutes))


def parse_day(value: Union[str, date]) -> date:
    """Parse an ISO calendar date (YYYY-MM-DD)."""

    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise TimeFormatError(f"Invalid date (expected YYYY-MM-DD): {value!r}") from exc


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open interval overlap: [a_start, a_end) vs [b_start, b_end)."""

    return a_start < b_end and b_start < a_end


def within(start: int, end: int, window_start: int, window_end: int) -> bool:
    return window_start <= start and end <= window_end
