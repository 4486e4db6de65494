from __future__ import annotations

import re
from datetime import datetime, time
from typing import Tuple, Union

TimeOfDayInput = Union[str, time, datetime, Tuple[object, object]]

_SEPARATED = re.compile(r"^\s*([+-]?\d+)\s*[:.h]\s*([+-]?\d*)\s*$", re.IGNORECASE)
_COMPACT = re.compile(r"^\s*(\d{3,4})\s*$")
_HOUR_ONLY = re.compile(r"^\s*([+-]?\d{1,2})\s*$")


def clamp_hour(value: object) -> int:
    return _clamp(value, 23)


def clamp_minute(value: object) -> int:
    return _clamp(value, 59)


def _clamp(value: object, upper: int) -> int:
    try:
        number = int(float(value))  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return 0
    return min(upper, max(0, number))


def parse_time_of_day(value: TimeOfDayInput) -> Tuple[int, int]:
    """Normalize a time-of-day into (hour, minute).

    Out-of-range parts are clamped and unreadable parts become 0, so
    "25:70" is 23:59 and "ab:cd" is 00:00.
    """

    if isinstance(value, (datetime, time)):
        return value.hour, value.minute
    if isinstance(value, tuple):
        hour, minute = (list(value) + [0, 0])[:2]
        return clamp_hour(hour), clamp_minute(minute)

    text = str(value or "")
    match = _SEPARATED.match(text)
    if match:
        return clamp_hour(match.group(1)), clamp_minute(match.group(2) or 0)
    match = _COMPACT.match(text)
    if match:
        digits = match.group(1)
        return clamp_hour(digits[:-2]), clamp_minute(digits[-2:])
    match = _HOUR_ONLY.match(text)
    if match:
        return clamp_hour(match.group(1)), 0

    # Fall back to splitting like a form field would: "7:x" -> 07:00
    parts = text.split(":")
    hour = parts[0] if parts else 0
    minute = parts[1] if len(parts) > 1 else 0
    return clamp_hour(hour), clamp_minute(minute)


def format_time_of_day(hour: int, minute: int) -> str:
    return f"{hour:02d}:{minute:02d}"
