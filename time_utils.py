from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Callable, Optional
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

_OFFSET_RE = re.compile(r"^(?:UTC|GMT)?\s*([+-])(\d{1,2})(?::?(\d{2}))?$", re.IGNORECASE)

DAY = timedelta(days=1)


def parse_utc_offset(text: str) -> timezone:
    """Parse "+08:00", "-0530" or "UTC+8" into a fixed-offset timezone."""

    match = _OFFSET_RE.match(text.strip())
    if not match:
        raise ValueError(f"Invalid UTC offset: {text!r}")
    sign, hours, minutes = match.groups()
    delta = timedelta(hours=int(hours), minutes=int(minutes or 0))
    if delta >= DAY:
        raise ValueError(f"UTC offset out of range: {text!r}")
    if sign == "-":
        delta = -delta
    return timezone(delta)


def resolve_timezone(name: Optional[str], fallback_offset: str = "+08:00") -> tzinfo:
    preferred = name or "Asia/Manila"
    try:
        return ZoneInfo(preferred)
    except Exception as exc:  # pragma: no cover - environment-dependent
        logger.warning("Failed to load timezone %s via zoneinfo (%s)", preferred, exc)
    try:
        tz = parse_utc_offset(fallback_offset)
    except ValueError:
        logger.warning("Bad fallback offset %r, using +08:00", fallback_offset)
        tz = timezone(timedelta(hours=8))
    logger.warning("Falling back to fixed offset %s", format_tz_offset(tz))
    return tz


def format_tz_offset(tz: tzinfo, sample: Optional[datetime] = None) -> str:
    sample = sample or datetime.now(tz)
    offset = tz.utcoffset(sample)
    if offset is None:
        return ""
    total_minutes = int(offset.total_seconds() // 60)
    sign = "+" if total_minutes >= 0 else "-"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"


def format_countdown(ms: float) -> str:
    """Render a non-negative millisecond span as HH:MM:SS (floored)."""

    total = max(0, int(ms // 1000))
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def from_epoch_ms(value: float, tz: Optional[tzinfo]) -> datetime:
    return datetime.fromtimestamp(value / 1000.0, tz)


def to_epoch_ms(instant: datetime) -> int:
    return int(round(instant.timestamp() * 1000))


@dataclass(frozen=True)
class CivilFields:
    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: int

    @property
    def day_key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"

    @property
    def minute_of_day(self) -> int:
        return self.hour * 60 + self.minute


class CivilClock:
    """Wall clock pinned to one civil timezone.

    Instants are timezone-aware datetimes. Naive datetimes are taken to be
    civil local time already.
    """

    def __init__(self, tz: tzinfo, now_fn: Optional[Callable[[], datetime]] = None):
        self.tz = tz
        self._now_fn = now_fn

    def now(self) -> datetime:
        if self._now_fn is not None:
            return self.localize(self._now_fn())
        return datetime.now(self.tz)

    def localize(self, instant: datetime) -> datetime:
        if instant.tzinfo is None:
            return instant.replace(tzinfo=self.tz)
        return instant.astimezone(self.tz)

    def to_civil_fields(self, instant: datetime) -> CivilFields:
        local = self.localize(instant)
        return CivilFields(
            year=local.year,
            month=local.month,
            day=local.day,
            hour=local.hour,
            minute=local.minute,
            second=local.second,
        )

    def at(self, fields: CivilFields, hour: int, minute: int) -> datetime:
        return datetime(fields.year, fields.month, fields.day, hour, minute, tzinfo=self.tz)

    def next_occurrence(self, fields: CivilFields, hour: int, minute: int) -> datetime:
        """Next instant whose civil hour/minute match, today or tomorrow.

        Today's HH:MM:00 counts only while the current second is still 0;
        from HH:MM:01 on, the occurrence rolls over to tomorrow.
        """

        candidate = self.at(fields, hour, minute)
        target = hour * 60 + minute
        if target < fields.minute_of_day or (target == fields.minute_of_day and fields.second > 0):
            # wall-clock arithmetic: same HH:MM on the next calendar day
            candidate = candidate + DAY
        return candidate
