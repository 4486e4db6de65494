from datetime import datetime, timedelta, timezone

import pytest

from time_utils import (
    CivilClock,
    format_countdown,
    format_tz_offset,
    parse_utc_offset,
    resolve_timezone,
    to_epoch_ms,
    from_epoch_ms,
)

MANILA = timezone(timedelta(hours=8))


def _clock() -> CivilClock:
    return CivilClock(MANILA)


def test_civil_fields_follow_fixed_offset():
    fields = _clock().to_civil_fields(datetime(2025, 1, 1, 0, 30, 15, tzinfo=timezone.utc))
    assert (fields.year, fields.month, fields.day) == (2025, 1, 1)
    assert (fields.hour, fields.minute, fields.second) == (8, 30, 15)
    assert fields.day_key == "2025-01-01"


def test_civil_fields_cross_the_date_line():
    fields = _clock().to_civil_fields(datetime(2024, 12, 31, 20, 0, tzinfo=timezone.utc))
    assert fields.day_key == "2025-01-01"
    assert fields.hour == 4


def test_naive_instants_are_civil_local():
    fields = _clock().to_civil_fields(datetime(2025, 3, 2, 9, 15))
    assert (fields.hour, fields.minute) == (9, 15)


def test_next_occurrence_later_today():
    clock = _clock()
    fields = clock.to_civil_fields(datetime(2025, 1, 1, 7, 59, 59, tzinfo=MANILA))
    assert clock.next_occurrence(fields, 8, 0) == datetime(2025, 1, 1, 8, 0, tzinfo=MANILA)


def test_next_occurrence_rolls_to_tomorrow_once_passed():
    clock = _clock()
    fields = clock.to_civil_fields(datetime(2025, 1, 1, 8, 1, tzinfo=MANILA))
    assert clock.next_occurrence(fields, 8, 0) == datetime(2025, 1, 2, 8, 0, tzinfo=MANILA)


def test_next_occurrence_zero_second_boundary():
    clock = _clock()
    at_zero = clock.to_civil_fields(datetime(2025, 1, 1, 8, 0, 0, tzinfo=MANILA))
    one_later = clock.to_civil_fields(datetime(2025, 1, 1, 8, 0, 1, tzinfo=MANILA))
    assert clock.next_occurrence(at_zero, 8, 0) == datetime(2025, 1, 1, 8, 0, tzinfo=MANILA)
    assert clock.next_occurrence(one_later, 8, 0) == datetime(2025, 1, 2, 8, 0, tzinfo=MANILA)


def test_next_occurrence_rolls_over_month_and_year():
    clock = _clock()
    fields = clock.to_civil_fields(datetime(2024, 12, 31, 23, 59, 30, tzinfo=MANILA))
    assert clock.next_occurrence(fields, 23, 59) == datetime(2025, 1, 1, 23, 59, tzinfo=MANILA)
    leap = clock.to_civil_fields(datetime(2024, 2, 28, 12, 0, tzinfo=MANILA))
    assert clock.next_occurrence(leap, 6, 0) == datetime(2024, 2, 29, 6, 0, tzinfo=MANILA)


def test_now_uses_injected_source():
    fixed = datetime(2025, 6, 1, 0, 0, tzinfo=timezone.utc)
    clock = CivilClock(MANILA, now_fn=lambda: fixed)
    assert clock.now().hour == 8
    assert clock.now().utcoffset() == timedelta(hours=8)


def test_parse_utc_offset():
    assert parse_utc_offset("+08:00").utcoffset(None) == timedelta(hours=8)
    assert parse_utc_offset("-0530").utcoffset(None) == -timedelta(hours=5, minutes=30)
    assert parse_utc_offset("UTC+8").utcoffset(None) == timedelta(hours=8)
    with pytest.raises(ValueError):
        parse_utc_offset("eight")


def test_resolve_timezone_falls_back_to_offset():
    tz = resolve_timezone("Not/AZone", fallback_offset="+05:45")
    assert format_tz_offset(tz) == "+05:45"


def test_format_countdown():
    assert format_countdown(0) == "00:00:00"
    assert format_countdown(3_723_999) == "01:02:03"
    assert format_countdown(-50) == "00:00:00"


def test_epoch_ms_helpers():
    instant = datetime(2025, 1, 1, 8, 0, tzinfo=MANILA)
    ms = to_epoch_ms(instant)
    assert ms == 1735689600000
    assert from_epoch_ms(ms, MANILA) == instant
