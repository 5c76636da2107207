"""Route dates are US Eastern calendar dates"""
from datetime import datetime, timezone

from src.utils.timezone import now, today, to_local, utcnow, TIMEZONE

def test_timezone_is_new_york():
    assert str(TIMEZONE) == "America/New_York"

def test_now_is_aware_and_local():
    current = now()
    assert current.tzinfo == TIMEZONE
    assert today() == current.date()

def test_utcnow_has_zero_offset():
    assert utcnow().utcoffset().total_seconds() == 0

def test_naive_datetimes_are_treated_as_utc():
    # 02:30 UTC on Jan 5 is still Jan 4 in New York
    local = to_local(datetime(2026, 1, 5, 2, 30))
    assert local.tzinfo == TIMEZONE
    assert local.date().day == 4
    assert local.hour == 21

def test_aware_datetimes_are_converted():
    local = to_local(datetime(2026, 7, 1, 16, 0, tzinfo=timezone.utc))
    assert local.hour == 12
