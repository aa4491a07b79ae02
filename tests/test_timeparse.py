import datetime

from punchclock.utils.errors import ParseError
from punchclock.utils.timeparse import parse_timestamp, format_timestamp, display_time, date_prefixes

from tests.conftest import TZ


def test_parses_storage_format():
    result = parse_timestamp("15/01/2025 08:45:00", TZ)

    assert result.ok
    assert result.value == datetime.datetime(2025, 1, 15, 8, 45, tzinfo=TZ)


def test_parses_iso_formats():
    assert parse_timestamp("2025-01-15 08:45:00", TZ).value.hour == 8
    assert parse_timestamp("2025-01-15T08:45:00", TZ).value.minute == 45


def test_aware_input_is_converted_to_local_zone():
    utc = datetime.datetime(2025, 1, 15, 1, 0, tzinfo=datetime.timezone.utc)

    result = parse_timestamp(utc, TZ)

    assert result.value.hour == 8
    assert result.value.tzinfo == TZ


def test_empty_and_garbage_do_not_raise():
    empty = parse_timestamp("  ", TZ)
    garbage = parse_timestamp("yesterday-ish", TZ)

    assert not empty.ok and empty.is_empty
    assert not garbage.ok and not garbage.is_empty
    assert isinstance(garbage.error, ParseError)


def test_format_and_display():
    value = datetime.datetime(2025, 1, 5, 7, 3, 9, tzinfo=TZ)

    assert format_timestamp(value) == "05/01/2025 07:03:09"
    assert display_time("05/01/2025 07:03:09", TZ) == "07:03:09"
    assert display_time("not a time", TZ) == ""
    assert display_time(None, TZ) == ""


def test_date_prefixes_cover_both_stored_formats():
    assert date_prefixes(datetime.date(2025, 1, 5)) == ("05/01/2025", "2025-01-05")
