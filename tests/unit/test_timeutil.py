"""Tests for header start date/time conversion."""

from datetime import date, time

import pytest

from edfplus.exceptions import MalformedFieldError
from edfplus.fields import FieldSlot
from edfplus.timeutil import (
    expand_year,
    format_start_date,
    format_start_time,
    format_subfield_date,
    parse_start_date,
    parse_start_time,
)

DATE_SLOT = FieldSlot("start_date", 168, 8)
TIME_SLOT = FieldSlot("start_time", 176, 8)


@pytest.mark.parametrize(
    "yy,year",
    [(0, 2000), (84, 2084), (85, 1985), (99, 1999), (24, 2024)],
)
def test_expand_year_pivot(yy, year):
    assert expand_year(yy) == year


def test_parse_start_date():
    assert parse_start_date("15.01.24", DATE_SLOT) == date(2024, 1, 15)
    assert parse_start_date("31.12.85", DATE_SLOT) == date(1985, 12, 31)


def test_parse_start_time():
    assert parse_start_time("22.30.05", TIME_SLOT) == time(22, 30, 5)


@pytest.mark.parametrize("text", ["15/01/24", "1.1.24", "15.01", "aa.bb.cc", ""])
def test_parse_start_date_rejects_bad_format(text):
    with pytest.raises(MalformedFieldError) as exc_info:
        parse_start_date(text, DATE_SLOT)

    assert exc_info.value.offset == 168


def test_parse_start_date_rejects_impossible_date():
    with pytest.raises(MalformedFieldError):
        parse_start_date("30.02.24", DATE_SLOT)


def test_parse_start_time_rejects_out_of_range():
    with pytest.raises(MalformedFieldError):
        parse_start_time("24.00.00", TIME_SLOT)


def test_format_round_trip():
    assert format_start_date(date(2024, 1, 15)) == "15.01.24"
    assert format_start_date(date(1999, 6, 1)) == "01.06.99"
    assert format_start_time(time(7, 5, 9, 500000)) == "07.05.09"


@pytest.mark.parametrize("year", [1984, 2085])
def test_format_start_date_outside_window(year):
    with pytest.raises(MalformedFieldError):
        format_start_date(date(year, 1, 1))


def test_format_subfield_date_is_locale_independent():
    assert format_subfield_date(date(1951, 8, 2)) == "02-AUG-1951"
