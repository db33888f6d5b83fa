"""
Start date/time conversion for the EDF header.

The header stores the recording start as ``dd.mm.yy`` and ``hh.mm.ss``.
Two-digit years follow the historical EDF window: 85-99 are 1985-1999 and
00-84 are 2000-2084.
"""

from datetime import date, datetime, time

from edfplus.constants import MAX_HEADER_YEAR, MIN_HEADER_YEAR, YEAR_PIVOT
from edfplus.fields import FieldSlot
from edfplus.exceptions import MalformedFieldError


def expand_year(yy: int) -> int:
    """Map a two-digit header year onto a four-digit year."""
    if yy < YEAR_PIVOT:
        return 2000 + yy
    return 1900 + yy


def _split_triplet(text: str, slot: FieldSlot) -> tuple[int, int, int]:
    parts = text.split(".")
    if len(parts) != 3 or not all(len(p) == 2 and p.isdigit() for p in parts):
        raise MalformedFieldError(
            f"expected NN.NN.NN, got {text!r}", field=slot.name, offset=slot.offset
        )
    return int(parts[0]), int(parts[1]), int(parts[2])


def parse_start_date(text: str, slot: FieldSlot) -> date:
    """Parse a ``dd.mm.yy`` field."""
    day, month, yy = _split_triplet(text, slot)
    try:
        return date(expand_year(yy), month, day)
    except ValueError as e:
        raise MalformedFieldError(
            f"invalid date {text!r}: {e}", field=slot.name, offset=slot.offset
        ) from e


def parse_start_time(text: str, slot: FieldSlot) -> time:
    """Parse a ``hh.mm.ss`` field."""
    hour, minute, second = _split_triplet(text, slot)
    try:
        return time(hour, minute, second)
    except ValueError as e:
        raise MalformedFieldError(
            f"invalid time {text!r}: {e}", field=slot.name, offset=slot.offset
        ) from e


def format_start_date(value: date) -> str:
    """
    Format a date as ``dd.mm.yy``.

    Raises:
        MalformedFieldError: If the year falls outside the two-digit window
    """
    if not MIN_HEADER_YEAR <= value.year <= MAX_HEADER_YEAR:
        raise MalformedFieldError(
            f"year {value.year} outside {MIN_HEADER_YEAR}-{MAX_HEADER_YEAR}",
            field="start_date",
        )
    return f"{value.day:02d}.{value.month:02d}.{value.year % 100:02d}"


def format_start_time(value: time) -> str:
    """Format a time as ``hh.mm.ss``; sub-second precision is dropped."""
    return f"{value.hour:02d}.{value.minute:02d}.{value.second:02d}"


def combine(start_date: date, start_time: time) -> datetime:
    """Combine header date and time into a naive datetime."""
    return datetime.combine(start_date, start_time)


_MONTHS = ("JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC")


def format_subfield_date(value: date) -> str:
    """Format a date the way EDF+ identification sub-fields do, e.g. ``02-AUG-1951``."""
    return f"{value.day:02d}-{_MONTHS[value.month - 1]}-{value.year:04d}"
