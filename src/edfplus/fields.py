"""
Fixed-width ASCII header fields.

Every header value is stored as printable ASCII, left-justified and padded
with spaces to its field width. Numbers are stored as text too, so each
field is handled as a bounded-width string with explicit conversions rather
than as a raw number.
"""

import math

from typing import NamedTuple

from edfplus.exceptions import MalformedFieldError


class FieldSlot(NamedTuple):
    """Location of one fixed-width cell in a header buffer."""

    name: str
    offset: int
    width: int
    signal_index: int | None = None


def _is_printable(raw: bytes) -> bool:
    return all(32 <= b <= 126 for b in raw)


def decode_text(raw: bytes, slot: FieldSlot) -> str:
    """
    Decode a text cell, trimming trailing space padding.

    Raises:
        MalformedFieldError: If the cell contains non-printable bytes
    """
    if not _is_printable(raw):
        raise MalformedFieldError(
            "contains non-printable characters",
            field=slot.name,
            offset=slot.offset,
            signal_index=slot.signal_index,
        )
    return raw.decode("ascii").rstrip(" ")


def decode_int(raw: bytes, slot: FieldSlot) -> int:
    """Decode an integer cell."""
    text = decode_text(raw, slot).strip()
    body = text[1:] if text[:1] in ("+", "-") else text
    if not body or not body.isdigit():
        raise MalformedFieldError(
            f"expected an integer, got {text!r}",
            field=slot.name,
            offset=slot.offset,
            signal_index=slot.signal_index,
        )
    return int(text)


def decode_float(raw: bytes, slot: FieldSlot) -> float:
    """Decode a decimal cell. Exponent notation is not part of the format."""
    text = decode_text(raw, slot).strip()
    body = text[1:] if text[:1] in ("+", "-") else text
    integer, _, fraction = body.partition(".")
    valid = (
        bool(integer or fraction)
        and (not integer or integer.isdigit())
        and (not fraction or fraction.isdigit())
    )
    if not valid:
        raise MalformedFieldError(
            f"expected a decimal number, got {text!r}",
            field=slot.name,
            offset=slot.offset,
            signal_index=slot.signal_index,
        )
    return float(text)


def encode_text(value: str, slot: FieldSlot) -> bytes:
    """
    Encode text into a space-padded cell of exactly ``slot.width`` bytes.

    Raises:
        MalformedFieldError: If the value is not printable ASCII or too long
    """
    try:
        raw = value.encode("ascii")
    except UnicodeEncodeError as e:
        raise MalformedFieldError(
            f"non-ASCII value {value!r}",
            field=slot.name,
            signal_index=slot.signal_index,
        ) from e

    if not _is_printable(raw):
        raise MalformedFieldError(
            f"non-printable value {value!r}",
            field=slot.name,
            signal_index=slot.signal_index,
        )
    if len(raw) > slot.width:
        raise MalformedFieldError(
            f"value {value!r} exceeds {slot.width} characters",
            field=slot.name,
            signal_index=slot.signal_index,
        )
    return raw.ljust(slot.width, b" ")


def format_number(value: float, width: int) -> str | None:
    """
    Format a number in its canonical textual form for a field of ``width``.

    Integral values are written without a decimal point. Other values use the
    most precise fixed-point form that fits, with trailing zeros stripped, so
    precision may be reduced but the integer part never is.

    Returns:
        The formatted text, or None if the integer part alone does not fit
    """
    if not math.isfinite(value):
        return None

    if float(value).is_integer():
        text = str(int(value))
        return text if len(text) <= width else None

    for decimals in range(width, -1, -1):
        text = f"{value:.{decimals}f}"
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        if text in ("-0", ""):
            text = "0"
        if len(text) <= width:
            return text
    return None


def encode_number(value: float, slot: FieldSlot) -> bytes:
    """
    Encode a number into a space-padded cell.

    Raises:
        MalformedFieldError: If the value cannot be represented in the width
    """
    text = format_number(value, slot.width)
    if text is None:
        raise MalformedFieldError(
            f"value {value!r} does not fit in {slot.width} characters",
            field=slot.name,
            signal_index=slot.signal_index,
        )
    return encode_text(text, slot)
