"""
EDF+ Time-stamped Annotation List (TAL) codec.

Format:
    Each TAL is an onset, an optional duration, a list of texts, and a
    terminating null byte. Delimiters:
    - \\x15 (21): Duration marker
    - \\x14 (20): Separator after the onset/duration and after every text
    - \\x00 (0): End of TAL; the rest of the channel is null padding

    Structure: +onset[\\x15duration]\\x14[text\\x14...]\\x00
    Example: +120.5\\x1512.5\\x14Obstructive apnea\\x14\\x00

The first TAL of every record's first annotation channel is the timekeeping
TAL, which carries no texts (+0\\x14\\x14\\x00).
"""

import math
import re

from collections.abc import Iterable
from decimal import Decimal

from edfplus.constants import TAL_DURATION_MARKER, TAL_SEPARATOR, TAL_TERMINATOR
from edfplus.exceptions import (
    AnnotationOverflowError,
    MalformedTalError,
    MissingOnsetError,
    UnterminatedRecordError,
)
from edfplus.models import Annotation

SEPARATOR = bytes([TAL_SEPARATOR])
DURATION_MARKER = bytes([TAL_DURATION_MARKER])
TERMINATOR = bytes([TAL_TERMINATOR])

_ONSET_PATTERN = re.compile(rb"[+-](\d+(\.\d*)?|\.\d+)")
_DURATION_PATTERN = re.compile(rb"\d+(\.\d*)?|\.\d+")
_RESERVED_CHARS = {chr(TAL_SEPARATOR), chr(TAL_DURATION_MARKER), chr(TAL_TERMINATOR)}


# ============================================================================
# Decoding
# ============================================================================


def _decode_tal(body: bytes, offset: int) -> Annotation:
    """Decode one TAL without its null terminator."""
    if not body or body[0] not in b"+-":
        raise MissingOnsetError("TAL does not start with '+' or '-'", offset=offset)

    head, separator, rest = body.partition(SEPARATOR)
    if not separator:
        raise MalformedTalError("TAL has no separator after the onset", offset=offset)

    onset_text, marker, duration_text = head.partition(DURATION_MARKER)
    if not _ONSET_PATTERN.fullmatch(onset_text):
        raise MalformedTalError(f"Invalid onset {onset_text!r}", offset=offset)

    duration = None
    if marker:
        if not _DURATION_PATTERN.fullmatch(duration_text):
            raise MalformedTalError(
                f"Invalid duration {duration_text!r}", offset=offset + len(onset_text) + 1
            )
        duration = float(duration_text)

    if rest.endswith(SEPARATOR):
        rest = rest[:-1]
    try:
        texts = [t.decode("utf-8") for t in rest.split(SEPARATOR)] if rest else []
    except UnicodeDecodeError as e:
        raise MalformedTalError(f"Annotation text is not UTF-8: {e}", offset=offset) from e

    return Annotation(onset=float(onset_text), duration=duration, texts=texts)


def decode_annotations(payload: bytes) -> list[Annotation]:
    """
    Decode every TAL in one annotation channel payload.

    Trailing null padding ends decoding and never yields annotations.

    Args:
        payload: Raw bytes of the annotation channel for one data record

    Returns:
        Annotations in payload order (timekeeping TAL included)

    Raises:
        MissingOnsetError: If a TAL does not start with a sign
        UnterminatedRecordError: If a TAL runs into the payload boundary
        MalformedTalError: If an onset, duration or text is invalid
    """
    payload = bytes(payload)
    content_end = len(payload.rstrip(TERMINATOR))
    annotations = []
    position = 0

    while position < content_end:
        terminator = payload.find(TERMINATOR, position)
        if terminator == -1:
            raise UnterminatedRecordError(
                "TAL is not null-terminated before the end of the channel",
                offset=position,
            )
        annotations.append(_decode_tal(payload[position:terminator], position))
        position = terminator + 1

    return annotations


# ============================================================================
# Encoding
# ============================================================================


def _format_decimal(value: float) -> str:
    """Shortest plain decimal text that parses back to the same float."""
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def format_onset(onset: float) -> str:
    """Format an onset with an explicit sign, e.g. '+0', '+12.5', '-0.25'."""
    if not math.isfinite(onset):
        raise ValueError(f"Onset must be finite, got {onset}")
    sign = "-" if onset < 0 else "+"
    return sign + _format_decimal(abs(onset))


def format_duration(duration: float) -> str:
    if not math.isfinite(duration) or duration < 0:
        raise ValueError(f"Duration must be finite and non-negative, got {duration}")
    return _format_decimal(duration)


def _check_text(text: str) -> None:
    if not text:
        raise ValueError("Annotation texts must not be empty")
    if _RESERVED_CHARS & set(text):
        raise ValueError(f"Annotation text {text!r} contains a TAL delimiter byte")


def encode_tal(annotation: Annotation) -> bytes:
    """
    Encode one annotation as a null-terminated TAL.

    Raises:
        ValueError: If a text is empty or contains \\x00, \\x14 or \\x15
    """
    parts = [format_onset(annotation.onset).encode("ascii")]
    if annotation.duration is not None:
        parts.append(DURATION_MARKER + format_duration(annotation.duration).encode("ascii"))
    parts.append(SEPARATOR)

    if annotation.texts:
        for text in annotation.texts:
            _check_text(text)
            parts.append(text.encode("utf-8") + SEPARATOR)
    else:
        parts.append(SEPARATOR)

    parts.append(TERMINATOR)
    return b"".join(parts)


def encode_annotations(annotations: Iterable[Annotation], capacity: int) -> bytes:
    """
    Encode annotations into one channel payload, null-padded to ``capacity``.

    Args:
        annotations: Annotations in the order they should appear
        capacity: Channel size in bytes (samples_per_record * 2)

    Raises:
        AnnotationOverflowError: If the TALs do not fit; text is never truncated
    """
    encoded = b"".join(encode_tal(a) for a in annotations)
    if len(encoded) > capacity:
        raise AnnotationOverflowError(
            f"Annotations need {len(encoded)} bytes, channel holds {capacity}"
        )
    return encoded.ljust(capacity, TERMINATOR)


def timekeeping_annotation(onset: float) -> Annotation:
    """The text-less TAL that records a data record's onset."""
    return Annotation(onset=onset)
