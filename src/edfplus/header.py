"""
EDF header parsing and serialization.

Layout:
- Bytes 0-255: fixed header fields (see constants.FIXED_HEADER_FIELDS)
- Bytes 256 onward: ten zones, one per signal header field, each holding
  ns fixed-width cells (labels of all signals, then transducers of all
  signals, ...)

The on-disk signal block is field-major while the model is signal-major.
_split_zones/_join_zones are the only code aware of that transpose.
"""

import logging

from collections.abc import Callable
from typing import Any

from edfplus.constants import (
    FIXED_HEADER_BYTES,
    FIXED_HEADER_FIELDS,
    SIGNAL_HEADER_BYTES,
    SIGNAL_HEADER_FIELDS,
)
from edfplus.exceptions import (
    HeaderTruncatedError,
    InconsistentLengthError,
    InvalidSignalCountError,
    MalformedFieldError,
)
from edfplus.fields import (
    FieldSlot,
    decode_float,
    decode_int,
    decode_text,
    encode_number,
    encode_text,
)
from edfplus.models import FileHeader, RecordCount, SignalHeader, check_signal_ranges
from edfplus.timeutil import (
    format_start_date,
    format_start_time,
    parse_start_date,
    parse_start_time,
)

logger = logging.getLogger(__name__)


def _fixed_slots() -> dict[str, FieldSlot]:
    slots = {}
    offset = 0
    for name, width in FIXED_HEADER_FIELDS:
        slots[name] = FieldSlot(name, offset, width)
        offset += width
    return slots


FIXED_SLOTS = _fixed_slots()

_SIGNAL_DECODERS: dict[str, Callable[[bytes, FieldSlot], Any]] = {
    "label": decode_text,
    "transducer": decode_text,
    "physical_dimension": decode_text,
    "physical_min": decode_float,
    "physical_max": decode_float,
    "digital_min": decode_int,
    "digital_max": decode_int,
    "prefiltering": decode_text,
    "samples_per_record": decode_int,
    "reserved": decode_text,
}

_NUMERIC_SIGNAL_FIELDS = {
    "physical_min",
    "physical_max",
    "digital_min",
    "digital_max",
    "samples_per_record",
}


def _cell(data: bytes, slot: FieldSlot) -> bytes:
    return data[slot.offset : slot.offset + slot.width]


# ============================================================================
# Field-major <-> signal-major transpose
# ============================================================================


def _split_zones(block: bytes, ns: int) -> dict[str, list[tuple[bytes, FieldSlot]]]:
    """Cut the signal block into per-field lists of (cell, slot)."""
    zones: dict[str, list[tuple[bytes, FieldSlot]]] = {}
    zone_start = 0
    for name, width in SIGNAL_HEADER_FIELDS:
        cells = []
        for i in range(ns):
            start = zone_start + i * width
            slot = FieldSlot(name, FIXED_HEADER_BYTES + start, width, signal_index=i)
            cells.append((block[start : start + width], slot))
        zones[name] = cells
        zone_start += width * ns
    return zones


def _join_zones(zones: dict[str, list[bytes]]) -> bytes:
    """Concatenate per-field cell lists back into the on-disk block."""
    return b"".join(b"".join(zones[name]) for name, _ in SIGNAL_HEADER_FIELDS)


# ============================================================================
# Parsing
# ============================================================================


def header_length(fixed: bytes) -> int:
    """
    Validate the fixed header's signal count and return the full header length.

    Args:
        fixed: At least the first 256 bytes of the file

    Raises:
        HeaderTruncatedError: If fewer than 256 bytes are supplied
        InvalidSignalCountError: If ns is invalid or disagrees with the header length
    """
    if len(fixed) < FIXED_HEADER_BYTES:
        raise HeaderTruncatedError(
            f"Header needs {FIXED_HEADER_BYTES} bytes, got {len(fixed)}",
            offset=len(fixed),
        )

    ns_slot = FIXED_SLOTS["num_signals"]
    ns_text = _cell(fixed, ns_slot).decode("ascii", errors="replace").strip()
    if not ns_text.isdigit():
        raise InvalidSignalCountError(
            f"Signal count {ns_text!r} is not a non-negative integer",
            offset=ns_slot.offset,
        )
    ns = int(ns_text)

    declared = decode_int(_cell(fixed, FIXED_SLOTS["header_bytes"]), FIXED_SLOTS["header_bytes"])
    expected = FIXED_HEADER_BYTES + SIGNAL_HEADER_BYTES * ns
    if declared != expected:
        raise InvalidSignalCountError(
            f"Header length {declared} inconsistent with {ns} signals (expected {expected})",
            offset=FIXED_SLOTS["header_bytes"].offset,
        )
    return expected


def parse_signal_headers(block: bytes, ns: int) -> list[SignalHeader]:
    """
    Parse the field-major signal block into signal-major SignalHeaders.

    Raises:
        HeaderTruncatedError: If the block is shorter than ns * 256 bytes
        MalformedFieldError: If a cell is malformed or a signal breaks its invariants
    """
    if len(block) < SIGNAL_HEADER_BYTES * ns:
        raise HeaderTruncatedError(
            f"Signal headers need {SIGNAL_HEADER_BYTES * ns} bytes, got {len(block)}",
            offset=FIXED_HEADER_BYTES + len(block),
        )

    columns: dict[str, list[Any]] = {}
    for name, cells in _split_zones(block, ns).items():
        decode = _SIGNAL_DECODERS[name]
        columns[name] = [decode(raw, slot) for raw, slot in cells]

    signals = []
    for i in range(ns):
        values = {name: columns[name][i] for name, _ in SIGNAL_HEADER_FIELDS}
        if values["samples_per_record"] < 0:
            raise MalformedFieldError(
                f"negative value {values['samples_per_record']}",
                field="samples_per_record",
                signal_index=i,
            )
        check_signal_ranges(
            values["label"],
            values["physical_min"],
            values["physical_max"],
            values["digital_min"],
            values["digital_max"],
            signal_index=i,
        )
        signals.append(SignalHeader(**values))
    return signals


def parse_header(data: bytes) -> FileHeader:
    """
    Parse the complete header (fixed part plus signal block).

    Args:
        data: Header bytes; anything after the declared header length is ignored

    Returns:
        FileHeader

    Raises:
        HeaderError: Any of HeaderTruncatedError, InvalidSignalCountError,
            MalformedFieldError
    """
    total = header_length(data)
    if len(data) < total:
        raise HeaderTruncatedError(
            f"Declared header length is {total} bytes, got {len(data)}",
            offset=len(data),
        )

    text = {
        name: decode_text(_cell(data, FIXED_SLOTS[name]), FIXED_SLOTS[name])
        for name in ("version", "patient_id", "recording_id", "reserved")
    }
    start_date = parse_start_date(
        decode_text(_cell(data, FIXED_SLOTS["start_date"]), FIXED_SLOTS["start_date"]),
        FIXED_SLOTS["start_date"],
    )
    start_time = parse_start_time(
        decode_text(_cell(data, FIXED_SLOTS["start_time"]), FIXED_SLOTS["start_time"]),
        FIXED_SLOTS["start_time"],
    )
    record_count = decode_int(
        _cell(data, FIXED_SLOTS["record_count"]), FIXED_SLOTS["record_count"]
    )
    if record_count < -1:
        raise MalformedFieldError(
            f"invalid record count {record_count}",
            field="record_count",
            offset=FIXED_SLOTS["record_count"].offset,
        )
    record_duration = decode_float(
        _cell(data, FIXED_SLOTS["record_duration"]), FIXED_SLOTS["record_duration"]
    )
    if record_duration < 0:
        raise MalformedFieldError(
            f"negative record duration {record_duration}",
            field="record_duration",
            offset=FIXED_SLOTS["record_duration"].offset,
        )

    ns = (total - FIXED_HEADER_BYTES) // SIGNAL_HEADER_BYTES
    signals = parse_signal_headers(data[FIXED_HEADER_BYTES:total], ns)

    header = FileHeader(
        version=text["version"],
        patient_id=text["patient_id"],
        recording_id=text["recording_id"],
        start_date=start_date,
        start_time=start_time,
        header_bytes=total,
        reserved=text["reserved"],
        record_count=RecordCount.from_field(record_count),
        record_duration=record_duration,
        signals=signals,
    )
    logger.debug(
        f"Parsed {header.file_type.value} header: {ns} signals, "
        f"{record_count} records of {record_duration}s"
    )
    return header


# ============================================================================
# Serialization
# ============================================================================


def validate_header(header: FileHeader) -> None:
    """
    Check the cross-field invariants required before writing.

    Raises:
        InconsistentLengthError: If header_bytes disagrees with the signal list
        MalformedFieldError: If a signal breaks its range invariants
    """
    if header.header_bytes != header.expected_header_bytes:
        raise InconsistentLengthError(
            f"header_bytes is {header.header_bytes} but {header.num_signals} signals "
            f"require {header.expected_header_bytes}"
        )
    for i, signal in enumerate(header.signals):
        check_signal_ranges(
            signal.label,
            signal.physical_min,
            signal.physical_max,
            signal.digital_min,
            signal.digital_max,
            signal_index=i,
        )


def serialize_header(header: FileHeader) -> bytes:
    """
    Serialize a FileHeader to exactly 256 + 256 * ns bytes.

    Raises:
        InconsistentLengthError: If header_bytes disagrees with the signal list
        MalformedFieldError: If a value does not fit its field
    """
    validate_header(header)

    values: dict[str, bytes] = {
        "version": encode_text(header.version, FIXED_SLOTS["version"]),
        "patient_id": encode_text(header.patient_id, FIXED_SLOTS["patient_id"]),
        "recording_id": encode_text(header.recording_id, FIXED_SLOTS["recording_id"]),
        "start_date": encode_text(
            format_start_date(header.start_date), FIXED_SLOTS["start_date"]
        ),
        "start_time": encode_text(
            format_start_time(header.start_time), FIXED_SLOTS["start_time"]
        ),
        "header_bytes": encode_number(header.expected_header_bytes, FIXED_SLOTS["header_bytes"]),
        "reserved": encode_text(header.reserved, FIXED_SLOTS["reserved"]),
        "record_count": encode_number(
            header.record_count.to_field(), FIXED_SLOTS["record_count"]
        ),
        "record_duration": encode_number(
            header.record_duration, FIXED_SLOTS["record_duration"]
        ),
        "num_signals": encode_number(header.num_signals, FIXED_SLOTS["num_signals"]),
    }
    fixed = b"".join(values[name] for name, _ in FIXED_HEADER_FIELDS)

    zones: dict[str, list[bytes]] = {}
    for name, width in SIGNAL_HEADER_FIELDS:
        cells = []
        for i, signal in enumerate(header.signals):
            slot = FieldSlot(name, 0, width, signal_index=i)
            value = getattr(signal, name)
            if name in _NUMERIC_SIGNAL_FIELDS:
                cells.append(encode_number(value, slot))
            else:
                cells.append(encode_text(value, slot))
        zones[name] = cells

    return fixed + _join_zones(zones)
