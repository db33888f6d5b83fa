"""
Data record codec.

A data record holds, for every signal in declared order, that signal's
samples_per_record little-endian int16 values. Signals are contiguous within
the record, so a record is the concatenation of per-signal spans.
"""

from collections.abc import Sequence
from typing import Any, NamedTuple

import numpy as np

from edfplus.constants import BYTES_PER_SAMPLE, INT16_MAX, INT16_MIN, SAMPLE_DTYPE
from edfplus.conversion import physical_to_digital
from edfplus.exceptions import RecordTruncatedError, SignalCountMismatchError
from edfplus.models import DataRecord, FileHeader


class SignalSpan(NamedTuple):
    """Byte span of one signal inside a data record."""

    start: int
    stop: int
    samples: int


def record_layout(header: FileHeader) -> list[SignalSpan]:
    """Compute each signal's byte span within a record."""
    spans = []
    offset = 0
    for signal in header.signals:
        size = signal.samples_per_record * BYTES_PER_SAMPLE
        spans.append(SignalSpan(offset, offset + size, signal.samples_per_record))
        offset += size
    return spans


def decode_record(data: bytes, header: FileHeader, index: int | None = None) -> DataRecord:
    """
    Demultiplex one record into per-signal digital sample arrays.

    Args:
        data: Record bytes; only the first header.record_size bytes are used
        header: File header describing the layout
        index: Record index to attach to the result

    Raises:
        RecordTruncatedError: If data is shorter than one record
    """
    size = header.record_size
    if len(data) < size:
        raise RecordTruncatedError(
            f"Record needs {size} bytes, got {len(data)}", offset=len(data)
        )
    if not size:
        return DataRecord(
            samples=[np.zeros(0, dtype=np.int16) for _ in header.signals], index=index
        )

    buffer = np.frombuffer(data, dtype=SAMPLE_DTYPE, count=size // BYTES_PER_SAMPLE)
    samples = []
    position = 0
    for span in record_layout(header):
        # Copy so the record does not keep the caller's buffer alive
        samples.append(buffer[position : position + span.samples].astype(np.int16))
        position += span.samples
    return DataRecord(samples=samples, index=index)


def _check_signal_count(supplied: Sequence[Any], header: FileHeader) -> None:
    if len(supplied) != header.num_signals:
        raise SignalCountMismatchError(
            f"Expected samples for {header.num_signals} signals, got {len(supplied)}"
        )


def _annotation_codes(payload: Any, expected_bytes: int, signal_index: int) -> np.ndarray:
    if len(payload) != expected_bytes:
        raise SignalCountMismatchError(
            f"Annotation payload is {len(payload)} bytes, channel holds {expected_bytes}",
            signal_index=signal_index,
        )
    if not expected_bytes:
        return np.zeros(0, dtype=SAMPLE_DTYPE)
    return np.frombuffer(bytes(payload), dtype=SAMPLE_DTYPE)


def _digital_codes(values: Any, expected: int, signal_index: int) -> np.ndarray:
    codes = np.asarray(values)
    if codes.ndim != 1 or codes.shape[0] != expected:
        raise SignalCountMismatchError(
            f"Expected {expected} samples, got {codes.shape[0] if codes.ndim else 0}",
            signal_index=signal_index,
        )
    if codes.size and codes.dtype.kind not in "iu":
        raise TypeError(f"Signal {signal_index} digital values must be integers")
    if codes.size and (codes.min() < INT16_MIN or codes.max() > INT16_MAX):
        raise ValueError(f"Signal {signal_index} has digital values outside int16")
    return codes.astype(SAMPLE_DTYPE)


def encode_digital(samples: Sequence[Any], header: FileHeader) -> bytes:
    """
    Multiplex per-signal digital codes into one record.

    Annotation channels may be given as bytes, copied verbatim.

    Raises:
        SignalCountMismatchError: If any signal's sample count differs from the header
    """
    _check_signal_count(samples, header)

    parts = []
    for i, (values, signal) in enumerate(zip(samples, header.signals)):
        if isinstance(values, (bytes, bytearray, memoryview)):
            parts.append(_annotation_codes(values, signal.record_bytes, i))
        else:
            parts.append(_digital_codes(values, signal.samples_per_record, i))

    return b"".join(p.tobytes() for p in parts)


def encode_physical(values: Sequence[Any], header: FileHeader) -> bytes:
    """
    Convert physical values to digital codes and multiplex them into one record.

    Annotation channels must be given as bytes (the TAL payload).

    Raises:
        SignalCountMismatchError: If any signal's sample count differs from the header
        DegenerateRangeError: If a signal's calibration is undefined
    """
    _check_signal_count(values, header)

    digital: list[Any] = []
    for i, (signal_values, signal) in enumerate(zip(values, header.signals)):
        if isinstance(signal_values, (bytes, bytearray, memoryview)):
            digital.append(signal_values)
            continue
        if signal.is_annotation:
            raise TypeError(f"Signal {i} is an annotation channel; pass its TAL bytes")

        physical = np.asarray(signal_values, dtype=np.float64)
        if physical.ndim != 1 or physical.shape[0] != signal.samples_per_record:
            raise SignalCountMismatchError(
                f"Expected {signal.samples_per_record} samples, "
                f"got {physical.shape[0] if physical.ndim else 0}",
                signal_index=i,
            )
        digital.append(physical_to_digital(physical, signal))

    return encode_digital(digital, header)


def encode_record(record: DataRecord, header: FileHeader) -> bytes:
    """Encode a DataRecord."""
    return encode_digital(record.samples, header)
