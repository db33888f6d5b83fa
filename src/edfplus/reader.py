"""
EDF/EDF+ File Reader

Streams data records from a binary stream:

    with EDFReader.from_path("recording.edf") as edf:
        header = edf.header
        for record in edf:
            ...

        # Whole-signal reads and file-wide annotations need a seekable stream
        data = edf.read_signal("EEG Fpz-Cz")
        annotations = edf.read_annotations()

State machine: UNOPENED -> HEADER_READ -> STREAMING(record_index) -> CLOSED.
"""

import logging
import math

from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Iterator

import numpy as np

from edfplus.annotations import decode_annotations
from edfplus.constants import BYTES_PER_SAMPLE, FIXED_HEADER_BYTES, SAMPLE_DTYPE
from edfplus.conversion import digital_to_physical
from edfplus.exceptions import (
    HeaderTruncatedError,
    MissingOnsetError,
    RecordTruncatedError,
    StreamFailureError,
    WrongStateError,
)
from edfplus.header import header_length, parse_header
from edfplus.models import Annotation, DataRecord, FileHeader, FileType, SignalHeader
from edfplus.records import decode_record, record_layout

logger = logging.getLogger(__name__)


class HandleState(str, Enum):
    """Lifecycle of a reader or writer handle."""

    UNOPENED = "unopened"
    HEADER_READ = "header_read"
    STREAMING = "streaming"
    CLOSED = "closed"


def is_seekable(stream: Any) -> bool:
    try:
        return bool(stream.seekable())
    except (AttributeError, OSError, ValueError):
        return False


class EDFReader:
    """
    Sequential EDF/EDF+ reader over a binary stream.

    The reader never caches records: each next_record() call decodes a fresh
    DataRecord that the caller owns.
    """

    def __init__(self, stream: BinaryIO, *, owns_stream: bool = False, name: str = ""):
        """
        Initialize reader.

        Args:
            stream: Readable binary stream positioned at the start of the file
            owns_stream: Close the stream when the reader is closed
            name: Display name used in log messages
        """
        self._stream = stream
        self._owns_stream = owns_stream
        self._name = name or getattr(stream, "name", "<stream>")
        self._state = HandleState.UNOPENED
        self._header: FileHeader | None = None
        self._record_index = 0
        self._origin = 0
        self._seekable = is_seekable(stream)
        self._first_payload: bytes | None = None

    @classmethod
    def from_path(cls, file_path: Path | str) -> "EDFReader":
        """Create a reader that owns the file it opens."""
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"EDF file not found: {file_path}")
        return cls(open(file_path, "rb"), owns_stream=True, name=file_path.name)

    def __enter__(self) -> "EDFReader":
        """Context manager entry."""
        if self._state == HandleState.UNOPENED:
            try:
                self.open()
            except BaseException:
                self.close()
                raise
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit."""
        self.close()

    def __iter__(self) -> Iterator[DataRecord]:
        while (record := self.next_record()) is not None:
            yield record

    def __repr__(self) -> str:
        """Developer representation."""
        return f"<EDFReader file='{self._name}' state={self._state.value}>"

    # ------------------------------------------------------------------
    # Stream access
    # ------------------------------------------------------------------

    def _read(self, size: int) -> bytes:
        """Read up to size bytes; fewer only at end of stream."""
        chunks: list[bytes] = []
        remaining = size
        try:
            while remaining > 0:
                chunk = self._stream.read(remaining)
                if not chunk:
                    break
                chunks.append(chunk)
                remaining -= len(chunk)
        except OSError as e:
            raise StreamFailureError(f"Read failed on {self._name}: {e}") from e
        return b"".join(chunks)

    def _seek(self, position: int) -> None:
        try:
            self._stream.seek(position)
        except OSError as e:
            raise StreamFailureError(f"Seek failed on {self._name}: {e}") from e

    def _require(self, *states: HandleState) -> None:
        if self._state not in states:
            allowed = ", ".join(s.value for s in states)
            raise WrongStateError(
                f"Reader is {self._state.value}; operation requires {allowed}"
            )

    def _require_seekable(self, operation: str) -> None:
        if not self._seekable:
            raise WrongStateError(f"{operation} requires a seekable stream")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> HandleState:
        return self._state

    @property
    def record_index(self) -> int:
        """Index of the next record next_record() will return."""
        return self._record_index

    def open(self) -> FileHeader:
        """
        Read and parse the header, then start streaming at record 0.

        Raises:
            WrongStateError: If the reader was already opened
            HeaderError: If the header is truncated or malformed
            StreamFailureError: If the stream raises an I/O error
        """
        self._require(HandleState.UNOPENED)

        if self._seekable:
            try:
                self._origin = self._stream.tell()
            except OSError as e:
                raise StreamFailureError(f"Tell failed on {self._name}: {e}") from e

        fixed = self._read(FIXED_HEADER_BYTES)
        if len(fixed) < FIXED_HEADER_BYTES:
            raise HeaderTruncatedError(
                f"File too small to be valid EDF: {len(fixed)} bytes", offset=len(fixed)
            )
        total = header_length(fixed)
        rest = self._read(total - FIXED_HEADER_BYTES)

        self._header = parse_header(fixed + rest)
        self._state = HandleState.HEADER_READ

        logger.info(
            f"Opened {self._header.file_type.value} file: {self._name} "
            f"({self._header.num_signals} signals)"
        )
        self._record_index = 0
        self._state = HandleState.STREAMING
        return self._header

    def close(self) -> None:
        """Close the reader, releasing the stream if it is owned."""
        if self._state == HandleState.CLOSED:
            return
        self._state = HandleState.CLOSED
        if self._owns_stream:
            self._stream.close()
            logger.debug(f"Closed EDF file: {self._name}")

    # ------------------------------------------------------------------
    # Header access
    # ------------------------------------------------------------------

    @property
    def header(self) -> FileHeader:
        if self._header is None:
            raise WrongStateError("Header has not been read; call open() first")
        return self._header

    @property
    def file_type(self) -> FileType:
        return self.header.file_type

    @property
    def is_discontinuous(self) -> bool:
        return self.header.is_discontinuous

    def signal_labels(self) -> list[str]:
        """Labels of the ordinary (non-annotation) signals."""
        return [s.label for s in self.header.signals if not s.is_annotation]

    def _resolve_signal(self, signal: int | str) -> tuple[int, SignalHeader]:
        signals = self.header.signals
        if isinstance(signal, str):
            for i, candidate in enumerate(signals):
                if candidate.label == signal:
                    return i, candidate
            raise KeyError(f"Signal '{signal}' not found. Available: {self.signal_labels()}")
        if not 0 <= signal < len(signals):
            raise IndexError(f"Signal index {signal} out of range (0-{len(signals) - 1})")
        return signal, signals[signal]

    def sample_rate(self, signal: int | str) -> float:
        """Sample rate for a signal in Hz."""
        _, info = self._resolve_signal(signal)
        return info.sample_rate(self.header.record_duration)

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    def _read_record_bytes(self, index: int) -> bytes:
        if self._seekable:
            self._seek(self._origin + self.header.record_offset(index))
        return self._read(self.header.record_size)

    def next_record(self) -> DataRecord | None:
        """
        Read and decode the next data record.

        Returns:
            The record, or None once the declared count is reached or, for an
            unknown count, when the stream ends on a record boundary

        Raises:
            WrongStateError: If the reader is not streaming
            RecordTruncatedError: If the stream ends inside a record
            StreamFailureError: If the stream raises; record_index is unchanged
        """
        self._require(HandleState.STREAMING)
        header = self.header
        index = self._record_index

        if header.record_count.is_known:
            if index >= (header.record_count.value or 0):
                return None
        elif header.record_size == 0:
            return None

        data = self._read_record_bytes(index)
        if not data and not header.record_count.is_known:
            logger.debug(f"End of stream after {index} records in {self._name}")
            return None
        if len(data) < header.record_size:
            raise RecordTruncatedError(
                f"Record {index} needs {header.record_size} bytes, stream has {len(data)}",
                offset=header.record_offset(index) + len(data),
            )

        record = decode_record(data, header, index=index)
        if index == 0 and header.annotation_indices:
            self._first_payload = record.annotation_payload(header.annotation_indices[0])
        self._record_index = index + 1
        return record

    # ------------------------------------------------------------------
    # Timing
    # ------------------------------------------------------------------

    def _timekeeping_onset(self, payload: bytes, index: int) -> float:
        tals = decode_annotations(payload)
        if not tals:
            raise MissingOnsetError(
                f"Record {index} has no timekeeping annotation",
                offset=self.header.record_offset(index),
            )
        return tals[0].onset

    @property
    def start_subsecond(self) -> float:
        """
        Fractional-second start offset from the first record's timekeeping TAL.

        Zero for plain EDF files. Needs record 0 to have been read, or a
        seekable stream.
        """
        header = self.header
        if not header.is_edf_plus or not header.annotation_indices:
            return 0.0

        if self._first_payload is None:
            self._require_seekable("Reading the start offset before record 0")
            data = self._read_record_bytes(0)
            if not data:
                return 0.0
            first = decode_record(data, header, index=0)
            self._first_payload = first.annotation_payload(header.annotation_indices[0])

        fraction, _ = math.modf(self._timekeeping_onset(self._first_payload, 0))
        return fraction

    def record_onset(self, record: DataRecord) -> float:
        """
        Onset of a record in seconds from the header start time.

        EDF+D records carry their own onset in the timekeeping TAL; other
        files are evenly spaced by the record duration.
        """
        if record.index is None:
            raise ValueError("Record has no index")

        header = self.header
        if header.is_discontinuous and header.annotation_indices:
            payload = record.annotation_payload(header.annotation_indices[0])
            return self._timekeeping_onset(payload, record.index)
        return self.start_subsecond + record.index * header.record_duration

    # ------------------------------------------------------------------
    # Random access (seekable streams)
    # ------------------------------------------------------------------

    def available_records(self) -> int:
        """Number of records, counting complete records when the header says unknown."""
        header = self.header
        if header.record_count.is_known:
            return header.record_count.value or 0

        self._require_seekable("Counting records")
        if header.record_size == 0:
            return 0
        try:
            end = self._stream.seek(0, 2)
        except OSError as e:
            raise StreamFailureError(f"Seek failed on {self._name}: {e}") from e
        data_bytes = max(0, end - self._origin - (header.header_bytes or 0))
        return data_bytes // header.record_size

    @property
    def duration(self) -> float:
        """Total recording duration in seconds (record count x record duration)."""
        return self.available_records() * self.header.record_duration

    def read_signal(
        self,
        signal: int | str,
        start: int = 0,
        count: int | None = None,
        physical: bool = True,
    ) -> np.ndarray:
        """
        Read samples of one signal across records.

        Args:
            signal: Signal label or index
            start: First sample (0-based, across the whole file)
            count: Number of samples (default: to the end)
            physical: Return physical values instead of digital codes

        Returns:
            float64 array of physical values, or int16 array of digital codes

        Raises:
            WrongStateError: If the reader is not streaming or the stream is not seekable
            RecordTruncatedError: If a record needed for the read is incomplete
        """
        self._require(HandleState.STREAMING)
        self._require_seekable("read_signal")
        index, info = self._resolve_signal(signal)
        if info.is_annotation:
            raise ValueError(f"Signal {index} is an annotation channel; use read_annotations()")

        spr = info.samples_per_record
        total = spr * self.available_records()
        start = min(max(start, 0), total)
        stop = total if count is None else min(start + max(count, 0), total)
        if stop <= start:
            empty = np.zeros(0, dtype=np.int16)
            return digital_to_physical(empty, info) if physical else empty

        span = record_layout(self.header)[index]
        chunks = []
        for record_index in range(start // spr, (stop - 1) // spr + 1):
            offset = self.header.record_offset(record_index) + span.start
            self._seek(self._origin + offset)
            raw = self._read(spr * BYTES_PER_SAMPLE)
            if len(raw) < spr * BYTES_PER_SAMPLE:
                raise RecordTruncatedError(
                    f"Record {record_index} is incomplete", offset=offset + len(raw)
                )
            chunks.append(np.frombuffer(raw, dtype=SAMPLE_DTYPE))

        first = (start // spr) * spr
        digital = np.concatenate(chunks)[start - first : stop - first].astype(np.int16)
        logger.debug(f"Read {len(digital)} samples from signal '{info.label}'")
        return digital_to_physical(digital, info) if physical else digital

    def read_annotations(self, include_timekeeping: bool = False) -> list[Annotation]:
        """
        Collect annotations from every annotation channel of every record.

        Args:
            include_timekeeping: Keep each record's text-less timekeeping TAL

        Returns:
            Annotations sorted by onset
        """
        self._require(HandleState.STREAMING)
        self._require_seekable("read_annotations")
        header = self.header
        channels = header.annotation_indices
        if not channels:
            logger.debug(f"{self._name} has no annotation channel")
            return []

        annotations: list[Annotation] = []
        for index in range(self.available_records()):
            data = self._read_record_bytes(index)
            if len(data) < header.record_size:
                raise RecordTruncatedError(
                    f"Record {index} is incomplete",
                    offset=header.record_offset(index) + len(data),
                )
            record = decode_record(data, header, index=index)
            for position, channel in enumerate(channels):
                tals = decode_annotations(record.annotation_payload(channel))
                if position == 0 and tals and tals[0].is_timekeeping and not include_timekeeping:
                    tals = tals[1:]
                annotations.extend(tals)

        annotations.sort(key=lambda a: a.onset)
        logger.info(f"Read {len(annotations)} annotations from {self._name}")
        return annotations


def open_for_read(stream: BinaryIO) -> EDFReader:
    """Open a reader on a stream the caller keeps ownership of."""
    reader = EDFReader(stream)
    reader.open()
    return reader
