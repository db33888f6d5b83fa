"""
EDF/EDF+ File Writer

    header = new_header(signals, record_duration=1.0, start=datetime(2024, 1, 15, 22, 30))
    with EDFWriter.from_path("out.edf", header) as edf:
        for chunk in chunks:
            edf.write_physical(chunk, annotations=[Annotation(onset=..., texts=["Apnea"])])

Leaving the context normally finalizes the file (record count rewritten);
leaving it with an exception only releases the stream.
"""

import io
import logging

from collections.abc import Iterable, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any, BinaryIO

from edfplus.annotations import encode_annotations, timekeeping_annotation
from edfplus.config import WriterDefaults, get_writer_defaults
from edfplus.constants import RECORD_COUNT_OFFSET
from edfplus.exceptions import (
    CountUnknownOnFinalizeError,
    MalformedFieldError,
    SignalCountMismatchError,
    StreamFailureError,
    WrongStateError,
)
from edfplus.fields import encode_number
from edfplus.header import FIXED_SLOTS, serialize_header, validate_header
from edfplus.models import (
    Annotation,
    DataRecord,
    FileHeader,
    FileType,
    PatientInfo,
    RecordCount,
    RecordingInfo,
    SignalHeader,
)
from edfplus.reader import HandleState, is_seekable
from edfplus.records import encode_digital, encode_physical, encode_record
from edfplus.timeutil import format_subfield_date

logger = logging.getLogger(__name__)


def new_header(
    signals: Sequence[SignalHeader],
    record_duration: float,
    start: datetime,
    *,
    file_type: FileType = FileType.EDF_PLUS_C,
    patient: PatientInfo | None = None,
    recording: RecordingInfo | None = None,
    annotation_samples: int | None = None,
    defaults: WriterDefaults | None = None,
) -> FileHeader:
    """
    Build a header for writing, appending an annotation channel for EDF+.

    Args:
        signals: Ordinary signal headers, in on-disk order
        record_duration: Seconds per data record
        start: Recording start (subsecond part is dropped)
        file_type: EDF, EDF+C or EDF+D
        patient: EDF+ patient sub-fields
        recording: EDF+ recording sub-fields
        annotation_samples: Annotation channel size in samples
        defaults: Writer defaults to apply. When omitted, the [writer] config
            table is read only if annotation_samples is not given

    Returns:
        FileHeader with a pending record count
    """
    if defaults is None:
        defaults = get_writer_defaults() if annotation_samples is None else WriterDefaults()
    signals = list(signals)
    reserved = ""

    if file_type.is_edf_plus:
        samples = annotation_samples or defaults.annotation_samples_per_record
        signals.append(SignalHeader.annotation_channel(samples))
        reserved = file_type.value
        if recording is None:
            recording = RecordingInfo(startdate=format_subfield_date(start.date()))

    return FileHeader(
        version=defaults.version,
        patient_id=(patient or PatientInfo()).to_field() if file_type.is_edf_plus else "",
        recording_id=recording.to_field() if recording is not None else "",
        start_date=start.date(),
        start_time=start.time().replace(microsecond=0),
        reserved=reserved,
        record_count=RecordCount.pending(),
        record_duration=record_duration,
        signals=signals,
    )


class EDFWriter:
    """Sequential EDF/EDF+ writer over a binary stream."""

    def __init__(
        self,
        stream: BinaryIO,
        header: FileHeader,
        *,
        owns_stream: bool = False,
        name: str = "",
    ):
        """
        Initialize writer.

        Args:
            stream: Writable binary stream
            header: Header to write; an unknown or pending count is resolved by finalize()
            owns_stream: Close the stream when the writer is closed
            name: Display name used in log messages
        """
        self._stream = stream
        self._header = header
        self._owns_stream = owns_stream
        self._name = name or getattr(stream, "name", "<stream>")
        self._state = HandleState.UNOPENED
        self._record_index = 0
        self._origin: int | None = None
        self._seekable = is_seekable(stream)

    @classmethod
    def from_path(cls, file_path: Path | str, header: FileHeader) -> "EDFWriter":
        """Create a writer that owns the file it creates."""
        file_path = Path(file_path)
        return cls(open(file_path, "w+b"), header, owns_stream=True, name=file_path.name)

    def __enter__(self) -> "EDFWriter":
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
        try:
            if exc_type is None and self._state == HandleState.STREAMING:
                self.finalize()
        finally:
            self.close()

    def __repr__(self) -> str:
        """Developer representation."""
        return f"<EDFWriter file='{self._name}' state={self._state.value}>"

    @property
    def state(self) -> HandleState:
        return self._state

    @property
    def record_index(self) -> int:
        """Number of records written so far."""
        return self._record_index

    @property
    def header(self) -> FileHeader:
        return self._header

    def _require(self, *states: HandleState) -> None:
        if self._state not in states:
            allowed = ", ".join(s.value for s in states)
            raise WrongStateError(
                f"Writer is {self._state.value}; operation requires {allowed}"
            )

    def _position(self, offset: int) -> int | None:
        """Absolute stream position of a file offset, or None when not seekable."""
        if not self._seekable:
            return None
        return (self._origin or 0) + offset

    def _write_at(self, position: int | None, data: bytes) -> None:
        """
        Write data at position, or at the current position when it is None.

        A failed write may leave part of the data behind. Seekable streams
        overwrite it on retry; a non-seekable stream cannot recover, so the
        writer is closed.
        """
        try:
            if position is not None:
                self._stream.seek(position)
            self._stream.write(data)
        except OSError as e:
            if not self._seekable:
                self.close()
            raise StreamFailureError(f"Write failed on {self._name}: {e}") from e

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """
        Validate and write the header, then start streaming at record 0.

        Raises:
            WrongStateError: If the writer was already opened
            HeaderError: If the header breaks an invariant or a value does not fit
            StreamFailureError: If the stream raises an I/O error
        """
        self._require(HandleState.UNOPENED)

        header = self._header
        validate_header(header)
        if header.is_edf_plus and not header.annotation_indices:
            raise MalformedFieldError(
                f"{header.file_type.value} file has no annotation signal", field="reserved"
            )
        if not header.record_count.is_known:
            header = header.with_record_count(RecordCount.pending())

        data = serialize_header(header)
        if self._seekable and self._origin is None:
            try:
                self._origin = self._stream.tell()
            except OSError as e:
                raise StreamFailureError(f"Tell failed on {self._name}: {e}") from e

        self._write_at(self._position(0), data)
        self._header = header
        self._state = HandleState.HEADER_READ
        logger.info(
            f"Writing {header.file_type.value} file: {self._name} "
            f"({header.num_signals} signals, {len(data)} header bytes)"
        )
        self._record_index = 0
        self._state = HandleState.STREAMING

    def close(self) -> None:
        """Release the stream if owned. Does not finalize."""
        self._state = HandleState.CLOSED
        if self._owns_stream and not self._stream.closed:
            self._stream.close()

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def _append(self, data: bytes) -> None:
        self._require(HandleState.STREAMING)
        position = self._position(self._header.record_offset(self._record_index))
        self._write_at(position, data)
        self._record_index += 1
        logger.debug(f"Wrote record {self._record_index - 1} to {self._name}")

    def write_record(self, record: DataRecord) -> None:
        """
        Encode and append one data record.

        Raises:
            WrongStateError: If the writer is not streaming
            SignalCountMismatchError: If the record does not match the header layout
            StreamFailureError: If the stream raises; record_index is unchanged and
                a seekable writer can retry the same record
        """
        self._append(encode_record(record, self._header))

    def _with_annotation_channels(
        self,
        samples: Sequence[Any],
        annotations: Iterable[Annotation],
        onset: float | None,
    ) -> list[Any]:
        """Interleave annotation channel payloads with ordinary signal samples."""
        header = self._header
        channels = header.annotation_indices
        annotations = list(annotations)

        ordinary = header.num_signals - len(channels)
        if len(samples) != ordinary:
            raise SignalCountMismatchError(
                f"Expected samples for {ordinary} ordinary signals, got {len(samples)}"
            )
        if not channels:
            if annotations:
                raise ValueError("Plain EDF files cannot carry annotations")
            return list(samples)

        if onset is None:
            onset = self._record_index * header.record_duration

        supplied = iter(samples)
        combined: list[Any] = []
        for i, signal in enumerate(header.signals):
            if not signal.is_annotation:
                combined.append(next(supplied))
            elif i == channels[0]:
                tals = [timekeeping_annotation(onset), *annotations]
                combined.append(encode_annotations(tals, signal.record_bytes))
            else:
                combined.append(encode_annotations([], signal.record_bytes))
        return combined

    def write_digital(
        self,
        samples: Sequence[Any],
        annotations: Iterable[Annotation] = (),
        onset: float | None = None,
    ) -> None:
        """
        Append a record from digital codes of the ordinary signals.

        Args:
            samples: One int16-range array per ordinary signal, in header order
            annotations: Annotations to store in this record
            onset: Record onset for the timekeeping TAL
                (default: record_index * record_duration)

        Raises:
            AnnotationOverflowError: If the annotations do not fit the channel
        """
        self._require(HandleState.STREAMING)
        combined = self._with_annotation_channels(samples, annotations, onset)
        self._append(encode_digital(combined, self._header))

    def write_physical(
        self,
        values: Sequence[Any],
        annotations: Iterable[Annotation] = (),
        onset: float | None = None,
    ) -> None:
        """Append a record from physical values of the ordinary signals."""
        self._require(HandleState.STREAMING)
        combined = self._with_annotation_channels(values, annotations, onset)
        self._append(encode_physical(combined, self._header))

    # ------------------------------------------------------------------
    # Finalize
    # ------------------------------------------------------------------

    def _discard_tail(self, written: int) -> None:
        """Drop bytes a failed record write left past the last complete record."""
        end = (self._origin or 0) + self._header.record_offset(written)
        size = self._stream.seek(0, io.SEEK_END)
        if size > end:
            logger.warning(f"Discarding {size - end} bytes of an incomplete record")
            self._stream.truncate(end)
        self._stream.seek(end)

    def finalize(self) -> FileHeader:
        """
        Resolve the record count and close the writer.

        Returns:
            The header as finally written

        Raises:
            WrongStateError: If the writer is not streaming
            CountUnknownOnFinalizeError: If the count must be rewritten on a
                non-seekable stream
            StreamFailureError: If the stream raises
        """
        self._require(HandleState.STREAMING)
        written = self._record_index
        declared = self._header.record_count

        if not (declared.is_known and declared.value == written):
            if not self._seekable:
                raise CountUnknownOnFinalizeError(
                    f"Cannot rewrite record count ({written}) on a non-seekable stream",
                    offset=RECORD_COUNT_OFFSET,
                )
            if declared.is_known:
                logger.warning(
                    f"Header declared {declared.value} records but {written} were written; "
                    f"rewriting count"
                )
            field = encode_number(written, FIXED_SLOTS["record_count"])
            self._write_at(self._position(RECORD_COUNT_OFFSET), field)

        try:
            if self._seekable:
                self._discard_tail(written)
            self._stream.flush()
        except OSError as e:
            raise StreamFailureError(f"Finalize failed on {self._name}: {e}") from e

        self._header = self._header.with_record_count(RecordCount.known(written))
        logger.info(f"Finalized {self._name}: {written} records")
        self.close()
        return self._header


def open_for_write(stream: BinaryIO, header: FileHeader) -> EDFWriter:
    """Open a writer on a stream the caller keeps ownership of."""
    writer = EDFWriter(stream, header)
    writer.open()
    return writer
