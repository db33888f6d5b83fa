"""
Builders for synthetic EDF/EDF+ headers, records and files.

Provides small, reproducible inputs for codec and reader/writer tests.
"""

import io

from datetime import date, datetime, time

import numpy as np

from edfplus.header import serialize_header
from edfplus.models import FileHeader, FileType, RecordCount, SignalHeader
from edfplus.writer import EDFWriter, new_header

START = datetime(2024, 1, 15, 22, 30, 0)


def make_signal(
    label: str = "EEG Fpz-Cz",
    samples_per_record: int = 4,
    physical_min: float = -200.0,
    physical_max: float = 200.0,
    digital_min: int = -2048,
    digital_max: int = 2047,
    physical_dimension: str = "uV",
) -> SignalHeader:
    """
    Create an ordinary signal header.

    Args:
        label: Signal label
        samples_per_record: Samples per data record
        physical_min: Physical minimum
        physical_max: Physical maximum
        digital_min: Digital minimum
        digital_max: Digital maximum
        physical_dimension: Units

    Returns:
        SignalHeader
    """
    return SignalHeader(
        label=label,
        physical_dimension=physical_dimension,
        physical_min=physical_min,
        physical_max=physical_max,
        digital_min=digital_min,
        digital_max=digital_max,
        samples_per_record=samples_per_record,
    )


def make_header(
    signals: list[SignalHeader] | None = None,
    record_count: RecordCount | None = None,
    record_duration: float = 1.0,
    reserved: str = "",
) -> FileHeader:
    """Create a plain header with the given signals (default: one EEG signal)."""
    return FileHeader(
        patient_id="X X X X",
        recording_id="Startdate 15-JAN-2024 X X X",
        start_date=date(2024, 1, 15),
        start_time=time(22, 30, 0),
        reserved=reserved,
        record_count=record_count or RecordCount.known(0),
        record_duration=record_duration,
        signals=signals if signals is not None else [make_signal()],
    )


def scenario_header(record_count: RecordCount | None = None) -> FileHeader:
    """EDF+C header with one 4-sample signal and a 12-sample annotation channel."""
    return make_header(
        signals=[make_signal(), SignalHeader.annotation_channel(12)],
        record_count=record_count,
        reserved=FileType.EDF_PLUS_C.value,
    )


def ramp_records(count: int, samples: int = 4) -> list[np.ndarray]:
    """Distinct digital sample arrays, one per record."""
    return [
        np.arange(samples, dtype=np.int16) + np.int16(i * samples) for i in range(count)
    ]


def build_edf_bytes(header: FileHeader, records: list[bytes]) -> bytes:
    """Concatenate a serialized header and pre-encoded records."""
    return serialize_header(header) + b"".join(records)


def write_edfplus(
    records: list[np.ndarray],
    annotations_per_record: dict[int, list] | None = None,
    file_type: FileType = FileType.EDF_PLUS_C,
    onsets: list[float] | None = None,
    annotation_samples: int = 30,
) -> bytes:
    """
    Write an EDF+ file with one EEG signal through EDFWriter.

    Args:
        records: Digital samples of the EEG signal, one array per record
        annotations_per_record: Annotations to attach to a given record index
        file_type: EDF+C or EDF+D
        onsets: Explicit record onsets for the timekeeping TALs
        annotation_samples: Annotation channel size in samples

    Returns:
        The complete file contents
    """
    annotations_per_record = annotations_per_record or {}
    header = new_header(
        [make_signal(samples_per_record=len(records[0]) if records else 4)],
        record_duration=1.0,
        start=START,
        file_type=file_type,
        annotation_samples=annotation_samples,
    )

    stream = io.BytesIO()
    writer = EDFWriter(stream, header)
    writer.open()
    for i, samples in enumerate(records):
        writer.write_digital(
            [samples],
            annotations=annotations_per_record.get(i, ()),
            onset=onsets[i] if onsets else None,
        )
    writer.finalize()
    return stream.getvalue()


class NonSeekableStream(io.RawIOBase):
    """Write-only or read-only stream that refuses to seek."""

    def __init__(self, initial: bytes = b""):
        self._buffer = io.BytesIO(initial)

    def readable(self) -> bool:
        return True

    def writable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def readinto(self, b) -> int:
        data = self._buffer.read(len(b))
        b[: len(data)] = data
        return len(data)

    def write(self, b) -> int:
        return self._buffer.write(b)

    def getvalue(self) -> bytes:
        return self._buffer.getvalue()


class FailingStream(io.BytesIO):
    """BytesIO whose reads or writes raise OSError on demand."""

    def __init__(self, initial: bytes = b""):
        super().__init__(initial)
        self.fail_reads = False
        self.fail_writes = False

    def read(self, size=-1):
        if self.fail_reads:
            raise OSError("simulated read failure")
        return super().read(size)

    def write(self, b):
        if self.fail_writes:
            raise OSError("simulated write failure")
        return super().write(b)


class PartialWriteStream(io.BytesIO):
    """BytesIO whose next write stores only a prefix of the data, then raises."""

    def __init__(self, initial: bytes = b""):
        super().__init__(initial)
        self.fail_after: int | None = None

    def write(self, b):
        if self.fail_after is None:
            return super().write(b)
        super().write(bytes(b)[: self.fail_after])
        self.fail_after = None
        raise OSError("simulated partial write")


class PartialWriteRawStream(NonSeekableStream):
    """Non-seekable stream whose next write stores a prefix, then raises."""

    def __init__(self, initial: bytes = b""):
        super().__init__(initial)
        self.fail_after: int | None = None

    def write(self, b) -> int:
        if self.fail_after is None:
            return super().write(b)
        super().write(bytes(b)[: self.fail_after])
        self.fail_after = None
        raise OSError("simulated partial write")


class ChunkedStream(io.RawIOBase):
    """Readable stream that returns at most chunk_size bytes per read."""

    def __init__(self, data: bytes, chunk_size: int = 3):
        self._buffer = io.BytesIO(data)
        self._chunk_size = chunk_size

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        return self._buffer.seek(offset, whence)

    def tell(self) -> int:
        return self._buffer.tell()

    def readinto(self, b) -> int:
        data = self._buffer.read(min(len(b), self._chunk_size))
        b[: len(data)] = data
        return len(data)
