"""EDF/EDF+ data model."""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any

import numpy as np

from pydantic import BaseModel, ConfigDict, Field, model_validator

from edfplus.constants import (
    ANNOTATION_DIGITAL_MAX,
    ANNOTATION_DIGITAL_MIN,
    ANNOTATION_LABEL,
    ANNOTATION_PHYSICAL_MAX,
    ANNOTATION_PHYSICAL_MIN,
    BYTES_PER_SAMPLE,
    DEFAULT_ANNOTATION_SAMPLES,
    DEFAULT_VERSION,
    EDF_PLUS_CONTINUOUS,
    EDF_PLUS_DISCONTINUOUS,
    FIXED_HEADER_BYTES,
    INT16_MAX,
    INT16_MIN,
    SIGNAL_HEADER_BYTES,
    UNKNOWN_RECORD_COUNT,
)
from edfplus.exceptions import MalformedFieldError
from edfplus.timeutil import combine


class FileType(str, Enum):
    """EDF variant, taken from the reserved header field."""

    EDF = "EDF"
    EDF_PLUS_C = EDF_PLUS_CONTINUOUS
    EDF_PLUS_D = EDF_PLUS_DISCONTINUOUS

    @classmethod
    def from_reserved(cls, reserved: str) -> "FileType":
        if reserved.startswith(EDF_PLUS_DISCONTINUOUS):
            return cls.EDF_PLUS_D
        if reserved.startswith(EDF_PLUS_CONTINUOUS):
            return cls.EDF_PLUS_C
        return cls.EDF

    @property
    def is_edf_plus(self) -> bool:
        return self is not FileType.EDF


# ============================================================================
# Record Count
# ============================================================================


class RecordCountState(str, Enum):
    """Whether the number of data records is known."""

    KNOWN = "known"
    UNKNOWN = "unknown"  # -1 on disk, count by reading to the end
    PENDING = "pending"  # Writer placeholder, resolved on finalize


class RecordCount(BaseModel):
    """Number of data records, with explicit unknown and pending states."""

    model_config = ConfigDict(frozen=True)

    state: RecordCountState = Field(description="Known, unknown or pending")
    value: int | None = Field(default=None, ge=0, description="Count when known")

    @model_validator(mode="after")
    def _value_matches_state(self) -> "RecordCount":
        if (self.state == RecordCountState.KNOWN) != (self.value is not None):
            raise ValueError("value must be set exactly when the count is known")
        return self

    @classmethod
    def known(cls, value: int) -> "RecordCount":
        return cls(state=RecordCountState.KNOWN, value=value)

    @classmethod
    def unknown(cls) -> "RecordCount":
        return cls(state=RecordCountState.UNKNOWN)

    @classmethod
    def pending(cls) -> "RecordCount":
        return cls(state=RecordCountState.PENDING)

    @classmethod
    def from_field(cls, value: int) -> "RecordCount":
        """Interpret the integer stored in the header."""
        if value == UNKNOWN_RECORD_COUNT:
            return cls.unknown()
        return cls.known(value)

    @property
    def is_known(self) -> bool:
        return self.state == RecordCountState.KNOWN

    def to_field(self) -> int:
        """Integer to store in the header; -1 unless the count is known."""
        if self.value is None:
            return UNKNOWN_RECORD_COUNT
        return self.value


# ============================================================================
# Signal Header
# ============================================================================


def check_signal_ranges(
    label: str,
    physical_min: float,
    physical_max: float,
    digital_min: int,
    digital_max: int,
    signal_index: int | None = None,
) -> None:
    """
    Validate the calibration invariants of an ordinary signal.

    Annotation channels are exempt; their ranges are fixed by convention.

    Raises:
        MalformedFieldError: If a range is empty or inverted
    """
    if label == ANNOTATION_LABEL:
        return
    if not INT16_MIN <= digital_min <= INT16_MAX or not INT16_MIN <= digital_max <= INT16_MAX:
        raise MalformedFieldError(
            f"digital range [{digital_min}, {digital_max}] outside int16",
            field="digital_min",
            signal_index=signal_index,
        )
    if digital_min >= digital_max:
        raise MalformedFieldError(
            f"digital_min {digital_min} must be below digital_max {digital_max}",
            field="digital_min",
            signal_index=signal_index,
        )
    if physical_min == physical_max:
        raise MalformedFieldError(
            f"physical_min equals physical_max ({physical_min})",
            field="physical_min",
            signal_index=signal_index,
        )


class SignalHeader(BaseModel):
    """Per-signal header; list position in FileHeader.signals is channel identity."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(description="Signal label, e.g. 'EEG Fpz-Cz'")
    transducer: str = Field(default="", description="Transducer type")
    physical_dimension: str = Field(default="", description="Units, e.g. 'uV'")
    physical_min: float = Field(description="Physical minimum")
    physical_max: float = Field(description="Physical maximum")
    digital_min: int = Field(description="Digital minimum")
    digital_max: int = Field(description="Digital maximum")
    prefiltering: str = Field(default="", description="Prefiltering, e.g. 'HP:0.1Hz'")
    samples_per_record: int = Field(ge=0, description="Samples per data record")
    reserved: str = Field(default="", description="Reserved")

    @classmethod
    def annotation_channel(
        cls, samples_per_record: int = DEFAULT_ANNOTATION_SAMPLES
    ) -> "SignalHeader":
        """Create an 'EDF Annotations' signal with the conventional ranges."""
        return cls(
            label=ANNOTATION_LABEL,
            physical_min=ANNOTATION_PHYSICAL_MIN,
            physical_max=ANNOTATION_PHYSICAL_MAX,
            digital_min=ANNOTATION_DIGITAL_MIN,
            digital_max=ANNOTATION_DIGITAL_MAX,
            samples_per_record=samples_per_record,
        )

    @property
    def is_annotation(self) -> bool:
        return self.label == ANNOTATION_LABEL

    @property
    def record_bytes(self) -> int:
        """Bytes this signal occupies in every data record."""
        return self.samples_per_record * BYTES_PER_SAMPLE

    def sample_rate(self, record_duration: float) -> float:
        """Samples per second for the given record duration."""
        if record_duration <= 0:
            return 0.0
        return self.samples_per_record / record_duration


# ============================================================================
# EDF+ Identification Sub-fields
# ============================================================================


def _subfield(value: str) -> str:
    value = value.strip().replace(" ", "_")
    return value or "X"


def _unsubfield(value: str) -> str:
    return "" if value == "X" else value.replace("_", " ")


class PatientInfo(BaseModel):
    """EDF+ local patient identification: code, sex, birthdate, name, rest."""

    code: str = Field(default="", description="Hospital patient code")
    sex: str = Field(default="", description="'M', 'F' or empty")
    birthdate: str = Field(default="", description="dd-MMM-yyyy or empty")
    name: str = Field(default="", description="Patient name")
    additional: str = Field(default="", description="Free text")

    @classmethod
    def from_field(cls, text: str) -> "PatientInfo":
        parts = text.split()
        padded = parts[:4] + [""] * (4 - len(parts[:4]))
        return cls(
            code=_unsubfield(padded[0]),
            sex=_unsubfield(padded[1]),
            birthdate=_unsubfield(padded[2]),
            name=_unsubfield(padded[3]),
            additional=" ".join(parts[4:]),
        )

    def to_field(self) -> str:
        fields = [
            _subfield(self.code),
            _subfield(self.sex),
            _subfield(self.birthdate),
            _subfield(self.name),
        ]
        if self.additional:
            fields.append(self.additional)
        return " ".join(fields)


class RecordingInfo(BaseModel):
    """EDF+ local recording identification."""

    startdate: str = Field(default="", description="dd-MMM-yyyy or empty")
    admin_code: str = Field(default="", description="Hospital administration code")
    technician: str = Field(default="", description="Technician")
    equipment: str = Field(default="", description="Equipment")
    additional: str = Field(default="", description="Free text")

    @classmethod
    def from_field(cls, text: str) -> "RecordingInfo":
        parts = text.split()
        if parts and parts[0] == "Startdate":
            parts = parts[1:]
        padded = parts[:4] + [""] * (4 - len(parts[:4]))
        return cls(
            startdate=_unsubfield(padded[0]),
            admin_code=_unsubfield(padded[1]),
            technician=_unsubfield(padded[2]),
            equipment=_unsubfield(padded[3]),
            additional=" ".join(parts[4:]),
        )

    def to_field(self) -> str:
        fields = [
            "Startdate",
            _subfield(self.startdate),
            _subfield(self.admin_code),
            _subfield(self.technician),
            _subfield(self.equipment),
        ]
        if self.additional:
            fields.append(self.additional)
        return " ".join(fields)


# ============================================================================
# File Header
# ============================================================================


class FileHeader(BaseModel):
    """The 256-byte fixed header plus the list of signal headers."""

    version: str = Field(default=DEFAULT_VERSION, description="Format version")
    patient_id: str = Field(default="", description="Local patient identification")
    recording_id: str = Field(default="", description="Local recording identification")
    start_date: date = Field(description="Recording start date")
    start_time: time = Field(description="Recording start time")
    header_bytes: int | None = Field(
        default=None, description="Declared header length; derived when omitted"
    )
    reserved: str = Field(default="", description="Reserved / EDF+ type marker")
    record_count: RecordCount = Field(
        default_factory=RecordCount.pending, description="Number of data records"
    )
    record_duration: float = Field(ge=0, description="Record duration (seconds)")
    signals: list[SignalHeader] = Field(
        default_factory=list, description="Signal headers in on-disk order"
    )

    @model_validator(mode="after")
    def _derive_header_bytes(self) -> "FileHeader":
        if self.header_bytes is None:
            self.header_bytes = self.expected_header_bytes
        return self

    @property
    def num_signals(self) -> int:
        return len(self.signals)

    @property
    def expected_header_bytes(self) -> int:
        return FIXED_HEADER_BYTES + SIGNAL_HEADER_BYTES * self.num_signals

    @property
    def file_type(self) -> FileType:
        return FileType.from_reserved(self.reserved)

    @property
    def is_edf_plus(self) -> bool:
        return self.file_type.is_edf_plus

    @property
    def is_discontinuous(self) -> bool:
        return self.file_type is FileType.EDF_PLUS_D

    @property
    def start_datetime(self) -> datetime:
        return combine(self.start_date, self.start_time)

    @property
    def samples_per_record(self) -> list[int]:
        return [s.samples_per_record for s in self.signals]

    @property
    def record_size(self) -> int:
        """Bytes per data record."""
        return sum(s.record_bytes for s in self.signals)

    @property
    def annotation_indices(self) -> list[int]:
        return [i for i, s in enumerate(self.signals) if s.is_annotation]

    @property
    def patient(self) -> PatientInfo:
        return PatientInfo.from_field(self.patient_id)

    @property
    def recording(self) -> RecordingInfo:
        return RecordingInfo.from_field(self.recording_id)

    def record_offset(self, index: int) -> int:
        """Byte offset of data record ``index`` from the start of the file."""
        return (self.header_bytes or self.expected_header_bytes) + index * self.record_size

    def with_record_count(self, count: RecordCount) -> "FileHeader":
        return self.model_copy(update={"record_count": count})


# ============================================================================
# Annotations
# ============================================================================


class Annotation(BaseModel):
    """An EDF+ annotation (onset, optional duration, zero or more texts)."""

    onset: float = Field(description="Seconds from recording start")
    duration: float | None = Field(default=None, ge=0, description="Duration (seconds)")
    texts: list[str] = Field(default_factory=list, description="Annotation strings")

    @property
    def is_timekeeping(self) -> bool:
        """True for a TAL that only carries an onset."""
        return not self.texts

    def to_datetime(self, recording_start: datetime) -> datetime:
        """Convert onset time to absolute datetime."""
        return recording_start + timedelta(seconds=self.onset)


# ============================================================================
# Data Records
# ============================================================================


@dataclass(eq=False)
class DataRecord:
    """
    One data record: a digital sample array per signal, in declared order.

    Annotation channels hold their raw TAL bytes viewed as int16 values.
    """

    samples: list[np.ndarray] = field(default_factory=list)
    index: int | None = None

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, DataRecord):
            return NotImplemented
        return len(self.samples) == len(other.samples) and all(
            np.array_equal(a, b) for a, b in zip(self.samples, other.samples)
        )

    def annotation_payload(self, signal_index: int) -> bytes:
        """Raw bytes of an annotation channel."""
        return self.samples[signal_index].astype("<i2").tobytes()

    def physical(self, header: FileHeader) -> list[np.ndarray | None]:
        """Physical values per signal; None for annotation channels."""
        from edfplus.conversion import digital_to_physical

        return [
            None if signal.is_annotation else digital_to_physical(codes, signal)
            for codes, signal in zip(self.samples, header.signals)
        ]
