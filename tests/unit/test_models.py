"""Tests for the EDF/EDF+ data model."""

from datetime import date, datetime, time

import numpy as np
import pytest

from pydantic import ValidationError

from edfplus.exceptions import MalformedFieldError
from edfplus.models import (
    Annotation,
    DataRecord,
    FileHeader,
    FileType,
    PatientInfo,
    RecordCount,
    RecordCountState,
    RecordingInfo,
    SignalHeader,
    check_signal_ranges,
)
from tests.helpers.builders import make_header, make_signal


class TestFileType:
    """Tests for reserved-field file type detection."""

    @pytest.mark.parametrize(
        "reserved,expected",
        [
            ("", FileType.EDF),
            ("EDF+C", FileType.EDF_PLUS_C),
            ("EDF+D", FileType.EDF_PLUS_D),
            ("EDF+C extra text", FileType.EDF_PLUS_C),
            ("EDF+", FileType.EDF),
        ],
    )
    def test_from_reserved(self, reserved, expected):
        assert FileType.from_reserved(reserved) is expected

    def test_is_edf_plus(self):
        assert not FileType.EDF.is_edf_plus
        assert FileType.EDF_PLUS_D.is_edf_plus


class TestRecordCount:
    """Tests for the record count tri-state."""

    def test_from_field(self):
        assert RecordCount.from_field(-1) == RecordCount.unknown()
        assert RecordCount.from_field(12) == RecordCount.known(12)

    def test_to_field(self):
        assert RecordCount.known(3).to_field() == 3
        assert RecordCount.unknown().to_field() == -1
        assert RecordCount.pending().to_field() == -1

    def test_value_required_only_when_known(self):
        with pytest.raises(ValidationError):
            RecordCount(state=RecordCountState.KNOWN)
        with pytest.raises(ValidationError):
            RecordCount(state=RecordCountState.PENDING, value=3)

    def test_negative_known_count_rejected(self):
        with pytest.raises(ValidationError):
            RecordCount.known(-2)


class TestSignalHeader:
    """Tests for signal headers and their invariants."""

    def test_annotation_channel(self):
        signal = SignalHeader.annotation_channel(30)

        assert signal.is_annotation
        assert signal.record_bytes == 60

    def test_sample_rate(self):
        signal = make_signal(samples_per_record=256)

        assert signal.sample_rate(2.0) == 128.0
        assert signal.sample_rate(0.0) == 0.0

    def test_hashable_and_frozen(self):
        signal = make_signal()

        assert hash(signal) == hash(make_signal())
        with pytest.raises(ValidationError):
            signal.label = "other"

    def test_negative_samples_rejected(self):
        with pytest.raises(ValidationError):
            make_signal(samples_per_record=-1)

    @pytest.mark.parametrize(
        "pmin,pmax,dmin,dmax",
        [
            (-1.0, 1.0, 10, 10),
            (-1.0, 1.0, 10, -10),
            (5.0, 5.0, -10, 10),
            (-1.0, 1.0, -40000, 10),
        ],
    )
    def test_check_signal_ranges_rejects(self, pmin, pmax, dmin, dmax):
        with pytest.raises(MalformedFieldError) as exc_info:
            check_signal_ranges("ECG", pmin, pmax, dmin, dmax, signal_index=3)

        assert exc_info.value.signal_index == 3

    def test_check_signal_ranges_skips_annotations(self):
        check_signal_ranges("EDF Annotations", 1.0, 1.0, 0, 0)

    def test_inverted_physical_range_allowed(self):
        check_signal_ranges("ECG", 10.0, -10.0, -100, 100)


class TestIdentificationSubfields:
    """Tests for EDF+ patient and recording sub-fields."""

    def test_patient_from_field(self):
        patient = PatientInfo.from_field("MCH-0234567 F 02-MAY-1951 Haagse_Harry extra notes")

        assert patient.code == "MCH-0234567"
        assert patient.sex == "F"
        assert patient.birthdate == "02-MAY-1951"
        assert patient.name == "Haagse Harry"
        assert patient.additional == "extra notes"

    def test_patient_unknown_parts(self):
        patient = PatientInfo.from_field("X X X X")

        assert patient == PatientInfo()
        assert patient.to_field() == "X X X X"

    def test_patient_to_field_replaces_spaces(self):
        assert PatientInfo(code="P1", name="Jane Doe").to_field() == "P1 X X Jane_Doe"

    def test_recording_round_trip(self):
        text = "Startdate 02-MAR-2002 PSG-1234/2002 NN Telemetry03"
        recording = RecordingInfo.from_field(text)

        assert recording.startdate == "02-MAR-2002"
        assert recording.admin_code == "PSG-1234/2002"
        assert recording.technician == "NN"
        assert recording.equipment == "Telemetry03"
        assert recording.to_field() == text


class TestFileHeader:
    """Tests for derived FileHeader properties."""

    def test_header_bytes_derived(self):
        header = make_header([make_signal(), make_signal(label="EOG")])

        assert header.header_bytes == 768
        assert header.expected_header_bytes == 768

    def test_layout_properties(self):
        header = make_header(
            [make_signal(samples_per_record=4), SignalHeader.annotation_channel(12)],
            reserved="EDF+C",
        )

        assert header.record_size == 32
        assert header.samples_per_record == [4, 12]
        assert header.annotation_indices == [1]
        assert header.is_edf_plus
        assert not header.is_discontinuous
        assert header.record_offset(2) == 768 + 64

    def test_start_datetime(self):
        header = FileHeader(
            start_date=date(2024, 1, 15), start_time=time(22, 30), record_duration=1.0
        )

        assert header.start_datetime == datetime(2024, 1, 15, 22, 30)
        assert header.record_count.state == RecordCountState.PENDING

    def test_with_record_count(self):
        header = make_header()
        updated = header.with_record_count(RecordCount.known(9))

        assert updated.record_count.value == 9
        assert header.record_count.value == 0


class TestAnnotationAndRecord:
    """Tests for Annotation and DataRecord helpers."""

    def test_annotation_timekeeping(self):
        assert Annotation(onset=0.0).is_timekeeping
        assert not Annotation(onset=0.0, texts=["Lights off"]).is_timekeeping

    def test_annotation_negative_duration_rejected(self):
        with pytest.raises(ValidationError):
            Annotation(onset=0.0, duration=-1.0)

    def test_annotation_to_datetime(self):
        start = datetime(2024, 1, 15, 22, 30)

        assert Annotation(onset=90.5).to_datetime(start) == datetime(2024, 1, 15, 22, 31, 30, 500000)

    def test_record_equality_compares_arrays(self):
        a = DataRecord([np.array([1, 2], dtype=np.int16)], index=0)
        b = DataRecord([np.array([1, 2], dtype=np.int16)], index=5)
        c = DataRecord([np.array([1, 3], dtype=np.int16)])

        assert a == b
        assert a != c

    def test_annotation_payload(self):
        payload = b"+0\x14\x14\x00\x00"
        record = DataRecord([np.frombuffer(payload, dtype="<i2").copy()])

        assert record.annotation_payload(0) == payload

    def test_physical_skips_annotation_channels(self):
        header = make_header(
            [make_signal(samples_per_record=2), SignalHeader.annotation_channel(1)]
        )
        record = DataRecord(
            [np.array([-2048, 2047], dtype=np.int16), np.zeros(1, dtype=np.int16)]
        )

        physical = record.physical(header)

        np.testing.assert_allclose(physical[0], [-200.0, 200.0])
        assert physical[1] is None
