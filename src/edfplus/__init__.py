"""
edfplus: EDF/EDF+ reading and writing

Header model, digital/physical conversion, data record and TAL codecs, and
stream-based reader/writer state machines.
"""

from edfplus.exceptions import EDFError
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
from edfplus.reader import EDFReader, HandleState, open_for_read
from edfplus.writer import EDFWriter, new_header, open_for_write

__all__ = [
    "Annotation",
    "DataRecord",
    "EDFError",
    "EDFReader",
    "EDFWriter",
    "FileHeader",
    "FileType",
    "HandleState",
    "PatientInfo",
    "RecordCount",
    "RecordingInfo",
    "SignalHeader",
    "new_header",
    "open_for_read",
    "open_for_write",
]
