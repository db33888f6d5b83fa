"""Exception hierarchy for EDF/EDF+ encoding and decoding."""


class EDFError(Exception):
    """
    Base class for all edfplus errors.

    Args:
        message: Human-readable description
        offset: Byte offset in the buffer or file where the problem was found
        signal_index: Index of the signal involved, if any
    """

    def __init__(
        self,
        message: str,
        *,
        offset: int | None = None,
        signal_index: int | None = None,
    ):
        self.offset = offset
        self.signal_index = signal_index

        context = []
        if signal_index is not None:
            context.append(f"signal {signal_index}")
        if offset is not None:
            context.append(f"byte {offset}")
        if context:
            message = f"{message} ({', '.join(context)})"

        super().__init__(message)


# ============================================================================
# Header
# ============================================================================


class HeaderError(EDFError):
    """Error parsing or serializing the file header."""

    pass


class HeaderTruncatedError(HeaderError):
    """Input ends before the declared or minimum header length."""

    pass


class InvalidSignalCountError(HeaderError):
    """Signal count is unparseable or disagrees with the header length."""

    pass


class MalformedFieldError(HeaderError):
    """A header field violates its character set, width or invariants."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        offset: int | None = None,
        signal_index: int | None = None,
    ):
        self.field = field
        if field is not None:
            message = f"{field}: {message}"
        super().__init__(message, offset=offset, signal_index=signal_index)


class InconsistentLengthError(HeaderError):
    """Declared header length does not match the signal list."""

    pass


# ============================================================================
# Conversion
# ============================================================================


class ConversionError(EDFError):
    """Error converting between digital and physical values."""

    pass


class DegenerateRangeError(ConversionError):
    """Digital or physical range is empty, so the mapping is undefined."""

    pass


# ============================================================================
# Data Records
# ============================================================================


class RecordError(EDFError):
    """Error encoding or decoding a data record."""

    pass


class RecordTruncatedError(RecordError):
    """Record buffer or stream ends before the record boundary."""

    pass


class SignalCountMismatchError(RecordError):
    """Supplied samples do not match the header's samples per record."""

    pass


# ============================================================================
# Annotations
# ============================================================================


class AnnotationError(EDFError):
    """Error encoding or decoding Time-stamped Annotation Lists."""

    pass


class MissingOnsetError(AnnotationError):
    """A TAL does not begin with a '+' or '-' onset sign."""

    pass


class UnterminatedRecordError(AnnotationError):
    """A TAL has no null terminator before the payload boundary."""

    pass


class MalformedTalError(AnnotationError):
    """A TAL onset or duration is not a valid decimal number."""

    pass


class AnnotationOverflowError(AnnotationError):
    """Encoded annotations do not fit in the annotation channel."""

    pass


# ============================================================================
# Reader / Writer
# ============================================================================


class OrchestratorError(EDFError):
    """Error in the reader or writer state machine."""

    pass


class WrongStateError(OrchestratorError):
    """Operation is not valid in the handle's current state."""

    pass


class CountUnknownOnFinalizeError(OrchestratorError):
    """Record count cannot be written back because the stream is not seekable."""

    pass


class StreamFailureError(OrchestratorError):
    """The underlying stream raised an I/O error."""

    pass
