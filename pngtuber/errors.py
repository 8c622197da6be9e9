"""
Acquisition errors.

Every failure the signal pipeline can produce is an AcquisitionError
carrying an ErrorKind, so presenters can show one consistent message
regardless of which source failed.
"""

from enum import Enum


class ErrorKind(Enum):
    """Kinds of acquisition failure."""
    PERMISSION_DENIED = "permission_denied"
    REMOTE_UNAVAILABLE = "remote_unavailable"
    PROTOCOL_MISMATCH = "protocol_mismatch"
    TOTAL_FAILURE = "total_acquisition_failure"


class AcquisitionError(Exception):
    """Base class for audio acquisition errors."""

    kind: ErrorKind = ErrorKind.TOTAL_FAILURE

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message or self.kind.value


class PermissionDenied(AcquisitionError):
    """Local microphone capture was refused or is unobtainable."""
    kind = ErrorKind.PERMISSION_DENIED


class RemoteUnavailable(AcquisitionError):
    """The control-plane connection failed or never finished its handshake."""
    kind = ErrorKind.REMOTE_UNAVAILABLE


class ProtocolMismatch(AcquisitionError):
    """A control-plane frame had an unexpected opcode or shape."""
    kind = ErrorKind.PROTOCOL_MISMATCH


class TotalAcquisitionFailure(AcquisitionError):
    """Both the remote and the local source failed for this session."""
    kind = ErrorKind.TOTAL_FAILURE
