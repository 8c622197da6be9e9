"""
PNGTuber - audio-reactive avatar signal core.

Reads loudness from the microphone or from OBS, smooths it, and tells a
presenter when the avatar's mouth should open or close.

Usage:
    from pngtuber import AvatarSession, LoggingPresenter
    from pngtuber.utils import load_config, resolve_config

    config = resolve_config(load_config())
    session = AvatarSession(config, LoggingPresenter())
    await session.start(auto_capture=True)
"""

__version__ = "0.1.0"

from .errors import (
    AcquisitionError,
    ErrorKind,
    PermissionDenied,
    ProtocolMismatch,
    RemoteUnavailable,
    TotalAcquisitionFailure,
)
from .presenter import BasePresenter, LoggingPresenter
from .session import AvatarSession, SourceSelection, TalkStateMachine

__all__ = [
    "__version__",
    "AcquisitionError",
    "ErrorKind",
    "PermissionDenied",
    "ProtocolMismatch",
    "RemoteUnavailable",
    "TotalAcquisitionFailure",
    "BasePresenter",
    "LoggingPresenter",
    "AvatarSession",
    "SourceSelection",
    "TalkStateMachine",
]
