"""
Session package.

Provides the acquisition arbiter, the volume sources it switches
between, the talk state machine and the AvatarSession that ties them
together.
"""

from .talk_state import TalkStateMachine, TransitionEvent
from .sources import BaseSource, LocalSource, RemoteSource, SourceSelection
from .arbiter import AcquisitionArbiter
from .session import AvatarSession

__all__ = [
    'TalkStateMachine',
    'TransitionEvent',
    'BaseSource',
    'LocalSource',
    'RemoteSource',
    'SourceSelection',
    'AcquisitionArbiter',
    'AvatarSession',
]
