"""
Remote control-plane path.

Reads input volume from OBS over its WebSocket protocol (v5).
"""

from .client import RemoteLevelClient, ConnectionState
from .protocol import OpCode, authentication_string, multiplier_to_volume

__all__ = [
    "RemoteLevelClient",
    "ConnectionState",
    "OpCode",
    "authentication_string",
    "multiplier_to_volume",
]
