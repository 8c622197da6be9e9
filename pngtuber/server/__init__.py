"""
Overlay server.

FastAPI app streaming avatar events to browser overlays over WebSocket.
"""

from .app import create_app
from .websocket import OverlayBroadcaster

__all__ = ["create_app", "OverlayBroadcaster"]
