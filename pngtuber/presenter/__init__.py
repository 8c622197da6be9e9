"""
Presenters receive talk-state, volume and error events from the session.
"""

from .base import BasePresenter, LoggingPresenter

__all__ = ["BasePresenter", "LoggingPresenter"]
