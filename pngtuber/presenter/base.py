"""
Base module for presenters.

A presenter is whatever draws the avatar: a browser overlay, a desktop
window, or just the log. The session only talks to this interface, so
the rendering side can be swapped without touching the audio pipeline.
"""

import logging
from abc import ABC, abstractmethod

from ..errors import ErrorKind

logger = logging.getLogger(__name__)


class BasePresenter(ABC):
    """
    Abstract base class for all presenters.

    Each method is called at most once per processed sample.

    Example:
        class MyPresenter(BasePresenter):
            def on_talk_state_changed(self, is_talking):
                mouth.set_open(is_talking)
            ...
    """

    @abstractmethod
    def on_talk_state_changed(self, is_talking: bool) -> None:
        """The mouth opened (True) or closed (False)."""
        pass

    @abstractmethod
    def on_volume_level(self, percent: float) -> None:
        """Smoothed volume (0-100) for a live level meter."""
        pass

    @abstractmethod
    def on_acquisition_error(self, kind: ErrorKind, message: str) -> None:
        """An unrecoverable acquisition error to show the user."""
        pass


class LoggingPresenter(BasePresenter):
    """Headless presenter: writes transitions and errors to the log."""

    def __init__(self, log_volume: bool = False):
        self.log_volume = log_volume

    def on_talk_state_changed(self, is_talking: bool) -> None:
        logger.info("🗣️ Talking" if is_talking else "🤐 Silent")

    def on_volume_level(self, percent: float) -> None:
        if self.log_volume:
            logger.debug(f"Volume: {percent:5.1f}%")

    def on_acquisition_error(self, kind: ErrorKind, message: str) -> None:
        logger.error(f"❌ {kind.value}: {message}")
