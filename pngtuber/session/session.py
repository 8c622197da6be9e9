"""
Avatar Session - One explicitly owned pipeline per overlay.

Wires the acquisition arbiter into the talk state machine and forwards
the results to a presenter:

    source -> AcquisitionArbiter -> TalkStateMachine -> presenter

Nothing here is global; create a session, start it, stop it.
"""

import logging
from typing import Callable, Optional

from ..audio.sampler import AmplitudeSampler
from ..errors import AcquisitionError
from ..presenter.base import BasePresenter, LoggingPresenter
from ..remote.client import RemoteLevelClient
from ..utils.config_loader import AvatarConfig, clamp_threshold
from .arbiter import AcquisitionArbiter, SourceFactory
from .sources import LocalSource, RemoteSource, SourceSelection
from .talk_state import TalkStateMachine

logger = logging.getLogger(__name__)


class AvatarSession:
    """
    Audio-reactive avatar session.

    Usage:
        session = AvatarSession(config, presenter)
        await session.start()              # automatic in OBS mode
        await session.enable_microphone()  # user-initiated otherwise
        session.set_threshold(40)
        await session.stop()
    """

    def __init__(
        self,
        config: Optional[AvatarConfig] = None,
        presenter: Optional[BasePresenter] = None,
        local_factory: Optional[SourceFactory] = None,
        remote_factory: Optional[SourceFactory] = None
    ):
        self.config = config or AvatarConfig()
        self.presenter = presenter or LoggingPresenter()
        self.talk_state = TalkStateMachine(clamp_threshold(self.config.threshold))
        self.arbiter = AcquisitionArbiter(
            on_sample=self._on_sample,
            on_error=self._on_error,
            local_factory=local_factory or self._create_local_source,
            remote_factory=remote_factory or self._create_remote_source,
            deadline=self.config.remote.handshake_timeout,
        )
        self.last_error: Optional[AcquisitionError] = None

    # ---------- Source factories ----------

    def _create_local_source(self) -> LocalSource:
        sampler = AmplitudeSampler(self.config.audio)
        return LocalSource(sampler, frame_rate=self.config.audio.frame_rate)

    def _create_remote_source(self) -> RemoteSource:
        client = RemoteLevelClient(
            port=self.config.remote_port,
            password=self.config.remote_password,
            input_name=self.config.remote_source_name,
            host=self.config.remote.host,
            poll_interval=self.config.remote.poll_interval,
            handshake_timeout=self.config.remote.handshake_timeout,
        )
        return RemoteSource(client)

    # ---------- Public API ----------

    @property
    def selection(self) -> SourceSelection:
        return self.arbiter.selection

    @property
    def is_talking(self) -> bool:
        return self.talk_state.is_talking

    @property
    def smoothed_volume(self) -> float:
        return self.talk_state.smoothed_volume

    @property
    def threshold(self) -> int:
        return self.talk_state.threshold

    async def start(self, auto_capture: bool = False):
        """
        Start the session.

        In OBS mode capture starts immediately, trying the control plane
        first. Otherwise the microphone is opened only when `auto_capture`
        is set; without it the session idles until enable_microphone().
        """
        if self.config.obs_mode:
            logger.info("🎬 OBS mode: starting capture automatically")
            self.arbiter.start(remote=True)
        elif auto_capture:
            self.arbiter.start(remote=False)
        else:
            logger.info("Waiting for the microphone to be enabled")

    async def enable_microphone(self) -> bool:
        """
        User-initiated start of local capture.

        Returns:
            True if capture was started, False if it was already running
        """
        if self.arbiter.started:
            return False
        self.arbiter.start(remote=False)
        return True

    def set_threshold(self, value: int) -> int:
        """Change the talk threshold at runtime. Returns the clamped value."""
        value = clamp_threshold(value)
        self.config.threshold = value
        self.talk_state.threshold = value
        logger.debug(f"Threshold set to {value}")
        return value

    async def stop(self):
        """Release the active source and leave the avatar idle."""
        await self.arbiter.stop()
        self._close_mouth()
        logger.info("Session stopped")

    # ---------- Pipeline callbacks ----------

    def _on_sample(self, volume: float):
        event = self.talk_state.update(volume)
        self._present(self.presenter.on_volume_level, self.talk_state.smoothed_volume)
        if event is not None:
            self._present(self.presenter.on_talk_state_changed, event.is_talking)

    def _on_error(self, error: AcquisitionError):
        self.last_error = error
        self._close_mouth()
        self._present(self.presenter.on_acquisition_error, error.kind, error.message)

    def _close_mouth(self):
        was_talking = self.talk_state.is_talking
        self.talk_state.reset()
        if was_talking:
            self._present(self.presenter.on_talk_state_changed, False)

    def _present(self, method: Callable, *args):
        try:
            method(*args)
        except Exception as e:
            logger.error(f"Presenter error in {getattr(method, '__name__', method)}: {e}")
