"""
Volume sources.

The arbiter drives exactly one of these at a time:

- LocalSource: microphone sampler read on a ~60Hz frame loop
- RemoteSource: OBS control-plane client

Both report through the same three callbacks so the arbiter never
branches on the source type.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional

from ..audio.sampler import AmplitudeSampler
from ..errors import AcquisitionError
from ..remote.client import RemoteLevelClient

logger = logging.getLogger(__name__)

SampleCallback = Callable[[float], None]
ReadyCallback = Callable[[], None]
FailureCallback = Callable[[AcquisitionError], None]


class SourceSelection(Enum):
    """Which source feeds the session."""
    UNDETERMINED = "undetermined"
    REMOTE = "remote"
    LOCAL = "local"


class BaseSource(ABC):
    """
    Abstract volume source.

    Implementations must call `on_sample` for every volume (0-100),
    `on_ready` once when samples start flowing and `on_failure` at most
    once if the source dies.
    """

    kind: SourceSelection = SourceSelection.UNDETERMINED

    @abstractmethod
    def start(
        self,
        on_sample: SampleCallback,
        on_ready: ReadyCallback,
        on_failure: FailureCallback
    ) -> None:
        """Start producing samples. Requires a running event loop."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop producing samples and release the underlying resource."""
        pass


class LocalSource(BaseSource):
    """Microphone source: samples the analyser once per frame."""

    kind = SourceSelection.LOCAL

    def __init__(self, sampler: AmplitudeSampler, frame_rate: float = 60.0):
        self.sampler = sampler
        self.frame_interval = 1.0 / frame_rate
        self._task: Optional[asyncio.Task] = None

    def start(self, on_sample, on_ready, on_failure):
        try:
            self.sampler.open()
        except AcquisitionError as e:
            on_failure(e)
            return

        on_ready()
        self._task = asyncio.get_running_loop().create_task(
            self._frame_loop(on_sample), name="LocalSourceFrames"
        )

    async def _frame_loop(self, on_sample: SampleCallback):
        while True:
            on_sample(float(self.sampler.sample()))
            await asyncio.sleep(self.frame_interval)

    async def stop(self):
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self.sampler.close()
        logger.debug("Local source stopped")


class RemoteSource(BaseSource):
    """OBS source: runs the control-plane client once."""

    kind = SourceSelection.REMOTE

    def __init__(self, client: RemoteLevelClient):
        self.client = client
        self._task: Optional[asyncio.Task] = None

    def start(self, on_sample, on_ready, on_failure):
        self.client.on_volume = on_sample
        self.client.on_polling = on_ready
        self.client.on_unavailable = on_failure
        self._task = asyncio.get_running_loop().create_task(
            self.client.run(), name="RemoteSourceClient"
        )

    async def stop(self):
        # Drop callbacks first so nothing more leaves this source
        self.client.on_volume = None
        self.client.on_polling = None
        self.client.on_unavailable = None

        await self.client.close()

        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        logger.debug("Remote source stopped")
