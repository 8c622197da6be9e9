"""
Acquisition Arbiter - Picks the one source that feeds the session.

    UNDETERMINED --ready--------------> REMOTE
         |                                 |
         +--deadline / failure--> LOCAL <--+--failure

Remote is tried first when requested; the microphone is the fallback.
Switching is one-way: once local, the session never goes back to remote.
Every source start bumps a generation token and every callback carries
the generation it was created for, so late callbacks from an abandoned
source are dropped. An abandoned remote source is fully stopped before
the microphone is opened.
"""

import asyncio
import logging
from typing import Callable, Optional

from ..errors import AcquisitionError, RemoteUnavailable, TotalAcquisitionFailure
from .sources import BaseSource, SourceSelection

logger = logging.getLogger(__name__)

SourceFactory = Callable[[], BaseSource]


class AcquisitionArbiter:
    """
    Owns the active volume source and the remote deadline timer.

    Usage:
        arbiter = AcquisitionArbiter(on_sample, on_error, local_factory, remote_factory)
        arbiter.start(remote=True)   # inside a running event loop
        ...
        await arbiter.stop()
    """

    def __init__(
        self,
        on_sample: Callable[[float], None],
        on_error: Optional[Callable[[AcquisitionError], None]] = None,
        local_factory: Optional[SourceFactory] = None,
        remote_factory: Optional[SourceFactory] = None,
        deadline: float = 3.0
    ):
        if local_factory is None:
            raise ValueError("A local source factory is required")

        self._emit_sample = on_sample
        self._emit_error = on_error
        self._local_factory = local_factory
        self._remote_factory = remote_factory
        self.deadline = deadline

        self._selection = SourceSelection.UNDETERMINED
        self._active: Optional[BaseSource] = None
        self._generation = 0
        self._deadline_handle: Optional[asyncio.TimerHandle] = None
        self._teardown: Optional[asyncio.Task] = None
        self._started = False

        self.fallback_count = 0
        self.failure: Optional[AcquisitionError] = None

    @property
    def selection(self) -> SourceSelection:
        return self._selection

    @property
    def active_source(self) -> Optional[BaseSource]:
        return self._active

    @property
    def started(self) -> bool:
        return self._started

    @property
    def deadline_armed(self) -> bool:
        return self._deadline_handle is not None

    def start(self, remote: bool = False):
        """
        Begin acquisition. Must be called from inside the event loop.

        Args:
            remote: Try the OBS control plane first
        """
        if self._started:
            raise RuntimeError("AcquisitionArbiter already started")
        self._started = True

        if remote and self._remote_factory is not None:
            self._start_remote()
        else:
            if remote:
                logger.warning("Remote mode requested but no remote source configured")
            self._start_local(after_remote=None)

    async def stop(self):
        """Tear down whatever is running. Safe to call more than once."""
        self._cancel_deadline()
        self._next_generation()

        source, self._active = self._active, None
        if source is not None:
            await source.stop()

        teardown, self._teardown = self._teardown, None
        if teardown is not None:
            await asyncio.gather(teardown, return_exceptions=True)

    # ---------- Remote ----------

    def _start_remote(self):
        source = self._remote_factory()
        generation = self._next_generation()
        self._active = source

        loop = asyncio.get_running_loop()
        self._deadline_handle = loop.call_later(self.deadline, self._on_deadline, generation)

        logger.info("📡 Trying OBS control plane...")
        source.start(
            on_sample=lambda value: self._on_sample(generation, SourceSelection.REMOTE, value),
            on_ready=lambda: self._on_remote_ready(generation),
            on_failure=lambda error: self._on_remote_failure(generation, error),
        )

    def _on_remote_ready(self, generation: int):
        if generation != self._generation or self._selection != SourceSelection.UNDETERMINED:
            return
        self._cancel_deadline()
        self._selection = SourceSelection.REMOTE
        logger.info("📡 Using OBS input volume")

    def _on_deadline(self, generation: int):
        # The timer has fired, so it must never be cancelled afterwards
        self._deadline_handle = None
        if generation != self._generation or self._selection != SourceSelection.UNDETERMINED:
            return
        self._fall_back(RemoteUnavailable(f"No OBS connection within {self.deadline:g}s"))

    def _on_remote_failure(self, generation: int, error: AcquisitionError):
        if generation != self._generation:
            return
        if self._selection in (SourceSelection.UNDETERMINED, SourceSelection.REMOTE):
            self._fall_back(error)

    def _fall_back(self, reason: AcquisitionError):
        if self.fallback_count:
            return
        self.fallback_count += 1
        logger.warning(f"⚠️ Falling back to local microphone: {reason}")

        self._cancel_deadline()
        old, self._active = self._active, None
        generation = self._next_generation()
        self._teardown = asyncio.get_running_loop().create_task(
            self._replace_with_local(old, generation, reason), name="RemoteFallback"
        )

    async def _replace_with_local(
        self,
        old: Optional[BaseSource],
        generation: int,
        reason: AcquisitionError
    ):
        if old is not None:
            await old.stop()
        # stop() was called while the remote source was shutting down
        if generation != self._generation:
            return
        self._start_local(after_remote=reason)

    # ---------- Local ----------

    def _start_local(self, after_remote: Optional[AcquisitionError]):
        source = self._local_factory()
        generation = self._next_generation()
        self._selection = SourceSelection.LOCAL
        self._active = source

        source.start(
            on_sample=lambda value: self._on_sample(generation, SourceSelection.LOCAL, value),
            on_ready=lambda: logger.info("🎤 Using local microphone"),
            on_failure=lambda error: self._on_local_failure(generation, error, after_remote),
        )

    def _on_local_failure(
        self,
        generation: int,
        error: AcquisitionError,
        after_remote: Optional[AcquisitionError]
    ):
        if generation != self._generation:
            return
        self._active = None

        if after_remote is not None:
            error = TotalAcquisitionFailure(
                f"OBS unavailable ({after_remote}) and microphone failed ({error})"
            )
        self.failure = error
        logger.error(f"❌ Audio acquisition failed: {error}")

        if self._emit_error:
            try:
                self._emit_error(error)
            except Exception as e:
                logger.error(f"Error callback failed: {e}")

    # ---------- Helpers ----------

    def _on_sample(self, generation: int, kind: SourceSelection, value: float):
        if generation != self._generation or self._selection != kind:
            return
        self._emit_sample(value)

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _cancel_deadline(self):
        handle, self._deadline_handle = self._deadline_handle, None
        if handle is not None:
            handle.cancel()
