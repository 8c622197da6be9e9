"""Shared fakes for the pngtuber tests."""

import asyncio
import json

import numpy as np
import pytest

from pngtuber.errors import AcquisitionError, ErrorKind
from pngtuber.presenter.base import BasePresenter
from pngtuber.session.sources import BaseSource, SourceSelection


# ── Remote control plane ────────────────────────────────────────────────


class FakeConnection:
    """In-memory stand-in for a websocket connection."""

    def __init__(self):
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent: list[dict] = []
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.closed = True
        return False

    # Feeding frames from the "server"

    def feed(self, op: int, d: dict):
        self.incoming.put_nowait(json.dumps({"op": op, "d": d}))

    def feed_raw(self, raw: str):
        self.incoming.put_nowait(raw)

    def fail(self, exc: BaseException = None):
        self.incoming.put_nowait(exc or OSError("connection reset"))

    def end(self):
        self.incoming.put_nowait(None)

    # Connection API used by the client

    async def send(self, message: str):
        if self.closed:
            raise OSError("send on closed connection")
        self.sent.append(json.loads(message))

    async def recv(self):
        item = await self.incoming.get()
        if item is None:
            raise OSError("connection closed")
        if isinstance(item, BaseException):
            raise item
        return item

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self.incoming.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self):
        self.closed = True
        self.incoming.put_nowait(None)

    def sent_ops(self) -> list[int]:
        return [m["op"] for m in self.sent]


class FakeConnector:
    """Callable passed as `connector=`; records URLs and hands out one connection."""

    def __init__(self, connection: FakeConnection = None, error: BaseException = None):
        self.connection = connection
        self.error = error
        self.urls: list[str] = []

    def __call__(self, url: str):
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return self.connection


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def connector(connection):
    return FakeConnector(connection)


async def wait_until(predicate, timeout: float = 1.0):
    """Yield to the loop until predicate() is true."""
    loop = asyncio.get_running_loop()
    end = loop.time() + timeout
    while not predicate():
        if loop.time() > end:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


# ── Local capture ───────────────────────────────────────────────────────


class FakeInputStream:
    """Stands in for sounddevice.InputStream."""

    instances: list["FakeInputStream"] = []

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.callback = kwargs["callback"]
        self.started = False
        self.closed = False
        FakeInputStream.instances.append(self)

    def start(self):
        self.started = True

    def stop(self):
        self.started = False

    def close(self):
        self.closed = True

    def feed(self, samples):
        block = np.asarray(samples, dtype=np.float32).reshape(-1, 1)
        self.callback(block, len(block), None, None)


def denied_stream(**kwargs):
    raise OSError("Error querying device -1")


# ── Sources and presenters ──────────────────────────────────────────────


class FakeSource(BaseSource):
    """Source driven by the test; tracks how many sources are live at once."""

    live = 0
    max_live = 0

    def __init__(self, kind: SourceSelection, fail_on_start: AcquisitionError = None):
        self.kind = kind
        self.fail_on_start = fail_on_start
        self.started = False
        self.stopped = False
        self.on_sample = None
        self.on_ready = None
        self.on_failure = None

    def start(self, on_sample, on_ready, on_failure):
        self.on_sample = on_sample
        self.on_ready = on_ready
        self.on_failure = on_failure
        if self.fail_on_start is not None:
            on_failure(self.fail_on_start)
            return
        self.started = True
        FakeSource.live += 1
        FakeSource.max_live = max(FakeSource.max_live, FakeSource.live)
        if self.kind == SourceSelection.LOCAL:
            on_ready()

    async def stop(self):
        if self.started and not self.stopped:
            FakeSource.live -= 1
        self.stopped = True

    # Helpers to push events from the test

    def emit(self, value: float):
        self.on_sample(value)

    def ready(self):
        self.on_ready()

    def fail(self, error: AcquisitionError):
        self.on_failure(error)


class SourceFactory:
    """Factory recording every source it creates."""

    def __init__(self, kind: SourceSelection, fail_on_start: AcquisitionError = None):
        self.kind = kind
        self.fail_on_start = fail_on_start
        self.created: list[FakeSource] = []

    def __call__(self) -> FakeSource:
        source = FakeSource(self.kind, self.fail_on_start)
        self.created.append(source)
        return source

    @property
    def last(self) -> FakeSource:
        return self.created[-1]


@pytest.fixture(autouse=True)
def reset_fake_counters():
    FakeSource.live = 0
    FakeSource.max_live = 0
    FakeInputStream.instances = []
    yield


class RecordingPresenter(BasePresenter):
    """Presenter that remembers every call."""

    def __init__(self):
        self.talk_states: list[bool] = []
        self.volumes: list[float] = []
        self.errors: list[tuple[ErrorKind, str]] = []

    def on_talk_state_changed(self, is_talking: bool) -> None:
        self.talk_states.append(is_talking)

    def on_volume_level(self, percent: float) -> None:
        self.volumes.append(percent)

    def on_acquisition_error(self, kind: ErrorKind, message: str) -> None:
        self.errors.append((kind, message))


@pytest.fixture
def presenter():
    return RecordingPresenter()
