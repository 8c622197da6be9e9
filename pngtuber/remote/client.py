"""
Remote Level Client - Input volume from the OBS control plane.

Reads an existing OBS audio meter over the OBS WebSocket instead of
opening the microphone, so no OS permission prompt is needed.

Lifecycle (one attempt per instance, no reconnect):

    IDLE -> CONNECTING -> AUTHENTICATING -> POLLING -> CLOSED
                    \\            \\             \\-> FAILED
                     \\-> FAILED   \\-> FAILED

A FAILED run fires `on_unavailable` exactly once. Closing the client from
the owning side ends in CLOSED without any signal.
"""

import asyncio
import itertools
import logging
from enum import Enum
from typing import Callable, Optional

import websockets
from websockets.exceptions import WebSocketException

from ..errors import ProtocolMismatch, RemoteUnavailable
from . import protocol
from .protocol import OpCode

logger = logging.getLogger(__name__)

OBS_SUBPROTOCOL = "obswebsocket.json"


def _connect_obs(url: str):
    return websockets.connect(url, subprotocols=[OBS_SUBPROTOCOL])


class ConnectionState(Enum):
    """Remote connection state."""
    IDLE = "idle"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    POLLING = "polling"
    CLOSED = "closed"
    FAILED = "failed"


class RemoteLevelClient:
    """
    OBS WebSocket client polling GetInputVolume.

    Usage:
        client = RemoteLevelClient(port="4455", input_name="Mic/Aux")
        client.on_volume = lambda v: print(v)
        client.on_unavailable = lambda err: print(err)
        await client.run()   # returns when the connection ends
    """

    def __init__(
        self,
        port: str = "4455",
        password: str = "",
        input_name: str = "Mic/Aux",
        host: str = "127.0.0.1",
        poll_interval: float = 0.016,
        handshake_timeout: float = 3.0,
        connector: Optional[Callable] = None
    ):
        self.host = host
        self.port = str(port)
        self.password = password
        self.input_name = input_name
        self.poll_interval = poll_interval
        self.handshake_timeout = handshake_timeout
        self._connect = connector or _connect_obs

        self._state = ConnectionState.IDLE
        self._closing = False
        self._signalled = False
        self._warned_request_failure = False
        self._request_ids = itertools.count(1)
        self._ws = None

        # Callbacks
        self.on_polling: Optional[Callable[[], None]] = None
        self.on_volume: Optional[Callable[[float], None]] = None
        self.on_unavailable: Optional[Callable[[RemoteUnavailable], None]] = None

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}"

    @property
    def state(self) -> ConnectionState:
        return self._state

    def _set_state(self, new_state: ConnectionState):
        if self._state != new_state:
            logger.debug(f"Remote state: {self._state.value} → {new_state.value}")
            self._state = new_state

    async def run(self):
        """
        Connect, identify, then poll until the connection ends.

        Raises:
            RuntimeError: If this client has already been run
        """
        if self._state != ConnectionState.IDLE:
            raise RuntimeError("RemoteLevelClient is single-use; create a new instance")

        self._set_state(ConnectionState.CONNECTING)
        logger.info(f"Connecting to OBS at {self.url}...")

        try:
            async with self._connect(self.url) as ws:
                self._ws = ws
                self._set_state(ConnectionState.AUTHENTICATING)

                await asyncio.wait_for(self._handshake(ws), timeout=self.handshake_timeout)

                self._set_state(ConnectionState.POLLING)
                logger.info(f"✅ OBS identified, polling '{self.input_name}'")
                self._notify(self.on_polling)

                poller = asyncio.create_task(self._poll_loop(ws))
                try:
                    async for raw in ws:
                        self._handle_message(raw)
                finally:
                    poller.cancel()
                    await asyncio.gather(poller, return_exceptions=True)

            if not self._closing:
                self._fail("Connection closed by OBS")

        except asyncio.CancelledError:
            self._set_state(ConnectionState.CLOSED)
            raise
        except asyncio.TimeoutError:
            self._fail(f"No 'identified' response within {self.handshake_timeout:g}s")
        except (OSError, WebSocketException) as e:
            self._fail(f"Transport error: {e}")
        except Exception as e:
            logger.error(f"Unexpected error in OBS client: {e}")
            self._fail(f"Unexpected error: {e}")
        finally:
            self._ws = None
            if self._state not in (ConnectionState.FAILED, ConnectionState.CLOSED):
                self._set_state(ConnectionState.CLOSED)

    async def close(self):
        """Close the connection from our side. No unavailable signal is sent."""
        self._closing = True
        ws = self._ws
        if ws is not None:
            try:
                await ws.close()
            except (OSError, WebSocketException) as e:
                logger.debug(f"Error while closing OBS connection: {e}")
        if self._state != ConnectionState.FAILED:
            self._set_state(ConnectionState.CLOSED)

    async def _handshake(self, ws):
        """Answer Hello with Identify and wait for Identified."""
        identify_sent = False
        while True:
            raw = await ws.recv()
            try:
                message = protocol.decode(raw)
            except ProtocolMismatch as e:
                logger.debug(f"Ignoring frame during handshake: {e}")
                continue

            if message.op == OpCode.HELLO and not identify_sent:
                logger.debug(f"Hello from obs-websocket {message.d.get('obsWebSocketVersion', '?')}")
                await ws.send(protocol.identify(message.d, self.password))
                identify_sent = True
            elif message.op == OpCode.IDENTIFIED:
                return message.d
            else:
                logger.debug(f"Ignoring op={message.op} during handshake")

    async def _poll_loop(self, ws):
        while True:
            request_id = f"volume-{next(self._request_ids)}"
            await ws.send(protocol.volume_request(request_id, self.input_name))
            await asyncio.sleep(self.poll_interval)

    def _handle_message(self, raw):
        try:
            message = protocol.decode(raw)
        except ProtocolMismatch as e:
            logger.debug(f"Ignoring frame: {e}")
            return

        try:
            multiplier = protocol.volume_multiplier(message)
        except ProtocolMismatch as e:
            if not self._warned_request_failure:
                logger.warning(f"⚠️ {e} (check the source name '{self.input_name}')")
                self._warned_request_failure = True
            else:
                logger.debug(f"Ignoring volume response: {e}")
            return

        if multiplier is None:
            return

        volume = protocol.multiplier_to_volume(multiplier)
        self._notify(self.on_volume, volume)

    def _fail(self, reason: str):
        if self._closing:
            self._set_state(ConnectionState.CLOSED)
            return
        self._set_state(ConnectionState.FAILED)
        if self._signalled:
            return
        self._signalled = True
        logger.warning(f"OBS control plane unavailable: {reason}")
        self._notify(self.on_unavailable, RemoteUnavailable(reason))

    def _notify(self, callback: Optional[Callable], *args):
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Remote callback error: {e}")
