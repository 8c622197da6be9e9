"""
OBS WebSocket (v5) message helpers.

Only the handful of opcodes the volume client needs are modelled:

    0 Hello       server -> client
    1 Identify    client -> server
    2 Identified  server -> client
    6 Request     client -> server
    7 Response    server -> client

Every frame is a JSON object {"op": int, "d": object}.
"""

import base64
import hashlib
import json
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Union

from ..errors import ProtocolMismatch

RPC_VERSION = 1
GET_INPUT_VOLUME = "GetInputVolume"


class OpCode(IntEnum):
    HELLO = 0
    IDENTIFY = 1
    IDENTIFIED = 2
    REQUEST = 6
    REQUEST_RESPONSE = 7


@dataclass
class Message:
    """A decoded protocol frame."""
    op: int
    d: dict


def decode(raw: Union[str, bytes]) -> Message:
    """
    Parse a raw frame.

    Raises:
        ProtocolMismatch: If the frame is not {"op": int, "d": object}
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ProtocolMismatch(f"Invalid JSON frame: {e}") from e

    if not isinstance(data, dict):
        raise ProtocolMismatch("Frame is not an object")

    op = data.get("op")
    d = data.get("d", {})
    if not isinstance(op, int) or isinstance(op, bool) or not isinstance(d, dict):
        raise ProtocolMismatch(f"Malformed frame: {str(data)[:80]}")

    return Message(op=op, d=d)


def encode(op: OpCode, d: dict) -> str:
    return json.dumps({"op": int(op), "d": d})


def authentication_string(password: str, salt: str, challenge: str) -> str:
    """
    Derive the Identify authentication string from the password.

    base64(sha256(base64(sha256(password + salt)) + challenge))
    """
    secret = base64.b64encode(
        hashlib.sha256((password + salt).encode("utf-8")).digest()
    ).decode("utf-8")
    return base64.b64encode(
        hashlib.sha256((secret + challenge).encode("utf-8")).digest()
    ).decode("utf-8")


def identify(hello: dict, password: str = "") -> str:
    """
    Build the Identify frame answering a Hello payload.

    When the server sends a challenge, the password is hashed with it.
    A password with no challenge is passed through verbatim.
    """
    d = {"rpcVersion": RPC_VERSION, "eventSubscriptions": 0}

    if password:
        auth = hello.get("authentication")
        if isinstance(auth, dict) and "challenge" in auth and "salt" in auth:
            d["authentication"] = authentication_string(
                password, str(auth["salt"]), str(auth["challenge"])
            )
        else:
            d["authentication"] = password

    return encode(OpCode.IDENTIFY, d)


def volume_request(request_id: str, input_name: str) -> str:
    """Build a GetInputVolume request frame."""
    return encode(OpCode.REQUEST, {
        "requestType": GET_INPUT_VOLUME,
        "requestId": request_id,
        "requestData": {"inputName": input_name},
    })


def volume_multiplier(message: Message) -> Optional[float]:
    """
    Extract inputVolumeMul from a GetInputVolume response.

    Returns None for anything else (other opcodes, other request types).

    Raises:
        ProtocolMismatch: If it is a volume response that failed or has no volume
    """
    if message.op != OpCode.REQUEST_RESPONSE:
        return None
    if message.d.get("requestType") != GET_INPUT_VOLUME:
        return None

    status = message.d.get("requestStatus")
    if isinstance(status, dict) and not status.get("result", False):
        raise ProtocolMismatch(
            f"GetInputVolume failed (code={status.get('code')}): {status.get('comment', '')}"
        )

    data = message.d.get("responseData")
    if not isinstance(data, dict):
        raise ProtocolMismatch("GetInputVolume response has no responseData object")

    value = data.get("inputVolumeMul")
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ProtocolMismatch("GetInputVolume response has no inputVolumeMul")

    return float(value)


def multiplier_to_volume(multiplier: float) -> float:
    """Linear multiplier (1.0 = unity, may exceed it) to a 0-100 volume."""
    return max(0.0, min(100.0, multiplier * 100.0))
