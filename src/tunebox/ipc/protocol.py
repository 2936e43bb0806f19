"""Wire protocol shared by the daemon and its clients.

One UTF-8 JSON object per direction, terminated by a newline:

    request:  {"command": "next", "args": {}}
    response: {"ok": true, "data": {...}, "error": null}
"""

import json
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional

from tunebox.errors import ErrorKind, InvalidRequestError

MAX_MESSAGE_BYTES = 64 * 1024
# Responses carry whole playlists; only requests get the small cap
MAX_RESPONSE_BYTES = 64 * 1024 * 1024
ENCODING = "utf-8"


class Command(str, Enum):
    """Commands understood by the daemon (values are wire names)."""

    PLAY = "play"
    PAUSE = "pause"
    STOP = "stop"
    NEXT = "next"
    PREV = "prev"
    ADD = "add"
    REMOVE = "remove"
    JUMP = "jump"
    SEEK = "seek"
    VOLUME = "volume"
    STATUS = "status"
    PLAYLIST = "playlist"
    CLEAR = "clear"
    SHUTDOWN = "shutdown"


class Request(NamedTuple):
    command: Command
    args: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"command": self.command.value, "args": dict(self.args or {})}


class Response(NamedTuple):
    ok: bool
    data: Optional[Dict[str, Any]] = None
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None

    @classmethod
    def success(cls, data: Optional[Dict[str, Any]] = None) -> "Response":
        return cls(ok=True, data=data if data is not None else {})

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "Response":
        return cls(ok=False, error_kind=ErrorKind(kind), error_message=message)

    @property
    def message(self) -> str:
        """Human readable summary, suitable for a status line."""
        if self.ok:
            return "OK"
        return f"{self.error_kind.value}: {self.error_message}"

    def to_dict(self) -> Dict[str, Any]:
        error = None
        if not self.ok:
            error = {"kind": self.error_kind.value, "message": self.error_message}
        return {"ok": self.ok, "data": self.data if self.ok else None, "error": error}


def _dump(payload: Dict[str, Any]) -> bytes:
    return (json.dumps(payload) + "\n").encode(ENCODING)


def _load(line: bytes, limit: int = MAX_MESSAGE_BYTES) -> Dict[str, Any]:
    if len(line) > limit:
        raise InvalidRequestError("Message too large")
    try:
        payload = json.loads(line.decode(ENCODING).strip())
    except UnicodeDecodeError as e:
        raise InvalidRequestError(f"Message is not valid UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise InvalidRequestError(f"Invalid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise InvalidRequestError("Message must be a JSON object")
    return payload


def encode_request(request: Request) -> bytes:
    return _dump(request.to_dict())


def decode_request(line: bytes) -> Request:
    """Parse one request line.

    Raises:
        InvalidRequestError: Malformed JSON, unknown command or non-object args
    """
    payload = _load(line)

    name = payload.get("command")
    try:
        command = Command(name)
    except ValueError:
        raise InvalidRequestError(f"Unknown command: {name!r}") from None

    args = payload.get("args")
    if args is None:
        args = {}
    if not isinstance(args, dict):
        raise InvalidRequestError("'args' must be a JSON object")

    return Request(command, args)


def encode_response(response: Response) -> bytes:
    return _dump(response.to_dict())


def decode_response(line: bytes) -> Response:
    """Parse one response line.

    Raises:
        InvalidRequestError: If the line is not a well-formed response
    """
    payload = _load(line, MAX_RESPONSE_BYTES)

    ok = payload.get("ok")
    if not isinstance(ok, bool):
        raise InvalidRequestError("Response is missing boolean 'ok'")
    if ok:
        data = payload.get("data")
        return Response.success(data if isinstance(data, dict) else {})

    error = payload.get("error")
    if not isinstance(error, dict):
        raise InvalidRequestError("Failed response is missing 'error'")
    try:
        kind = ErrorKind(error.get("kind"))
    except ValueError:
        kind = ErrorKind.INTERNAL
    return Response.failure(kind, str(error.get("message", "")))


def read_line(sock, limit: int = MAX_MESSAGE_BYTES) -> bytes:
    """Read from sock until a newline or EOF.

    Returns whatever was received (possibly empty) without the terminator.

    Raises:
        InvalidRequestError: If more than limit bytes arrive without a newline
    """
    data = bytearray()
    while True:
        chunk = sock.recv(65536)
        if not chunk:
            break
        data += chunk
        if b"\n" in chunk:
            break
        if len(data) > limit:
            raise InvalidRequestError("Message too large")
    return bytes(data).split(b"\n", 1)[0]
