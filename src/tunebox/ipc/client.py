"""IPC client for sending commands to the running tunebox daemon."""

import socket
from typing import Any, Dict, Optional, Union

from loguru import logger

from tunebox.core.config import DEFAULT_COMMAND_TIMEOUT, DEFAULT_HOST, DEFAULT_PORT, REQUEST_TIMEOUT_MARGIN
from tunebox.errors import ErrorKind, InvalidRequestError

from .protocol import (
    MAX_RESPONSE_BYTES,
    Command,
    Request,
    Response,
    decode_response,
    encode_request,
    read_line,
)

DEFAULT_TIMEOUT = DEFAULT_COMMAND_TIMEOUT + REQUEST_TIMEOUT_MARGIN


def send_request(
    command: Union[Command, str],
    args: Optional[Dict[str, Any]] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Response:
    """
    Send one command to the daemon and wait for its response.

    Args:
        command: Command (or its wire name)
        args: Command arguments (optional)
        host: Daemon address (default 127.0.0.1)
        port: Daemon port (default 12345)
        timeout: Socket timeout in seconds

    Returns:
        The daemon's Response. Transport failures never raise; they come
        back as ``ok=False`` with kind ConnectionError.
    """
    host = host or DEFAULT_HOST
    port = port or DEFAULT_PORT

    try:
        request = Request(Command(command), args or {})
    except ValueError:
        return Response.failure(ErrorKind.INVALID_REQUEST, f"Unknown command: {command!r}")

    try:
        with socket.create_connection((host, port), timeout=timeout) as sock:
            sock.sendall(encode_request(request))
            response_data = read_line(sock, limit=MAX_RESPONSE_BYTES)
    except socket.timeout:
        return Response.failure(ErrorKind.CONNECTION, "Daemon not responding (timeout)")
    except ConnectionRefusedError:
        return Response.failure(ErrorKind.CONNECTION, "Daemon not running")
    except InvalidRequestError as e:
        return Response.failure(ErrorKind.CONNECTION, f"Invalid response from daemon: {e}")
    except OSError as e:
        return Response.failure(ErrorKind.CONNECTION, f"Failed to send command: {e}")

    if not response_data:
        return Response.failure(ErrorKind.CONNECTION, "No response from daemon")

    try:
        return decode_response(response_data)
    except InvalidRequestError as e:
        logger.warning(f"Malformed response for {request.command.value}: {e}")
        return Response.failure(ErrorKind.CONNECTION, f"Invalid response from daemon: {e}")


def is_daemon_running(host: Optional[str] = None, port: Optional[int] = None) -> bool:
    """Check whether a daemon answers on the endpoint."""
    response = send_request(Command.STATUS, host=host, port=port, timeout=1.0)
    return response.ok
