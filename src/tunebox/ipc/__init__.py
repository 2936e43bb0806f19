"""IPC (Inter-Process Communication) for tunebox.

JSON-lines over loopback TCP between the daemon and its clients.
"""

from .client import is_daemon_running, send_request
from .protocol import Command, Request, Response
from .server import IPCServer

__all__ = ["Command", "IPCServer", "Request", "Response", "is_daemon_running", "send_request"]
