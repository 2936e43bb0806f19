"""IPC server for receiving commands from clients over loopback TCP."""

import socket
import threading
from typing import Optional, Tuple

from loguru import logger

from tunebox.errors import ErrorKind, InvalidRequestError, ServerBindError

from .protocol import Response, decode_request, encode_response, read_line

# Seconds a client has to send its request line
CONNECTION_TIMEOUT = 5.0


class IPCServer:
    """TCP server for daemon commands.

    An acceptor thread polls ``accept()`` and hands every connection to its
    own thread, so a slow client never blocks others. Requests are passed to
    the daemon core's ``submit()``, which serializes the actual work.
    """

    def __init__(self, core, host: str = "127.0.0.1", port: int = 12345):
        """
        Initialize IPC server.

        Args:
            core: Object with a ``submit(request) -> Response`` method
            host: Address to bind (loopback)
            port: Port to bind; 0 picks a free port
        """
        self.core = core
        self.host = host
        self.port = port
        self.server_socket: Optional[socket.socket] = None
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self._connections: set[threading.Thread] = set()
        self._connections_lock = threading.Lock()
        self._lifecycle_lock = threading.Lock()

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port); only meaningful after start()."""
        if self.server_socket is None:
            return self.host, self.port
        return self.server_socket.getsockname()[:2]

    def start(self) -> None:
        """Bind the endpoint and start accepting in a background thread.

        Raises:
            ServerBindError: If the address can't be bound
        """
        with self._lifecycle_lock:
            if self.running:
                return
            self._bind()

        host, port = self.address
        logger.info(f"IPC server listening on {host}:{port}")

    def _bind(self) -> None:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
            sock.listen(16)
        except OSError as e:
            sock.close()
            raise ServerBindError(f"Cannot bind {self.host}:{self.port}: {e}") from e
        sock.settimeout(1.0)  # Poll every second

        self.server_socket = sock
        self.running = True
        self.thread = threading.Thread(
            target=self._run_server, args=(sock,), name="tunebox-ipc", daemon=True
        )
        self.thread.start()

    def stop(self) -> None:
        """Stop accepting connections and close the socket.

        Safe to call more than once and from several threads; only the first
        call does the work.
        """
        with self._lifecycle_lock:
            if not self.running:
                return
            self.running = False
            sock, self.server_socket = self.server_socket, None
            acceptor = self.thread

        if acceptor and acceptor.is_alive() and acceptor is not threading.current_thread():
            acceptor.join(timeout=2.0)

        if sock is not None:
            try:
                sock.close()
            except OSError as e:
                logger.debug(f"Error closing server socket: {e}")

        # Let in-flight replies (e.g. to "shutdown") reach their clients
        with self._connections_lock:
            pending = [t for t in self._connections if t is not threading.current_thread()]
        for t in pending:
            t.join(timeout=CONNECTION_TIMEOUT)
        logger.info("IPC server stopped")

    def _run_server(self, sock: socket.socket) -> None:
        """Accept loop."""
        while self.running:
            try:
                client_socket, peer = sock.accept()
            except socket.timeout:
                # Timeout is normal, just check if we should continue
                continue
            except OSError as e:
                if self.running:  # Only log if we're still supposed to be running
                    logger.error(f"Error accepting connection: {e}")
                continue

            handler = threading.Thread(
                target=self._handle_client,
                args=(client_socket, peer),
                name=f"tunebox-conn-{peer[1]}",
                daemon=True,
            )
            with self._connections_lock:
                self._connections.add(handler)
            handler.start()

    def _handle_client(self, client_socket: socket.socket, peer) -> None:
        """
        Handle a single request/response exchange.

        Args:
            client_socket: Connected client socket
            peer: Client address, for logging
        """
        client_socket.settimeout(CONNECTION_TIMEOUT)
        try:
            try:
                line = read_line(client_socket)
                if not line.strip():
                    logger.debug(f"Empty request from {peer}")
                    return
                request = decode_request(line)
            except InvalidRequestError as e:
                response = Response.failure(e.kind, str(e))
            except socket.timeout:
                logger.warning(f"Client {peer} timed out before sending a request")
                return
            else:
                try:
                    response = self.core.submit(request)
                except Exception as e:
                    logger.exception("Error dispatching command")
                    response = Response.failure(ErrorKind.INTERNAL, f"Error processing command: {e}")

            client_socket.sendall(encode_response(response))
        except OSError as e:
            logger.debug(f"Connection error with {peer}: {e}")
        finally:
            client_socket.close()
            with self._connections_lock:
                self._connections.discard(threading.current_thread())
