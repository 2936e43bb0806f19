"""End-to-end tests: real loopback server, real client, in-memory audio."""

import json
import socket
import threading
import time

import pytest

from tunebox.core.config import DaemonConfig
from tunebox.errors import ErrorKind, ServerBindError
from tunebox.ipc import IPCServer, is_daemon_running, send_request
from tunebox.ipc.protocol import MAX_MESSAGE_BYTES, Command


@pytest.fixture
def server(core):
    core.start()
    server = IPCServer(core, host="127.0.0.1", port=0)
    server.start()
    yield server
    server.stop()
    core.stop()


def raw_exchange(address, payload: bytes) -> dict:
    with socket.create_connection(address, timeout=5.0) as sock:
        sock.sendall(payload)
        data = b""
        while not data.endswith(b"\n"):
            chunk = sock.recv(4096)
            if not chunk:
                break
            data += chunk
    return json.loads(data)


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class TestRoundTrip:
    def test_status(self, server):
        host, port = server.address
        response = send_request(Command.STATUS, host=host, port=port)
        assert response.ok
        assert response.data["state"] == "stopped"
        assert response.data["playlist_length"] == 0

    def test_domain_error_is_reported(self, server):
        host, port = server.address
        response = send_request("play", host=host, port=port)
        assert not response.ok
        assert response.error_kind == ErrorKind.EMPTY_PLAYLIST

    def test_add_then_playlist(self, server, music_dir):
        host, port = server.address
        added = send_request(Command.ADD, {"path": str(music_dir)}, host=host, port=port)
        assert added.ok
        assert added.data["playlist_length"] == 3

        listing = send_request(Command.PLAYLIST, host=host, port=port)
        assert len(listing.data["tracks"]) == 3

    def test_is_daemon_running(self, server):
        host, port = server.address
        assert is_daemon_running(host, port)

    def test_unknown_command_never_leaves_client(self):
        response = send_request("rewind", port=free_port())
        assert response.error_kind == ErrorKind.INVALID_REQUEST


class TestMalformedInput:
    def test_invalid_json(self, server):
        reply = raw_exchange(server.address, b"{not json\n")
        assert reply["ok"] is False
        assert reply["error"]["kind"] == "InvalidRequest"

    def test_unknown_command(self, server):
        reply = raw_exchange(server.address, b'{"command": "rewind", "args": {}}\n')
        assert reply["error"]["kind"] == "InvalidRequest"

    def test_bad_argument_type(self, server):
        reply = raw_exchange(server.address, b'{"command": "volume", "args": {"level": "loud"}}\n')
        assert reply["error"]["kind"] == "InvalidRequest"

    def test_server_keeps_serving_after_bad_request(self, server):
        raw_exchange(server.address, b"garbage\n")
        host, port = server.address
        assert send_request(Command.STATUS, host=host, port=port).ok


class TestConcurrency:
    def test_many_clients(self, server):
        host, port = server.address
        results = []

        def worker():
            results.append(send_request(Command.STATUS, host=host, port=port))

        threads = [threading.Thread(target=worker) for _ in range(12)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert len(results) == 12
        assert all(r.ok for r in results)

    def test_idle_client_does_not_block_others(self, server):
        host, port = server.address
        with socket.create_connection((host, port), timeout=5.0):
            # Connected but silent; another client must still get through
            response = send_request(Command.STATUS, host=host, port=port, timeout=2.0)
        assert response.ok

    def test_concurrent_next_never_double_advances(self, server, music_dir):
        host, port = server.address
        send_request(Command.ADD, {"path": str(music_dir / "a.mp3")}, host=host, port=port)
        send_request(Command.ADD, {"path": str(music_dir / "b.mp3")}, host=host, port=port)
        send_request(Command.PLAY, host=host, port=port)

        barrier = threading.Barrier(2)
        results = []

        def worker():
            barrier.wait()
            results.append(send_request(Command.NEXT, host=host, port=port))

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert sorted(r.data["at_boundary"] for r in results) == [False, True]
        status = send_request(Command.STATUS, host=host, port=port)
        assert status.data["current_index"] == 1
        assert status.data["state"] == "stopped"


class TestTransportFailures:
    def test_refused_connection(self):
        response = send_request(Command.STATUS, port=free_port(), timeout=1.0)
        assert not response.ok
        assert response.error_kind == ErrorKind.CONNECTION

    def test_port_in_use(self, server, core):
        host, port = server.address
        second = IPCServer(core, host=host, port=port)
        with pytest.raises(ServerBindError):
            second.start()

    def test_shutdown_reply_arrives(self, server):
        host, port = server.address
        response = send_request(Command.SHUTDOWN, host=host, port=port)
        assert response.ok
        assert response.data == {"shutting_down": True}


class TestLargeAndSlowReplies:
    def test_playlist_larger_than_request_cap(self, server, tmp_path):
        album = tmp_path / "big album"
        album.mkdir()
        for i in range(500):
            (album / f"{i:04d} Some Artist Name - A Reasonably Long Song Title From The Album.mp3").write_bytes(b"\x00")
        host, port = server.address

        added = send_request(Command.ADD, {"path": str(album)}, host=host, port=port)
        assert added.ok
        listing = send_request(Command.PLAYLIST, host=host, port=port)

        assert listing.ok, listing.message
        assert len(listing.data["tracks"]) == 500
        assert len(json.dumps(listing.data)) > MAX_MESSAGE_BYTES

    def test_client_outwaits_daemon_command_timeout(self, server, core, monkeypatch):
        core.command_timeout = 1.0

        def slow_clear(args):
            time.sleep(1.5)
            return {}

        monkeypatch.setitem(core._handlers, Command.CLEAR, slow_clear)
        host, port = server.address
        timeout = DaemonConfig(command_timeout=1.0).request_timeout

        response = send_request(Command.CLEAR, host=host, port=port, timeout=timeout)

        # The daemon's own answer arrives, not a client-side socket timeout
        assert response.error_kind == ErrorKind.INTERNAL
        assert response.error_message == "Command timed out"


class TestServerLifecycle:
    def test_concurrent_stop(self, core):
        server = IPCServer(core, host="127.0.0.1", port=0)
        server.start()
        errors = []

        def stopper():
            try:
                server.stop()
            except Exception as e:  # noqa: BLE001
                errors.append(e)

        threads = [threading.Thread(target=stopper) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert errors == []
        assert not server.running
        assert server.server_socket is None

    def test_stop_twice(self, core):
        server = IPCServer(core, host="127.0.0.1", port=0)
        server.start()
        server.stop()
        server.stop()
        assert server.server_socket is None
