"""
Daemon process management: pid file, detached spawn, run and stop.

The daemon and its clients are separate processes that share nothing but
the wire protocol. Clients find a running daemon by talking to it; the pid
file only guards against starting a second one and lets ``daemon stop``
fall back to a signal.
"""

import os
import signal
import subprocess
import sys
import time
from pathlib import Path
from typing import Optional

from loguru import logger

from tunebox.core.config import Config, get_data_dir, get_log_dir
from tunebox.core.output import setup_loguru
from tunebox.domain.playback import DecoderChain, PlaybackEngine, SoundDeviceSink
from tunebox.domain.playlists import NavigationPolicy, Playlist
from tunebox.errors import ServerBindError
from tunebox.ipc import Command, IPCServer, send_request

from .core import DaemonCore

PID_FILE_NAME = "daemon.pid"
LOG_FILE_NAME = "daemon.log"


def get_pid_file() -> Path:
    return get_data_dir() / PID_FILE_NAME


def write_pid_file(pid_file: Optional[Path] = None) -> None:
    pid_file = pid_file or get_pid_file()
    pid_file.parent.mkdir(parents=True, exist_ok=True)
    pid_file.write_text(str(os.getpid()))


def read_pid_file(pid_file: Optional[Path] = None) -> Optional[int]:
    """Return the pid recorded in the pid file, or None if absent/garbled."""
    pid_file = pid_file or get_pid_file()
    try:
        return int(pid_file.read_text().strip())
    except (OSError, ValueError):
        return None


def remove_pid_file(pid_file: Optional[Path] = None) -> None:
    pid_file = pid_file or get_pid_file()
    try:
        pid_file.unlink()
    except FileNotFoundError:
        pass


def is_process_running(pid: int) -> bool:
    """Check whether a process with this pid exists."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but belongs to someone else
        return True
    return True


def running_daemon_pid(pid_file: Optional[Path] = None) -> Optional[int]:
    """Pid of a live daemon per the pid file; stale files are removed."""
    pid = read_pid_file(pid_file)
    if pid is None:
        return None
    if is_process_running(pid):
        return pid
    logger.debug(f"Removing stale pid file for {pid}")
    remove_pid_file(pid_file)
    return None


def spawn_daemon() -> subprocess.Popen:
    """Start a detached daemon that outlives the caller."""
    cmd = [sys.executable, "-m", "tunebox", "daemon", "start", "--foreground"]
    logger.info(f"Spawning daemon: {' '.join(cmd)}")
    return subprocess.Popen(
        cmd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
        close_fds=True,
    )


def stop_daemon(config: Config, timeout: float = 5.0) -> bool:
    """
    Stop the running daemon.

    Asks politely over IPC first, then falls back to SIGTERM using the pid
    file.

    Returns:
        True if no daemon is running afterwards
    """
    host, port = config.daemon.host, config.daemon.port
    pid = running_daemon_pid()

    response = send_request(Command.SHUTDOWN, host=host, port=port, timeout=config.daemon.request_timeout)
    if not response.ok and pid is None:
        return True

    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if pid is not None and not is_process_running(pid):
            return True
        if pid is None and not send_request(Command.STATUS, host=host, port=port, timeout=0.5).ok:
            return True
        time.sleep(0.1)

    if pid is not None:
        logger.warning(f"Daemon {pid} did not exit, sending SIGTERM")
        try:
            os.kill(pid, signal.SIGTERM)
        except ProcessLookupError:
            return True
        time.sleep(0.5)
        return not is_process_running(pid)
    return False


def build_core(config: Config) -> DaemonCore:
    """Wire playlist, engine and core from configuration."""
    device = config.player.output_device

    def sink_factory(stream, gain):
        return SoundDeviceSink(stream, gain, device=device)

    engine = PlaybackEngine(
        decoders=DecoderChain.default(),
        sink_factory=sink_factory,
        volume=config.player.volume,
    )
    policy = NavigationPolicy.WRAP if config.playlist.wrap else NavigationPolicy.STOP
    return DaemonCore(
        engine,
        Playlist(policy),
        supported_formats=config.player.supported_formats,
        command_timeout=config.daemon.command_timeout,
        autoadvance_interval=config.daemon.autoadvance_interval,
    )


def run_daemon(config: Config) -> int:
    """
    Run the daemon in the current process until shutdown.

    Returns:
        Process exit status (1 if the endpoint can't be bound or another
        daemon is already running)
    """
    setup_loguru(
        get_log_dir(config) / LOG_FILE_NAME,
        level=config.logging.level,
        rotation=config.logging.rotation,
        retention=config.logging.retention,
        console_output=config.logging.console_output,
    )

    existing = running_daemon_pid()
    if existing is not None and existing != os.getpid():
        message = f"Daemon already running (pid {existing})"
        logger.error(message)
        print(message, file=sys.stderr)
        return 1

    core = build_core(config)
    server = IPCServer(core, host=config.daemon.host, port=config.daemon.port)
    try:
        server.start()
    except ServerBindError as e:
        logger.error(str(e))
        print(f"tunebox daemon: {e}", file=sys.stderr)
        return 1

    core.on_shutdown = server.stop
    write_pid_file()

    def _handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        core.request_shutdown()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    core.start()
    logger.info(f"Daemon running (pid {os.getpid()})")
    try:
        while core.is_running():
            core.join(timeout=0.5)
    finally:
        server.stop()
        remove_pid_file()
        logger.info("Daemon exited")
    return 0
