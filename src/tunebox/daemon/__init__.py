"""Daemon layer - owns the playlist and playback engine for the process lifetime."""

from .core import DaemonCore
from .process import build_core, run_daemon, running_daemon_pid, spawn_daemon, stop_daemon

__all__ = ["DaemonCore", "build_core", "run_daemon", "running_daemon_pid", "spawn_daemon", "stop_daemon"]
