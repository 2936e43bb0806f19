"""Blessed terminal interface: status polling and key-driven control."""

from .app import ensure_daemon, run_tui

__all__ = ["ensure_daemon", "run_tui"]
