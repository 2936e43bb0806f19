"""Main event loop and entry point for blessed UI."""

import sys
import time
from typing import Any, Callable, Optional

from blessed import Terminal
from loguru import logger

from tunebox.core.config import Config, get_log_dir
from tunebox.core.output import setup_loguru
from tunebox.daemon.process import spawn_daemon
from tunebox.errors import DaemonStartError, ErrorKind
from tunebox.ipc.client import send_request
from tunebox.ipc.protocol import Command, Response

from .components import render_dashboard
from .events.keyboard import handle_key
from .state import (
    UIState,
    apply_playlist,
    apply_status,
    create_initial_state,
    mark_disconnected,
    set_message,
)

LOG_FILE_NAME = "tui.log"
INPUT_TIMEOUT = 0.1  # Seconds to wait for a key before redrawing

# Commands after which the playlist view must be refreshed right away
PLAYLIST_CHANGING = {Command.ADD, Command.REMOVE, Command.CLEAR, Command.JUMP, Command.PLAY}

Requester = Callable[..., Response]


def make_requester(config: Config) -> Requester:
    """Bind send_request to the configured endpoint."""

    def request(command: Command, args: Optional[dict[str, Any]] = None) -> Response:
        return send_request(
            command,
            args,
            host=config.daemon.host,
            port=config.daemon.port,
            timeout=config.daemon.request_timeout,
        )

    return request


def ensure_daemon(
    config: Config,
    request: Optional[Requester] = None,
    spawn: Callable[[], Any] = spawn_daemon,
    sleep: Callable[[float], None] = time.sleep,
    autostart: Optional[bool] = None,
) -> Response:
    """
    Make sure a daemon is reachable, starting one if needed.

    Retries with doubling backoff after spawning, bounded by
    ``ui.autostart_attempts``.

    Returns:
        The first successful status response

    Raises:
        DaemonStartError: If the daemon is still unreachable after all retries
    """
    request = request or make_requester(config)
    response = request(Command.STATUS)
    if response.ok or response.error_kind != ErrorKind.CONNECTION:
        return response

    if autostart is None:
        autostart = config.ui.autostart_daemon
    if not autostart:
        raise DaemonStartError(f"Daemon not reachable: {response.error_message}")

    logger.info("Daemon not reachable, starting it")
    try:
        spawn()
    except OSError as e:
        raise DaemonStartError(f"Could not start daemon: {e}") from e

    delay = config.ui.autostart_initial_delay
    for attempt in range(1, config.ui.autostart_attempts + 1):
        sleep(delay)
        response = request(Command.STATUS)
        if response.ok:
            logger.info(f"Daemon reachable after {attempt} attempt(s)")
            return response
        logger.debug(f"Daemon not up yet (attempt {attempt}): {response.error_message}")
        delay = min(delay * 2, config.ui.autostart_max_delay)

    raise DaemonStartError(
        f"Daemon did not start after {config.ui.autostart_attempts} attempts: "
        f"{response.error_message}"
    )


def poll_status(
    ui_state: UIState, request: Requester, now: float, fetch_playlist: bool = False
) -> UIState:
    """
    Refresh status (and optionally the playlist) from the daemon.

    Args:
        ui_state: Current UI state
        request: Bound IPC requester
        now: Current monotonic time
        fetch_playlist: Also refresh the playlist view

    Returns:
        Updated UI state; a connection failure flags it disconnected
    """
    response = request(Command.STATUS)
    if not response.ok:
        if response.error_kind == ErrorKind.CONNECTION:
            return mark_disconnected(ui_state, f"Disconnected: {response.error_message}")
        return set_message(ui_state, response.message, "red")

    was_disconnected = not ui_state.connected
    ui_state = apply_status(ui_state, response.data, now)
    if was_disconnected:
        ui_state = set_message(ui_state, "Reconnected", "green")
        fetch_playlist = True

    if fetch_playlist:
        response = request(Command.PLAYLIST)
        if response.ok:
            ui_state = apply_playlist(ui_state, response.data)
    return ui_state


def describe_result(command: Command, data: dict[str, Any]) -> str:
    """One-line summary of a successful command."""
    if data.get("at_boundary"):
        return "No more tracks"
    if command == Command.ADD:
        count = len(data.get("added", []))
        return f"Added {count} track{'s' if count != 1 else ''}"
    if command == Command.VOLUME:
        return f"Volume {data.get('volume')}"
    return ""


def execute_command(
    ui_state: UIState,
    request: Requester,
    command: Command,
    args: dict[str, Any],
    now: float,
) -> UIState:
    """Send a command, show its outcome, then refresh immediately."""
    return apply_result(ui_state, request, command, request(command, args), now)


def apply_result(
    ui_state: UIState, request: Requester, command: Command, response: Response, now: float
) -> UIState:
    if not response.ok:
        if response.error_kind == ErrorKind.CONNECTION:
            return mark_disconnected(ui_state, f"Disconnected: {response.error_message}")
        ui_state = set_message(ui_state, response.message, "red")
    else:
        ui_state = set_message(ui_state, describe_result(command, response.data), "green")

    return poll_status(ui_state, request, now, fetch_playlist=command in PLAYLIST_CHANGING)


def execute_actions(
    ui_state: UIState, request: Requester, actions: list[tuple[Command, dict[str, Any]]], now: float
) -> UIState:
    """Send commands in order; the first failure cancels the rest."""
    for command, args in actions:
        logger.debug(f"Sending {command.value} {args}")
        response = request(command, args)
        ui_state = apply_result(ui_state, request, command, response, now)
        if not response.ok:
            break
    return ui_state


def main_loop(term: Terminal, config: Config, request: Requester) -> UIState:
    """
    Main event loop.

    Args:
        term: blessed Terminal instance
        config: Loaded configuration
        request: Bound IPC requester

    Returns:
        Final UI state
    """
    ui_state = create_initial_state()
    refresh_interval = config.ui.refresh_interval
    playlist_ticks = max(1, config.ui.playlist_refresh_ticks)

    tick = 0
    next_poll = 0.0
    last_size = None

    while not ui_state.should_quit:
        now = time.monotonic()
        if now >= next_poll:
            ui_state = poll_status(ui_state, request, now, fetch_playlist=tick % playlist_ticks == 0)
            tick += 1
            next_poll = now + refresh_interval

        size = (term.width, term.height)
        if size != last_size:
            sys.stdout.write(term.clear)
            last_size = size

        render_dashboard(term, ui_state, now)
        sys.stdout.flush()

        key = term.inkey(timeout=INPUT_TIMEOUT)
        if not key:
            continue

        ui_state, actions = handle_key(
            ui_state, key, config.ui.volume_step, config.player.supported_formats
        )
        if actions:
            ui_state = execute_actions(ui_state, request, actions, time.monotonic())
            next_poll = time.monotonic() + refresh_interval

    return ui_state


def run_tui(config: Config) -> int:
    """
    Run the terminal interface.

    Returns:
        Exit status: 0 on normal quit, 1 if the daemon couldn't be started
    """
    setup_loguru(
        get_log_dir(config) / LOG_FILE_NAME,
        level=config.logging.level,
        rotation=config.logging.rotation,
        retention=config.logging.retention,
    )

    request = make_requester(config)
    try:
        ensure_daemon(config, request)
    except DaemonStartError as e:
        logger.error(str(e))
        print(f"tunebox: {e}", file=sys.stderr)
        return 1

    term = Terminal()
    with term.fullscreen(), term.cbreak(), term.hidden_cursor():
        try:
            main_loop(term, config, request)
        except KeyboardInterrupt:
            logger.info("Ctrl+C detected - exiting")

    return 0
