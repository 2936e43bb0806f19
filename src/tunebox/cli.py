"""
tunebox CLI - entry point for the terminal interface, one-shot commands and
daemon management.

Every playback subcommand sends exactly one request to the daemon; the exit
status is 0 when the response is ok and 1 otherwise.
"""

import argparse
import sys
from pathlib import Path
from typing import Any, Optional

from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from tunebox.core.config import Config, load_config
from tunebox.ipc.client import send_request
from tunebox.ipc.protocol import Command, Response
from tunebox.ui.blessed.styles.formatting import format_time

console = Console()


def render_status(data: dict[str, Any]) -> None:
    """Print a status response."""
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column(style="bold cyan")
    table.add_column()

    state = data.get("state", "stopped")
    style = {"playing": "green", "paused": "yellow"}.get(state, "white")
    table.add_row("State", f"[{style}]{state}[/{style}]")
    table.add_row("Track", escape(data.get("title") or "-"))
    if data.get("track"):
        table.add_row("File", escape(data["track"]))
    table.add_row(
        "Position", f"{format_time(data.get('position'))} / {format_time(data.get('duration'))}"
    )
    table.add_row("Volume", f"{data.get('volume')}%")

    index = data.get("current_index")
    position = f"{index + 1}/" if index is not None else ""
    table.add_row("Playlist", f"{position}{data.get('playlist_length', 0)} tracks")
    console.print(table)


def render_playlist(data: dict[str, Any]) -> None:
    """Print a playlist response."""
    tracks = data.get("tracks", [])
    titles = data.get("titles") or tracks
    current = data.get("current_index")

    if not tracks:
        console.print("[dim]Playlist is empty[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Title")
    table.add_column("Path", style="dim")
    for i, (title, path) in enumerate(zip(titles, tracks)):
        marker = "▶ " if i == current else ""
        style = "bold yellow" if i == current else None
        table.add_row(f"{marker}{i + 1}", escape(title), escape(path), style=style)
    console.print(table)


def render_result(command: Command, data: dict[str, Any]) -> None:
    """Print a short confirmation for a successful command."""
    if command == Command.STATUS:
        render_status(data)
    elif command == Command.PLAYLIST:
        render_playlist(data)
    elif data.get("at_boundary"):
        console.print("No more tracks - playback stopped")
    elif command == Command.ADD:
        console.print(f"Added {len(data.get('added', []))} track(s), playlist has {data.get('playlist_length')}")
    elif command == Command.REMOVE:
        console.print(f"Removed {escape(str(data.get('removed')))}")
    elif command == Command.VOLUME:
        console.print(f"Volume {data.get('volume')}%")
    elif "state" in data:
        title = data.get("title")
        console.print(f"{data['state'].capitalize()}{': ' + escape(title) if title else ''}")
    else:
        console.print("OK")


def send_ipc_command(config: Config, command: Command, args: Optional[dict[str, Any]] = None) -> int:
    """
    Send a command to the running daemon via IPC.

    Args:
        config: Loaded configuration (endpoint)
        command: Command to send
        args: Command arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    response: Response = send_request(
        command,
        args,
        host=config.daemon.host,
        port=config.daemon.port,
        timeout=config.daemon.request_timeout,
    )
    if response.ok:
        render_result(command, response.data)
        return 0
    print(response.message, file=sys.stderr)
    return 1


def absolute(path: str) -> str:
    """Resolve a user path against the client's cwd (the daemon has its own)."""
    return str(Path(path).expanduser().resolve())


def run_daemon_command(config: Config, action: str, foreground: bool = False) -> int:
    """Handle ``tunebox daemon start|stop|status|restart``."""
    from tunebox.daemon.process import run_daemon, running_daemon_pid, stop_daemon
    from tunebox.errors import DaemonStartError
    from tunebox.ipc.client import is_daemon_running
    from tunebox.ui.blessed.app import ensure_daemon

    host, port = config.daemon.host, config.daemon.port

    if action == "start" and foreground:
        return run_daemon(config)

    if action == "status":
        pid = running_daemon_pid()
        if is_daemon_running(host, port):
            console.print(f"Daemon running on {host}:{port}" + (f" (pid {pid})" if pid else ""))
            return 0
        console.print("Daemon not running")
        return 1

    if action in ("stop", "restart"):
        if not stop_daemon(config):
            print("Daemon did not stop", file=sys.stderr)
            return 1
        if action == "stop":
            console.print("Daemon stopped")
            return 0

    if is_daemon_running(host, port):
        console.print(f"Daemon already running on {host}:{port}")
        return 0
    try:
        ensure_daemon(config, autostart=True)
    except DaemonStartError as e:
        print(f"tunebox: {e}", file=sys.stderr)
        return 1
    console.print(f"Daemon started on {host}:{port}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tunebox",
        description="tunebox - local music player daemon and terminal client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--host", help="Daemon address (default from config)")
    parser.add_argument("--port", type=int, help="Daemon port (default from config)")

    subparsers = parser.add_subparsers(dest="subcommand", help="Available commands")

    # Playback
    play_parser = subparsers.add_parser("play", help="Start or resume playback")
    play_parser.add_argument("path", nargs="?", help="Play this file (added if needed)")
    subparsers.add_parser("pause", help="Pause playback")
    subparsers.add_parser("stop", help="Stop playback")
    subparsers.add_parser("next", help="Skip to the next track")
    subparsers.add_parser("prev", help="Go back to the previous track")

    seek_parser = subparsers.add_parser("seek", help="Seek within the current track")
    seek_parser.add_argument("seconds", type=float, help="Position in seconds")

    volume_parser = subparsers.add_parser("volume", help="Set volume (clamped to 0-100)")
    volume_parser.add_argument("level", type=int, help="Volume level")

    # Playlist
    add_parser = subparsers.add_parser("add", help="Add files or directories to the playlist")
    add_parser.add_argument("paths", nargs="+", help="Audio files or directories")

    remove_parser = subparsers.add_parser("remove", help="Remove a track by position")
    remove_parser.add_argument("position", type=int, help="Playlist position (1-based)")

    jump_parser = subparsers.add_parser("jump", help="Play the track at a position")
    jump_parser.add_argument("position", type=int, help="Playlist position (1-based)")

    subparsers.add_parser("status", help="Show playback status")
    subparsers.add_parser("playlist", help="Show the playlist")
    subparsers.add_parser("clear", help="Stop playback and empty the playlist")

    # Interfaces and daemon
    subparsers.add_parser("tui", help="Start the terminal interface (default)")

    daemon_parser = subparsers.add_parser("daemon", help="Manage the background daemon")
    daemon_parser.add_argument("action", choices=["start", "stop", "status", "restart"])
    daemon_parser.add_argument(
        "--foreground",
        action="store_true",
        help="Run the daemon in this process instead of detaching",
    )

    return parser


def run(argv: Optional[list[str]] = None) -> int:
    """Parse arguments and dispatch; returns the exit status."""
    args = build_parser().parse_args(argv)

    # One-shot commands only surface warnings; daemon and TUI log to files
    logger.remove()
    logger.add(sys.stderr, level="WARNING", format="{level}: {message}")

    config = load_config()
    if args.host:
        config.daemon.host = args.host
    if args.port:
        config.daemon.port = args.port

    subcommand = args.subcommand
    if subcommand in (None, "tui"):
        from tunebox.ui.blessed.app import run_tui

        return run_tui(config)

    if subcommand == "daemon":
        return run_daemon_command(config, args.action, foreground=args.foreground)

    if subcommand == "add":
        status = 0
        for path in args.paths:
            status |= send_ipc_command(config, Command.ADD, {"path": absolute(path)})
        return status

    if subcommand == "play":
        play_args = {"path": absolute(args.path)} if args.path else {}
        return send_ipc_command(config, Command.PLAY, play_args)

    if subcommand == "seek":
        return send_ipc_command(config, Command.SEEK, {"position": args.seconds})
    if subcommand == "volume":
        return send_ipc_command(config, Command.VOLUME, {"level": args.level})
    if subcommand == "remove":
        return send_ipc_command(config, Command.REMOVE, {"index": args.position - 1})
    if subcommand == "jump":
        return send_ipc_command(config, Command.JUMP, {"index": args.position - 1})

    return send_ipc_command(config, Command(subcommand))


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the tunebox command."""
    sys.exit(run(argv))


if __name__ == "__main__":
    main()
