"""Dashboard rendering functions."""

from blessed import Terminal

from ..helpers import clear_below, write_at
from ..state import UIState, interpolated_position
from ..styles.formatting import format_time, format_volume
from .browser import BROWSER_HELP_LINE, format_browser_lines

ICONS = {
    "music": "♪",
    "note": "♫",
    "play": "▶",
    "pause": "⏸",
    "stop": "■",
}

STATE_ICONS = {
    "playing": ICONS["play"],
    "paused": ICONS["pause"],
    "stopped": ICONS["stop"],
}

HELP_LINE = "space play/pause  p pause  s stop  n/→ next  b/← prev  +/- volume  a add  f browse  q quit"

MAX_PLAYLIST_ROWS = 15


def create_progress_bar(position: float, duration: float, term: Terminal, bar_width: int = 40) -> str:
    """Create a colored progress bar."""
    if not duration or duration <= 0:
        return term.white("─" * bar_width) + term.white(f" {format_time(position)}")

    percentage = min(position / duration, 1.0)
    filled = int(bar_width * percentage)

    progress_parts = [term.green("█" * filled), term.white("░" * (bar_width - filled))]
    progress_parts.append(term.white(f" {format_time(position)} / {format_time(duration)}"))
    return "".join(progress_parts)


def format_header(term: Terminal, ui_state: UIState) -> str:
    header = term.bold_magenta(ICONS["music"]) + " " + term.bold_cyan("TUNEBOX")
    if ui_state.connected:
        return header + "  " + term.green("● connected")
    return header + "  " + term.bold_red("○ disconnected")


def format_track_lines(term: Terminal, ui_state: UIState, now: float) -> list[str]:
    status = ui_state.status
    icon = STATE_ICONS.get(status.state, ICONS["stop"])
    lines = []

    if status.track:
        lines.append(term.bold_white(f"{icon} {status.title or status.track}"))
        lines.append(term.white(f"  {status.track}"))
    else:
        lines.append(term.white(f"{icon} No track loaded"))
        lines.append("")

    position = interpolated_position(ui_state, now)
    lines.append(create_progress_bar(position, status.duration, term))
    lines.append(
        term.white(f"{status.state.capitalize():<8}") + "  "
        + term.cyan(f"Volume {format_volume(status.volume)}")
    )
    return lines


def format_playlist_lines(term: Terminal, ui_state: UIState, max_rows: int = MAX_PLAYLIST_ROWS) -> list[str]:
    """Playlist window centered loosely on the current track."""
    playlist = ui_state.playlist
    current = ui_state.status.current_index
    lines = [term.bold(f"Playlist ({len(playlist)})")]

    if not playlist:
        lines.append(term.white("  (empty - press 'a' to type a path or 'f' to browse)"))
        return lines

    start = 0
    if current is not None and current >= max_rows:
        start = current - max_rows // 2
    start = max(0, min(start, len(playlist) - max_rows))

    for i, name in enumerate(playlist[start:start + max_rows], start=start):
        text = f"{i + 1:>3}. {name}"
        if i == current:
            lines.append(term.bold_yellow(f"{ICONS['note']}{text}"))
        else:
            lines.append(term.white(f" {text}"))
    return lines


def build_dashboard_lines(term: Terminal, ui_state: UIState, now: float) -> list[str]:
    """
    Build every dashboard line for one frame.

    Args:
        term: blessed Terminal instance
        ui_state: UI state with the last polled status
        now: Current monotonic time (for position interpolation)

    Returns:
        Lines to draw from the top of the screen
    """
    lines = [format_header(term, ui_state), term.cyan("━" * max(term.width - 1, 10)), ""]
    lines.extend(format_track_lines(term, ui_state, now))
    lines.append("")
    browsing = ui_state.browser_active and ui_state.browser is not None
    if browsing:
        lines.extend(format_browser_lines(term, ui_state.browser))
    else:
        lines.extend(format_playlist_lines(term, ui_state))
    lines.append("")

    if ui_state.input_active:
        lines.append(term.bold("Add path: ") + ui_state.input_text + "█")
    elif ui_state.message:
        color = getattr(term, ui_state.message_color, term.white)
        lines.append(color(ui_state.message))
    else:
        lines.append("")

    lines.append(term.dim(BROWSER_HELP_LINE if browsing else HELP_LINE))
    return lines


def render_dashboard(term: Terminal, ui_state: UIState, now: float) -> int:
    """
    Draw the dashboard.

    Returns:
        Number of lines drawn
    """
    lines = build_dashboard_lines(term, ui_state, now)
    visible = lines[: term.height]
    for y, line in enumerate(visible):
        write_at(term, 0, y, line)
    clear_below(term, len(visible))
    return len(visible)
