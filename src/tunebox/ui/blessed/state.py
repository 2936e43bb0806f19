"""UI state management - immutable state updates."""

from dataclasses import dataclass, field, replace
from typing import Any, Optional


@dataclass
class StatusInfo:
    """Last status snapshot received from the daemon."""

    state: str = "stopped"
    track: Optional[str] = None
    title: Optional[str] = None
    position: float = 0.0
    duration: Optional[float] = None
    volume: int = 70
    playlist_length: int = 0
    current_index: Optional[int] = None

    @property
    def is_playing(self) -> bool:
        return self.state == "playing"


BROWSER_ROWS = 20  # Entries shown at once in the file browser


@dataclass(frozen=True)
class BrowserEntry:
    """One row of the file browser."""

    path: str
    name: str
    is_dir: bool
    is_parent: bool = False  # The ".." link to the enclosing directory


@dataclass
class BrowserState:
    """Directory listing shown by the file browser, with its cursor."""

    path: str
    entries: list[BrowserEntry] = field(default_factory=list)
    selected: int = 0
    scroll: int = 0  # Index of the first visible entry

    @property
    def current(self) -> Optional[BrowserEntry]:
        if 0 <= self.selected < len(self.entries):
            return self.entries[self.selected]
        return None


@dataclass
class UIState:
    """
    All UI state in one immutable structure.

    Updated through the helper functions below, each returning a new
    instance via dataclasses.replace.
    """

    status: StatusInfo = field(default_factory=StatusInfo)
    polled_at: float = 0.0  # monotonic time of the last successful status poll
    connected: bool = True
    playlist: list[str] = field(default_factory=list)

    # Message line (last command result)
    message: str = ""
    message_color: str = "white"

    # Path prompt opened with 'a'
    input_active: bool = False
    input_text: str = ""

    # File browser opened with 'f'; the last listing is kept while closed
    browser: Optional[BrowserState] = None
    browser_active: bool = False

    should_quit: bool = False


def create_initial_state() -> UIState:
    """Create the initial UI state."""
    return UIState()


def apply_status(state: UIState, data: dict[str, Any], now: float) -> UIState:
    """Store a status response and mark the daemon reachable."""
    status = StatusInfo(
        state=data.get("state", "stopped"),
        track=data.get("track"),
        title=data.get("title"),
        position=float(data.get("position") or 0.0),
        duration=data.get("duration"),
        volume=int(data.get("volume", state.status.volume)),
        playlist_length=int(data.get("playlist_length", 0)),
        current_index=data.get("current_index"),
    )
    return replace(state, status=status, polled_at=now, connected=True)


def apply_playlist(state: UIState, data: dict[str, Any]) -> UIState:
    titles = data.get("titles") or data.get("tracks") or []
    return replace(state, playlist=list(titles))


def mark_disconnected(state: UIState, message: str) -> UIState:
    """Daemon unreachable: keep the last known status but flag it."""
    return replace(state, connected=False, message=message, message_color="red")


def set_message(state: UIState, text: str, color: str = "white") -> UIState:
    return replace(state, message=text, message_color=color)


def interpolated_position(state: UIState, now: float) -> float:
    """Position between polls, extrapolated from the last status while playing."""
    status = state.status
    if not status.is_playing or not state.connected:
        return status.position
    position = status.position + max(0.0, now - state.polled_at)
    if status.duration:
        position = min(position, status.duration)
    return position


def start_input(state: UIState) -> UIState:
    return replace(state, input_active=True, input_text="")


def cancel_input(state: UIState) -> UIState:
    return replace(state, input_active=False, input_text="")


def append_input_char(state: UIState, char: str) -> UIState:
    """Append character to input text."""
    return replace(state, input_text=state.input_text + char)


def delete_input_char(state: UIState) -> UIState:
    """Delete last character from input text (backspace)."""
    if not state.input_text:
        return state
    return replace(state, input_text=state.input_text[:-1])


def request_quit(state: UIState) -> UIState:
    return replace(state, should_quit=True)


def open_browser(state: UIState, browser: BrowserState) -> UIState:
    return replace(state, browser=browser, browser_active=True)


def close_browser(state: UIState) -> UIState:
    return replace(state, browser_active=False)


def move_selection(browser: BrowserState, delta: int, rows: int = BROWSER_ROWS) -> BrowserState:
    """Move the browser cursor, clamped to the listing, scrolling to keep it visible."""
    if not browser.entries:
        return browser
    selected = max(0, min(browser.selected + delta, len(browser.entries) - 1))
    scroll = browser.scroll
    if selected < scroll:
        scroll = selected
    elif selected >= scroll + rows:
        scroll = selected - rows + 1
    return replace(browser, selected=selected, scroll=scroll)


def select_path(browser: BrowserState, path: str, rows: int = BROWSER_ROWS) -> BrowserState:
    """Put the cursor on the entry for path, if it is listed."""
    for index, entry in enumerate(browser.entries):
        if entry.path == path and not entry.is_parent:
            return move_selection(replace(browser, selected=0, scroll=0), index, rows)
    return browser
