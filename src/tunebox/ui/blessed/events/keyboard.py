"""Keyboard event handling.

Maps key presses to daemon commands. Handlers take the current state and
a key and return the new state plus the commands to send, in order. Only
the file browser touches the filesystem, to list directories.
"""

from pathlib import Path
from typing import Any, Iterable

from blessed.keyboard import Keystroke

from tunebox.domain.library import DEFAULT_SUPPORTED_FORMATS
from tunebox.ipc.protocol import Command

from ..helpers.filesystem import open_directory
from ..state import (
    UIState,
    append_input_char,
    cancel_input,
    close_browser,
    delete_input_char,
    move_selection,
    open_browser,
    request_quit,
    select_path,
    set_message,
    start_input,
)

Action = tuple[Command, dict[str, Any]]
Actions = list[Action]

VOLUME_UP_KEYS = {"+", "="}
VOLUME_DOWN_KEYS = {"-", "_"}


def parse_key(key: Keystroke) -> dict:
    """
    Parse keystroke into event dictionary.

    Args:
        key: blessed Keystroke

    Returns:
        Event dictionary describing the key press
    """
    event = {
        "type": "unknown",
        "key": key,
        "name": key.name if hasattr(key, "name") else None,
        "char": str(key) if key and key.isprintable() else None,
    }

    if key.name == "KEY_ENTER" or key in ("\n", "\r"):
        event["type"] = "enter"
    elif key.name == "KEY_ESCAPE" or key == "\x1b":
        event["type"] = "escape"
    elif key.name == "KEY_BACKSPACE" or key == "\x7f":
        event["type"] = "backspace"
    elif key.name == "KEY_UP":
        event["type"] = "arrow_up"
    elif key.name == "KEY_DOWN":
        event["type"] = "arrow_down"
    elif key.name == "KEY_LEFT":
        event["type"] = "arrow_left"
    elif key.name == "KEY_RIGHT":
        event["type"] = "arrow_right"
    elif key == "\x03":  # Ctrl+C
        event["type"] = "ctrl_c"
    elif key and key.isprintable():
        event["type"] = "char"

    return event


def handle_input_key(state: UIState, event: dict) -> tuple[UIState, Actions]:
    """Keys while the 'add path' prompt is open."""
    if event["type"] == "enter":
        path = state.input_text.strip()
        state = cancel_input(state)
        if not path:
            return state, []
        # The daemon resolves paths against its own cwd, so send absolute ones
        return state, [(Command.ADD, {"path": str(Path(path).expanduser().resolve())})]
    if event["type"] in ("escape", "ctrl_c"):
        return cancel_input(state), []
    if event["type"] == "backspace":
        return delete_input_char(state), []
    if event["type"] == "char":
        return append_input_char(state, event["char"]), []
    return state, []


def change_directory(state: UIState, path: str, supported_formats: Iterable[str]) -> UIState:
    """Show path in the browser, falling back to a readable ancestor."""
    try:
        browser = open_directory(path, supported_formats)
    except OSError as e:
        return set_message(state, f"Cannot open {path}: {e}", "red")
    state = open_browser(state, browser)
    if browser.path != str(Path(path).expanduser().resolve()):
        state = set_message(state, f"Cannot open {path}", "red")
    return state


def handle_browser_key(
    state: UIState, event: dict, supported_formats: Iterable[str] = DEFAULT_SUPPORTED_FORMATS
) -> tuple[UIState, Actions]:
    """Keys while the file browser is open."""
    etype = event["type"]
    char = event["char"]
    browser = state.browser
    entry = browser.current

    if etype == "ctrl_c":
        return request_quit(state), []
    if etype == "escape" or char == "q":
        return close_browser(state), []

    if etype == "arrow_up" or char == "k":
        return open_browser(state, move_selection(browser, -1)), []
    if etype == "arrow_down" or char == "j":
        return open_browser(state, move_selection(browser, 1)), []

    if etype == "arrow_left" or char == "h":
        parent = str(Path(browser.path).parent)
        if parent == browser.path:
            return state, []
        state = change_directory(state, parent, supported_formats)
        return open_browser(state, select_path(state.browser, browser.path)), []

    if etype in ("enter", "arrow_right") or char == "l":
        if entry is None:
            return state, []
        if entry.is_dir:
            state = change_directory(state, entry.path, supported_formats)
            if entry.is_parent:
                state = open_browser(state, select_path(state.browser, browser.path))
            return state, []
        return close_browser(state), [(Command.PLAY, {"path": entry.path})]

    if char == "p":
        if entry is None or entry.is_dir:
            return state, []
        return close_browser(state), [(Command.PLAY, {"path": entry.path})]

    if char == "a":
        target = browser.path if entry is None or entry.is_parent else entry.path
        return state, [(Command.ADD, {"path": target})]

    if char == "A":
        folder = browser.path
        if entry is not None and entry.is_dir and not entry.is_parent:
            folder = entry.path
            state = change_directory(state, folder, supported_formats)
        return close_browser(state), [(Command.ADD, {"path": folder}), (Command.PLAY, {})]

    return state, []


def handle_normal_key(
    state: UIState,
    event: dict,
    volume_step: int = 5,
    supported_formats: Iterable[str] = DEFAULT_SUPPORTED_FORMATS,
) -> tuple[UIState, Actions]:
    """Transport keys."""
    etype = event["type"]
    char = event["char"]

    if etype in ("escape", "ctrl_c") or char == "q":
        return request_quit(state), []

    if char == " ":
        if state.status.is_playing:
            return state, [(Command.PAUSE, {})]
        return state, [(Command.PLAY, {})]
    if char == "p":
        return state, [(Command.PAUSE, {})]
    if char == "s":
        return state, [(Command.STOP, {})]
    if char == "n" or etype == "arrow_right":
        return state, [(Command.NEXT, {})]
    if char == "b" or etype == "arrow_left":
        return state, [(Command.PREV, {})]
    if char in VOLUME_UP_KEYS or etype == "arrow_up":
        return state, [(Command.VOLUME, {"level": state.status.volume + volume_step})]
    if char in VOLUME_DOWN_KEYS or etype == "arrow_down":
        return state, [(Command.VOLUME, {"level": state.status.volume - volume_step})]
    if char == "a":
        return start_input(state), []
    if char == "f":
        start = state.browser.path if state.browser else str(Path.home())
        return change_directory(state, start, supported_formats), []

    return state, []


def handle_key(
    state: UIState,
    key: Keystroke,
    volume_step: int = 5,
    supported_formats: Iterable[str] = DEFAULT_SUPPORTED_FORMATS,
) -> tuple[UIState, Actions]:
    """
    Handle keyboard input and return updated state.

    Args:
        state: Current UI state
        key: blessed Keystroke
        volume_step: Volume change per key press
        supported_formats: Extensions the file browser lists

    Returns:
        Tuple of (updated state, (command, args) pairs to send in order)
    """
    event = parse_key(key)
    if state.input_active:
        return handle_input_key(state, event)
    if state.browser_active and state.browser is not None:
        return handle_browser_key(state, event, supported_formats)
    return handle_normal_key(state, event, volume_step, supported_formats)
