"""Terminal output utilities that prevent rendering artifacts."""

import sys

from blessed import Terminal


def write_at(term: Terminal, x: int, y: int, content: str, *, clear: bool = True) -> None:
    """Write content at position, clearing the rest of the line by default.

    Shorter content than the previous frame would otherwise leave stale
    characters behind.

    Args:
        term: Blessed terminal instance
        x: Column position (0-indexed)
        y: Row position (0-indexed)
        content: Text to write (can include terminal formatting)
        clear: Whether to clear to end of line first
    """
    prefix = term.move_xy(x, y) + (term.clear_eol if clear else "")
    sys.stdout.write(prefix + content)


def clear_below(term: Terminal, y: int) -> None:
    """Blank every row from y to the bottom of the screen."""
    for row in range(y, term.height):
        sys.stdout.write(term.move_xy(0, row) + term.clear_eol)
