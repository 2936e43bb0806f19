"""File browser rendering."""

from blessed import Terminal

from ..state import BROWSER_ROWS, BrowserState

BROWSER_HELP_LINE = "↑/k ↓/j move  enter/→ open/play  ←/h up  p play  a add  A add folder & play  q back"


def format_browser_lines(term: Terminal, browser: BrowserState, max_rows: int = BROWSER_ROWS) -> list[str]:
    """Header with the current directory, then the visible window of entries."""
    lines = [term.bold(f"Browse {browser.path}")]
    if not browser.entries:
        lines.append(term.white("  (nothing playable here)"))
        return lines

    window = browser.entries[browser.scroll:browser.scroll + max_rows]
    for i, entry in enumerate(window, start=browser.scroll):
        label = f"{entry.name}/" if entry.is_dir else entry.name
        if i == browser.selected:
            lines.append(term.black_on_cyan(f"> {label}"))
        elif entry.is_dir:
            lines.append(term.cyan(f"  {label}"))
        else:
            lines.append(term.white(f"  {label}"))

    hidden = len(browser.entries) - browser.scroll - len(window)
    if hidden > 0:
        lines.append(term.dim(f"  ({hidden} more)"))
    return lines
