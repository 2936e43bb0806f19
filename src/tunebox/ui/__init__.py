"""UI layer for tunebox.

Contains:
- blessed: Terminal interface (client of the daemon)
"""

__all__ = []
