"""UI components for blessed interface."""

from .browser import format_browser_lines
from .dashboard import build_dashboard_lines, create_progress_bar, render_dashboard

__all__ = ["build_dashboard_lines", "create_progress_bar", "format_browser_lines", "render_dashboard"]
