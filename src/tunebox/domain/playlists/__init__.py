"""Playlist domain - ordered tracks and cursor navigation."""

from .playlist import NavigationPolicy, Playlist

__all__ = ["NavigationPolicy", "Playlist"]
