"""Domain layer: library (tracks), playlists and playback."""
