"""tunebox - a local music player daemon with a terminal client."""

__version__ = "0.1.0"
