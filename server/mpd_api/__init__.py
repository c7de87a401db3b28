"""HTTP control API for a Music Player Daemon."""

__version__ = "0.1.0"
