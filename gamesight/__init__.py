"""gamesight - visual detection pipeline for game client screen captures."""

__version__ = "0.1.0"
