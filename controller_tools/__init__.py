"""Controller battery and connection reporting for the Steam Deck."""

__version__ = "2.1.0"
