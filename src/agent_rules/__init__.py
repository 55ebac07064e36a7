"""Agent rules generator - recipe acquisition and caching core."""

__version__ = "1.3.0"
