"""Placetime fetcher - feed polling and item image service."""

__app_name__ = "placetime-fetcher"
__version__ = "0.3.0"
