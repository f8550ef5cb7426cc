"""Licensing and content-sync core for educational robots."""

__version__ = "0.3.0"
