"""HTTP API for the robot licensing and content-sync platform."""

__version__ = "0.3.0"
