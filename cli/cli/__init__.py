"""robotctl: operator CLI for the WhizRobot platform."""

__version__ = "0.3.0"
