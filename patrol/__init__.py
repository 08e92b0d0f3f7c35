"""Patrol assistant: natural-language task creation for tunnel inspection robots."""

__version__ = "0.1.0"
