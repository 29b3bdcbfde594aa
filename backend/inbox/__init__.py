"""Conversation inbox for riders, drivers and support staff."""

__version__ = "1.0.0"
