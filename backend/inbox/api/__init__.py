"""API route handlers."""

from inbox.api import conversations, messages, inbox

__all__ = [
    "conversations",
    "messages",
    "inbox",
]
