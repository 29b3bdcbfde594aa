"""Utility functions."""

from inbox.utils.security import authenticate, create_access_token, decode_token
from inbox.utils.text import like_pattern

__all__ = ["authenticate", "create_access_token", "decode_token", "like_pattern"]
