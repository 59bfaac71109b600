"""API routers."""

from kaichat.api import chat, tool

__all__ = [
    "chat",
    "tool",
]
