"""
Enum definitions for the application.
"""

from enum import Enum


class BotType(str, Enum):
    """Kind of conversation routed to the Kai AI service."""

    CHAT = "chat"
    TOOL = "tool"


class MessageRole(str, Enum):
    """Author of a chat message."""

    HUMAN = "human"
    AI = "ai"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageType(str, Enum):
    """
    Content kinds whose payload shape is checked.

    TEXT = content is a string, or payload is a string or carries a string "text"
    STRUCTURED = content or payload is a JSON object or array
    """

    TEXT = "text"
    STRUCTURED = "structured"
