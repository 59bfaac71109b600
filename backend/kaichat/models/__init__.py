"""Pydantic models (schemas) for the application."""

from kaichat.models.enums import BotType, MessageRole, MessageType
from kaichat.models.chat_session import ChatMessage, ChatSession, ChatUser, HistorySummary
from kaichat.models.gateway import GatewayPayload, GatewayResult, SessionPayload, ToolPayload
from kaichat.models.tool import ToolData, ToolInput, ToolRequest, ToolResponse, UploadedArtifact

__all__ = [
    # Enums
    "BotType",
    "MessageRole",
    "MessageType",
    # Chat sessions
    "ChatUser",
    "ChatMessage",
    "ChatSession",
    "HistorySummary",
    # Tools
    "ToolData",
    "ToolInput",
    "ToolRequest",
    "ToolResponse",
    "UploadedArtifact",
    # Gateway
    "GatewayPayload",
    "GatewayResult",
    "SessionPayload",
    "ToolPayload",
]
