"""
Kai AI gateway payloads.

The outbound body is a tagged union on ``type``: session payloads carry
``messages``, tool payloads carry ``tool_data``. Each variant renders its own
request body, so callers never assemble the shape by hand.
"""

from typing import Any, Literal, Union

from pydantic import BaseModel

from kaichat.models.chat_session import ChatMessage, ChatUser
from kaichat.models.enums import BotType
from kaichat.models.tool import ToolData


class SessionPayload(BaseModel):
    """Conversation history forwarded for a chat session."""

    user: ChatUser
    type: BotType
    messages: list[ChatMessage]

    def to_request_body(self) -> dict[str, Any]:
        return {
            "user": self.user.model_dump(mode="json", by_alias=True),
            "type": self.type.value,
            "messages": [m.model_dump(mode="json") for m in self.messages],
        }


class ToolPayload(BaseModel):
    """A one-shot tool invocation."""

    type: Literal[BotType.TOOL] = BotType.TOOL
    user: dict[str, Any] | None = None
    tool_data: ToolData

    def to_request_body(self) -> dict[str, Any]:
        return {
            "user": self.user,
            "type": BotType.TOOL.value,
            "tool_data": self.tool_data.model_dump(mode="json"),
        }


GatewayPayload = Union[SessionPayload, ToolPayload]


class GatewayResult(BaseModel):
    """Normalized successful response of the Kai AI service."""

    status: Literal["success"] = "success"
    data: Any = None
