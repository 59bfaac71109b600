"""
Chat session and message models.

Field aliases follow the camelCase wire format used by the web client and
stored in the document store.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    model_serializer,
    model_validator,
)

from kaichat.models.enums import BotType, MessageRole, MessageType


class ChatUser(BaseModel):
    """Owner of a chat session."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., min_length=1, description="Owner user ID")
    full_name: Optional[str] = Field(None, alias="fullName")
    email: Optional[str] = None


class ChatMessage(BaseModel):
    """
    A single message in a chat session.

    A message carries its body either as ``content`` or, as the web client
    sends it, as ``payload`` (``{"text": ...}`` for text). Roles are free-form
    strings so replies and stored documents with unfamiliar roles still load.
    Unknown client fields are preserved. ``timestamp`` is always assigned by
    the server; whatever the client sends is overwritten on append.
    """

    model_config = ConfigDict(extra="allow")

    role: str = MessageRole.HUMAN.value
    type: str = MessageType.TEXT.value
    content: Any = None
    payload: Any = None
    timestamp: Optional[datetime] = None

    @property
    def body(self) -> Any:
        """The message body, whichever field carries it."""
        return self.content if self.content is not None else self.payload

    @property
    def text(self) -> Optional[str]:
        """Plain text of a text message, or None."""
        if isinstance(self.content, str):
            return self.content
        if isinstance(self.payload, str):
            return self.payload
        if isinstance(self.payload, dict) and isinstance(self.payload.get("text"), str):
            return self.payload["text"]
        return None

    @model_validator(mode="after")
    def _check_body_matches_type(self) -> "ChatMessage":
        if self.type == MessageType.TEXT.value and self.text is None:
            raise ValueError("text messages must carry string content or payload text")
        if self.type == MessageType.STRUCTURED.value and not isinstance(self.body, (dict, list)):
            raise ValueError("structured messages must carry object or array content")
        return self

    @model_serializer(mode="wrap")
    def _omit_absent_body(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data = handler(self)
        for key in ("content", "payload"):
            if data.get(key) is None:
                data.pop(key, None)
        return data

    def stamped(self, timestamp: datetime) -> "ChatMessage":
        """Return a copy carrying the server-assigned timestamp."""
        return self.model_copy(update={"timestamp": timestamp})

    @classmethod
    def from_reply(cls, reply: dict[str, Any], timestamp: datetime) -> "ChatMessage":
        """Build a message from an AI reply item, defaulting the role."""
        data = {"role": MessageRole.AI.value, **reply, "timestamp": timestamp}
        return cls.model_validate(data)


class ChatSession(BaseModel):
    """Chat session document."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    user: ChatUser
    type: BotType
    messages: list[ChatMessage] = Field(default_factory=list)
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    def to_wire(self) -> dict[str, Any]:
        """Serialize with every timestamp as an ISO-8601 string."""
        return self.model_dump(mode="json", by_alias=True)


class HistorySummary(BaseModel):
    """List-view projection of a chat session."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    last_message: Any = Field(..., alias="lastMessage")
    timestamp: Optional[str] = None
    user: dict[str, Any] = Field(default_factory=dict)
    message_count: int = Field(0, alias="messageCount")
    type: str = BotType.CHAT.value
