"""
Chat session lifecycle: create, append turns, reopen.

Appending is two plain writes with the AI call in between. A crash after the
first write leaves the user's turn stored without a reply.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from kaichat.core.exceptions import (
    AuthenticationError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from kaichat.core.logger import logger
from kaichat.interfaces.auth_provider import User
from kaichat.interfaces.chat_session_repository import IChatSessionRepository
from kaichat.models.chat_session import ChatMessage, ChatSession, ChatUser
from kaichat.models.enums import BotType, MessageRole, MessageType
from kaichat.models.gateway import GatewayResult, SessionPayload
from kaichat.services.boundary import callable_boundary
from kaichat.services.kai_gateway import KaiGateway

# Truncation policy: once a session holds more than MAX_STORED_MESSAGES,
# only the latest RETAINED_MESSAGES are kept before the next append.
MAX_STORED_MESSAGES = 100
RETAINED_MESSAGES = 65


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def truncate_history(messages: list[ChatMessage]) -> list[ChatMessage]:
    """Apply the truncation policy to an existing message list."""
    if len(messages) > MAX_STORED_MESSAGES:
        return messages[-RETAINED_MESSAGES:]
    return messages


def reply_messages(result: GatewayResult, timestamp: datetime) -> list[ChatMessage]:
    """
    Turn a Kai AI response into stamped messages.

    The reply lives under ``data`` of the response body and is either a list
    of messages or a single message. Bare strings become text messages.
    """
    body = result.data
    reply = body.get("data") if isinstance(body, dict) else None
    if reply is None:
        logger.warning("Kai AI response carried no reply messages")
        return []

    items = reply if isinstance(reply, list) else [reply]
    messages = []
    for item in items:
        if isinstance(item, str):
            item = {"type": MessageType.TEXT.value, "content": item}
        if not isinstance(item, dict):
            raise InternalError("Kai AI returned a malformed reply")
        messages.append(ChatMessage.from_reply(item, timestamp))
    return messages


class ChatSessionService:
    """Owns the chat session lifecycle."""

    def __init__(
        self,
        repo: IChatSessionRepository,
        gateway: KaiGateway,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.repo = repo
        self.gateway = gateway
        self._now = clock

    # ---------- Validation ----------

    @staticmethod
    def _require_caller(caller: Optional[User], action: str) -> User:
        if caller is None:
            logger.error("Unauthenticated access attempt")
            raise AuthenticationError(f"User must be authenticated to {action}")
        return caller

    @staticmethod
    def _parse_message(message: Any, require_text: bool = True) -> ChatMessage:
        if not isinstance(message, dict):
            raise ValidationError("Invalid message format")
        content = message.get("content")
        if require_text and (not isinstance(content, str) or not content.strip()):
            logger.error(f"Invalid message format: {message}")
            raise ValidationError("Invalid message format")
        try:
            # Client timestamps are never trusted
            return ChatMessage.model_validate(
                {"role": MessageRole.HUMAN.value, **message, "timestamp": None}
            )
        except PydanticValidationError as e:
            logger.error(f"Invalid message format: {e}")
            raise ValidationError("Invalid message format") from e

    async def _load_owned(self, caller: User, session_id: str) -> ChatSession:
        session = await self.repo.get(session_id)
        if session is None:
            logger.error(f"Chat session not found: {session_id}")
            raise NotFoundError("Chat session not found")
        if session.user.id != caller.id:
            logger.error(
                f"User {caller.id} attempted to access chat session {session_id} "
                f"belonging to user {session.user.id}"
            )
            raise ForbiddenError("You do not have permission to access this chat session")
        return session

    # ---------- Operations ----------

    @callable_boundary(
        "createChatSession",
        "An unexpected error occurred while creating the chat session",
    )
    async def create_session(
        self,
        caller: Optional[User],
        user: Any,
        message: Any,
        bot_type: Any,
    ) -> ChatSession:
        """
        Create a session from the first user message and store the AI reply.

        Checks run in order: authentication, required fields, message format,
        bot type, identity.
        """
        logger.info("createChatSession called")
        caller = self._require_caller(caller, "create a chat session")

        if not user or not message or not bot_type:
            logger.error("Missing required fields")
            raise ValidationError("Missing required fields")

        initial = self._parse_message(message)

        try:
            session_type = BotType(bot_type)
        except ValueError:
            logger.error(f"Invalid bot type: {bot_type}")
            raise ValidationError("Invalid bot type")

        try:
            chat_user = ChatUser.model_validate(user)
        except PydanticValidationError as e:
            logger.error(f"Invalid user: {e}")
            raise ValidationError("Invalid user") from e

        if chat_user.id != caller.id:
            logger.error(f"User ID mismatch: provided={chat_user.id} auth={caller.id}")
            raise ForbiddenError("User ID does not match authenticated user")

        now = self._now()
        initial = initial.stamped(now)
        created = await self.repo.create(
            ChatSession(
                user=chat_user,
                type=session_type,
                messages=[initial],
                created_at=now,
                updated_at=now,
            )
        )
        logger.info(f"Created new chat session with ID: {created.id}")

        result = await self.gateway.send(
            SessionPayload(user=chat_user, type=session_type, messages=[initial])
        )
        logger.info("Received response from Kai AI")

        messages = created.messages + reply_messages(result, self._now())
        await self.repo.update_messages(created.id, messages, self._now())

        stored = await self.repo.get(created.id)
        if stored is None:
            raise InternalError("Chat session vanished after creation")
        logger.info("Successfully created and updated chat session")
        return stored

    @callable_boundary("chat", "An unexpected error occurred while sending the message")
    async def append_turn(
        self,
        caller: Optional[User],
        session_id: Any,
        message: Any,
    ) -> None:
        """
        Append a user turn, forward the history to Kai AI and store its reply.

        Two writes: the user turn before the AI call, the reply after it.
        """
        logger.info(f"chat called for session {session_id}")
        caller = self._require_caller(caller, "chat")

        if not session_id or not message:
            logger.error("Missing required fields")
            raise ValidationError("Missing required fields")

        incoming = self._parse_message(message, require_text=False)
        session = await self._load_owned(caller, str(session_id))

        now = self._now()
        history = truncate_history(session.messages)
        if len(history) != len(session.messages):
            logger.info(
                f"Truncated session {session.id} from {len(session.messages)} "
                f"to {len(history)} messages"
            )
        updated = history + [incoming.stamped(now)]
        await self.repo.update_messages(session.id, updated, now)

        result = await self.gateway.send(
            SessionPayload(user=session.user, type=session.type, messages=updated)
        )

        final = updated + reply_messages(result, self._now())
        await self.repo.update_messages(session.id, final, self._now())
        logger.info(f"Appended turn to session {session.id} ({len(final)} messages)")

    @callable_boundary(
        "reopenChatSession",
        "An unexpected error occurred while reopening the chat session",
    )
    async def reopen_session(self, caller: Optional[User], chat_id: Any) -> dict[str, Any]:
        """
        Return a session owned by the caller, timestamps as ISO-8601 strings.
        """
        caller = self._require_caller(caller, "reopen a chat session")
        logger.info(f"Attempting to reopen chat session {chat_id} for user {caller.id}")

        if not chat_id:
            logger.error("Missing chatId in request")
            raise ValidationError("Missing chatId")

        session = await self._load_owned(caller, str(chat_id))
        logger.info(f"Successfully reopened chat session: {chat_id}")
        return session.to_wire()
