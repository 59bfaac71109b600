"""
SQLite implementation of Chat session repository.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from kaichat.core.exceptions import InfrastructureError
from kaichat.infrastructure.local.database import ChatSessionORM, get_session_factory
from kaichat.interfaces.chat_session_repository import IChatSessionRepository
from kaichat.models.chat_session import ChatMessage, ChatSession


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqliteChatSessionRepository(IChatSessionRepository):
    """SQLite implementation of chat session repository."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: ChatSessionORM) -> ChatSession:
        """Convert ORM object to Pydantic model."""
        return ChatSession(
            id=orm.id,
            user=orm.user,
            type=orm.type,
            messages=orm.messages or [],
            created_at=_as_utc(orm.created_at),
            updated_at=_as_utc(orm.updated_at),
        )

    @staticmethod
    def _dump_messages(messages: list[ChatMessage]) -> list[dict]:
        return [m.model_dump(mode="json") for m in messages]

    async def create(self, session: ChatSession) -> ChatSession:
        """Persist a new session document."""
        try:
            async with self._session_factory() as db:
                orm = ChatSessionORM(
                    user_id=session.user.id,
                    user=session.user.model_dump(mode="json", by_alias=True),
                    type=session.type.value,
                    messages=self._dump_messages(session.messages),
                    created_at=session.created_at,
                    updated_at=session.updated_at,
                )
                db.add(orm)
                await db.commit()
                await db.refresh(orm)
                return self._orm_to_model(orm)
        except SQLAlchemyError as e:
            raise InfrastructureError(f"Failed to create chat session: {e}") from e

    async def get(self, session_id: str) -> Optional[ChatSession]:
        """Fetch a session by id."""
        try:
            async with self._session_factory() as db:
                orm = await db.get(ChatSessionORM, session_id)
                return self._orm_to_model(orm) if orm else None
        except SQLAlchemyError as e:
            raise InfrastructureError(f"Failed to read chat session: {e}") from e

    async def update_messages(
        self,
        session_id: str,
        messages: list[ChatMessage],
        updated_at: datetime,
    ) -> None:
        """Replace the message list of a session."""
        try:
            async with self._session_factory() as db:
                orm = await db.get(ChatSessionORM, session_id)
                if orm is None:
                    raise InfrastructureError(f"Chat session disappeared: {session_id}")
                orm.messages = self._dump_messages(messages)
                orm.updated_at = updated_at
                await db.commit()
        except SQLAlchemyError as e:
            raise InfrastructureError(f"Failed to update chat session: {e}") from e

    async def list_for_user(self, user_id: str, ordered: bool = True) -> list[ChatSession]:
        """List the sessions owned by a user."""
        query = select(ChatSessionORM).where(ChatSessionORM.user_id == user_id)
        if ordered:
            query = query.order_by(ChatSessionORM.updated_at.desc())
        try:
            async with self._session_factory() as db:
                result = await db.execute(query)
                return [self._orm_to_model(orm) for orm in result.scalars().all()]
        except SQLAlchemyError as e:
            raise InfrastructureError(f"Failed to list chat sessions: {e}") from e
