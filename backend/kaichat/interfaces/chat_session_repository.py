"""
Chat session repository interface.

Defines the contract for chat session documents in a document store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from kaichat.models.chat_session import ChatMessage, ChatSession


class IChatSessionRepository(ABC):
    """Abstract interface for chat session persistence."""

    @abstractmethod
    async def create(self, session: ChatSession) -> ChatSession:
        """
        Persist a new session document.

        Args:
            session: Session without an id

        Returns:
            The stored session carrying its store-assigned id
        """
        pass

    @abstractmethod
    async def get(self, session_id: str) -> Optional[ChatSession]:
        """
        Fetch a session by id.

        Args:
            session_id: Session ID

        Returns:
            ChatSession or None if no record exists
        """
        pass

    @abstractmethod
    async def update_messages(
        self,
        session_id: str,
        messages: list[ChatMessage],
        updated_at: datetime,
    ) -> None:
        """
        Replace the message list of a session and refresh ``updatedAt``.

        Last write wins; there is no conditional update.

        Args:
            session_id: Session ID
            messages: Full message list to store
            updated_at: New ``updatedAt`` value
        """
        pass

    @abstractmethod
    async def list_for_user(self, user_id: str, ordered: bool = True) -> list[ChatSession]:
        """
        List the sessions owned by a user.

        Args:
            user_id: Owner user ID (matched against ``user.id``)
            ordered: Order by ``updatedAt`` descending

        Returns:
            List of chat sessions

        Raises:
            IndexUnavailableError: ``ordered`` was requested but the store
                has no index to serve it
        """
        pass
