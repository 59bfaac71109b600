"""
Chat history listing.

The ordered query needs a composite index in the document store. When that
index is missing, the same filter is run without ordering and results come
back in store order.
"""

from __future__ import annotations

from typing import Any, Optional

from kaichat.core.exceptions import AuthenticationError, IndexUnavailableError
from kaichat.core.logger import logger
from kaichat.interfaces.auth_provider import User
from kaichat.interfaces.chat_session_repository import IChatSessionRepository
from kaichat.models.chat_session import ChatMessage, ChatSession, HistorySummary
from kaichat.services.boundary import callable_boundary

NO_MESSAGES = "No messages"

# gRPC FAILED_PRECONDITION
_FAILED_PRECONDITION_CODES = {9, "FAILED_PRECONDITION", "failed-precondition"}


def is_index_unavailable(error: BaseException) -> bool:
    """Classify an error as "ordering index missing"."""
    if isinstance(error, IndexUnavailableError):
        return True
    # google.api_core errors: ``code`` is the HTTP status, gRPC status is separate
    grpc_status = getattr(error, "grpc_status_code", None)
    if grpc_status is not None:
        return getattr(grpc_status, "name", None) == "FAILED_PRECONDITION"
    return getattr(error, "code", None) in _FAILED_PRECONDITION_CODES


def _last_message_text(last: Optional[ChatMessage]) -> Any:
    if last is None:
        return NO_MESSAGES
    return last.text if last.text is not None else last.body


def summarize(session: ChatSession) -> HistorySummary:
    """Reduce a session to its list-view projection."""
    last = session.messages[-1] if session.messages else None
    return HistorySummary(
        id=session.id or "",
        last_message=_last_message_text(last),
        timestamp=session.updated_at.isoformat() if session.updated_at else None,
        user=session.user.model_dump(mode="json", by_alias=True),
        message_count=len(session.messages),
        type=session.type.value,
    )


class HistoryService:
    """Lists a user's chat sessions for the history sidebar."""

    def __init__(self, repo: IChatSessionRepository):
        self.repo = repo

    async def _query_sessions(self, user_id: str) -> list[ChatSession]:
        try:
            return await self.repo.list_for_user(user_id, ordered=True)
        except Exception as e:
            if not is_index_unavailable(e):
                logger.error(f"Error executing chat history query: {e}")
                raise
            logger.warning("Index not found, falling back to unordered query")
        return await self.repo.list_for_user(user_id, ordered=False)

    @callable_boundary(
        "fetchChatHistory",
        "An unexpected error occurred while fetching chat history",
    )
    async def fetch_history(self, caller: Optional[User]) -> list[HistorySummary]:
        """
        Fetch history summaries for the caller, newest first when possible.
        """
        logger.info("fetchChatHistory called")
        if caller is None:
            logger.error("Unauthenticated access attempt")
            raise AuthenticationError("User must be authenticated to fetch chat history")

        sessions = await self._query_sessions(caller.id)
        logger.info(f"Found {len(sessions)} chat sessions for userId: {caller.id}")
        return [summarize(session) for session in sessions]
