"""
Firestore implementation of Chat session repository.

Documents live in a single collection keyed by generated id and use the
camelCase field names of the web client.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from kaichat.core.exceptions import IndexUnavailableError, InfrastructureError
from kaichat.interfaces.chat_session_repository import IChatSessionRepository
from kaichat.models.chat_session import ChatMessage, ChatSession
from kaichat.models.enums import BotType


class FirestoreChatSessionRepository(IChatSessionRepository):
    """Firestore implementation of chat session repository."""

    def __init__(
        self,
        collection_name: str = "chatSessions",
        project_id: str | None = None,
        client=None,
    ):
        self._client = client or self._create_client(project_id)
        self._collection = self._client.collection(collection_name)

    def _create_client(self, project_id: str | None):
        try:
            from google.cloud import firestore
        except ImportError as e:
            raise InfrastructureError(
                "google-cloud-firestore is not installed. Install with: pip install google-cloud-firestore"
            ) from e
        return firestore.AsyncClient(project=project_id or None)

    @staticmethod
    def _dump_messages(messages: list[ChatMessage]) -> list[dict[str, Any]]:
        dumped = []
        for message in messages:
            data = message.model_dump(mode="json")
            # Keep native datetimes so Firestore stores Timestamps
            data["timestamp"] = message.timestamp
            dumped.append(data)
        return dumped

    @staticmethod
    def _snapshot_to_model(snapshot) -> ChatSession:
        data = snapshot.to_dict() or {}
        return ChatSession(
            id=snapshot.id,
            user=data.get("user") or {},
            type=data.get("type") or BotType.CHAT.value,
            messages=data.get("messages") or [],
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    async def create(self, session: ChatSession) -> ChatSession:
        doc_ref = self._collection.document()
        # The id is also kept inside the document for client-side listeners
        data = {
            "id": doc_ref.id,
            "user": session.user.model_dump(mode="json", by_alias=True),
            "type": session.type.value,
            "messages": self._dump_messages(session.messages),
            "createdAt": session.created_at,
            "updatedAt": session.updated_at,
        }
        try:
            await doc_ref.set(data)
        except Exception as e:
            raise InfrastructureError(f"Failed to create chat session: {e}") from e
        return session.model_copy(update={"id": doc_ref.id})

    async def get(self, session_id: str) -> Optional[ChatSession]:
        try:
            snapshot = await self._collection.document(session_id).get()
        except Exception as e:
            raise InfrastructureError(f"Failed to read chat session: {e}") from e
        if not snapshot.exists:
            return None
        return self._snapshot_to_model(snapshot)

    async def update_messages(
        self,
        session_id: str,
        messages: list[ChatMessage],
        updated_at: datetime,
    ) -> None:
        try:
            await self._collection.document(session_id).update(
                {
                    "messages": self._dump_messages(messages),
                    "updatedAt": updated_at,
                }
            )
        except Exception as e:
            raise InfrastructureError(f"Failed to update chat session: {e}") from e

    async def list_for_user(self, user_id: str, ordered: bool = True) -> list[ChatSession]:
        try:
            from google.api_core.exceptions import FailedPrecondition
            from google.cloud.firestore import Query
            from google.cloud.firestore_v1.base_query import FieldFilter
        except ImportError as e:
            raise InfrastructureError("google-cloud-firestore is not installed") from e

        query = self._collection.where(filter=FieldFilter("user.id", "==", user_id))
        if ordered:
            query = query.order_by("updatedAt", direction=Query.DESCENDING)

        try:
            snapshots = await query.get()
        except FailedPrecondition as e:
            # gRPC code 9: the composite index for this query is missing
            raise IndexUnavailableError(f"Ordering index unavailable: {e}") from e
        except Exception as e:
            raise InfrastructureError(f"Failed to list chat sessions: {e}") from e
        return [self._snapshot_to_model(snapshot) for snapshot in snapshots]
