"""
Callable chat endpoints.

Each operation is ``POST /<functionName>`` with body ``{"data": {...}}`` and
answers ``{"result": {...}}``. Errors are rendered by the application's
KaiError handler as ``{"error": {"status", "message"}}``.
"""

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from kaichat.api.deps import Caller, ChatService, HistoryQueryService

router = APIRouter()


class CallableRequest(BaseModel):
    """Callable protocol request body."""

    data: dict[str, Any] = Field(default_factory=dict)


@router.post("/createChatSession")
async def create_chat_session(request: CallableRequest, caller: Caller, service: ChatService):
    """Create a chat session from the first message and return it."""
    session = await service.create_session(
        caller,
        user=request.data.get("user"),
        message=request.data.get("message"),
        bot_type=request.data.get("type"),
    )
    return {"result": {"status": "created", "data": session.to_wire()}}


@router.post("/chat")
async def chat(request: CallableRequest, caller: Caller, service: ChatService):
    """Append a message to a session; the client re-reads the session."""
    await service.append_turn(
        caller,
        session_id=request.data.get("id"),
        message=request.data.get("message"),
    )
    return {"result": {"status": "success"}}


@router.post("/fetchChatHistory")
async def fetch_chat_history(caller: Caller, service: HistoryQueryService):
    """List the caller's sessions as summaries."""
    summaries = await service.fetch_history(caller)
    return {
        "result": {
            "status": "success",
            "data": [summary.model_dump(by_alias=True) for summary in summaries],
        }
    }


@router.post("/reopenChatSession")
async def reopen_chat_session(request: CallableRequest, caller: Caller, service: ChatService):
    """Return a full session owned by the caller."""
    session = await service.reopen_session(caller, request.data.get("chatId"))
    return {"result": {"status": "success", "data": session}}
