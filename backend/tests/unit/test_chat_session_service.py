"""
Unit tests for ChatSessionService.
"""

from datetime import datetime, timedelta, timezone

import pytest

from fakes import make_clock
from kaichat.core.exceptions import (
    AuthenticationError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from kaichat.models.chat_session import ChatMessage, ChatSession, ChatUser
from kaichat.models.enums import BotType, MessageRole
from kaichat.models.gateway import GatewayResult
from kaichat.services.chat_session_service import (
    MAX_STORED_MESSAGES,
    RETAINED_MESSAGES,
    ChatSessionService,
    reply_messages,
    truncate_history,
)

START = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
USER = {"id": "user-1", "fullName": "User One", "email": "user1@example.com"}


@pytest.fixture
def service(repo, gateway):
    return ChatSessionService(repo=repo, gateway=gateway, clock=make_clock(START))


def _seed(repo, owner: str = "user-1", count: int = 2, session_id: str = "session-1") -> ChatSession:
    stamp = START - timedelta(hours=1)
    session = ChatSession(
        id=session_id,
        user=ChatUser(id=owner),
        type=BotType.CHAT,
        messages=[
            ChatMessage(
                role=MessageRole.HUMAN.value if i % 2 == 0 else MessageRole.AI.value,
                content=f"m{i}",
                timestamp=stamp,
            )
            for i in range(count)
        ],
        created_at=stamp,
        updated_at=stamp,
    )
    repo.sessions[session_id] = session
    return session


# ===========================================
# createChatSession
# ===========================================


@pytest.mark.asyncio
async def test_create_session_stores_message_and_reply(service, repo, kai, caller):
    session = await service.create_session(
        caller,
        user=USER,
        message={"role": "human", "type": "text", "content": "Hello"},
        bot_type="chat",
    )

    assert session.id in repo.sessions
    assert [m.content for m in session.messages] == ["Hello", "Hello!"]
    assert session.messages[0].role == MessageRole.HUMAN
    assert session.messages[1].role == MessageRole.AI
    assert session.user.full_name == "User One"
    assert session.created_at == START

    sent = kai.sent_json()
    assert sent["type"] == "chat"
    assert sent["user"]["id"] == "user-1"
    assert [m["content"] for m in sent["messages"]] == ["Hello"]


@pytest.mark.asyncio
async def test_create_session_stores_reply_in_client_payload_shape(service, repo, kai, caller):
    kai.body = {"data": [{"role": "ai", "type": "text", "payload": {"text": "Hello!"}}]}

    session = await service.create_session(
        caller,
        user=USER,
        message={"role": "human", "type": "text", "content": "Hello"},
        bot_type="chat",
    )

    reply = session.messages[-1]
    assert reply.text == "Hello!"
    assert reply.payload == {"text": "Hello!"}
    assert reply.timestamp == START + timedelta(seconds=1)
    assert len(repo.writes) == 1


@pytest.mark.asyncio
async def test_create_session_overwrites_client_timestamp(service, caller):
    session = await service.create_session(
        caller,
        user=USER,
        message={"content": "Hello", "timestamp": "1999-01-01T00:00:00Z"},
        bot_type="chat",
    )

    assert session.messages[0].timestamp == START
    assert session.messages[0].role == MessageRole.HUMAN


@pytest.mark.asyncio
async def test_create_session_requires_caller_before_fields(service):
    with pytest.raises(AuthenticationError):
        await service.create_session(None, user=None, message=None, bot_type=None)


@pytest.mark.asyncio
async def test_create_session_missing_fields(service, caller):
    with pytest.raises(ValidationError) as exc_info:
        await service.create_session(caller, user=USER, message=None, bot_type="chat")
    assert exc_info.value.message == "Missing required fields"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "message",
    [
        {"content": 123},
        {"content": "   "},
        {"role": "human"},
        "just a string",
    ],
)
async def test_create_session_rejects_invalid_message(service, caller, message):
    with pytest.raises(ValidationError) as exc_info:
        await service.create_session(caller, user=USER, message=message, bot_type="chat")
    assert exc_info.value.message == "Invalid message format"


@pytest.mark.asyncio
async def test_create_session_checks_message_before_bot_type(service, caller):
    with pytest.raises(ValidationError) as exc_info:
        await service.create_session(caller, user=USER, message={"content": 5}, bot_type="nope")
    assert exc_info.value.message == "Invalid message format"


@pytest.mark.asyncio
async def test_create_session_rejects_unknown_bot_type(service, caller):
    with pytest.raises(ValidationError) as exc_info:
        await service.create_session(caller, user=USER, message={"content": "Hi"}, bot_type="nope")
    assert exc_info.value.message == "Invalid bot type"


@pytest.mark.asyncio
async def test_create_session_rejects_identity_mismatch(service, repo, kai, caller):
    with pytest.raises(ForbiddenError):
        await service.create_session(
            caller,
            user={"id": "someone-else"},
            message={"content": "Hi"},
            bot_type="chat",
        )
    assert repo.sessions == {}
    assert kai.requests == []


@pytest.mark.asyncio
async def test_create_session_gateway_failure_keeps_initial_message(repo, gateway, kai, caller):
    kai.status_code = 500
    kai.body = {"message": "Model overloaded"}
    service = ChatSessionService(repo=repo, gateway=gateway, clock=make_clock(START))

    with pytest.raises(InternalError) as exc_info:
        await service.create_session(caller, user=USER, message={"content": "Hi"}, bot_type="chat")

    assert exc_info.value.message == "Model overloaded"
    (stored,) = repo.sessions.values()
    assert [m.content for m in stored.messages] == ["Hi"]


@pytest.mark.asyncio
async def test_create_session_wraps_unexpected_errors(gateway, caller):
    class BrokenRepo:
        async def create(self, session):
            raise RuntimeError("disk on fire")

    service = ChatSessionService(repo=BrokenRepo(), gateway=gateway)

    with pytest.raises(InternalError) as exc_info:
        await service.create_session(caller, user=USER, message={"content": "Hi"}, bot_type="chat")

    assert exc_info.value.message == "An unexpected error occurred while creating the chat session"


# ===========================================
# chat
# ===========================================


@pytest.mark.asyncio
async def test_append_turn_writes_twice(service, repo, kai, caller):
    _seed(repo)

    result = await service.append_turn(caller, "session-1", {"content": "next"})

    assert result is None
    assert len(repo.writes) == 2
    first, second = repo.writes[0][1], repo.writes[1][1]
    assert [m.content for m in first] == ["m0", "m1", "next"]
    assert [m.content for m in second] == ["m0", "m1", "next", "Hello!"]
    assert first[-1].timestamp == START
    assert [m["content"] for m in kai.sent_json()["messages"]] == ["m0", "m1", "next"]


@pytest.mark.asyncio
async def test_append_turn_truncates_long_history(service, repo, caller):
    _seed(repo, count=MAX_STORED_MESSAGES + 1)

    await service.append_turn(caller, "session-1", {"content": "latest"})

    first = repo.writes[0][1]
    assert len(first) == RETAINED_MESSAGES + 1
    assert first[0].content == f"m{MAX_STORED_MESSAGES + 1 - RETAINED_MESSAGES}"
    assert first[-1].content == "latest"


@pytest.mark.asyncio
async def test_append_turn_keeps_history_at_limit(service, repo, caller):
    _seed(repo, count=MAX_STORED_MESSAGES)

    await service.append_turn(caller, "session-1", {"content": "latest"})

    assert len(repo.writes[0][1]) == MAX_STORED_MESSAGES + 1


@pytest.mark.asyncio
async def test_append_turn_accepts_structured_content(service, repo, caller):
    _seed(repo)

    await service.append_turn(
        caller,
        "session-1",
        {"type": "structured", "content": {"choice": "B"}, "clientId": "abc"},
    )

    appended = repo.writes[0][1][-1]
    assert appended.content == {"choice": "B"}
    assert appended.model_dump()["clientId"] == "abc"


@pytest.mark.asyncio
async def test_append_turn_accepts_client_payload_shape(service, repo, kai, caller):
    _seed(repo)

    await service.append_turn(
        caller,
        "session-1",
        {"role": "human", "type": "text", "payload": {"text": "next"}},
    )

    appended = repo.writes[0][1][-1]
    assert appended.text == "next"
    assert kai.sent_json()["messages"][-1]["payload"] == {"text": "next"}
    assert "content" not in kai.sent_json()["messages"][-1]


@pytest.mark.asyncio
async def test_append_turn_unknown_session(service, caller):
    with pytest.raises(NotFoundError):
        await service.append_turn(caller, "missing", {"content": "hi"})


@pytest.mark.asyncio
async def test_append_turn_foreign_session(service, repo, kai, caller):
    _seed(repo, owner="someone-else")

    with pytest.raises(ForbiddenError):
        await service.append_turn(caller, "session-1", {"content": "hi"})

    assert repo.writes == []
    assert kai.requests == []


@pytest.mark.asyncio
async def test_append_turn_requires_caller(service):
    with pytest.raises(AuthenticationError):
        await service.append_turn(None, None, None)


@pytest.mark.asyncio
async def test_append_turn_gateway_failure_keeps_user_turn(repo, gateway, kai, caller):
    _seed(repo)
    kai.status_code = 503
    kai.body = b"unavailable"
    service = ChatSessionService(repo=repo, gateway=gateway, clock=make_clock(START))

    with pytest.raises(InternalError):
        await service.append_turn(caller, "session-1", {"content": "next"})

    assert len(repo.writes) == 1
    assert repo.sessions["session-1"].messages[-1].content == "next"


# ===========================================
# reopenChatSession
# ===========================================


@pytest.mark.asyncio
async def test_reopen_returns_iso_timestamps(service, repo, caller):
    _seed(repo)

    data = await service.reopen_session(caller, "session-1")

    assert data["id"] == "session-1"
    assert data["createdAt"] == "2026-03-01T08:00:00Z"
    assert data["updatedAt"] == "2026-03-01T08:00:00Z"
    assert all(isinstance(m["timestamp"], str) for m in data["messages"])
    assert [m["content"] for m in data["messages"]] == ["m0", "m1"]


@pytest.mark.asyncio
async def test_reopen_rejects_foreign_session(service, repo, caller):
    _seed(repo, owner="someone-else")

    with pytest.raises(ForbiddenError):
        await service.reopen_session(caller, "session-1")


@pytest.mark.asyncio
async def test_reopen_requires_chat_id(service, caller):
    with pytest.raises(ValidationError):
        await service.reopen_session(caller, None)


@pytest.mark.asyncio
async def test_reopen_requires_caller(service):
    with pytest.raises(AuthenticationError):
        await service.reopen_session(None, "session-1")


# ===========================================
# Helpers
# ===========================================


def test_truncate_history_boundary():
    messages = [ChatMessage(role="human", content=str(i)) for i in range(MAX_STORED_MESSAGES + 5)]

    assert truncate_history(messages[:MAX_STORED_MESSAGES]) == messages[:MAX_STORED_MESSAGES]
    assert truncate_history(messages) == messages[-RETAINED_MESSAGES:]


@pytest.mark.parametrize(
    "body, expected",
    [
        ({"data": [{"content": "a"}, {"content": "b"}]}, ["a", "b"]),
        ({"data": {"role": "assistant", "content": "single"}}, ["single"]),
        ({"data": "plain text"}, ["plain text"]),
        ({"data": None}, []),
        ({}, []),
    ],
)
def test_reply_messages_normalizes_shapes(body, expected):
    messages = reply_messages(GatewayResult(data=body), START)

    assert [m.content for m in messages] == expected
    assert all(m.timestamp == START for m in messages)


def test_reply_messages_defaults_role_to_ai():
    (message,) = reply_messages(GatewayResult(data={"data": [{"content": "x"}]}), START)
    assert message.role == MessageRole.AI


def test_reply_messages_rejects_non_object_items():
    with pytest.raises(InternalError):
        reply_messages(GatewayResult(data={"data": [42]}), START)
