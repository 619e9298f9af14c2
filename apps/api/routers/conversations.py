"""Direct messaging router: conversations, messages, read receipts and change streams."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db, get_session_factory
from routers.auth_scope import AuthContext, get_auth_context
from routers.rate_limit import rate_limit
from services.change_stream import format_sse, session_reader, watch_snapshots
from services.messaging import (
    delete_conversation,
    delete_message,
    get_conversation_messages,
    get_or_create_conversation,
    get_total_unread_count,
    get_user_conversations,
    mark_messages_as_read,
    send_message,
)
from services.profiles import ensure_profile, get_user, participant_data

router = APIRouter()
logger = logging.getLogger(__name__)


class StartConversationRequest(BaseModel):
    recipient_id: str = Field(min_length=1)


class SendMessageRequest(BaseModel):
    recipient_id: str = Field(min_length=1)
    text: str = Field(max_length=5000)


async def _sse(request: Request, event: str, snapshots: AsyncIterator[Any]) -> AsyncIterator[str]:
    async for snapshot in snapshots:
        if await request.is_disconnected():
            break
        yield format_sse(event, snapshot)


def _stream_response(body: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(
        body,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("")
async def start_conversation(
    request: StartConversationRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Find or create the conversation between the caller and a recipient."""
    sender = await ensure_profile(db, auth.user_id, auth.email, auth.name)
    recipient = await get_user(request.recipient_id, db)
    try:
        return await get_or_create_conversation(
            sender.id,
            participant_data(sender),
            recipient.id,
            participant_data(recipient),
            db,
        )
    except HTTPException:
        raise
    except Exception:
        raise HTTPException(status_code=500, detail="Failed to start conversation.")


@router.get("")
async def list_conversations(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    conversations = await get_user_conversations(auth.user_id, db)
    return {"items": conversations, "count": len(conversations)}


@router.get("/unread-count")
async def unread_count(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return {"unread_count": await get_total_unread_count(auth.user_id, db)}


@router.get("/stream")
async def stream_conversations(
    request: Request,
    max_events: Optional[int] = Query(default=None, ge=1),
    auth: AuthContext = Depends(get_auth_context),
    session_factory=Depends(get_session_factory),
):
    """Server-sent events carrying the caller's inbox whenever it changes."""

    async def read(db: AsyncSession):
        return await get_user_conversations(auth.user_id, db)

    snapshots = watch_snapshots(
        session_reader(read, session_factory),
        settings.CONVERSATION_POLL_SECONDS,
        max_events=max_events,
    )
    return _stream_response(_sse(request, "conversations", snapshots))


@router.delete("/{conversation_id}")
async def remove_conversation(
    conversation_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Hide the conversation for the caller only."""
    try:
        await delete_conversation(conversation_id, auth.user_id, db)
    except HTTPException:
        raise
    except Exception:
        raise HTTPException(status_code=500, detail="Failed to delete conversation.")
    return {"ok": True}


@router.get("/{conversation_id}/messages")
async def list_messages(
    conversation_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    messages = await get_conversation_messages(conversation_id, auth.user_id, db)
    return {"items": messages, "count": len(messages)}


@router.get("/{conversation_id}/messages/stream")
async def stream_messages(
    conversation_id: str,
    request: Request,
    max_events: Optional[int] = Query(default=None, ge=1),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    session_factory=Depends(get_session_factory),
):
    """Server-sent events carrying an open thread whenever it changes."""
    # Validate access up front so a stranger gets 403/404 rather than an empty stream.
    await get_conversation_messages(conversation_id, auth.user_id, db)

    async def read(session: AsyncSession):
        return await get_conversation_messages(conversation_id, auth.user_id, session)

    snapshots = watch_snapshots(
        session_reader(read, session_factory),
        settings.MESSAGE_POLL_SECONDS,
        max_events=max_events,
    )
    return _stream_response(_sse(request, "messages", snapshots))


@router.post("/{conversation_id}/messages")
async def post_message(
    conversation_id: str,
    request: SendMessageRequest,
    _rate_limit: None = Depends(rate_limit("send_message", limit=120, window_seconds=60)),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    sender = await ensure_profile(db, auth.user_id, auth.email, auth.name)
    try:
        return await send_message(
            conversation_id,
            sender.id,
            participant_data(sender),
            request.recipient_id,
            request.text,
            db,
        )
    except HTTPException:
        raise
    except Exception:
        raise HTTPException(status_code=500, detail="Failed to send message.")


@router.post("/{conversation_id}/read")
async def read_messages(
    conversation_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await mark_messages_as_read(conversation_id, auth.user_id, db)
    except HTTPException:
        raise
    except Exception:
        raise HTTPException(status_code=500, detail="Failed to mark messages as read.")


@router.delete("/{conversation_id}/messages/{message_id}")
async def remove_message(
    conversation_id: str,
    message_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Hide one message for the caller only."""
    try:
        await delete_message(conversation_id, message_id, auth.user_id, db)
    except HTTPException:
        raise
    except Exception:
        raise HTTPException(status_code=500, detail="Failed to delete message.")
    return {"ok": True}
