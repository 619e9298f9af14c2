"""Two-party conversations, messages, read receipts and per-user soft delete."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import uuid

from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.conversation import Conversation
from models.conversation_participant import ConversationParticipant
from models.message import Message
from services.profiles import is_user_blocked

logger = logging.getLogger(__name__)


def conversation_pair_key(user_a: str, user_b: str) -> str:
    """Order-independent key for an unordered pair of user ids."""
    return ":".join(sorted([user_a, user_b]))


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_conversation(conversation: Conversation) -> Dict[str, Any]:
    participants = list(conversation.participants or [])
    return {
        "id": conversation.id,
        "participants": [item.user_id for item in participants],
        "participant_data": {
            item.user_id: {"name": item.name, "email": item.email, "photo_url": item.photo_url}
            for item in participants
        },
        "last_message": conversation.last_message or "",
        "last_message_at": _iso(conversation.last_message_at),
        "last_message_sender_id": conversation.last_message_sender_id,
        "unread_count": {item.user_id: int(item.unread_count or 0) for item in participants},
        "deleted_for": {item.user_id: bool(item.deleted) for item in participants},
        "created_at": _iso(conversation.created_at),
        "updated_at": _iso(conversation.updated_at),
    }


def serialize_message(message: Message) -> Dict[str, Any]:
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "sender_id": message.sender_id,
        "sender_name": message.sender_name,
        "sender_photo_url": message.sender_photo_url,
        "recipient_id": message.recipient_id,
        "text": message.text,
        "read_at": _iso(message.read_at),
        "deleted_for": list(message.deleted_for or []),
        "created_at": _iso(message.created_at),
    }


async def _load_conversation(conversation_id: str, db: AsyncSession) -> Optional[Conversation]:
    result = await db.execute(
        select(Conversation)
        .where(Conversation.id == conversation_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _conversations_containing(user_id: str, db: AsyncSession) -> List[Conversation]:
    member_of = select(ConversationParticipant.conversation_id).where(ConversationParticipant.user_id == user_id)
    result = await db.execute(
        select(Conversation)
        .where(Conversation.id.in_(member_of))
        .order_by(Conversation.last_message_at.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def _find_conversation(user_a: str, user_b: str, db: AsyncSession) -> Optional[Conversation]:
    for conversation in await _conversations_containing(user_a, db):
        if any(item.user_id == user_b for item in conversation.participants):
            return conversation
    return None


async def _require_participant(conversation_id: str, user_id: str, db: AsyncSession) -> Conversation:
    conversation = await _load_conversation(conversation_id, db)
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")
    if user_id not in {item.user_id for item in conversation.participants}:
        raise HTTPException(status_code=403, detail="Not a participant in this conversation.")
    return conversation


async def get_or_create_conversation(
    user_a: str,
    data_a: Dict[str, Any],
    user_b: str,
    data_b: Dict[str, Any],
    db: AsyncSession,
) -> Dict[str, Any]:
    """Return the pair's conversation, creating it with zeroed counters on first contact."""
    if user_a == user_b:
        raise HTTPException(status_code=422, detail="A conversation needs two different participants.")

    try:
        existing = await _find_conversation(user_a, user_b, db)
        if existing:
            return serialize_conversation(existing)

        now = datetime.now(timezone.utc)
        conversation = Conversation(
            id=str(uuid.uuid4()),
            pair_key=conversation_pair_key(user_a, user_b),
            last_message="",
            last_message_at=now,
            last_message_sender_id=None,
            created_at=now,
            updated_at=now,
        )
        conversation.participants = [
            ConversationParticipant(
                id=str(uuid.uuid4()),
                user_id=user_id,
                name=data.get("name"),
                email=data.get("email"),
                photo_url=data.get("photo_url"),
                unread_count=0,
                deleted=False,
            )
            for user_id, data in ((user_a, data_a), (user_b, data_b))
        ]
        db.add(conversation)
        try:
            await db.commit()
        except IntegrityError:
            # The other participant created the thread concurrently.
            await db.rollback()
            existing = await _find_conversation(user_a, user_b, db)
            if existing is None:
                raise
            return serialize_conversation(existing)

        created = await _load_conversation(conversation.id, db)
        return serialize_conversation(created)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error getting or creating conversation between %s and %s", user_a, user_b)
        raise


async def get_user_conversations(user_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    """Conversations for a user, most recent activity first, minus the ones they deleted."""
    try:
        conversations = await _conversations_containing(user_id, db)
    except Exception:
        logger.exception("Error fetching conversations for %s", user_id)
        return []

    visible: List[Dict[str, Any]] = []
    for conversation in conversations:
        own = next((item for item in conversation.participants if item.user_id == user_id), None)
        if own is not None and own.deleted:
            continue
        visible.append(serialize_conversation(conversation))
    return visible


async def get_total_unread_count(user_id: str, db: AsyncSession) -> int:
    try:
        conversations = await get_user_conversations(user_id, db)
        return sum(int(item["unread_count"].get(user_id, 0)) for item in conversations)
    except Exception:
        logger.exception("Error getting total unread count for %s", user_id)
        return 0


async def send_message(
    conversation_id: str,
    sender_id: str,
    sender_data: Dict[str, Any],
    recipient_id: str,
    text: str,
    db: AsyncSession,
) -> Dict[str, Any]:
    """Append a message and bump the recipient's unread counter in one transaction."""
    body = str(text or "").strip()
    if not body:
        raise HTTPException(status_code=422, detail="Message text is required.")

    try:
        conversation = await _require_participant(conversation_id, sender_id, db)
        participant_ids = {item.user_id for item in conversation.participants}
        if recipient_id == sender_id or recipient_id not in participant_ids:
            raise HTTPException(status_code=422, detail="Recipient is not the other participant.")
        if await is_user_blocked(recipient_id, sender_id, db):
            raise HTTPException(status_code=403, detail="You cannot message this user.")

        now = datetime.now(timezone.utc)
        message = Message(
            id=str(uuid.uuid4()),
            conversation_id=conversation_id,
            sender_id=sender_id,
            sender_name=sender_data.get("name"),
            sender_photo_url=sender_data.get("photo_url"),
            recipient_id=recipient_id,
            text=body,
            read_at=None,
            deleted_for=[],
            created_at=now,
        )
        db.add(message)
        await db.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(
                last_message=body,
                last_message_at=now,
                last_message_sender_id=sender_id,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await db.execute(
            update(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == recipient_id,
            )
            .values(unread_count=ConversationParticipant.unread_count + 1)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return serialize_message(message)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error sending message in conversation %s", conversation_id)
        await db.rollback()
        raise


async def get_conversation_messages(conversation_id: str, user_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    """Oldest-first messages, hiding the ones this viewer deleted."""
    await _require_participant(conversation_id, user_id, db)
    try:
        result = await db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc())
            .execution_options(populate_existing=True)
        )
        messages = result.scalars().all()
    except Exception:
        logger.exception("Error fetching messages for conversation %s", conversation_id)
        return []
    return [serialize_message(item) for item in messages if user_id not in (item.deleted_for or [])]


async def mark_messages_as_read(conversation_id: str, user_id: str, db: AsyncSession) -> Dict[str, Any]:
    """Stamp every unread message addressed to the user and reset their counter."""
    await _require_participant(conversation_id, user_id, db)
    try:
        result = await db.execute(
            select(Message.id).where(
                Message.conversation_id == conversation_id,
                Message.recipient_id == user_id,
                Message.read_at.is_(None),
            )
        )
        message_ids = list(result.scalars().all())
        read_at = datetime.now(timezone.utc)

        if message_ids:
            await db.execute(
                update(Message)
                .where(Message.id.in_(message_ids))
                .values(read_at=read_at)
                .execution_options(synchronize_session=False)
            )
        await db.execute(
            update(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
            .values(unread_count=0)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return {"marked": len(message_ids), "read_at": read_at.isoformat()}
    except Exception:
        logger.exception("Error marking messages as read in conversation %s", conversation_id)
        await db.rollback()
        raise


async def delete_message(conversation_id: str, message_id: str, user_id: str, db: AsyncSession) -> None:
    """Hide a message for one participant only."""
    await _require_participant(conversation_id, user_id, db)
    try:
        result = await db.execute(
            select(Message).where(
                Message.id == message_id,
                Message.conversation_id == conversation_id,
            )
        )
        message = result.scalar_one_or_none()
        if not message:
            raise HTTPException(status_code=404, detail="Message not found")

        current = list(message.deleted_for or [])
        if user_id not in current:
            message.deleted_for = [*current, user_id]
            await db.commit()
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error deleting message %s", message_id)
        raise


async def delete_conversation(conversation_id: str, user_id: str, db: AsyncSession) -> None:
    """Hide a conversation from one participant's inbox."""
    await _require_participant(conversation_id, user_id, db)
    try:
        await db.execute(
            update(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
            .values(deleted=True)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except Exception:
        logger.exception("Error deleting conversation %s", conversation_id)
        raise
