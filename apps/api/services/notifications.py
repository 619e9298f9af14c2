"""Per-user notification records and moderation notices."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence
import uuid

from fastapi import HTTPException
from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.notification import Notification
from models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoticeLabels:
    """Wording and links used for one kind of moderated submission."""

    kind: str  # toolkit, news
    label: str  # Toolkit, News
    noun: str  # toolkit, news item
    base_path: str  # /toolkits, /news


TOOLKIT_NOTICES = NoticeLabels(kind="toolkit", label="Toolkit", noun="toolkit", base_path="/toolkits")
NEWS_NOTICES = NoticeLabels(kind="news", label="News", noun="news item", base_path="/news")


def serialize_notification(notification: Notification) -> Dict[str, Any]:
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "link": notification.link,
        "read": bool(notification.read),
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }


async def create_notification(
    db: AsyncSession,
    *,
    user_id: str,
    type: str,
    title: str,
    message: str,
    link: Optional[str] = None,
    commit: bool = True,
) -> Notification:
    """Append one unread notification for a user."""
    notification = Notification(
        id=str(uuid.uuid4()),
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        link=link,
        read=False,
        created_at=datetime.now(timezone.utc),
    )
    db.add(notification)
    if commit:
        await db.commit()
    else:
        await db.flush()
    return notification


async def resolve_admin_user_ids(db: AsyncSession) -> List[str]:
    """Map the admin email allow-list onto existing user ids."""
    emails = [email.strip().lower() for email in settings.ADMIN_EMAILS if email and email.strip()]
    if not emails:
        return []
    result = await db.execute(select(User.id).where(func.lower(User.email).in_(emails)))
    return [row for row in result.scalars().all()]


async def notify_admins(
    db: AsyncSession,
    *,
    type: str,
    title: str,
    message: str,
    link: Optional[str] = None,
) -> int:
    """Fan out one notification per admin that has a profile."""
    admin_ids = await resolve_admin_user_ids(db)
    for admin_id in admin_ids:
        await create_notification(
            db,
            user_id=admin_id,
            type=type,
            title=title,
            message=message,
            link=link,
            commit=False,
        )
    if admin_ids:
        await db.commit()
    else:
        logger.info("No admin profiles found for notification type=%s", type)
    return len(admin_ids)


async def notify_admins_new_submission(
    db: AsyncSession,
    labels: NoticeLabels,
    item_name: str,
    submitter_name: str,
) -> int:
    return await notify_admins(
        db,
        type=f"{labels.kind}_submitted",
        title=f"New {labels.label} Submission",
        message=f'{submitter_name} has submitted "{item_name}" for review.',
        link=f"{labels.base_path}/admin/review",
    )


async def notify_submission_approved(
    db: AsyncSession,
    labels: NoticeLabels,
    user_id: str,
    item_id: str,
    item_name: str,
) -> Notification:
    return await create_notification(
        db,
        user_id=user_id,
        type=f"{labels.kind}_approved",
        title=f"{labels.label} Approved!",
        message=f'Your {labels.noun} "{item_name}" has been approved and is now live.',
        link=f"{labels.base_path}/{item_id}",
    )


async def notify_submission_rejected(
    db: AsyncSession,
    labels: NoticeLabels,
    user_id: str,
    item_name: str,
    reason: str,
) -> Notification:
    return await create_notification(
        db,
        user_id=user_id,
        type=f"{labels.kind}_rejected",
        title=f"{labels.label} Submission Update",
        message=f'Your {labels.noun} "{item_name}" was not approved. Reason: {reason}',
        link=labels.base_path,
    )


async def get_user_notifications(
    user_id: str,
    db: AsyncSession,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    """Latest notifications, newest first, with the unread count of that page."""
    page_size = max(int(limit or settings.NOTIFICATION_FEED_LIMIT), 1)
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc())
        .limit(page_size)
        .execution_options(populate_existing=True)
    )
    items = [serialize_notification(row) for row in result.scalars().all()]
    return {
        "items": items,
        "unread_count": sum(1 for item in items if not item["read"]),
    }


async def _get_owned_notification(notification_id: str, user_id: str, db: AsyncSession) -> Notification:
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


async def mark_notification_read(notification_id: str, user_id: str, db: AsyncSession) -> Dict[str, Any]:
    notification = await _get_owned_notification(notification_id, user_id, db)
    notification.read = True
    await db.commit()
    return serialize_notification(notification)


async def delete_notification(notification_id: str, user_id: str, db: AsyncSession) -> None:
    notification = await _get_owned_notification(notification_id, user_id, db)
    await db.delete(notification)
    await db.commit()


async def clear_notifications(
    user_id: str,
    db: AsyncSession,
    notification_ids: Optional[Sequence[str]] = None,
) -> int:
    """Batch-delete the notifications the client has loaded (or the latest page)."""
    if notification_ids is None:
        page = await get_user_notifications(user_id, db)
        notification_ids = [item["id"] for item in page["items"]]
    ids = [item for item in notification_ids if item]
    if not ids:
        return 0

    result = await db.execute(
        delete(Notification).where(
            Notification.user_id == user_id,
            Notification.id.in_(ids),
        )
    )
    await db.commit()
    return int(result.rowcount or 0)
