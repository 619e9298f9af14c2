"""Moderation workflow for toolkit and news submissions.

Submissions start ``pending`` (or ``approved`` when an admin creates them) and
move once to ``approved`` or ``rejected``. Both outcomes are terminal. The
status change is committed first; the submitter notification that follows is
best effort and never undoes the decision.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Type
import uuid

from fastapi import HTTPException
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import is_admin_email
from models.favorite import Favorite
from models.news import NewsItem
from models.review import Review
from models.toolkit import Toolkit
from services.notifications import (
    NEWS_NOTICES,
    TOOLKIT_NOTICES,
    NoticeLabels,
    notify_admins_new_submission,
    notify_submission_approved,
    notify_submission_rejected,
)

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
ADMIN_AUTHOR = "MOAI"


@dataclass(frozen=True)
class SubmissionKind:
    model: Type[Any]
    labels: NoticeLabels
    name_field: str
    editable_fields: Tuple[str, ...]
    publishes: bool = False
    # Rows keyed by ``toolkit_id`` that go away with the submission.
    dependents: Tuple[Type[Any], ...] = field(default_factory=tuple)


TOOLKIT_KIND = SubmissionKind(
    model=Toolkit,
    labels=TOOLKIT_NOTICES,
    name_field="name",
    editable_fields=("name", "description", "category", "tags", "resource_links", "platforms", "logo_url"),
    dependents=(Review, Favorite),
)

NEWS_KIND = SubmissionKind(
    model=NewsItem,
    labels=NEWS_NOTICES,
    name_field="title",
    editable_fields=("title", "description", "content", "image_url", "platforms", "external_link"),
    publishes=True,
)


def serialize_submission(item: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    for column in item.__table__.columns:
        value = getattr(item, column.key)
        payload[column.key] = value.isoformat() if isinstance(value, datetime) else value
    return payload


def _item_name(kind: SubmissionKind, item: Any) -> str:
    return str(getattr(item, kind.name_field) or "")


def _apply_fields(kind: SubmissionKind, item: Any, fields: Dict[str, Any]) -> None:
    for key in kind.editable_fields:
        if key in fields and fields[key] is not None:
            setattr(item, key, fields[key])
    if not _item_name(kind, item).strip():
        raise HTTPException(status_code=422, detail=f"{kind.name_field} is required")


async def _get_item(kind: SubmissionKind, item_id: str, db: AsyncSession) -> Any:
    result = await db.execute(select(kind.model).where(kind.model.id == item_id))
    item = result.scalar_one_or_none()
    if not item:
        raise HTTPException(status_code=404, detail=f"{kind.labels.label} not found")
    return item


def _require_pending(kind: SubmissionKind, item: Any) -> None:
    if item.status != STATUS_PENDING:
        raise HTTPException(
            status_code=409,
            detail=f"{kind.labels.label} has already been {item.status}.",
        )


async def create_submission(
    kind: SubmissionKind,
    fields: Dict[str, Any],
    *,
    actor_id: str,
    actor_email: Optional[str],
    actor_name: Optional[str],
    db: AsyncSession,
) -> Dict[str, Any]:
    """Create a submission; admin submissions skip the review queue."""
    admin = is_admin_email(actor_email)
    submitter_name = (actor_name or "").strip() or (actor_email or "") or actor_id
    now = datetime.now(timezone.utc)

    item = kind.model(
        id=str(uuid.uuid4()),
        status=STATUS_APPROVED if admin else STATUS_PENDING,
        author=ADMIN_AUTHOR if admin else submitter_name,
        submitted_by=actor_id,
        submitter_name=submitter_name,
        submitter_email=actor_email,
        reviewed_by=None,
        reviewed_at=None,
        rejection_reason=None,
        created_at=now,
        updated_at=now,
        **{key: None for key in kind.editable_fields},
    )
    if kind.publishes:
        item.published_at = None
    _apply_fields(kind, item, fields)
    if admin:
        item.reviewed_by = actor_id
        item.reviewed_at = now
        if kind.publishes:
            item.published_at = now

    db.add(item)
    await db.commit()
    payload = serialize_submission(item)

    if not admin:
        try:
            await notify_admins_new_submission(db, kind.labels, payload[kind.name_field], submitter_name)
        except Exception:
            logger.exception("Admin notification failed for %s %s", kind.labels.kind, payload["id"])
            await db.rollback()

    return payload


async def list_published(kind: SubmissionKind, db: AsyncSession) -> List[Dict[str, Any]]:
    order_column = kind.model.published_at if kind.publishes else kind.model.created_at
    result = await db.execute(
        select(kind.model)
        .where(kind.model.status == STATUS_APPROVED)
        .order_by(order_column.desc())
    )
    return [serialize_submission(item) for item in result.scalars().all()]


async def list_review_queue(kind: SubmissionKind, db: AsyncSession) -> List[Dict[str, Any]]:
    result = await db.execute(
        select(kind.model)
        .where(kind.model.status == STATUS_PENDING)
        .order_by(kind.model.created_at.desc())
    )
    return [serialize_submission(item) for item in result.scalars().all()]


async def list_user_submissions(kind: SubmissionKind, user_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    result = await db.execute(
        select(kind.model)
        .where(kind.model.submitted_by == user_id)
        .order_by(kind.model.created_at.desc())
    )
    return [serialize_submission(item) for item in result.scalars().all()]


async def get_submission(
    kind: SubmissionKind,
    item_id: str,
    db: AsyncSession,
    *,
    viewer_id: Optional[str] = None,
    viewer_is_admin: bool = False,
) -> Dict[str, Any]:
    """Approved items are public; others are visible to their submitter and admins."""
    item = await _get_item(kind, item_id, db)
    if item.status != STATUS_APPROVED and not viewer_is_admin and viewer_id != item.submitted_by:
        raise HTTPException(status_code=404, detail=f"{kind.labels.label} not found")
    return serialize_submission(item)


async def update_submission(
    kind: SubmissionKind,
    item_id: str,
    fields: Dict[str, Any],
    *,
    actor_id: str,
    actor_is_admin: bool,
    db: AsyncSession,
) -> Dict[str, Any]:
    item = await _get_item(kind, item_id, db)
    if not actor_is_admin:
        if item.submitted_by != actor_id:
            raise HTTPException(status_code=403, detail="Only the submitter or an admin can edit this item.")
        if item.status != STATUS_PENDING:
            raise HTTPException(status_code=409, detail="Only pending submissions can be edited.")

    _apply_fields(kind, item, fields)
    item.updated_at = datetime.now(timezone.utc)
    await db.commit()
    return serialize_submission(item)


async def approve_submission(
    kind: SubmissionKind,
    item_id: str,
    *,
    reviewer_id: str,
    db: AsyncSession,
    changes: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """pending -> approved, optionally applying admin edits in the same commit."""
    item = await _get_item(kind, item_id, db)
    _require_pending(kind, item)
    if changes:
        _apply_fields(kind, item, changes)

    now = datetime.now(timezone.utc)
    item.status = STATUS_APPROVED
    item.reviewed_by = reviewer_id
    item.reviewed_at = now
    item.updated_at = now
    if kind.publishes:
        item.published_at = now
    await db.commit()
    payload = serialize_submission(item)

    try:
        await notify_submission_approved(
            db,
            kind.labels,
            payload["submitted_by"],
            payload["id"],
            payload[kind.name_field],
        )
    except Exception:
        logger.exception("Approval notification failed for %s %s", kind.labels.kind, payload["id"])
        await db.rollback()

    return payload


async def reject_submission(
    kind: SubmissionKind,
    item_id: str,
    *,
    reviewer_id: str,
    reason: Optional[str],
    db: AsyncSession,
) -> Dict[str, Any]:
    """pending -> rejected; a blank reason leaves the item untouched."""
    cleaned_reason = str(reason or "").strip()
    if not cleaned_reason:
        raise HTTPException(status_code=422, detail="A rejection reason is required.")

    item = await _get_item(kind, item_id, db)
    _require_pending(kind, item)

    now = datetime.now(timezone.utc)
    item.status = STATUS_REJECTED
    item.rejection_reason = cleaned_reason
    item.reviewed_by = reviewer_id
    item.reviewed_at = now
    item.updated_at = now
    await db.commit()
    payload = serialize_submission(item)

    try:
        await notify_submission_rejected(
            db,
            kind.labels,
            payload["submitted_by"],
            payload[kind.name_field],
            cleaned_reason,
        )
    except Exception:
        logger.exception("Rejection notification failed for %s %s", kind.labels.kind, payload["id"])
        await db.rollback()

    return payload


async def delete_submission(kind: SubmissionKind, item_id: str, db: AsyncSession) -> None:
    item = await _get_item(kind, item_id, db)
    for dependent in kind.dependents:
        await db.execute(delete(dependent).where(dependent.toolkit_id == item.id))
    await db.delete(item)
    await db.commit()
