"""
In-app notification feed router.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db, get_session_factory
from routers.auth_scope import AuthContext, get_auth_context
from services.change_stream import format_sse, session_reader, watch_snapshots
from services.notifications import (
    clear_notifications,
    delete_notification,
    get_user_notifications,
    mark_notification_read,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class ClearNotificationsRequest(BaseModel):
    notification_ids: Optional[List[str]] = None


@router.get("")
async def list_notifications(
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Latest notifications for the signed-in member, newest first."""
    return await get_user_notifications(auth.user_id, db, limit=limit)


@router.get("/stream")
async def stream_notifications(
    request: Request,
    max_events: Optional[int] = Query(default=None, ge=1),
    auth: AuthContext = Depends(get_auth_context),
    session_factory=Depends(get_session_factory),
):
    async def read(db: AsyncSession):
        return await get_user_notifications(auth.user_id, db)

    async def events():
        snapshots = watch_snapshots(
            session_reader(read, session_factory),
            settings.NOTIFICATION_POLL_SECONDS,
            max_events=max_events,
        )
        async for snapshot in snapshots:
            if await request.is_disconnected():
                break
            yield format_sse("notifications", snapshot)

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/clear")
async def clear_feed(
    request: ClearNotificationsRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    try:
        deleted = await clear_notifications(auth.user_id, db, request.notification_ids)
    except Exception:
        logger.exception("Failed to clear notifications for %s", auth.user_id)
        raise HTTPException(status_code=500, detail="Failed to clear notifications.")
    return {"deleted": deleted}


@router.post("/{notification_id}/read")
async def read_notification(
    notification_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await mark_notification_read(notification_id, auth.user_id, db)


@router.delete("/{notification_id}")
async def remove_notification(
    notification_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await delete_notification(notification_id, auth.user_id, db)
    return {"ok": True}
