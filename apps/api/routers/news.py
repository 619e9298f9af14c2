"""
News router: member submissions and admin publishing.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context, get_optional_auth_context, require_admin
from routers.rate_limit import rate_limit
from services.moderation import (
    NEWS_KIND,
    approve_submission,
    create_submission,
    delete_submission,
    get_submission,
    list_published,
    list_review_queue,
    list_user_submissions,
    reject_submission,
    update_submission,
)
from services.profiles import ensure_profile

router = APIRouter()
logger = logging.getLogger(__name__)


class NewsFields(BaseModel):
    title: Optional[str] = Field(default=None, max_length=300)
    description: Optional[str] = None
    content: Optional[str] = None
    image_url: Optional[str] = None
    platforms: Optional[List[str]] = None
    external_link: Optional[str] = None


class CreateNewsRequest(NewsFields):
    title: str = Field(min_length=1, max_length=300)


class ApproveNewsRequest(BaseModel):
    changes: Optional[NewsFields] = None


class RejectNewsRequest(BaseModel):
    reason: str = ""


@router.get("")
async def list_news(db: AsyncSession = Depends(get_db)):
    """Published news, most recently published first."""
    items = await list_published(NEWS_KIND, db)
    return {"items": items, "count": len(items)}


@router.post("")
async def submit_news(
    request: CreateNewsRequest,
    _rate_limit: None = Depends(rate_limit("submit_news", limit=20, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await ensure_profile(db, auth.user_id, auth.email, auth.name)
    try:
        return await create_submission(
            NEWS_KIND,
            request.model_dump(exclude_none=True),
            actor_id=auth.user_id,
            actor_email=auth.email,
            actor_name=auth.name,
            db=db,
        )
    except HTTPException:
        raise
    except Exception:
        logger.exception("News submission failed for %s", auth.user_id)
        raise HTTPException(status_code=500, detail="Failed to submit news.")


@router.get("/review-queue")
async def news_review_queue(
    _admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    items = await list_review_queue(NEWS_KIND, db)
    return {"items": items, "count": len(items)}


@router.get("/mine")
async def my_news(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    items = await list_user_submissions(NEWS_KIND, auth.user_id, db)
    return {"items": items, "count": len(items)}


@router.get("/{news_id}")
async def get_news_item(
    news_id: str,
    auth: Optional[AuthContext] = Depends(get_optional_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await get_submission(
        NEWS_KIND,
        news_id,
        db,
        viewer_id=auth.user_id if auth else None,
        viewer_is_admin=bool(auth and auth.is_admin),
    )


@router.patch("/{news_id}")
async def edit_news_item(
    news_id: str,
    request: NewsFields,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await update_submission(
        NEWS_KIND,
        news_id,
        request.model_dump(exclude_none=True),
        actor_id=auth.user_id,
        actor_is_admin=auth.is_admin,
        db=db,
    )


@router.delete("/{news_id}")
async def remove_news_item(
    news_id: str,
    _admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await delete_submission(NEWS_KIND, news_id, db)
    return {"ok": True}


@router.post("/{news_id}/approve")
async def approve_news_item(
    news_id: str,
    request: Optional[ApproveNewsRequest] = None,
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Publish a pending item, optionally with admin edits applied first."""
    changes = request.changes.model_dump(exclude_none=True) if request and request.changes else None
    return await approve_submission(NEWS_KIND, news_id, reviewer_id=admin.user_id, db=db, changes=changes)


@router.post("/{news_id}/reject")
async def reject_news_item(
    news_id: str,
    request: RejectNewsRequest,
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await reject_submission(
        NEWS_KIND,
        news_id,
        reviewer_id=admin.user_id,
        reason=request.reason,
        db=db,
    )
