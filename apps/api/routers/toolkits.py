"""
Toolkit router: submissions, moderation, reviews and favorites.
"""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context, get_optional_auth_context, require_admin
from routers.rate_limit import rate_limit
from services.favorites import add_favorite, check_is_favorited
from services.moderation import (
    TOOLKIT_KIND,
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
from services.reviews import get_toolkit_average_rating, get_toolkit_reviews, get_user_review, save_review

router = APIRouter()
logger = logging.getLogger(__name__)


class ToolkitFields(BaseModel):
    name: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    resource_links: Optional[List[Dict[str, str]]] = None
    platforms: Optional[List[str]] = None
    logo_url: Optional[str] = None


class CreateToolkitRequest(ToolkitFields):
    name: str = Field(min_length=1, max_length=200)


class ApproveRequest(BaseModel):
    changes: Optional[ToolkitFields] = None


class RejectRequest(BaseModel):
    reason: str = ""


class SaveReviewRequest(BaseModel):
    rating: int
    review: Optional[str] = Field(default=None, max_length=5000)


@router.get("")
async def list_toolkits(db: AsyncSession = Depends(get_db)):
    """Approved toolkits, newest first."""
    items = await list_published(TOOLKIT_KIND, db)
    return {"items": items, "count": len(items)}


@router.post("")
async def submit_toolkit(
    request: CreateToolkitRequest,
    _rate_limit: None = Depends(rate_limit("submit_toolkit", limit=20, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await ensure_profile(db, auth.user_id, auth.email, auth.name)
    try:
        return await create_submission(
            TOOLKIT_KIND,
            request.model_dump(exclude_none=True),
            actor_id=auth.user_id,
            actor_email=auth.email,
            actor_name=auth.name,
            db=db,
        )
    except HTTPException:
        raise
    except Exception:
        logger.exception("Toolkit submission failed for %s", auth.user_id)
        raise HTTPException(status_code=500, detail="Failed to submit toolkit.")


@router.get("/review-queue")
async def toolkit_review_queue(
    _admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    items = await list_review_queue(TOOLKIT_KIND, db)
    return {"items": items, "count": len(items)}


@router.get("/mine")
async def my_toolkits(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    items = await list_user_submissions(TOOLKIT_KIND, auth.user_id, db)
    return {"items": items, "count": len(items)}


@router.get("/{toolkit_id}")
async def get_toolkit(
    toolkit_id: str,
    auth: Optional[AuthContext] = Depends(get_optional_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await get_submission(
        TOOLKIT_KIND,
        toolkit_id,
        db,
        viewer_id=auth.user_id if auth else None,
        viewer_is_admin=bool(auth and auth.is_admin),
    )


@router.patch("/{toolkit_id}")
async def edit_toolkit(
    toolkit_id: str,
    request: ToolkitFields,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await update_submission(
        TOOLKIT_KIND,
        toolkit_id,
        request.model_dump(exclude_none=True),
        actor_id=auth.user_id,
        actor_is_admin=auth.is_admin,
        db=db,
    )


@router.delete("/{toolkit_id}")
async def remove_toolkit(
    toolkit_id: str,
    _admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Delete a toolkit together with its reviews and favorites."""
    await delete_submission(TOOLKIT_KIND, toolkit_id, db)
    return {"ok": True}


@router.post("/{toolkit_id}/approve")
async def approve_toolkit(
    toolkit_id: str,
    request: Optional[ApproveRequest] = None,
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    changes = request.changes.model_dump(exclude_none=True) if request and request.changes else None
    return await approve_submission(TOOLKIT_KIND, toolkit_id, reviewer_id=admin.user_id, db=db, changes=changes)


@router.post("/{toolkit_id}/reject")
async def reject_toolkit(
    toolkit_id: str,
    request: RejectRequest,
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await reject_submission(
        TOOLKIT_KIND,
        toolkit_id,
        reviewer_id=admin.user_id,
        reason=request.reason,
        db=db,
    )


@router.get("/{toolkit_id}/reviews")
async def list_reviews(toolkit_id: str, db: AsyncSession = Depends(get_db)):
    items = await get_toolkit_reviews(toolkit_id, db)
    return {"items": items, "count": len(items)}


@router.get("/{toolkit_id}/reviews/mine")
async def my_review(
    toolkit_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return {"review": await get_user_review(auth.user_id, toolkit_id, db)}


@router.put("/{toolkit_id}/reviews/mine")
async def put_review(
    toolkit_id: str,
    request: SaveReviewRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Create or replace the caller's single review of a toolkit."""
    await ensure_profile(db, auth.user_id, auth.email, auth.name)
    existing = await get_user_review(auth.user_id, toolkit_id, db)
    review_id = await save_review(
        db,
        user_id=auth.user_id,
        user_name=auth.display_name,
        toolkit_id=toolkit_id,
        rating=request.rating,
        review=request.review,
        existing_review_id=existing["id"] if existing else None,
    )
    return {
        "review_id": review_id,
        "rating": await get_toolkit_average_rating(toolkit_id, db),
    }


@router.get("/{toolkit_id}/rating")
async def toolkit_rating(toolkit_id: str, db: AsyncSession = Depends(get_db)):
    return await get_toolkit_average_rating(toolkit_id, db)


@router.get("/{toolkit_id}/favorite")
async def favorite_status(
    toolkit_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    favorite_id = await check_is_favorited(auth.user_id, toolkit_id, db)
    return {"favorited": favorite_id is not None, "favorite_id": favorite_id}


@router.post("/{toolkit_id}/favorite")
async def favorite_toolkit(
    toolkit_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await ensure_profile(db, auth.user_id, auth.email, auth.name)
    favorite_id = await add_favorite(auth.user_id, toolkit_id, db)
    return {"favorited": True, "favorite_id": favorite_id}
