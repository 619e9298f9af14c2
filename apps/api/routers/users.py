"""Member profile and block-list router."""

from __future__ import annotations

import logging
from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from services.profiles import (
    block_user,
    ensure_profile,
    get_user,
    is_user_blocked,
    serialize_profile,
    serialize_public_profile,
    unblock_user,
    update_profile,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class LocationPayload(BaseModel):
    address: str = ""
    is_verified: bool = False


class TelephonePayload(BaseModel):
    country_code: str = "+30"
    number: str = ""


class SocialMediaPayload(BaseModel):
    linkedin: str = ""
    instagram: str = ""
    facebook: str = ""


class PrivacyPayload(BaseModel):
    email_public: Optional[bool] = None
    telephone_public: Optional[bool] = None
    location_public: Optional[bool] = None


class UpdateProfileRequest(BaseModel):
    display_name: Optional[str] = Field(default=None, max_length=120)
    bio: Optional[str] = Field(default=None, max_length=2000)
    avatar_url: Optional[str] = None
    location: Optional[LocationPayload] = None
    telephone: Optional[TelephonePayload] = None
    social_media: Optional[SocialMediaPayload] = None
    privacy: Optional[PrivacyPayload] = None
    preferred_contact_methods: Optional[List[Literal["email", "telephone", "message"]]] = None


def _changes(request: UpdateProfileRequest) -> Dict:
    changes = request.model_dump(exclude_none=True)
    if request.privacy is not None:
        changes["privacy"] = request.privacy.model_dump(exclude_none=True)
    return changes


@router.get("/me")
async def get_my_profile(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    user = await ensure_profile(db, auth.user_id, auth.email, auth.name)
    await db.commit()
    return serialize_profile(user)


@router.patch("/me")
async def update_my_profile(
    request: UpdateProfileRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await ensure_profile(db, auth.user_id, auth.email, auth.name)
    try:
        return await update_profile(auth.user_id, _changes(request), db)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to update profile for user %s", auth.user_id)
        raise HTTPException(status_code=500, detail="Failed to update profile.")


@router.get("/me/blocked/{other_user_id}")
async def get_block_status(
    other_user_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return {"blocked": await is_user_blocked(auth.user_id, other_user_id, db)}


@router.post("/me/blocked/{other_user_id}")
async def block_member(
    other_user_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await ensure_profile(db, auth.user_id, auth.email, auth.name)
    try:
        blocked = await block_user(auth.user_id, other_user_id, db)
    except HTTPException:
        raise
    except Exception:
        raise HTTPException(status_code=500, detail="Failed to block user.")
    return {"blocked_user_ids": blocked}


@router.delete("/me/blocked/{other_user_id}")
async def unblock_member(
    other_user_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await ensure_profile(db, auth.user_id, auth.email, auth.name)
    try:
        blocked = await unblock_user(auth.user_id, other_user_id, db)
    except HTTPException:
        raise
    except Exception:
        raise HTTPException(status_code=500, detail="Failed to unblock user.")
    return {"blocked_user_ids": blocked}


@router.get("/{user_id}")
async def get_public_profile(
    user_id: str,
    _auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Profile as other members see it, honoring the owner's privacy flags."""
    return serialize_public_profile(await get_user(user_id, db))
