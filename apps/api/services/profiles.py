"""User profile, privacy projection and block-list helpers."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import is_admin_email
from models.user import User

logger = logging.getLogger(__name__)

CONTACT_METHODS = ("email", "telephone", "message")
DEFAULT_COUNTRY_CODE = "+30"
DEFAULT_PRIVACY = {
    "email_public": False,
    "telephone_public": False,
    "location_public": False,
}
_PHONE_PATTERN = re.compile(r"^[0-9 ()-]{6,20}$")


def _display_name(user: User) -> str:
    return (user.display_name or "").strip() or user.email


def participant_data(user: User) -> Dict[str, Optional[str]]:
    """Denormalized identity copied onto conversations and messages."""
    return {
        "name": _display_name(user),
        "email": user.email,
        "photo_url": user.avatar_url,
    }


def serialize_profile(user: User) -> Dict[str, Any]:
    """Full profile, for its owner."""
    return {
        "id": user.id,
        "email": user.email,
        "display_name": user.display_name,
        "bio": user.bio,
        "avatar_url": user.avatar_url,
        "location": user.location or {"address": "", "is_verified": False},
        "telephone": user.telephone or {"country_code": DEFAULT_COUNTRY_CODE, "number": ""},
        "social_media": user.social_media or {},
        "privacy": {**DEFAULT_PRIVACY, **(user.privacy or {})},
        "preferred_contact_methods": list(user.preferred_contact_methods or []),
        "blocked_user_ids": list(user.blocked_user_ids or []),
        "is_admin": is_admin_email(user.email),
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "updated_at": user.updated_at.isoformat() if user.updated_at else None,
    }


def serialize_public_profile(user: User) -> Dict[str, Any]:
    """Profile as other members see it; private fields are withheld."""
    privacy = {**DEFAULT_PRIVACY, **(user.privacy or {})}
    return {
        "id": user.id,
        "display_name": user.display_name,
        "bio": user.bio,
        "avatar_url": user.avatar_url,
        "social_media": user.social_media or {},
        "preferred_contact_methods": list(user.preferred_contact_methods or []),
        "email": user.email if privacy["email_public"] else None,
        "telephone": user.telephone if privacy["telephone_public"] else None,
        "location": user.location if privacy["location_public"] else None,
    }


async def get_user(user_id: str, db: AsyncSession) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def upsert_profile(
    db: AsyncSession,
    *,
    email: str,
    user_id: str,
    display_name: Optional[str] = None,
    avatar_url: Optional[str] = None,
) -> User:
    """
    Create the profile on first sign-in; refresh identity fields afterwards.

    Callers pass the member id and email from a verified sign-in. Rows are
    matched by id only, and an email already held by another member is a 409.
    """
    normalized_email = str(email or "").strip()
    if not normalized_email:
        raise HTTPException(status_code=422, detail="email is required")
    if not str(user_id or "").strip():
        raise HTTPException(status_code=422, detail="user_id is required")

    holder = await db.execute(select(User.id).where(User.email == normalized_email, User.id != user_id))
    if holder.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail="Email address is linked to another account")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        user = User(
            id=user_id,
            email=normalized_email,
            display_name=display_name,
            avatar_url=avatar_url,
            bio=None,
            location=None,
            telephone=None,
            social_media=None,
            privacy=dict(DEFAULT_PRIVACY),
            preferred_contact_methods=[],
            blocked_user_ids=[],
        )
        db.add(user)
    else:
        user.email = normalized_email
        if display_name:
            user.display_name = display_name
        if avatar_url:
            user.avatar_url = avatar_url

    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        logger.info("Profile sync for %s lost an email uniqueness race", user_id)
        raise HTTPException(status_code=409, detail="Email address is linked to another account") from exc
    await db.refresh(user)
    return user


async def ensure_profile(
    db: AsyncSession,
    user_id: str,
    email: Optional[str] = None,
    display_name: Optional[str] = None,
) -> User:
    """Return the member's profile, creating a minimal one for a token without a row."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user:
        return user

    user = User(
        id=user_id,
        email=email or f"{user_id}@local.invalid",
        display_name=display_name,
        avatar_url=None,
        bio=None,
        location=None,
        telephone=None,
        social_media=None,
        privacy=dict(DEFAULT_PRIVACY),
        preferred_contact_methods=[],
        blocked_user_ids=[],
    )
    db.add(user)
    await db.flush()
    return user


def _validate_contact_methods(methods: List[str]) -> List[str]:
    cleaned: List[str] = []
    for method in methods:
        value = str(method or "").strip().lower()
        if value not in CONTACT_METHODS:
            raise HTTPException(status_code=422, detail=f"Unsupported contact method: {method}")
        if value not in cleaned:
            cleaned.append(value)
    return cleaned


async def update_profile(user_id: str, changes: Dict[str, Any], db: AsyncSession) -> Dict[str, Any]:
    """Apply owner edits; JSON fields are replaced, privacy flags are merged."""
    user = await get_user(user_id, db)

    telephone = changes.get("telephone")
    if telephone is not None:
        number = str(telephone.get("number") or "").strip()
        if number and not _PHONE_PATTERN.match(number):
            raise HTTPException(status_code=422, detail="Invalid telephone number")
        user.telephone = {
            "country_code": str(telephone.get("country_code") or DEFAULT_COUNTRY_CODE),
            "number": number,
        }

    if "preferred_contact_methods" in changes and changes["preferred_contact_methods"] is not None:
        user.preferred_contact_methods = _validate_contact_methods(changes["preferred_contact_methods"])

    if changes.get("privacy") is not None:
        user.privacy = {**DEFAULT_PRIVACY, **(user.privacy or {}), **changes["privacy"]}

    for field in ("display_name", "bio", "avatar_url", "location", "social_media"):
        if field in changes and changes[field] is not None:
            setattr(user, field, changes[field])

    await db.commit()
    await db.refresh(user)
    return serialize_profile(user)


async def block_user(current_user_id: str, user_to_block_id: str, db: AsyncSession) -> List[str]:
    if current_user_id == user_to_block_id:
        raise HTTPException(status_code=422, detail="You cannot block yourself.")
    try:
        user = await get_user(current_user_id, db)
        blocked = list(user.blocked_user_ids or [])
        if user_to_block_id not in blocked:
            user.blocked_user_ids = [*blocked, user_to_block_id]
            await db.commit()
        return list(user.blocked_user_ids or [])
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error blocking user %s for %s", user_to_block_id, current_user_id)
        raise


async def unblock_user(current_user_id: str, user_to_unblock_id: str, db: AsyncSession) -> List[str]:
    try:
        user = await get_user(current_user_id, db)
        user.blocked_user_ids = [item for item in (user.blocked_user_ids or []) if item != user_to_unblock_id]
        await db.commit()
        return list(user.blocked_user_ids)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error unblocking user %s for %s", user_to_unblock_id, current_user_id)
        raise


async def is_user_blocked(current_user_id: str, other_user_id: str, db: AsyncSession) -> bool:
    """True when current_user_id has other_user_id on their block list."""
    try:
        result = await db.execute(select(User.blocked_user_ids).where(User.id == current_user_id))
        blocked = result.scalar_one_or_none() or []
        return other_user_id in blocked
    except Exception:
        logger.exception("Error checking if %s blocked %s", current_user_id, other_user_id)
        return False
