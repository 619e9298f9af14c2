"""Toolkit favorites (user, toolkit) join rows."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import uuid

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.favorite import Favorite
from models.toolkit import Toolkit

logger = logging.getLogger(__name__)


async def check_is_favorited(user_id: str, toolkit_id: str, db: AsyncSession) -> Optional[str]:
    """Return the favorite id when the pair exists, so the caller can remove it."""
    try:
        result = await db.execute(
            select(Favorite.id).where(
                Favorite.user_id == user_id,
                Favorite.toolkit_id == toolkit_id,
            )
        )
        return result.scalars().first()
    except Exception:
        logger.exception("Error checking favorite status user=%s toolkit=%s", user_id, toolkit_id)
        return None


async def add_favorite(user_id: str, toolkit_id: str, db: AsyncSession) -> str:
    existing_id = await check_is_favorited(user_id, toolkit_id, db)
    if existing_id:
        return existing_id

    toolkit = await db.execute(select(Toolkit.id).where(Toolkit.id == toolkit_id))
    if toolkit.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="Toolkit not found")

    favorite = Favorite(
        id=str(uuid.uuid4()),
        user_id=user_id,
        toolkit_id=toolkit_id,
        created_at=datetime.now(timezone.utc),
    )
    db.add(favorite)
    try:
        await db.commit()
        return favorite.id
    except IntegrityError:
        await db.rollback()
        existing_id = await check_is_favorited(user_id, toolkit_id, db)
        if not existing_id:
            raise
        return existing_id


async def remove_favorite(favorite_id: str, user_id: str, db: AsyncSession) -> None:
    result = await db.execute(select(Favorite).where(Favorite.id == favorite_id))
    favorite = result.scalar_one_or_none()
    if not favorite or favorite.user_id != user_id:
        raise HTTPException(status_code=404, detail="Favorite not found")
    await db.delete(favorite)
    await db.commit()


async def get_user_favorites(user_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    result = await db.execute(
        select(Favorite, Toolkit)
        .join(Toolkit, Toolkit.id == Favorite.toolkit_id)
        .where(Favorite.user_id == user_id)
        .order_by(Favorite.created_at.desc())
    )
    return [
        {
            "id": favorite.id,
            "toolkit_id": favorite.toolkit_id,
            "toolkit_name": toolkit.name,
            "toolkit_status": toolkit.status,
            "created_at": favorite.created_at.isoformat() if favorite.created_at else None,
        }
        for favorite, toolkit in result.all()
    ]
