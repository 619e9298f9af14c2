"""
Member library router: saved favorites and authored reviews across toolkits.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from services.favorites import get_user_favorites, remove_favorite
from services.reviews import delete_review

router = APIRouter()


@router.get("/favorites")
async def list_favorites(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    items = await get_user_favorites(auth.user_id, db)
    return {"items": items, "count": len(items)}


@router.delete("/favorites/{favorite_id}")
async def unfavorite(
    favorite_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await remove_favorite(favorite_id, auth.user_id, db)
    return {"favorited": False}


@router.delete("/reviews/{review_id}")
async def remove_review(
    review_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await delete_review(review_id, auth.user_id, db)
    return {"ok": True}
