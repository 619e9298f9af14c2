"""Toolkit reviews and rating aggregates."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import uuid

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.review import Review
from models.toolkit import Toolkit

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def serialize_review(review: Review) -> Dict[str, Any]:
    return {
        "id": review.id,
        "user_id": review.user_id,
        "user_name": review.user_name,
        "toolkit_id": review.toolkit_id,
        "rating": review.rating,
        "review": review.review or "",
        "created_at": review.created_at.isoformat() if review.created_at else None,
        "updated_at": review.updated_at.isoformat() if review.updated_at else None,
    }


async def _ensure_toolkit(toolkit_id: str, db: AsyncSession) -> None:
    result = await db.execute(select(Toolkit.id).where(Toolkit.id == toolkit_id))
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="Toolkit not found")


async def get_toolkit_reviews(toolkit_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    result = await db.execute(
        select(Review)
        .where(Review.toolkit_id == toolkit_id)
        .order_by(Review.created_at.desc())
    )
    return [serialize_review(item) for item in result.scalars().all()]


async def get_user_review(user_id: str, toolkit_id: str, db: AsyncSession) -> Optional[Dict[str, Any]]:
    result = await db.execute(
        select(Review).where(
            Review.user_id == user_id,
            Review.toolkit_id == toolkit_id,
        )
    )
    review = result.scalars().first()
    return serialize_review(review) if review else None


async def save_review(
    db: AsyncSession,
    *,
    user_id: str,
    user_name: Optional[str],
    toolkit_id: str,
    rating: int,
    review: Optional[str] = None,
    existing_review_id: Optional[str] = None,
) -> str:
    """Update ``existing_review_id`` or create a review; returns the review id.

    Callers look up the user's prior review first. A create that collides
    with the (user, toolkit) constraint updates the stored review instead.
    """
    score = int(rating)
    if score < MIN_RATING or score > MAX_RATING:
        raise HTTPException(status_code=422, detail=f"rating must be between {MIN_RATING} and {MAX_RATING}")
    text = (review or "").strip()
    now = datetime.now(timezone.utc)

    if existing_review_id:
        result = await db.execute(select(Review).where(Review.id == existing_review_id))
        row = result.scalar_one_or_none()
        if not row or row.toolkit_id != toolkit_id:
            raise HTTPException(status_code=404, detail="Review not found")
        if row.user_id != user_id:
            raise HTTPException(status_code=403, detail="You can only edit your own review.")
        row.rating = score
        row.review = text
        row.user_name = user_name
        row.updated_at = now
        await db.commit()
        return row.id

    await _ensure_toolkit(toolkit_id, db)
    row = Review(
        id=str(uuid.uuid4()),
        user_id=user_id,
        user_name=user_name,
        toolkit_id=toolkit_id,
        rating=score,
        review=text,
        created_at=now,
        updated_at=now,
    )
    db.add(row)
    try:
        await db.commit()
        return row.id
    except IntegrityError:
        await db.rollback()
        logger.info("Review for user=%s toolkit=%s already exists; updating it", user_id, toolkit_id)

    result = await db.execute(
        select(Review).where(Review.user_id == user_id, Review.toolkit_id == toolkit_id)
    )
    existing = result.scalar_one()
    existing.rating = score
    existing.review = text
    existing.user_name = user_name
    existing.updated_at = now
    await db.commit()
    return existing.id


async def delete_review(review_id: str, user_id: str, db: AsyncSession) -> None:
    result = await db.execute(select(Review).where(Review.id == review_id))
    review = result.scalar_one_or_none()
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")
    if review.user_id != user_id:
        raise HTTPException(status_code=403, detail="You can only delete your own review.")
    await db.delete(review)
    await db.commit()


async def get_toolkit_average_rating(toolkit_id: str, db: AsyncSession) -> Dict[str, Any]:
    """Mean rating rounded to one decimal, recomputed from every review."""
    try:
        result = await db.execute(select(Review.rating).where(Review.toolkit_id == toolkit_id))
        ratings = [int(value or 0) for value in result.scalars().all()]
    except Exception:
        logger.exception("Error calculating average rating for toolkit %s", toolkit_id)
        return {"average": 0, "count": 0}

    if not ratings:
        return {"average": 0, "count": 0}
    return {
        "average": round(sum(ratings) / len(ratings), 1),
        "count": len(ratings),
    }
