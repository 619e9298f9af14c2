"""Favorite join row between users and toolkits."""

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
import uuid

from database import Base
from models.user import _utcnow


class Favorite(Base):
    """Existence of a row means the user favorited the toolkit."""

    __tablename__ = "favorites"
    __table_args__ = (UniqueConstraint("user_id", "toolkit_id", name="uq_favorite_user_toolkit"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    toolkit_id = Column(String, ForeignKey("toolkits.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)

    # Relationships
    user = relationship("User", back_populates="favorites")
