"""Review model for toolkit ratings."""

from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import relationship
import uuid

from database import Base
from models.user import _utcnow


class Review(Base):
    """One rating (1-5) and optional text per user and toolkit."""

    __tablename__ = "reviews"
    __table_args__ = (UniqueConstraint("user_id", "toolkit_id", name="uq_review_user_toolkit"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    user_name = Column(String, nullable=True)
    toolkit_id = Column(String, ForeignKey("toolkits.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    review = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # Relationships
    user = relationship("User", back_populates="reviews")
