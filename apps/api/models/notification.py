"""Notification model for the in-app bell."""

from sqlalchemy import Boolean, Column, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
import uuid

from database import Base
from models.user import _utcnow


class Notification(Base):
    """Per-user notification record."""

    __tablename__ = "notifications"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String, nullable=False)  # toolkit_submitted, toolkit_approved, news_rejected, ...
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String, nullable=True)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)

    # Relationships
    user = relationship("User", back_populates="notifications")
