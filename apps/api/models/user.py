"""User profile model."""

from datetime import datetime, timezone
import uuid

from sqlalchemy import Column, String, DateTime, JSON, Text
from sqlalchemy.orm import relationship

from database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Community member profile, created on first sign-in and edited by its owner."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, nullable=False, index=True)
    display_name = Column(String, nullable=True)
    bio = Column(Text, nullable=True)
    avatar_url = Column(String, nullable=True)
    location = Column(JSON, nullable=True)  # {"address": str, "is_verified": bool}
    telephone = Column(JSON, nullable=True)  # {"country_code": "+30", "number": str}
    social_media = Column(JSON, nullable=True)  # linkedin, instagram, facebook
    privacy = Column(JSON, nullable=True)  # email_public, telephone_public, location_public
    preferred_contact_methods = Column(JSON, nullable=True)  # subset of email, telephone, message
    blocked_user_ids = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # Relationships
    projects = relationship("Project", back_populates="owner", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")
    reviews = relationship("Review", back_populates="user", cascade="all, delete-orphan")
    favorites = relationship("Favorite", back_populates="user", cascade="all, delete-orphan")
