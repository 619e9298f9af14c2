"""Toolkit model for moderated resource submissions."""

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Text
import uuid

from database import Base
from models.user import _utcnow


class Toolkit(Base):
    """Toolkit submission moving through the moderation workflow."""

    __tablename__ = "toolkits"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=True)
    tags = Column(JSON, nullable=True)
    resource_links = Column(JSON, nullable=True)
    platforms = Column(JSON, nullable=True)
    logo_url = Column(String, nullable=True)
    author = Column(String, nullable=True)

    status = Column(String, nullable=False, default="pending", index=True)  # pending, approved, rejected
    submitted_by = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    submitter_name = Column(String, nullable=True)
    submitter_email = Column(String, nullable=True)
    reviewed_by = Column(String, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
