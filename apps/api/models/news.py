"""News model for moderated announcements."""

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Text
import uuid

from database import Base
from models.user import _utcnow


class NewsItem(Base):
    """News submission; published once approved."""

    __tablename__ = "news"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    platforms = Column(JSON, nullable=True)
    external_link = Column(String, nullable=True)
    author = Column(String, nullable=True)

    status = Column(String, nullable=False, default="pending", index=True)  # pending, approved, rejected
    submitted_by = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    submitter_name = Column(String, nullable=True)
    submitter_email = Column(String, nullable=True)
    reviewed_by = Column(String, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
