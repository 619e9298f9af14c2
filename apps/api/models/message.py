"""Message model, owned by a conversation."""

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Text
from sqlalchemy.orm import relationship
import uuid

from database import Base
from models.user import _utcnow


class Message(Base):
    """Immutable message text; only read_at and deleted_for change."""

    __tablename__ = "messages"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    conversation_id = Column(String, ForeignKey("conversations.id"), nullable=False, index=True)
    sender_id = Column(String, nullable=False)
    sender_name = Column(String, nullable=True)
    sender_photo_url = Column(String, nullable=True)
    recipient_id = Column(String, nullable=False, index=True)
    text = Column(Text, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    deleted_for = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)

    # Relationships
    conversation = relationship("Conversation", back_populates="messages")
