"""Conversation model for two-party message threads."""

from sqlalchemy import Column, String, DateTime, Text
from sqlalchemy.orm import relationship
import uuid

from database import Base
from models.user import _utcnow


class Conversation(Base):
    """Thread between exactly two users with last-message metadata."""

    __tablename__ = "conversations"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    # Sorted "a:b" participant ids; unique so a pair never gets two threads.
    pair_key = Column(String, nullable=False, unique=True, index=True)
    last_message = Column(Text, nullable=False, default="")
    last_message_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
    last_message_sender_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # Relationships
    participants = relationship(
        "ConversationParticipant",
        back_populates="conversation",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    messages = relationship("Message", back_populates="conversation", cascade="all, delete-orphan")
