"""Project model for community showcase entries."""

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Text
from sqlalchemy.orm import relationship
import uuid

from database import Base
from models.user import _utcnow


class Project(Base):
    """Artist project owned by a single user."""

    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    owner_name = Column(String, nullable=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    type_of_sharing = Column(String, nullable=True)  # open, collaborative, closed
    shape = Column(String, nullable=True)
    color = Column(String, nullable=True)
    kind_of_project = Column(String, nullable=True)
    tags = Column(JSON, nullable=True)
    size = Column(String, nullable=True)
    location = Column(String, nullable=True)
    images = Column(JSON, nullable=True)
    thumbnail_url = Column(String, nullable=True)
    links = Column(JSON, nullable=True)  # google_drive, website, trello, more_info
    contact_person = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # Relationships
    owner = relationship("User", back_populates="projects")
