"""
Pulse post model. Short post with a denormalized reaction count.
"""
from sqlalchemy import CheckConstraint, Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import backref, relationship
import uuid
from app.core.database import Base

PULSE_CATEGORIES = ("alert", "tips", "suggestion")


class PulsePost(Base):
    __tablename__ = "pulse_posts"
    __table_args__ = (CheckConstraint("pulse_count >= 0", name="ck_pulse_posts_count_non_negative"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    author_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=False, index=True)
    photo_url = Column(String, nullable=True)
    edited = Column(Boolean, nullable=False, default=False)
    pulse_count = Column(Integer, nullable=False, default=0)
    last_activity_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    author = relationship("User", backref=backref("pulse_posts", cascade="all, delete-orphan"))
    reactions = relationship("PulseReaction", back_populates="post", cascade="all, delete-orphan")
