"""
Pulse reaction model. Existence means the user has pulsed the post.
"""
from sqlalchemy import Column, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid
from app.core.database import Base


class PulseReaction(Base):
    __tablename__ = "pulse_reactions"
    __table_args__ = (UniqueConstraint("post_id", "user_id", name="uq_pulse_reactions_post_user"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    post_id = Column(Uuid, ForeignKey("pulse_posts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    post = relationship("PulsePost", back_populates="reactions")
