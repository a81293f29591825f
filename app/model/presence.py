"""
Durable presence mirror. The live state is a TTL key in Redis.
"""
from sqlalchemy import Column, Boolean, DateTime, ForeignKey, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.core.database import Base


class UserPresence(Base):
    __tablename__ = "user_presence"

    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    online = Column(Boolean, nullable=False, default=False)
    last_seen = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="presence")
