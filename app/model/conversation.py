"""
Conversation model. Exactly one thread per unordered pair of members.
"""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid
from app.core.database import Base


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # Both member ids sorted and joined with "_"; unique so a pair can only have one thread
    members_key = Column(String, nullable=False, unique=True, index=True)

    # Denormalized preview of the latest message
    last_message_sender_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    last_message_text = Column(Text, nullable=True)
    last_message_image_url = Column(String, nullable=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    members = relationship(
        "ConversationMember", back_populates="conversation", cascade="all, delete-orphan"
    )
    messages = relationship(
        "ChatMessage", back_populates="conversation", cascade="all, delete-orphan"
    )

    @property
    def member_ids(self):
        return [m.user_id for m in self.members]
