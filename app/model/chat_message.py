"""
Chat message model. One message in a conversation.

A row always has text, an image URL, or status "uploading" while its image is
still on the way.
"""
from sqlalchemy import CheckConstraint, Column, String, Text, DateTime, ForeignKey, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid
from app.core.database import Base

STATUS_UPLOADING = "uploading"
STATUS_SENT = "sent"
STATUS_DELIVERED = "delivered"
STATUS_READ = "read"
STATUS_FAILED = "failed"

MESSAGE_STATUSES = (STATUS_UPLOADING, STATUS_SENT, STATUS_DELIVERED, STATUS_READ, STATUS_FAILED)


class ChatMessage(Base):
    __tablename__ = "chat_messages"
    __table_args__ = (
        CheckConstraint(
            "text IS NOT NULL OR image_url IS NOT NULL OR status IN ('uploading', 'failed')",
            name="ck_chat_messages_has_content",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id = Column(Uuid, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    text = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    status = Column(String, nullable=False, default=STATUS_SENT)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    conversation = relationship("Conversation", back_populates="messages")
    sender = relationship("User")
