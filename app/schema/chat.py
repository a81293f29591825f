"""
Chat schemas: conversations and messages.
"""
from datetime import datetime
from typing import List, Optional
import uuid
from pydantic import BaseModel, Field


# --- Conversation ---

class ConversationCreateBody(BaseModel):
    """Body for POST /chat/conversations (find or create)."""
    other_user_id: uuid.UUID


class MemberSummary(BaseModel):
    user_id: uuid.UUID
    full_name: Optional[str] = None
    role: Optional[str] = None
    profile_image_url: Optional[str] = None


class LastMessagePreview(BaseModel):
    """Denormalized copy of the latest message."""
    sender_id: Optional[uuid.UUID] = None
    text: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None


class ConversationResponse(BaseModel):
    """Conversation as seen by one member."""
    id: uuid.UUID
    members: List[uuid.UUID]
    members_key: str
    last_message: Optional[LastMessagePreview] = None
    unread_count: int = 0
    unread: dict = Field(default_factory=dict, description="Unread counter per member id.")
    other_members: List[MemberSummary] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ConversationListResponse(BaseModel):
    items: List[ConversationResponse]
    total: int


# --- Message ---

class MessageCreateBody(BaseModel):
    """Body for POST /chat/conversations/{conversation_id}/messages."""
    text: str = Field(..., max_length=10_000)


class MessageResponse(BaseModel):
    """Single message."""
    id: uuid.UUID
    conversation_id: uuid.UUID
    sender_id: Optional[uuid.UUID] = None
    text: Optional[str] = None
    image_url: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MessageListResponse(BaseModel):
    """Messages newest first; pass next_before_id as before_id for the next page."""
    items: List[MessageResponse]
    limit: int
    total: int
    next_before_id: Optional[uuid.UUID] = None
