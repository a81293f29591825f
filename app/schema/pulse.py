"""
Pulse schemas: posts and reactions.
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional
import uuid
from pydantic import BaseModel, Field

PulseCategory = Literal["alert", "tips", "suggestion"]
SortMode = Literal["Recent", "Top"]


class PulsePostResponse(BaseModel):
    id: uuid.UUID
    author_id: uuid.UUID
    title: str
    description: Optional[str] = None
    category: str
    photo_url: Optional[str] = None
    edited: bool
    pulse_count: int
    last_activity_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PulseCard(PulsePostResponse):
    """Post plus viewer-specific flags for the feed."""
    is_pulsed_by_me: bool = False
    is_mine: bool = False
    variant: str = "standard"


class PulseListResponse(BaseModel):
    items: List[PulseCard]
    page: int = Field(..., description="Current page (1-based).")
    limit: int = Field(..., description="Items per page.")
    total: int = Field(..., description="Total matching posts.")
    total_pages: int = Field(..., description="Total pages.")


class PulseCreateResponse(BaseModel):
    message: str
    post: PulsePostResponse


class ToggleResult(BaseModel):
    post_id: uuid.UUID
    is_pulsed: bool
    pulse_count: int


class PulseStateBatchBody(BaseModel):
    post_ids: List[uuid.UUID] = Field(..., max_length=100)


class PulseStateBatchResponse(BaseModel):
    states: Dict[str, bool]
