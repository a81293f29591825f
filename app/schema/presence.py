"""
Presence schemas.
"""
from datetime import datetime
from typing import List, Optional
import uuid
from pydantic import BaseModel, Field


class PresenceResponse(BaseModel):
    user_id: uuid.UUID
    online: bool
    last_seen: Optional[datetime] = None


class PresenceBatchBody(BaseModel):
    user_ids: List[uuid.UUID] = Field(..., max_length=100)


class PresenceBatchResponse(BaseModel):
    items: List[PresenceResponse]
