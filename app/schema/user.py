"""
User schemas: profile edits and public listings.
"""
from pydantic import BaseModel, Field
from typing import List, Optional

from app.schema.auth import VetProfileOut


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=120)


class PublicUser(BaseModel):
    """What other users may see about someone."""
    id: str
    full_name: str
    role: str
    profile_image_url: Optional[str] = None
    vet_profile: Optional[VetProfileOut] = None


class VetListResponse(BaseModel):
    items: List[PublicUser]
