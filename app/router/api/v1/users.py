"""
User router - own profile, vet directory, public profiles (protected).
"""
import uuid
from typing import Dict, Any, Optional
from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session
from app.core.database import get_db
from app.core.dependencies import validate_session, current_user_id
from app.core.exceptions import ValidationFailed
from app.service.user_service import UserService
from app.schema.auth import UserProfile
from app.schema.user import ProfileUpdate, PublicUser, VetListResponse
from app.utils.image_metadata import ALLOWED_IMAGE_CONTENT_TYPES
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/me", response_model=UserProfile)
async def get_me(
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db)
):
    """Current user profile, including the vet sub-profile for vets."""
    return UserService(db).get_profile(user_id)


@router.patch("/me", response_model=UserProfile)
async def update_me(
    body: ProfileUpdate,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db)
):
    return UserService(db).update_profile(user_id, full_name=body.full_name)


@router.patch("/me/profile-image", response_model=UserProfile)
async def update_profile_image(
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
    file: UploadFile = File(...),
):
    """Upload a new avatar (JPEG, PNG, WebP); the previous one is deleted."""
    if file.content_type not in ALLOWED_IMAGE_CONTENT_TYPES:
        raise ValidationFailed({"file": "File must be an image (JPEG, PNG, WebP)."})
    content = await file.read()
    return UserService(db).update_profile_image(user_id, content, file.content_type)


@router.get("/vets", response_model=VetListResponse)
async def list_vets(
    search: Optional[str] = Query(None, description="Case-insensitive name prefix."),
    limit: int = 25,
    _: Dict[str, Any] = Depends(validate_session),
    db: Session = Depends(get_db)
):
    """Vets a farmer can start a conversation with."""
    return VetListResponse(items=UserService(db).list_vets(search=search, limit=limit))


@router.get("/session")
async def get_session_info(
    current_user: Dict[str, Any] = Depends(validate_session)
):
    """Return current session data. Proves session is working."""
    logger.info(f"Session info requested by: {current_user['email']}")
    return {
        "user_id": current_user["user_id"],
        "email": current_user["email"],
        "role": current_user.get("role"),
        "is_active": current_user["is_active"],
        "session_active": True
    }


@router.get("/{user_id}", response_model=PublicUser)
async def get_user(
    user_id: uuid.UUID,
    _: Dict[str, Any] = Depends(validate_session),
    db: Session = Depends(get_db)
):
    """Public profile of another user."""
    return UserService(db).get_public(user_id)
