"""
Pulse API: short posts, feed listing and the per-user pulse toggle.
"""
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.dependencies import current_user_id
from app.core.exceptions import ValidationFailed
from app.schema.pulse import (
    PulseCard,
    PulseCreateResponse,
    PulseListResponse,
    PulsePostResponse,
    PulseStateBatchBody,
    PulseStateBatchResponse,
    SortMode,
    ToggleResult,
)
from app.service.pulse_service import PulseService
from app.utils.image_metadata import ALLOWED_IMAGE_CONTENT_TYPES

router = APIRouter()
logger = logging.getLogger(__name__)


async def _read_photo(photo: Optional[UploadFile]):
    """(bytes, content_type) of an optional upload; (None, None) when absent."""
    if photo is None or not photo.filename:
        return None, None
    if photo.content_type not in ALLOWED_IMAGE_CONTENT_TYPES:
        raise ValidationFailed({"photo": "File must be an image (JPEG, PNG, WebP)."})
    return await photo.read(), photo.content_type


@router.get("", response_model=PulseListResponse)
async def list_pulses(
    category: Optional[str] = None,
    sort: SortMode = "Recent",
    page: int = 1,
    limit: int = 20,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """Feed. category: alert | tips | suggestion | All. sort: Recent | Top."""
    return PulseService(db).list_posts(user_id, category=category, sort=sort, page=page, limit=limit)


@router.get("/mine", response_model=PulseListResponse)
async def list_my_pulses(
    page: int = 1,
    limit: int = 20,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return PulseService(db).list_my_posts(user_id, page=page, limit=limit)


@router.post("", response_model=PulseCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_pulse(
    title: str = Form(...),
    category: str = Form(...),
    description: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """Create a post (multipart form); the optional photo is stored before the post."""
    content, content_type = await _read_photo(photo)
    post = PulseService(db).create_post(
        user_id,
        title=title,
        category=category,
        description=description,
        photo=content,
        photo_content_type=content_type,
    )
    return PulseCreateResponse(message="Pulse created", post=post)


@router.post("/states", response_model=PulseStateBatchResponse)
async def batch_pulse_states(
    body: PulseStateBatchBody,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """Whether the current user has pulsed each of the given posts."""
    return PulseService(db).batch_get_my_pulse_states(body.post_ids, user_id)


@router.get("/{post_id}", response_model=PulseCard)
async def get_pulse(
    post_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return PulseService(db).get_post(post_id, viewer_id=user_id)


@router.patch("/{post_id}", response_model=PulsePostResponse)
async def update_pulse(
    post_id: uuid.UUID,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    remove_photo: bool = Form(False),
    photo: Optional[UploadFile] = File(None),
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """Edit an own post. A new photo replaces the old one; remove_photo drops it."""
    content, content_type = await _read_photo(photo)
    return PulseService(db).update_post(
        user_id,
        post_id,
        title=title,
        description=description,
        category=category,
        photo=content,
        photo_content_type=content_type,
        remove_photo=remove_photo,
    )


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_pulse(
    post_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    PulseService(db).delete_post(user_id, post_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{post_id}/toggle", response_model=ToggleResult)
async def toggle_pulse(
    post_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """Pulse or un-pulse the post. Returns the new state and count."""
    return PulseService(db).toggle_pulse(post_id, user_id)


@router.get("/{post_id}/state")
async def my_pulse_state(
    post_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return {"post_id": str(post_id), "is_pulsed": PulseService(db).get_my_pulse_state(post_id, user_id)}
