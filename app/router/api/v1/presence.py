"""
Presence API: online state and last seen.
"""
import uuid
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.dependencies import validate_session
from app.schema.presence import PresenceBatchBody, PresenceBatchResponse, PresenceResponse
from app.service.presence_service import PresenceService

router = APIRouter()


@router.post("/batch", response_model=PresenceBatchResponse)
async def get_many_presence(
    body: PresenceBatchBody,
    _: Dict[str, Any] = Depends(validate_session),
    db: Session = Depends(get_db),
):
    return PresenceBatchResponse(items=PresenceService(db).get_many(body.user_ids))


@router.get("/{user_id}", response_model=PresenceResponse)
async def get_presence(
    user_id: uuid.UUID,
    _: Dict[str, Any] = Depends(validate_session),
    db: Session = Depends(get_db),
):
    """Online flag and last_seen. An expired live key flips the stored state offline."""
    return PresenceService(db).get_presence(user_id)
