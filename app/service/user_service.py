"""
User profile service.
"""
import logging
import time
import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import NotFound, ServiceUnavailable, ValidationFailed
from app.crud import user_crud
from app.model.user import User
from app.schema.auth import UserInfo, UserProfile, VetProfileOut
from app.schema.user import PublicUser
from app.utils.image_metadata import InvalidImage, extension_for, extract_image_metadata
from app.utils.storage import StorageError, delete_media, save_media

logger = logging.getLogger(__name__)


def to_user_info(user: User) -> UserInfo:
    return UserInfo(
        id=str(user.id),
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        is_active=user.is_active,
        profile_image_url=user.profile_image_url,
    )


def to_public_user(user: User) -> PublicUser:
    return PublicUser(
        id=str(user.id),
        full_name=user.full_name,
        role=user.role,
        profile_image_url=user.profile_image_url,
        vet_profile=VetProfileOut.model_validate(user.vet_profile) if user.vet_profile else None,
    )


class UserService:
    """Reads and edits user profiles."""

    def __init__(self, db: Session):
        self.db = db

    def _get_or_404(self, user_id) -> User:
        user = user_crud.get(self.db, uuid.UUID(str(user_id)))
        if not user:
            raise NotFound("User")
        return user

    def get_profile(self, user_id) -> UserProfile:
        user = self._get_or_404(user_id)
        return UserProfile(
            **to_user_info(user).model_dump(),
            onboarding_complete=user.onboarding_complete,
            vet_profile=VetProfileOut.model_validate(user.vet_profile) if user.vet_profile else None,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )

    def get_public(self, user_id) -> PublicUser:
        return to_public_user(self._get_or_404(user_id))

    def update_profile(self, user_id, full_name: Optional[str] = None) -> UserProfile:
        user = self._get_or_404(user_id)
        changes = {}
        if full_name is not None:
            changes["full_name"] = full_name.strip()
        if changes:
            user_crud.update(self.db, db_obj=user, obj_in=changes)
            logger.info(f"Profile updated for user {user.id}: {sorted(changes)}")
        return self.get_profile(user_id)

    def update_profile_image(self, user_id, content: bytes, content_type: str) -> UserProfile:
        """Store a new avatar at user_profiles/<uid>/profile-<ts>.<ext> and drop the old one."""
        user = self._get_or_404(user_id)
        try:
            meta = extract_image_metadata(content)
        except InvalidImage as e:
            raise ValidationFailed({"file": str(e)})

        key = f"user_profiles/{user.id}/profile-{int(time.time() * 1000)}{extension_for(meta)}"
        try:
            url = save_media(key, content, content_type)
        except StorageError:
            raise ServiceUnavailable("Failed to upload profile image")

        previous = user.profile_image_url
        user_crud.update(self.db, db_obj=user, obj_in={"profile_image_url": url})
        if previous and previous != url:
            delete_media(previous)
        return self.get_profile(user_id)

    def list_vets(self, search: Optional[str] = None, limit: int = 25) -> List[PublicUser]:
        if limit < 1 or limit > 100:
            limit = 25
        return [to_public_user(u) for u in user_crud.list_vets(self.db, search=search, limit=limit)]
