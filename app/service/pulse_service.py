"""
Pulse service: short posts with a per-user reaction toggle.
"""
import logging
import math
import uuid
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from app.core.config import settings
from app.core.exceptions import (
    NotFound,
    NotOwner,
    ServiceUnavailable,
    TooManyRequests,
    ValidationFailed,
)
from app.crud import pulse_post_crud, pulse_reaction_crud
from app.crud.pulse_post_crud import SORT_RECENT, SORT_TOP
from app.model.pulse_post import PULSE_CATEGORIES, PulsePost
from app.model.pulse_reaction import PulseReaction
from app.schema.pulse import (
    PulseCard,
    PulseListResponse,
    PulsePostResponse,
    PulseStateBatchResponse,
    ToggleResult,
)
from app.session import check_rate_limit
from app.utils.image_metadata import InvalidImage, extension_for, extract_image_metadata
from app.utils.storage import StorageError, delete_media, save_media

logger = logging.getLogger(__name__)

TITLE_MIN = 4
TITLE_MAX = 120
DESCRIPTION_MAX = 2000


def validate_post_input(
    title: Optional[str], description: Optional[str], category: Optional[str]
) -> Dict[str, str]:
    """Per-field error messages; empty dict when the input is valid."""
    errors: Dict[str, str] = {}
    t = (title or "").strip()
    if len(t) < TITLE_MIN:
        errors["title"] = f"Title must be at least {TITLE_MIN} characters."
    elif len(t) > TITLE_MAX:
        errors["title"] = f"Title must be at most {TITLE_MAX} characters."
    if description and len(description.strip()) > DESCRIPTION_MAX:
        errors["description"] = f"Description must be at most {DESCRIPTION_MAX} characters."
    if category not in PULSE_CATEGORIES:
        errors["category"] = "Category must be one of: " + ", ".join(PULSE_CATEGORIES) + "."
    return errors


def to_card(post: PulsePost, viewer_id: Optional[uuid.UUID], is_pulsed: bool) -> PulseCard:
    """Feed card; alerts render with the alert variant."""
    return PulseCard(
        **PulsePostResponse.model_validate(post).model_dump(),
        is_pulsed_by_me=is_pulsed,
        is_mine=viewer_id is not None and post.author_id == viewer_id,
        variant="alert" if post.category == "alert" else "standard",
    )


class PulseService:
    """Pulse post CRUD and reactions."""

    def __init__(self, db: Session, rate_limiter: Callable[[str, int], bool] = check_rate_limit):
        self.db = db
        self.rate_limiter = rate_limiter

    def _store_photo(self, post_id: uuid.UUID, content: bytes, content_type: Optional[str]) -> str:
        try:
            meta = extract_image_metadata(content)
        except InvalidImage as e:
            raise ValidationFailed({"photo": str(e)})
        key = f"pulses/{post_id}/photo{extension_for(meta)}"
        try:
            return save_media(key, content, content_type or "image/jpeg")
        except StorageError:
            raise ServiceUnavailable("Failed to upload photo")

    def _get_or_404(self, post_id: uuid.UUID) -> PulsePost:
        post = pulse_post_crud.get_by_id(self.db, post_id=post_id)
        if post is None:
            raise NotFound("Pulse")
        return post

    def _get_owned(self, post_id: uuid.UUID, user_id: uuid.UUID, action: str) -> PulsePost:
        post = self._get_or_404(post_id)
        if post.author_id != user_id:
            raise NotOwner(f"You can only {action} your own pulse")
        return post

    # --- Posts ---

    def create_post(
        self,
        author_id: uuid.UUID,
        title: str,
        category: str,
        description: Optional[str] = None,
        photo: Optional[bytes] = None,
        photo_content_type: Optional[str] = None,
    ) -> PulsePostResponse:
        errors = validate_post_input(title, description, category)
        if errors:
            raise ValidationFailed(errors)
        if not self.rate_limiter(f"{author_id}::createPost", settings.PULSE_CREATE_COOLDOWN_MS):
            raise TooManyRequests()

        post_id = uuid.uuid4()
        # Photo goes up first so a stored post never references a missing object
        photo_url = self._store_photo(post_id, photo, photo_content_type) if photo else None
        post = PulsePost(
            id=post_id,
            author_id=author_id,
            title=title.strip(),
            description=(description or "").strip() or None,
            category=category,
            photo_url=photo_url,
            edited=False,
            pulse_count=0,
            last_activity_at=func.now(),
        )
        try:
            self.db.add(post)
            self.db.commit()
            self.db.refresh(post)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to create pulse")
            delete_media(photo_url)
            raise ServiceUnavailable("Failed to create pulse")
        logger.info(f"Pulse {post.id} created by {author_id} ({category})")
        return PulsePostResponse.model_validate(post)

    def update_post(
        self,
        user_id: uuid.UUID,
        post_id: uuid.UUID,
        title: Optional[str] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
        photo: Optional[bytes] = None,
        photo_content_type: Optional[str] = None,
        remove_photo: bool = False,
    ) -> PulsePostResponse:
        """
        Edit an own post. Omitted fields keep their value; a blank description
        is ignored. Photo: new bytes replace it, remove_photo drops it, neither keeps it.
        """
        post = self._get_owned(post_id, user_id, "edit")
        errors = validate_post_input(
            title if title is not None else post.title,
            description if description is not None else post.description,
            category if category is not None else post.category,
        )
        if errors:
            raise ValidationFailed(errors)

        old_photo = post.photo_url
        if photo:
            post.photo_url = self._store_photo(post.id, photo, photo_content_type)
        elif remove_photo:
            post.photo_url = None

        if title:
            post.title = title.strip()
        if description is not None and description.strip():
            post.description = description.strip()
        if category:
            post.category = category
        post.edited = True
        post.updated_at = func.now()
        try:
            self.db.add(post)
            self.db.commit()
            self.db.refresh(post)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to update pulse {post_id}")
            raise ServiceUnavailable("Failed to update pulse")

        if old_photo and old_photo != post.photo_url:
            delete_media(old_photo)
        logger.info(f"Pulse {post_id} updated by {user_id}")
        return PulsePostResponse.model_validate(post)

    def delete_post(self, user_id: uuid.UUID, post_id: uuid.UUID) -> None:
        post = self._get_owned(post_id, user_id, "delete")
        photo_url = post.photo_url
        try:
            pulse_post_crud.remove(self.db, db_obj=post)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to delete pulse {post_id}")
            raise ServiceUnavailable("Failed to delete pulse")
        delete_media(photo_url)
        logger.info(f"Pulse {post_id} deleted by {user_id}")

    def get_post(self, post_id: uuid.UUID, viewer_id: Optional[uuid.UUID] = None) -> PulseCard:
        post = self._get_or_404(post_id)
        is_pulsed = False
        if viewer_id is not None:
            is_pulsed = (
                pulse_reaction_crud.get_by_post_and_user(self.db, post_id=post_id, user_id=viewer_id)
                is not None
            )
        return to_card(post, viewer_id, is_pulsed)

    def _page(
        self,
        viewer_id: Optional[uuid.UUID],
        page: int,
        limit: int,
        category: Optional[str] = None,
        sort: str = SORT_RECENT,
        author_id: Optional[uuid.UUID] = None,
    ) -> PulseListResponse:
        page = max(page, 1)
        if limit < 1 or limit > 50:
            limit = 20
        if category == "All":
            category = None
        if category is not None and category not in PULSE_CATEGORIES:
            raise ValidationFailed({"category": "Unknown category."})
        if sort not in (SORT_RECENT, SORT_TOP):
            sort = SORT_RECENT
        items, total = pulse_post_crud.list_paginated(
            self.db, category=category, sort=sort, author_id=author_id, page=page, limit=limit
        )
        states: Dict[uuid.UUID, bool] = {}
        if viewer_id is not None:
            states = pulse_reaction_crud.states_for_user(
                self.db, post_ids=[p.id for p in items], user_id=viewer_id
            )
        return PulseListResponse(
            items=[to_card(p, viewer_id, states.get(p.id, False)) for p in items],
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if total else 0,
        )

    def list_posts(
        self,
        viewer_id: Optional[uuid.UUID] = None,
        category: Optional[str] = None,
        sort: str = SORT_RECENT,
        page: int = 1,
        limit: int = 20,
    ) -> PulseListResponse:
        return self._page(viewer_id, page, limit, category=category, sort=sort)

    def list_my_posts(self, user_id: uuid.UUID, page: int = 1, limit: int = 20) -> PulseListResponse:
        return self._page(user_id, page, limit, author_id=user_id)

    # --- Reactions ---

    def toggle_pulse(self, post_id: uuid.UUID, user_id: uuid.UUID) -> ToggleResult:
        """
        Flip the user's reaction. The post row stays locked for the whole
        read-modify-write so concurrent toggles serialize and the count
        cannot go below zero.
        """
        if not self.rate_limiter(f"{user_id}::toggle::{post_id}", settings.PULSE_TOGGLE_COOLDOWN_MS):
            raise TooManyRequests()
        try:
            post = pulse_post_crud.get_for_update(self.db, post_id=post_id)
            if post is None:
                self.db.rollback()
                raise NotFound("Pulse")
            reaction = pulse_reaction_crud.get_by_post_and_user(self.db, post_id=post_id, user_id=user_id)
            if reaction is not None:
                self.db.delete(reaction)
                post.pulse_count = max(0, (post.pulse_count or 0) - 1)
                is_pulsed = False
            else:
                self.db.add(PulseReaction(post_id=post_id, user_id=user_id))
                post.pulse_count = (post.pulse_count or 0) + 1
                is_pulsed = True
            post.last_activity_at = func.now()
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to toggle pulse {post_id} for {user_id}")
            raise ServiceUnavailable("Failed to toggle pulse")

        logger.info(f"Pulse {post_id} {'pulsed' if is_pulsed else 'unpulsed'} by {user_id}")
        return ToggleResult(post_id=post_id, is_pulsed=is_pulsed, pulse_count=post.pulse_count)

    def get_my_pulse_state(self, post_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        self._get_or_404(post_id)
        return pulse_reaction_crud.get_by_post_and_user(self.db, post_id=post_id, user_id=user_id) is not None

    def batch_get_my_pulse_states(
        self, post_ids: List[uuid.UUID], user_id: uuid.UUID
    ) -> PulseStateBatchResponse:
        states = pulse_reaction_crud.states_for_user(self.db, post_ids=list(dict.fromkeys(post_ids)), user_id=user_id)
        return PulseStateBatchResponse(states={str(pid): pulsed for pid, pulsed in states.items()})
