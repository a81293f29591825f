"""
Pulse post CRUD.
"""
from typing import List, Optional, Tuple
import uuid
from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from app.model.pulse_post import PulsePost
from app.crud.base import CRUDBase

SORT_RECENT = "Recent"
SORT_TOP = "Top"


class CRUDPulsePost(CRUDBase[PulsePost, dict, dict]):
    """Pulse post CRUD with page/limit pagination."""

    def get_by_id(self, db: Session, *, post_id: uuid.UUID) -> Optional[PulsePost]:
        return db.query(self.model).filter(self.model.id == post_id).first()

    def get_for_update(self, db: Session, *, post_id: uuid.UUID) -> Optional[PulsePost]:
        """Fetch the post with a row lock held until the transaction ends."""
        return (
            db.query(self.model)
            .filter(self.model.id == post_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def list_paginated(
        self,
        db: Session,
        *,
        category: Optional[str] = None,
        sort: str = SORT_RECENT,
        author_id: Optional[uuid.UUID] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[PulsePost], int]:
        """
        List posts, optionally filtered by category or author.
        Recent: newest first. Top: highest pulse_count first, then newest.
        Returns (items, total_count). page is 1-based.
        """
        base = db.query(self.model)
        if category:
            base = base.filter(self.model.category == category)
        if author_id:
            base = base.filter(self.model.author_id == author_id)
        total = base.with_entities(func.count(self.model.id)).scalar() or 0
        if sort == SORT_TOP:
            order = (desc(self.model.pulse_count), desc(self.model.created_at), desc(self.model.id))
        else:
            order = (desc(self.model.created_at), desc(self.model.id))
        skip = (page - 1) * limit
        items = base.order_by(*order).offset(skip).limit(limit).all()
        return items, total


pulse_post_crud = CRUDPulsePost(PulsePost)
