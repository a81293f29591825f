"""
Presence mirror CRUD.
"""
from typing import List
import uuid
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from app.model.presence import UserPresence
from app.crud.base import CRUDBase


class CRUDPresence(CRUDBase[UserPresence, dict, dict]):
    def set_state(self, db: Session, *, user_id: uuid.UUID, online: bool) -> UserPresence:
        """Upsert the mirror row (merge semantics) and stamp last_seen."""
        row = self.get(db, user_id)
        if row is None:
            row = self.model(user_id=user_id)
            db.add(row)
        row.online = online
        row.last_seen = func.now()
        db.commit()
        db.refresh(row)
        return row

    def list_for_users(self, db: Session, *, user_ids: List[uuid.UUID]) -> List[UserPresence]:
        if not user_ids:
            return []
        return db.query(self.model).filter(self.model.user_id.in_(user_ids)).all()


presence_crud = CRUDPresence(UserPresence)
