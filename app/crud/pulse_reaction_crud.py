"""
Pulse reaction CRUD.
"""
from typing import Dict, List, Optional
import uuid
from sqlalchemy import case, select
from sqlalchemy.orm import Session

from app.model.pulse_post import PulsePost
from app.model.pulse_reaction import PulseReaction
from app.crud.base import CRUDBase


class CRUDPulseReaction(CRUDBase[PulseReaction, dict, dict]):
    def get_by_post_and_user(
        self, db: Session, *, post_id: uuid.UUID, user_id: uuid.UUID
    ) -> Optional[PulseReaction]:
        return (
            db.query(self.model)
            .filter(self.model.post_id == post_id, self.model.user_id == user_id)
            .first()
        )

    def states_for_user(
        self, db: Session, *, post_ids: List[uuid.UUID], user_id: uuid.UUID
    ) -> Dict[uuid.UUID, bool]:
        """Map every requested post id to whether the user has pulsed it."""
        if not post_ids:
            return {}
        rows = (
            db.query(self.model.post_id)
            .filter(self.model.user_id == user_id, self.model.post_id.in_(post_ids))
            .all()
        )
        pulsed = {r[0] for r in rows}
        return {pid: pid in pulsed for pid in post_ids}

    def release_all_for_user(self, db: Session, *, user_id: uuid.UUID) -> int:
        """
        Delete the user's reactions and take one off each reacted post's
        pulse_count, floored at 0. Caller commits.
        """
        reacted = select(self.model.post_id).where(self.model.user_id == user_id)
        db.query(PulsePost).filter(PulsePost.id.in_(reacted)).update(
            {PulsePost.pulse_count: case((PulsePost.pulse_count > 0, PulsePost.pulse_count - 1), else_=0)},
            synchronize_session=False,
        )
        return (
            db.query(self.model)
            .filter(self.model.user_id == user_id)
            .delete(synchronize_session=False)
        )


pulse_reaction_crud = CRUDPulseReaction(PulseReaction)
