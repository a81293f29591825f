"""
Conversation member CRUD. Unread counters are changed with single UPDATE
statements so concurrent senders never lose increments.
"""
from typing import Optional
import uuid
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from app.model.conversation_member import ConversationMember
from app.crud.base import CRUDBase


class CRUDConversationMember(CRUDBase[ConversationMember, dict, dict]):
    def get_by_conversation_and_user(
        self, db: Session, *, conversation_id: uuid.UUID, user_id: uuid.UUID
    ) -> Optional[ConversationMember]:
        return (
            db.query(self.model)
            .filter(
                self.model.conversation_id == conversation_id,
                self.model.user_id == user_id,
            )
            .first()
        )

    def increment_unread_for_others(
        self, db: Session, *, conversation_id: uuid.UUID, exclude_user_id: uuid.UUID
    ) -> int:
        """Add one to every other member's counter. Caller commits."""
        return (
            db.query(self.model)
            .filter(
                self.model.conversation_id == conversation_id,
                self.model.user_id != exclude_user_id,
            )
            .update(
                {self.model.unread_count: self.model.unread_count + 1},
                synchronize_session=False,
            )
        )

    def mark_read(self, db: Session, *, conversation_id: uuid.UUID, user_id: uuid.UUID) -> int:
        """Zero the member's counter and stamp last_read_at. Caller commits."""
        return (
            db.query(self.model)
            .filter(
                self.model.conversation_id == conversation_id,
                self.model.user_id == user_id,
            )
            .update(
                {self.model.unread_count: 0, self.model.last_read_at: func.now()},
                synchronize_session=False,
            )
        )


conversation_member_crud = CRUDConversationMember(ConversationMember)
