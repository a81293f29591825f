"""
Chat message CRUD.
"""
from typing import List, Optional, Sequence
import uuid
from sqlalchemy.orm import Session, aliased
from sqlalchemy import and_, desc, func, or_, select

from app.model.chat_message import ChatMessage
from app.crud.base import CRUDBase


class CRUDChatMessage(CRUDBase[ChatMessage, dict, dict]):
    def get_in_conversation(
        self, db: Session, *, conversation_id: uuid.UUID, message_id: uuid.UUID
    ) -> Optional[ChatMessage]:
        return (
            db.query(self.model)
            .filter(self.model.id == message_id, self.model.conversation_id == conversation_id)
            .first()
        )

    def list_by_conversation(
        self,
        db: Session,
        *,
        conversation_id: uuid.UUID,
        limit: int = 50,
        before_id: Optional[uuid.UUID] = None,
    ) -> List[ChatMessage]:
        """
        Messages newest first, ordered by (created_at, id). before_id is an
        exclusive keyset cursor on that same pair.
        """
        base = db.query(self.model).filter(self.model.conversation_id == conversation_id)
        if before_id and self.get_in_conversation(db, conversation_id=conversation_id, message_id=before_id):
            # Compare against the stored value, not a re-bound datetime
            cursor = aliased(self.model)
            cursor_at = select(cursor.created_at).where(cursor.id == before_id).scalar_subquery()
            base = base.filter(
                or_(
                    self.model.created_at < cursor_at,
                    and_(self.model.created_at == cursor_at, self.model.id < before_id),
                )
            )
        return (
            base.order_by(desc(self.model.created_at), desc(self.model.id))
            .limit(limit)
            .all()
        )

    def count_by_conversation(self, db: Session, *, conversation_id: uuid.UUID) -> int:
        return (
            db.query(func.count(self.model.id))
            .filter(self.model.conversation_id == conversation_id)
            .scalar()
            or 0
        )

    def list_image_urls(self, db: Session, *, conversation_id: uuid.UUID) -> List[str]:
        rows = (
            db.query(self.model.image_url)
            .filter(self.model.conversation_id == conversation_id, self.model.image_url.isnot(None))
            .all()
        )
        return [r[0] for r in rows]

    def set_status_from_others(
        self,
        db: Session,
        *,
        conversation_id: uuid.UUID,
        reader_id: uuid.UUID,
        from_statuses: Sequence[str],
        to_status: str,
    ) -> int:
        """Retag messages the reader received. Caller commits."""
        return (
            db.query(self.model)
            .filter(
                self.model.conversation_id == conversation_id,
                self.model.sender_id != reader_id,
                self.model.status.in_(list(from_statuses)),
            )
            .update({self.model.status: to_status}, synchronize_session=False)
        )


chat_message_crud = CRUDChatMessage(ChatMessage)
