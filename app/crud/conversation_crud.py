"""
Conversation CRUD.
"""
from typing import List, Optional, Sequence
import uuid
from sqlalchemy import desc
from sqlalchemy.orm import Session

from app.model.conversation import Conversation
from app.model.conversation_member import ConversationMember
from app.crud.base import CRUDBase


class CRUDConversation(CRUDBase[Conversation, dict, dict]):
    def get_by_id(self, db: Session, *, conversation_id: uuid.UUID) -> Optional[Conversation]:
        return db.query(self.model).filter(self.model.id == conversation_id).first()

    def get_by_members_key(self, db: Session, *, members_key: str) -> Optional[Conversation]:
        return db.query(self.model).filter(self.model.members_key == members_key).first()

    def create_with_members(
        self, db: Session, *, members_key: str, member_ids: Sequence[uuid.UUID]
    ) -> Conversation:
        """Insert conversation and its member rows in one commit.

        Raises IntegrityError when a conversation with the same members_key exists.
        """
        conversation = self.model(id=uuid.uuid4(), members_key=members_key)
        for user_id in member_ids:
            conversation.members.append(ConversationMember(user_id=user_id, unread_count=0))
        db.add(conversation)
        db.commit()
        db.refresh(conversation)
        return conversation

    def list_for_user(self, db: Session, *, user_id: uuid.UUID) -> List[Conversation]:
        """Conversations the user is a member of, most recently updated first."""
        subq = db.query(ConversationMember.conversation_id).filter(ConversationMember.user_id == user_id)
        return (
            db.query(self.model)
            .filter(self.model.id.in_(subq))
            .order_by(desc(self.model.updated_at), desc(self.model.created_at))
            .all()
        )


conversation_crud = CRUDConversation(Conversation)
