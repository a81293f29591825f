"""
Chat service: conversation resolution, message sending and read bookkeeping.

Conversation rows carry a denormalized preview of the latest message; each
member row carries that member's unread counter. Sending bumps the other
members' counters, reading zeroes the reader's, both as single UPDATE
statements inside the send/read transaction.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from app.core.config import settings
from app.core.exceptions import (
    NotFound,
    RoleMismatch,
    ServiceUnavailable,
    ValidationFailed,
)
from app.crud import (
    chat_message_crud,
    conversation_crud,
    conversation_member_crud,
    user_crud,
)
from app.model.chat_message import (
    ChatMessage,
    STATUS_DELIVERED,
    STATUS_FAILED,
    STATUS_READ,
    STATUS_SENT,
    STATUS_UPLOADING,
)
from app.model.conversation import Conversation
from app.model.conversation_member import ConversationMember
from app.schema.chat import (
    ConversationListResponse,
    ConversationResponse,
    LastMessagePreview,
    MemberSummary,
    MessageListResponse,
    MessageResponse,
)
from app.utils.image_metadata import (
    ALLOWED_IMAGE_CONTENT_TYPES,
    InvalidImage,
    extension_for,
    extract_image_metadata,
)
from app.utils.storage import StorageError, delete_media, save_media

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 10_000


def canonical_members_key(user_a, user_b) -> str:
    """Order-independent key for a pair of members."""
    return "_".join(sorted([str(user_a), str(user_b)]))


def message_payload(msg: ChatMessage) -> Dict[str, Any]:
    """Serialize message for WebSocket broadcast."""
    return MessageResponse.model_validate(msg).model_dump(mode="json")


class ChatService:
    """Conversation and message operations for one request."""

    def __init__(self, db: Session, notifier=None):
        self.db = db
        self.notifier = notifier

    def _publish(self, conversation_id: uuid.UUID, event: str, payload: Any) -> None:
        if self.notifier is not None:
            self.notifier.publish(conversation_id, event, payload)

    # --- Conversations ---

    def get_existing_conversation(self, user_a, user_b) -> Optional[Conversation]:
        return conversation_crud.get_by_members_key(
            self.db, members_key=canonical_members_key(user_a, user_b)
        )

    def _insert_if_absent(self, user_a: uuid.UUID, user_b: uuid.UUID) -> Tuple[Conversation, bool]:
        """
        Insert the conversation unless the pair already has one. The unique
        members_key makes a concurrent duplicate insert fail; the loser returns
        the winner's row.
        """
        key = canonical_members_key(user_a, user_b)
        try:
            conversation = conversation_crud.create_with_members(
                self.db, members_key=key, member_ids=[user_a, user_b]
            )
            return conversation, True
        except IntegrityError:
            self.db.rollback()
            existing = conversation_crud.get_by_members_key(self.db, members_key=key)
            if existing is None:
                raise
            logger.info(f"Conversation {key} created concurrently; reusing {existing.id}")
            return existing, False

    def get_or_create_conversation(
        self, caller_id: uuid.UUID, other_user_id: uuid.UUID
    ) -> Tuple[ConversationResponse, bool]:
        """
        Return the single conversation between the caller and other_user_id,
        creating it on first contact. Second element is True when created.
        """
        if other_user_id == caller_id:
            raise ValidationFailed(
                message="Cannot start a conversation with yourself.", code="INVALID_OTHER_USER"
            )
        existing = self.get_existing_conversation(caller_id, other_user_id)
        if existing is not None:
            return self._to_response(existing, caller_id), False

        me = user_crud.get(self.db, caller_id)
        if me is None:
            raise NotFound("User")
        other = user_crud.get(self.db, other_user_id)
        if other is None:
            raise NotFound("User")
        if me.is_vet:
            raise RoleMismatch("Vets cannot initiate conversations")
        if not other.is_vet:
            raise RoleMismatch(
                "Target user is not a veterinarian", code="NOT_A_VET", status_code=400
            )

        try:
            conversation, created = self._insert_if_absent(caller_id, other_user_id)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to create conversation")
            raise ServiceUnavailable("Failed to create conversation")
        if created:
            logger.info(f"Conversation {conversation.id} created between {caller_id} and {other_user_id}")
        return self._to_response(conversation, caller_id), created

    def _require_member(self, conversation_id: uuid.UUID, user_id: uuid.UUID) -> Conversation:
        """Conversation if user is a member; 404 otherwise (no existence leak)."""
        member = conversation_member_crud.get_by_conversation_and_user(
            self.db, conversation_id=conversation_id, user_id=user_id
        )
        if member is None:
            raise NotFound("Conversation")
        return member.conversation

    def get_conversation(self, user_id: uuid.UUID, conversation_id: uuid.UUID) -> ConversationResponse:
        return self._to_response(self._require_member(conversation_id, user_id), user_id)

    def list_conversations(self, user_id: uuid.UUID) -> ConversationListResponse:
        conversations = conversation_crud.list_for_user(self.db, user_id=user_id)
        items = [self._to_response(c, user_id) for c in conversations]
        return ConversationListResponse(items=items, total=len(items))

    def delete_conversation(self, user_id: uuid.UUID, conversation_id: uuid.UUID) -> None:
        """Remove the thread, its messages and every stored image."""
        conversation = self._require_member(conversation_id, user_id)
        image_urls = chat_message_crud.list_image_urls(self.db, conversation_id=conversation_id)
        try:
            self.db.delete(conversation)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to delete conversation {conversation_id}")
            raise ServiceUnavailable("Failed to delete conversation")
        for url in image_urls:
            delete_media(url)
        logger.info(f"Conversation {conversation_id} deleted by {user_id} ({len(image_urls)} images)")
        self._publish(conversation_id, "conversation_deleted", {"deleted_by": str(user_id)})

    # --- Messages ---

    def list_messages(
        self,
        user_id: uuid.UUID,
        conversation_id: uuid.UUID,
        limit: int = 50,
        before_id: Optional[uuid.UUID] = None,
    ) -> MessageListResponse:
        self._require_member(conversation_id, user_id)
        if limit < 1 or limit > 100:
            limit = 50
        items = chat_message_crud.list_by_conversation(
            self.db, conversation_id=conversation_id, limit=limit, before_id=before_id
        )
        total = chat_message_crud.count_by_conversation(self.db, conversation_id=conversation_id)
        return MessageListResponse(
            items=[MessageResponse.model_validate(m) for m in items],
            limit=limit,
            total=total,
            next_before_id=items[-1].id if len(items) == limit else None,
        )

    def _record_send(
        self,
        conversation: Conversation,
        sender_id: uuid.UUID,
        text: Optional[str],
        image_url: Optional[str],
    ) -> None:
        """Preview, updated_at and unread counters: others +1, sender untouched. Caller commits."""
        conversation.last_message_sender_id = sender_id
        conversation.last_message_text = text
        conversation.last_message_image_url = image_url
        conversation.last_message_at = func.now()
        conversation.updated_at = func.now()
        self.db.add(conversation)
        conversation_member_crud.increment_unread_for_others(
            self.db, conversation_id=conversation.id, exclude_user_id=sender_id
        )

    def send_text_message(
        self, conversation_id: uuid.UUID, sender_id: uuid.UUID, text: str
    ) -> MessageResponse:
        conversation = self._require_member(conversation_id, sender_id)
        content = (text or "").strip()
        if not content:
            raise ValidationFailed(
                message="Message text cannot be empty or whitespace only.", code="EMPTY_CONTENT"
            )
        if len(content) > MAX_TEXT_LENGTH:
            raise ValidationFailed(
                message=f"Message text cannot exceed {MAX_TEXT_LENGTH} characters.", code="TEXT_TOO_LONG"
            )
        try:
            msg = ChatMessage(
                id=uuid.uuid4(),
                conversation_id=conversation_id,
                sender_id=sender_id,
                text=content,
                image_url=None,
                status=STATUS_SENT,
            )
            self.db.add(msg)
            self._record_send(conversation, sender_id, content, None)
            self.db.commit()
            self.db.refresh(msg)
            self.db.refresh(conversation)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to save chat message in {conversation_id}")
            raise ServiceUnavailable("Failed to send message. Please try again.")

        logger.info(f"Message {msg.id} sent in {conversation_id} by {sender_id}")
        self._publish(conversation_id, "message_created", message_payload(msg))
        self._publish(conversation_id, "conversation_updated", self._preview_payload(conversation))
        return MessageResponse.model_validate(msg)

    def _validate_image(self, content: bytes, content_type: Optional[str]) -> Dict[str, Any]:
        if content_type not in ALLOWED_IMAGE_CONTENT_TYPES:
            raise ValidationFailed({"file": "File must be an image (JPEG, PNG, WebP)."})
        if len(content) > settings.CHAT_IMAGE_MAX_BYTES:
            raise ValidationFailed({"file": "Image is too large."})
        try:
            return extract_image_metadata(content)
        except InvalidImage as e:
            raise ValidationFailed({"file": str(e)})

    def send_image_message(
        self,
        conversation_id: uuid.UUID,
        sender_id: uuid.UUID,
        content: bytes,
        content_type: Optional[str],
    ) -> MessageResponse:
        """
        Three steps so subscribers see a pending bubble immediately:
        1. insert the message with no image and status "uploading" and announce it;
        2. upload to chat_images/<conversation_id>/<message_id><ext>;
        3. patch the same row with the URL and status "sent".
        If the upload fails the row is flagged "failed" and 503 is raised.
        A retry is a new message.
        """
        conversation = self._require_member(conversation_id, sender_id)
        meta = self._validate_image(content, content_type)

        try:
            msg = ChatMessage(
                id=uuid.uuid4(),
                conversation_id=conversation_id,
                sender_id=sender_id,
                text=None,
                image_url=None,
                status=STATUS_UPLOADING,
            )
            self.db.add(msg)
            self.db.commit()
            self.db.refresh(msg)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to create image message in {conversation_id}")
            raise ServiceUnavailable("Failed to send image. Please try again.")
        self._publish(conversation_id, "message_created", message_payload(msg))

        key = f"chat_images/{conversation_id}/{msg.id}{extension_for(meta)}"
        try:
            url = save_media(key, content, content_type)
        except StorageError:
            self._flag_failed(msg)
            raise ServiceUnavailable("Failed to upload image. Please try again.")

        try:
            msg.image_url = url
            msg.status = STATUS_SENT
            self.db.add(msg)
            self._record_send(conversation, sender_id, None, url)
            self.db.commit()
            self.db.refresh(msg)
            self.db.refresh(conversation)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to finalize image message {msg.id}")
            delete_media(url)
            self._flag_failed(msg)
            raise ServiceUnavailable("Failed to send image. Please try again.")

        logger.info(f"Image message {msg.id} sent in {conversation_id} ({meta['size_kb']} KB)")
        self._publish(conversation_id, "message_updated", message_payload(msg))
        self._publish(conversation_id, "conversation_updated", self._preview_payload(conversation))
        return MessageResponse.model_validate(msg)

    def _flag_failed(self, msg: ChatMessage) -> None:
        try:
            msg.status = STATUS_FAILED
            self.db.add(msg)
            self.db.commit()
            self.db.refresh(msg)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Could not flag message {msg.id} as failed; it stays uploading")
            return
        logger.warning(f"Image message {msg.id} flagged failed")
        self._publish(msg.conversation_id, "message_updated", message_payload(msg))

    # --- Read / delivery ---

    def mark_conversation_read(
        self, conversation_id: uuid.UUID, user_id: uuid.UUID
    ) -> ConversationResponse:
        """Zero the reader's unread counter; other members are untouched."""
        conversation = self._require_member(conversation_id, user_id)
        try:
            conversation_member_crud.mark_read(self.db, conversation_id=conversation_id, user_id=user_id)
            chat_message_crud.set_status_from_others(
                self.db,
                conversation_id=conversation_id,
                reader_id=user_id,
                from_statuses=(STATUS_SENT, STATUS_DELIVERED),
                to_status=STATUS_READ,
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to mark {conversation_id} read for {user_id}")
            raise ServiceUnavailable("Failed to mark as read")
        self.db.refresh(conversation)
        self._publish(conversation_id, "conversation_read", {"user_id": str(user_id)})
        return self._to_response(conversation, user_id)

    def mark_messages_delivered(self, conversation_id: uuid.UUID, user_id: uuid.UUID) -> int:
        """Tag messages this member received as delivered. Best effort."""
        self._require_member(conversation_id, user_id)
        try:
            count = chat_message_crud.set_status_from_others(
                self.db,
                conversation_id=conversation_id,
                reader_id=user_id,
                from_statuses=(STATUS_SENT,),
                to_status=STATUS_DELIVERED,
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to mark {conversation_id} delivered for {user_id}")
            raise ServiceUnavailable("Failed to mark as delivered")
        if count:
            self._publish(conversation_id, "messages_delivered", {"user_id": str(user_id), "count": count})
        return count

    # --- Serialization ---

    def _preview(self, conversation: Conversation) -> Optional[LastMessagePreview]:
        if conversation.last_message_at is None:
            return None
        return LastMessagePreview(
            sender_id=conversation.last_message_sender_id,
            text=conversation.last_message_text,
            image_url=conversation.last_message_image_url,
            created_at=conversation.last_message_at,
        )

    def _preview_payload(self, conversation: Conversation) -> Dict[str, Any]:
        preview = self._preview(conversation)
        return {
            "last_message": preview.model_dump(mode="json") if preview else None,
            "unread": {str(m.user_id): m.unread_count for m in conversation.members},
            "updated_at": conversation.updated_at.isoformat() if conversation.updated_at else None,
        }

    def _to_response(self, conversation: Conversation, viewer_id: uuid.UUID) -> ConversationResponse:
        members: List[ConversationMember] = list(conversation.members)
        unread = {str(m.user_id): m.unread_count for m in members}
        others = [
            MemberSummary(
                user_id=m.user_id,
                full_name=m.user.full_name if m.user else None,
                role=m.user.role if m.user else None,
                profile_image_url=m.user.profile_image_url if m.user else None,
            )
            for m in members
            if m.user_id != viewer_id
        ]
        return ConversationResponse(
            id=conversation.id,
            members=[m.user_id for m in members],
            members_key=conversation.members_key,
            last_message=self._preview(conversation),
            unread_count=unread.get(str(viewer_id), 0),
            unread=unread,
            other_members=others,
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
        )
