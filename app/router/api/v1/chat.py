"""
Chat API: conversations and messages (REST). WebSocket in same module.
"""
import json
import logging
import uuid
from typing import Optional

import redis
from fastapi import APIRouter, Depends, File, Response, UploadFile, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from app.chat.connection_manager import connection_manager
from app.core.database import get_db, SessionLocal
from app.core.dependencies import current_user_id
from app.crud import conversation_member_crud
from app.schema.chat import (
    ConversationCreateBody,
    ConversationListResponse,
    ConversationResponse,
    MessageCreateBody,
    MessageListResponse,
    MessageResponse,
)
from app.service.chat_service import ChatService
from app.service.presence_service import PresenceService
from app.session import get_session

router = APIRouter()
logger = logging.getLogger(__name__)


def _chat_service(db: Session) -> ChatService:
    return ChatService(db, notifier=connection_manager)


# --- REST: Conversations ---

@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """Conversations of the current user, most recent activity first."""
    return _chat_service(db).list_conversations(user_id)


@router.post("/conversations", response_model=ConversationResponse)
async def get_or_create_conversation(
    body: ConversationCreateBody,
    response: Response,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """
    The single conversation between the current user and other_user_id.
    201 when it was just created, 200 when it already existed.
    """
    conversation, created = _chat_service(db).get_or_create_conversation(user_id, body.other_user_id)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return conversation


@router.get("/conversations/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return _chat_service(db).get_conversation(user_id, conversation_id)


@router.delete("/conversations/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    conversation_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """Delete the conversation with all its messages and images."""
    _chat_service(db).delete_conversation(user_id, conversation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/conversations/{conversation_id}/read", response_model=ConversationResponse)
async def mark_read(
    conversation_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """Reset the current user's unread counter for this conversation."""
    return _chat_service(db).mark_conversation_read(conversation_id, user_id)


@router.post("/conversations/{conversation_id}/delivered")
async def mark_delivered(
    conversation_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    count = _chat_service(db).mark_messages_delivered(conversation_id, user_id)
    return {"updated": count}


# --- REST: Messages ---

@router.get("/conversations/{conversation_id}/messages", response_model=MessageListResponse)
async def list_messages(
    conversation_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
    limit: int = 50,
    before_id: Optional[uuid.UUID] = None,
):
    """Messages newest first. Pass next_before_id back as before_id for older ones."""
    return _chat_service(db).list_messages(user_id, conversation_id, limit=limit, before_id=before_id)


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_message(
    conversation_id: uuid.UUID,
    body: MessageCreateBody,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """Send a text message. Updates the preview, unread counters and broadcasts to subscribers."""
    return _chat_service(db).send_text_message(conversation_id, user_id, body.text)


@router.post(
    "/conversations/{conversation_id}/images",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_image_message(
    conversation_id: uuid.UUID,
    file: UploadFile = File(...),
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """
    Send an image. Subscribers get message_created (status "uploading") before
    the upload starts and message_updated once it is stored.
    Plain def: the upload runs in the threadpool, off the event loop.
    """
    content = file.file.read()
    return _chat_service(db).send_image_message(conversation_id, user_id, content, file.content_type)


# --- WebSocket ---

def _session_user_id(token: Optional[str]) -> Optional[uuid.UUID]:
    if not token:
        return None
    try:
        session = get_session(token)
    except (RuntimeError, redis.RedisError) as e:
        logger.warning(f"WebSocket session lookup unavailable: {e}")
        return None
    if not session or not session.get("user_id"):
        return None
    return uuid.UUID(session["user_id"])


def _is_member(conversation_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    db = SessionLocal()
    try:
        return conversation_member_crud.get_by_conversation_and_user(
            db, conversation_id=conversation_id, user_id=user_id
        ) is not None
    finally:
        db.close()


def _presence(user_id: uuid.UUID, action: str) -> None:
    db = SessionLocal()
    try:
        service = PresenceService(db, notifier=connection_manager)
        if action == "online":
            service.go_online(user_id)
        elif action == "offline":
            service.go_offline(user_id)
        else:
            service.heartbeat(user_id)
    finally:
        db.close()


@router.websocket("/ws")
async def websocket_chat(
    websocket: WebSocket,
    token: Optional[str] = None,
):
    """
    Real-time channel. Auth via query ?token=.
    Client actions: subscribe, unsubscribe, typing (need conversation_id), ping.
    Server events: message_created, message_updated, conversation_updated,
    conversation_read, conversation_deleted, user_typing, presence.
    """
    await websocket.accept()
    user_id = _session_user_id(token)
    if not user_id:
        await websocket.close(code=4001)
        return

    async def send_json(obj: dict) -> None:
        try:
            await websocket.send_text(json.dumps(obj))
        except (RuntimeError, WebSocketDisconnect) as e:
            logger.debug("WebSocket send failed: %s", e)

    async def send_error(code: str, message: str) -> None:
        await send_json({"event": "error", "code": code, "message": message})

    subscribed: set = set()
    _presence(user_id, "online")
    try:
        while True:
            data = await websocket.receive_text()
            try:
                obj = json.loads(data)
            except json.JSONDecodeError:
                await send_error("INVALID_JSON", "Request body must be valid JSON.")
                continue
            if not isinstance(obj, dict):
                await send_error("INVALID_JSON", "Request body must be a JSON object.")
                continue
            action = obj.get("action")
            if action == "ping":
                _presence(user_id, "heartbeat")
                await send_json({"event": "pong"})
                continue

            conversation_id_str = obj.get("conversation_id")
            if not conversation_id_str:
                await send_error("MISSING_CONVERSATION_ID", "Missing required field: conversation_id.")
                continue
            try:
                conversation_id = uuid.UUID(str(conversation_id_str))
            except ValueError:
                await send_error("INVALID_CONVERSATION_ID", "conversation_id must be a valid UUID.")
                continue

            if action == "unsubscribe":
                await connection_manager.unsubscribe(websocket, conversation_id)
                subscribed.discard(conversation_id)
                continue
            if not _is_member(conversation_id, user_id):
                await send_error("FORBIDDEN", "You are not a member of this conversation.")
                continue
            if action == "subscribe":
                await connection_manager.subscribe(websocket, conversation_id)
                subscribed.add(conversation_id)
                await send_json({"event": "subscribed", "conversation_id": str(conversation_id)})
            elif action == "typing":
                await connection_manager.broadcast(
                    conversation_id,
                    "user_typing",
                    {"user_id": str(user_id), "typing": bool(obj.get("typing", False))},
                    exclude_websocket=websocket,
                )
            else:
                await send_error(
                    "UNKNOWN_ACTION",
                    "Expected action: subscribe, unsubscribe, typing, or ping.",
                )
    except WebSocketDisconnect:
        logger.debug("WebSocket disconnected for user %s", user_id)
    finally:
        await connection_manager.unsubscribe_all(websocket, subscribed)
        _presence(user_id, "offline")
