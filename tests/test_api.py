"""
HTTP surface tests: routing, status codes and the error envelope.
"""
import asyncio
import json
import uuid
from unittest.mock import Mock

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from app.chat.connection_manager import connection_manager
from app.core.dependencies import validate_session
from app.crud import presence_crud
from app.router.api.v1.auth import get_auth_service
from app.service.auth_service import AuthService
from app.service.chat_service import ChatService
from app.service.presence_service import presence_key
from app.session import create_session
from main import app


@pytest.fixture
def client(db):
    """Test client without lifespan (no Redis/DB startup checks)."""
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login_as():
    """Replace the Redis session lookup with a fixed session for the given user."""
    def _login(user):
        app.dependency_overrides[validate_session] = lambda: {
            "user_id": str(user.id),
            "email": user.email,
            "role": user.role,
            "is_active": True,
        }
    return _login


@pytest.fixture
def vet(make_user):
    return make_user("vet-1", role="vet", full_name="Dr. Ada Vet")


@pytest.fixture
def farmer(make_user):
    return make_user("farmer-9")


def test_missing_token_uses_envelope(client):
    response = client.get("/api/v1/chat/conversations")
    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "status_code": 401,
        "message": "Not authenticated",
        "error": "NOT_AUTHENTICATED",
    }


def test_unknown_route_uses_envelope(client):
    response = client.get("/api/v1/nope")
    assert response.status_code == 404
    assert response.json()["success"] is False


def test_body_validation_uses_envelope(client, login_as, farmer):
    login_as(farmer)
    response = client.post("/api/v1/chat/conversations", json={"other_user_id": "not-a-uuid"})
    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert "other_user_id" in body["error"]


def test_conversation_find_or_create_status_codes(client, login_as, farmer, vet):
    login_as(farmer)
    first = client.post("/api/v1/chat/conversations", json={"other_user_id": str(vet.id)})
    assert first.status_code == 201
    second = client.post("/api/v1/chat/conversations", json={"other_user_id": str(vet.id)})
    assert second.status_code == 200
    assert first.json()["id"] == second.json()["id"]
    assert first.json()["other_members"][0]["full_name"] == "Dr. Ada Vet"


def test_vet_cannot_start_conversation(client, login_as, farmer, vet):
    login_as(vet)
    response = client.post("/api/v1/chat/conversations", json={"other_user_id": str(farmer.id)})
    assert response.status_code == 403
    assert response.json()["error"] == "ROLE_MISMATCH"


def test_messages_flow(client, login_as, farmer, vet, png_bytes):
    login_as(farmer)
    conv_id = client.post("/api/v1/chat/conversations", json={"other_user_id": str(vet.id)}).json()["id"]

    sent = client.post(f"/api/v1/chat/conversations/{conv_id}/messages", json={"text": "Is 50ml safe?"})
    assert sent.status_code == 201
    assert sent.json()["status"] == "sent"

    empty = client.post(f"/api/v1/chat/conversations/{conv_id}/messages", json={"text": "  "})
    assert empty.status_code == 400
    assert empty.json()["error"] == "EMPTY_CONTENT"

    login_as(vet)
    listing = client.get("/api/v1/chat/conversations").json()
    assert listing["total"] == 1
    assert listing["items"][0]["unread_count"] == 1
    assert listing["items"][0]["last_message"]["text"] == "Is 50ml safe?"

    read = client.post(f"/api/v1/chat/conversations/{conv_id}/read")
    assert read.status_code == 200
    assert read.json()["unread_count"] == 0

    image = client.post(
        f"/api/v1/chat/conversations/{conv_id}/images",
        files={"file": ("scan.png", png_bytes, "image/png")},
    )
    assert image.status_code == 201
    assert image.json()["status"] == "sent"
    assert image.json()["image_url"].startswith("/uploads/chat_images/")
    assert client.get(image.json()["image_url"]).status_code == 200

    messages = client.get(f"/api/v1/chat/conversations/{conv_id}/messages").json()
    assert messages["total"] == 2


def test_non_member_gets_404(client, login_as, farmer, vet, make_user):
    login_as(farmer)
    conv_id = client.post("/api/v1/chat/conversations", json={"other_user_id": str(vet.id)}).json()["id"]
    login_as(make_user("farmer-10"))
    response = client.get(f"/api/v1/chat/conversations/{conv_id}")
    assert response.status_code == 404
    assert response.json()["message"] == "Conversation not found"


def test_delete_conversation(client, login_as, farmer, vet):
    login_as(farmer)
    conv_id = client.post("/api/v1/chat/conversations", json={"other_user_id": str(vet.id)}).json()["id"]
    assert client.delete(f"/api/v1/chat/conversations/{conv_id}").status_code == 204
    assert client.get(f"/api/v1/chat/conversations/{conv_id}").status_code == 404


def test_pulse_endpoints(client, login_as, farmer, vet):
    login_as(vet)
    created = client.post("/api/v1/pulses", data={"title": "Foot rot alert", "category": "alert"})
    assert created.status_code == 201
    post_id = created.json()["post"]["id"]

    invalid = client.post("/api/v1/pulses", data={"title": "no", "category": "news"})
    assert invalid.status_code == 400
    assert set(invalid.json()["error"]) == {"title", "category"}

    login_as(farmer)
    toggled = client.post(f"/api/v1/pulses/{post_id}/toggle")
    assert toggled.json() == {"post_id": post_id, "is_pulsed": True, "pulse_count": 1}

    feed = client.get("/api/v1/pulses", params={"category": "alert"}).json()
    assert feed["items"][0]["is_pulsed_by_me"] is True
    assert feed["items"][0]["variant"] == "alert"

    states = client.post("/api/v1/pulses/states", json={"post_ids": [post_id]}).json()
    assert states == {"states": {post_id: True}}

    forbidden = client.patch(f"/api/v1/pulses/{post_id}", data={"title": "Changed title"})
    assert forbidden.status_code == 403
    assert forbidden.json()["error"] == "NOT_OWNER"

    login_as(vet)
    assert client.delete(f"/api/v1/pulses/{post_id}").status_code == 204
    assert client.get(f"/api/v1/pulses/{post_id}").status_code == 404


def test_users_and_presence(client, login_as, farmer, vet):
    login_as(farmer)
    me = client.get("/api/v1/users/me").json()
    assert me["role"] == "farmer"

    renamed = client.patch("/api/v1/users/me", json={"full_name": "Farmer Nine"})
    assert renamed.json()["full_name"] == "Farmer Nine"

    vets = client.get("/api/v1/users/vets", params={"search": "dr. a"}).json()
    assert [v["id"] for v in vets["items"]] == [str(vet.id)]
    assert vets["items"][0]["vet_profile"]["clinic_name"] == "Valley Clinic"

    presence = client.get(f"/api/v1/presence/{vet.id}").json()
    assert presence["online"] is False

    batch = client.post("/api/v1/presence/batch", json={"user_ids": [str(vet.id), str(uuid.uuid4())]}).json()
    assert len(batch["items"]) == 2


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_readiness_reports_each_dependency(client, fake_redis):
    assert client.get("/health/ready").json() == {"status": "ok", "database": True, "redis": True}


def test_readiness_degraded_without_redis(client):
    body = client.get("/health/ready").json()
    assert body["status"] == "degraded"
    assert body["redis"] is False


def test_signup_returns_created_profile(client, db):
    cognito = Mock()
    cognito.sign_up.return_value = {"user_sub": "sub-7", "username": "cognito-7", "user_confirmed": False}
    app.dependency_overrides[get_auth_service] = lambda: AuthService(db, cognito=cognito)

    response = client.post("/api/v1/auth/signup", json={
        "email": "new.vet@example.com",
        "password": "Secret123!",
        "full_name": "New Vet",
        "role": "vet",
        "vet_profile": {"specialties": ["equine"]},
    })
    assert response.status_code == 201
    assert response.json()["role"] == "vet"

    duplicate = client.post("/api/v1/auth/signup", json={
        "email": "new.vet@example.com", "password": "Secret123!", "full_name": "Again",
    })
    assert duplicate.status_code == 409
    assert duplicate.json()["success"] is False


# WebSocket

class FakeSocket:
    """Extra subscriber living outside the test client's event loop."""

    def __init__(self):
        self.sent = []

    async def send_text(self, text):
        self.sent.append(json.loads(text))


@pytest.fixture
def ws_token(fake_redis):
    """Factory: a live Redis session token for the given user."""
    def _token(user):
        token = f"ws-{user.id}"
        create_session(token, {"user_id": str(user.id), "email": user.email, "role": user.role, "is_active": True})
        return token
    return _token


@pytest.fixture
def conversation(db, farmer, vet):
    conv, _ = ChatService(db).get_or_create_conversation(farmer.id, vet.id)
    return conv


def test_ws_rejects_unknown_token(client, fake_redis):
    with client.websocket_connect("/api/v1/chat/ws?token=nope") as ws:
        with pytest.raises(WebSocketDisconnect) as exc:
            ws.receive_text()
    assert exc.value.code == 4001


def test_ws_rejects_missing_token(client, fake_redis):
    with client.websocket_connect("/api/v1/chat/ws") as ws:
        with pytest.raises(WebSocketDisconnect) as exc:
            ws.receive_text()
    assert exc.value.code == 4001


def test_ws_ping_refreshes_presence(client, farmer, ws_token, fake_redis):
    with client.websocket_connect(f"/api/v1/chat/ws?token={ws_token(farmer)}") as ws:
        fake_redis.ttls[presence_key(farmer.id)] = 1
        ws.send_json({"action": "ping"})
        assert ws.receive_json() == {"event": "pong"}
        assert fake_redis.ttls[presence_key(farmer.id)] > 1


def test_ws_subscribe_requires_membership(client, db, make_user, conversation, ws_token):
    outsider = make_user("farmer-7")
    with client.websocket_connect(f"/api/v1/chat/ws?token={ws_token(outsider)}") as ws:
        ws.send_json({"action": "subscribe", "conversation_id": str(conversation.id)})
        reply = ws.receive_json()
        assert reply["event"] == "error"
        assert reply["code"] == "FORBIDDEN"
        ws.send_json({"action": "typing", "conversation_id": str(conversation.id), "typing": True})
        assert ws.receive_json()["code"] == "FORBIDDEN"
    assert connection_manager.subscriber_count(conversation.id) == 0


def test_ws_rejects_malformed_requests(client, farmer, ws_token):
    with client.websocket_connect(f"/api/v1/chat/ws?token={ws_token(farmer)}") as ws:
        ws.send_text("not json")
        assert ws.receive_json()["code"] == "INVALID_JSON"
        ws.send_json({"action": "subscribe"})
        assert ws.receive_json()["code"] == "MISSING_CONVERSATION_ID"
        ws.send_json({"action": "subscribe", "conversation_id": "abc"})
        assert ws.receive_json()["code"] == "INVALID_CONVERSATION_ID"


def test_ws_typing_skips_sender(client, farmer, conversation, ws_token):
    listener = FakeSocket()
    with client.websocket_connect(f"/api/v1/chat/ws?token={ws_token(farmer)}") as ws:
        ws.send_json({"action": "ping"})
        assert ws.receive_json() == {"event": "pong"}
        ws.send_json({"action": "subscribe", "conversation_id": str(conversation.id)})
        assert ws.receive_json() == {"event": "subscribed", "conversation_id": str(conversation.id)}
        asyncio.run(connection_manager.subscribe(listener, conversation.id))
        try:
            ws.send_json({"action": "typing", "conversation_id": str(conversation.id), "typing": True})
            # Next frame to the sender is the pong, not its own typing event
            ws.send_json({"action": "ping"})
            assert ws.receive_json() == {"event": "pong"}
        finally:
            asyncio.run(connection_manager.unsubscribe(listener, conversation.id))
    assert listener.sent == [{
        "event": "user_typing",
        "conversation_id": str(conversation.id),
        "payload": {"user_id": str(farmer.id), "typing": True},
    }]


def test_ws_close_unsubscribes_and_goes_offline(client, db, farmer, conversation, ws_token, fake_redis):
    with client.websocket_connect(f"/api/v1/chat/ws?token={ws_token(farmer)}") as ws:
        ws.send_json({"action": "subscribe", "conversation_id": str(conversation.id)})
        ws.receive_json()
        assert connection_manager.subscriber_count(conversation.id) == 1
        assert fake_redis.exists(presence_key(farmer.id)) == 1

    assert connection_manager.subscriber_count(conversation.id) == 0
    assert fake_redis.exists(presence_key(farmer.id)) == 0
    db.expire_all()
    assert presence_crud.get(db, farmer.id).online is False
