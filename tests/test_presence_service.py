"""
Tests for presence: Redis live key plus the user_presence mirror.
"""
import pytest

from app.crud import presence_crud
from app.service.chat_service import ChatService
from app.service.presence_service import PresenceService, presence_key


@pytest.fixture
def farmer(make_user):
    return make_user("farmer-9")


@pytest.fixture
def presence(db, fake_redis, notifier):
    return PresenceService(db, redis_client=fake_redis, notifier=notifier, ttl=30)


def test_unknown_user_is_offline(presence, farmer):
    state = presence.get_presence(farmer.id)
    assert state.online is False
    assert state.last_seen is None


def test_connect_and_disconnect(presence, fake_redis, farmer):
    state = presence.go_online(farmer.id)
    assert state.online is True
    assert fake_redis.ttls[presence_key(farmer.id)] == 30

    state = presence.go_offline(farmer.id)
    assert state.online is False
    assert state.last_seen is not None
    assert fake_redis.exists(presence_key(farmer.id)) == 0


def test_second_socket_keeps_user_online(presence, farmer):
    presence.go_online(farmer.id)
    presence.go_online(farmer.id)
    assert presence.go_offline(farmer.id).online is True
    assert presence.go_offline(farmer.id).online is False


def test_forced_offline_on_logout(presence, farmer):
    presence.go_online(farmer.id)
    presence.go_online(farmer.id)
    assert presence.go_offline(farmer.id, force=True).online is False


def test_expired_key_flips_mirror_on_read(db, presence, fake_redis, farmer):
    presence.go_online(farmer.id)
    fake_redis.expire_now(presence_key(farmer.id))

    assert presence.get_presence(farmer.id).online is False
    db.expire_all()
    assert presence_crud.get(db, farmer.id).online is False


def test_heartbeat_reregisters_expired_key(presence, fake_redis, farmer):
    presence.go_online(farmer.id)
    fake_redis.expire_now(presence_key(farmer.id))
    presence.heartbeat(farmer.id)
    assert fake_redis.exists(presence_key(farmer.id)) == 1
    assert presence.get_presence(farmer.id).online is True


def test_without_redis_mirror_is_authoritative(db, farmer):
    presence = PresenceService(db)
    assert presence.redis is None
    assert presence.go_online(farmer.id).online is True
    assert presence.get_presence(farmer.id).online is True
    assert presence.go_offline(farmer.id).online is False


def test_get_many_keeps_request_order(presence, farmer, make_user):
    vet = make_user("vet-1", role="vet")
    presence.go_online(vet.id)
    items = presence.get_many([vet.id, farmer.id, vet.id])
    assert [(i.user_id, i.online) for i in items] == [(vet.id, True), (farmer.id, False)]


def test_presence_announced_to_conversations(db, presence, notifier, farmer, make_user):
    vet = make_user("vet-1", role="vet")
    conversation, _ = ChatService(db).get_or_create_conversation(farmer.id, vet.id)
    presence.go_online(farmer.id)
    assert notifier.events == [
        (conversation.id, "presence", {"user_id": str(farmer.id), "online": True})
    ]
