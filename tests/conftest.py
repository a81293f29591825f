"""
Common test fixtures.

The app runs against an in-memory SQLite database (shared StaticPool
connection) and a temporary upload directory. Redis is replaced by a small
in-memory double; Cognito by mocks in the auth tests.
"""
import os
import tempfile
from io import BytesIO

UPLOAD_DIR = tempfile.mkdtemp(prefix="vetlink-uploads-")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DB_HOST"] = "localhost"
os.environ["UPLOAD_DIR"] = UPLOAD_DIR
os.environ.pop("S3_BUCKET_NAME", None)

import pytest
from PIL import Image

from app.core.database import Base, SessionLocal, engine
from app.model import User, VetProfile
from app.session import session_layer


class FakePipeline:
    def __init__(self, redis):
        self.redis = redis
        self.calls = []

    def __getattr__(self, name):
        def queue(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self
        return queue

    def execute(self):
        results = [getattr(self.redis, name)(*args, **kwargs) for name, args, kwargs in self.calls]
        self.calls = []
        return results


class FakeRedis:
    """Dict-backed stand-in for the handful of Redis commands the app uses. TTLs are recorded, never enforced."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def ping(self):
        return True

    def pipeline(self):
        return FakePipeline(self)

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, nx=False, px=None, ex=None):
        if nx and key in self.store:
            return None
        self.store[key] = str(value)
        self.ttls[key] = ex if ex is not None else (px / 1000.0 if px else None)
        return True

    def setex(self, key, ttl, value):
        return self.set(key, value, ex=ttl)

    def incr(self, key):
        value = int(self.store.get(key, 0)) + 1
        self.store[key] = str(value)
        return value

    def decr(self, key):
        value = int(self.store.get(key, 0)) - 1
        self.store[key] = str(value)
        return value

    def expire(self, key, ttl):
        if key not in self.store:
            return False
        self.ttls[key] = ttl
        return True

    def sadd(self, key, *members):
        members_set = self.store.setdefault(key, set())
        before = len(members_set)
        members_set.update(members)
        return len(members_set) - before

    def srem(self, key, *members):
        members_set = self.store.get(key, set())
        removed = len(members_set & set(members))
        members_set.difference_update(members)
        return removed

    def smembers(self, key):
        return set(self.store.get(key, set()))

    def exists(self, key):
        return 1 if key in self.store else 0

    def delete(self, key):
        existed = key in self.store
        self.store.pop(key, None)
        self.ttls.pop(key, None)
        return 1 if existed else 0

    def expire_now(self, key):
        """Simulate TTL expiry."""
        self.delete(key)


class RecordingNotifier:
    """Collects published events in order."""

    def __init__(self):
        self.events = []

    def publish(self, conversation_id, event, payload):
        self.events.append((conversation_id, event, payload))

    def names(self):
        return [e[1] for e in self.events]


@pytest.fixture
def db():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_user(db):
    """Factory: make_user("vet-1", role="vet")."""
    def _make(name, role="farmer", **fields):
        user = User(
            email=f"{name}@example.com",
            cognito_username=f"cognito-{name}",
            full_name=fields.pop("full_name", name),
            role=role,
            **fields,
        )
        if role == "vet":
            user.vet_profile = VetProfile(specialties=["cattle"], clinic_name="Valley Clinic")
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def fake_redis(monkeypatch):
    """Install a FakeRedis as the app's Redis client."""
    fake = FakeRedis()
    monkeypatch.setattr(session_layer, "_redis_client", fake)
    return fake


@pytest.fixture
def notifier():
    return RecordingNotifier()


def make_image(fmt="PNG", size=(8, 8), color="red") -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, fmt)
    return buf.getvalue()


@pytest.fixture
def png_bytes():
    return make_image("PNG")
