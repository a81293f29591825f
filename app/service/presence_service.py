"""
Presence: live state in Redis, durable mirror in user_presence.

Each open socket holds one count on presence:<uid>. The key carries a TTL that
heartbeats refresh, so a server that dies without closing sockets still lets
users drop offline once the TTL runs out.
"""
import logging
import uuid
from typing import Iterable, List, Optional

import redis
from sqlalchemy.orm import Session

from app.core.config import settings
from app.crud import presence_crud
from app.model.conversation_member import ConversationMember
from app.schema.presence import PresenceResponse
from app.session import get_redis_client

logger = logging.getLogger(__name__)


def presence_key(user_id: uuid.UUID) -> str:
    return f"presence:{user_id}"


class PresenceService:
    def __init__(self, db: Session, redis_client=None, notifier=None, ttl: Optional[int] = None):
        self.db = db
        self.redis = redis_client if redis_client is not None else get_redis_client()
        self.notifier = notifier
        self.ttl = ttl or settings.PRESENCE_TTL

    def _live(self, op: str, fn):
        """Run a Redis call; None when Redis is missing or failing."""
        if self.redis is None:
            return None
        try:
            return fn(self.redis)
        except redis.RedisError as e:
            logger.warning(f"Presence {op} failed in Redis: {e}")
            return None

    def _announce(self, user_id: uuid.UUID, online: bool) -> None:
        if self.notifier is None:
            return
        conversation_ids = [
            cid for (cid,) in self.db.query(ConversationMember.conversation_id)
            .filter(ConversationMember.user_id == user_id)
            .all()
        ]
        payload = {"user_id": str(user_id), "online": online}
        for cid in conversation_ids:
            self.notifier.publish(cid, "presence", payload)

    def go_online(self, user_id: uuid.UUID) -> PresenceResponse:
        """Called when a socket connects."""
        key = presence_key(user_id)

        def _register(r):
            pipe = r.pipeline()
            pipe.incr(key)
            pipe.expire(key, self.ttl)
            return pipe.execute()

        self._live("connect", _register)
        row = presence_crud.set_state(self.db, user_id=user_id, online=True)
        self._announce(user_id, True)
        logger.info(f"User {user_id} online")
        return PresenceResponse(user_id=user_id, online=row.online, last_seen=row.last_seen)

    def heartbeat(self, user_id: uuid.UUID) -> None:
        """Extend the live key; re-register if it already expired."""
        key = presence_key(user_id)
        refreshed = self._live("heartbeat", lambda r: r.expire(key, self.ttl))
        if refreshed is False:
            self._live("heartbeat", lambda r: r.set(key, 1, ex=self.ttl))
            presence_crud.set_state(self.db, user_id=user_id, online=True)

    def go_offline(self, user_id: uuid.UUID, force: bool = False) -> PresenceResponse:
        """
        Called when a socket closes (server-side disconnect detection) and on
        logout (force=True). The mirror only flips once the last socket is gone.
        """
        key = presence_key(user_id)
        if force:
            self._live("disconnect", lambda r: r.delete(key))
            remaining = 0
        else:
            remaining = self._live("disconnect", lambda r: r.decr(key))
            if remaining is not None and remaining <= 0:
                self._live("disconnect", lambda r: r.delete(key))
        if remaining is None or remaining <= 0:
            row = presence_crud.set_state(self.db, user_id=user_id, online=False)
            self._announce(user_id, False)
            logger.info(f"User {user_id} offline")
            return PresenceResponse(user_id=user_id, online=False, last_seen=row.last_seen)
        return self.get_presence(user_id)

    def _reconcile(self, row) -> None:
        """Mirror says online but the live key expired: flip the mirror."""
        if not row.online:
            return
        exists = self._live("read", lambda r: r.exists(presence_key(row.user_id)))
        if exists == 0:
            presence_crud.set_state(self.db, user_id=row.user_id, online=False)
            logger.info(f"Presence for {row.user_id} expired; mirror set offline")

    def get_presence(self, user_id: uuid.UUID) -> PresenceResponse:
        row = presence_crud.get(self.db, user_id)
        if row is None:
            return PresenceResponse(user_id=user_id, online=False, last_seen=None)
        self._reconcile(row)
        return PresenceResponse(user_id=user_id, online=row.online, last_seen=row.last_seen)

    def get_many(self, user_ids: Iterable[uuid.UUID]) -> List[PresenceResponse]:
        ids = list(dict.fromkeys(user_ids))
        rows = {r.user_id: r for r in presence_crud.list_for_users(self.db, user_ids=ids)}
        out = []
        for uid in ids:
            row = rows.get(uid)
            if row is None:
                out.append(PresenceResponse(user_id=uid, online=False, last_seen=None))
                continue
            self._reconcile(row)
            out.append(PresenceResponse(user_id=uid, online=row.online, last_seen=row.last_seen))
        return out

