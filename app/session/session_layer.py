"""
Redis-backed bearer sessions plus the soft rate limiter.

Keys:
    session:<token>          JSON session payload, expires after the session TTL
    user_sessions:<user_id>  set of that user's live tokens
    ratelimit:<key>          cooldown marker, expires after the window
"""
import json
import logging
from typing import Any, Dict, Optional

import redis

logger = logging.getLogger(__name__)

_redis_pool: Optional[redis.ConnectionPool] = None
_redis_client: Optional[redis.Redis] = None
_session_ttl: int = 86400


def init_redis(host: str, port: int, db: int, session_ttl: int = 86400) -> None:
    """Create the shared pool. Called once from the app lifespan."""
    global _redis_pool, _redis_client, _session_ttl
    _redis_pool = redis.ConnectionPool(
        host=host,
        port=port,
        db=db,
        decode_responses=True,
        max_connections=10
    )
    _redis_client = redis.Redis(connection_pool=_redis_pool)
    _session_ttl = session_ttl
    logger.info(f"Redis pool created for {host}:{port}/{db}, session TTL {session_ttl}s")


def get_redis_client() -> Optional[redis.Redis]:
    """Redis client, or None when Redis was never initialized."""
    return _redis_client


def _require_client() -> redis.Redis:
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


def _session_key(token: str) -> str:
    return f"session:{token}"


def _user_index_key(user_id: str) -> str:
    return f"user_sessions:{user_id}"


def create_session(token: str, user_data: Dict[str, Any]) -> None:
    client = _require_client()
    index = _user_index_key(user_data["user_id"])
    pipe = client.pipeline()
    pipe.setex(_session_key(token), _session_ttl, json.dumps(user_data))
    pipe.sadd(index, token)
    pipe.expire(index, _session_ttl)
    pipe.execute()
    logger.info(f"Session created for user {user_data['user_id']}")


def get_session(token: str) -> Optional[Dict[str, Any]]:
    data = _require_client().get(_session_key(token))
    return json.loads(data) if data else None


def remove_session(token: str) -> bool:
    """Logout of one device. False when the token had no session."""
    client = _require_client()
    data = client.get(_session_key(token))
    if data:
        client.srem(_user_index_key(json.loads(data)["user_id"]), token)
    return client.delete(_session_key(token)) > 0


def remove_user_sessions(user_id: str) -> int:
    """Drop every session the user holds; returns how many were live."""
    client = _require_client()
    index = _user_index_key(user_id)
    tokens = client.smembers(index)
    removed = sum(client.delete(_session_key(t)) for t in tokens)
    client.delete(index)
    if removed:
        logger.info(f"Removed {removed} session(s) for user {user_id}")
    return removed


def extract_token(auth_header: Optional[str]) -> Optional[str]:
    """Token from an `Authorization: Bearer <token>` header."""
    if not auth_header:
        return None
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token or " " in token:
        return None
    return token


def check_rate_limit(key: str, window_ms: int) -> bool:
    """
    Soft cooldown: True if the action may proceed, False if the same key was
    used within window_ms. Best effort; allows everything when Redis is down.
    """
    if _redis_client is None:
        logger.debug("Rate limit skipped (Redis not initialized): %s", key)
        return True
    try:
        acquired = _redis_client.set(f"ratelimit:{key}", "1", nx=True, px=window_ms)
    except redis.RedisError as e:
        logger.warning("Rate limit check failed for %s: %s", key, e)
        return True
    return bool(acquired)
