from .session_layer import (
    init_redis,
    get_redis_client,
    create_session,
    get_session,
    remove_session,
    remove_user_sessions,
    extract_token,
    check_rate_limit,
)

__all__ = [
    "init_redis",
    "get_redis_client",
    "create_session",
    "get_session",
    "remove_session",
    "remove_user_sessions",
    "extract_token",
    "check_rate_limit",
]
