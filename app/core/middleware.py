"""
Session Middleware - loads session from Redis for each request.
"""
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from typing import Callable
import redis
from app.session import extract_token, get_session

logger = logging.getLogger(__name__)


class SessionMiddleware(BaseHTTPMiddleware):
    """Loads session from Redis based on Authorization header."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.session = {}
        request.state.token = None

        token = extract_token(request.headers.get("authorization"))
        if token:
            # Token is kept even without a session so validate_session can report expiry
            request.state.token = token
            try:
                user_data = get_session(token)
            except (RuntimeError, redis.RedisError) as e:
                logger.warning(f"Session lookup unavailable: {e}")
                user_data = None
            if user_data:
                request.state.session = user_data

        return await call_next(request)
