"""
VetLink Backend Application Entry Point.
"""
import asyncio
import logging
import os
from contextlib import asynccontextmanager

import redis
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.chat.connection_manager import connection_manager
from app.core.config import settings
from app.core.database import Base, engine
from app.core.exceptions import register_exception_handlers
from app.core.middleware import SessionMiddleware
from app.router.endpoints import api_router
from app.session.session_layer import get_redis_client, init_redis

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _start_redis() -> None:
    """Sessions, presence and rate limits. The API still serves reads without it."""
    try:
        init_redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            session_ttl=settings.SESSION_TTL
        )
        logger.info(f"Redis ready at {settings.REDIS_HOST}:{settings.REDIS_PORT}")
    except redis.RedisError as e:
        logger.error(f"Redis initialization failed: {e}")


def _check_database() -> None:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection OK")
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {e}")
        return

    # Production schema comes from alembic
    if settings.DEBUG:
        from app import model  # noqa: F401
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created (DEBUG mode)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.PROJECT_NAME}")
    _start_redis()
    _check_database()
    # Routes running in the threadpool publish chat events onto this loop
    connection_manager.bind_loop(asyncio.get_running_loop())

    yield

    logger.info("Shutting down...")
    engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    lifespan=lifespan,
)

register_exception_handlers(app)
app.add_middleware(SessionMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router)

# Chat images, pulse photos and avatars when S3_BUCKET_NAME is unset
os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/health/ready")
async def readiness():
    """Database and Redis reachability, for load balancer checks."""
    checks = {"database": True, "redis": True}
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        checks["database"] = False

    client = get_redis_client()
    try:
        checks["redis"] = bool(client and client.ping())
    except redis.RedisError:
        checks["redis"] = False

    return {"status": "ok" if all(checks.values()) else "degraded", **checks}


@app.get("/")
async def root():
    return {"message": "Welcome to the VetLink API!"}


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
