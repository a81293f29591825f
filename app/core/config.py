"""
Application settings.
Secrets loaded from AWS Secrets Manager at startup unless provided via env.
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # AWS
    AWS_REGION: str = "us-east-1"
    COGNITO_REGION: str = "us-east-1"

    # Database (loaded from Secrets Manager)
    DB_HOST: Optional[str] = None
    DB_PORT: int = 5432
    DB_NAME: Optional[str] = None
    DB_USER: Optional[str] = None
    DB_PASS: Optional[str] = None
    # Full SQLAlchemy URL; takes precedence over the DB_* parts when set
    DATABASE_URL: Optional[str] = None

    # Cognito (loaded from Secrets Manager)
    COGNITO_USER_POOL_ID: Optional[str] = None
    COGNITO_CLIENT_ID: Optional[str] = None
    COGNITO_CLIENT_SECRET: Optional[str] = None

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    SESSION_TTL: int = 86400  # 24 hours in seconds
    PRESENCE_TTL: int = 60  # seconds without heartbeat before a user counts as offline

    # S3 (when set, chat images, pulse photos and avatars are stored in S3)
    S3_BUCKET_NAME: Optional[str] = None
    S3_REGION: Optional[str] = None  # defaults to AWS_REGION

    # Soft rate limits (milliseconds)
    PULSE_CREATE_COOLDOWN_MS: int = 3000
    PULSE_TOGGLE_COOLDOWN_MS: int = 800

    CHAT_IMAGE_MAX_BYTES: int = 10 * 1024 * 1024

    # Optional
    DEBUG: bool = False
    PROJECT_NAME: str = "VetLink Backend"
    CORS_ORIGINS: List[str] = ["http://localhost:8081"]

    # Local uploads fallback when S3_BUCKET_NAME is not set
    UPLOAD_DIR: str = "uploads"

    @property
    def use_s3(self) -> bool:
        return bool(self.S3_BUCKET_NAME)

    @property
    def s3_region(self) -> str:
        return self.S3_REGION or self.AWS_REGION

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.DB_USER}:{self.DB_PASS}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()

# Load secrets from AWS Secrets Manager only when DB creds aren't already
# provided via environment variables (e.g. in Docker / local dev).
if not settings.DB_HOST and not settings.DATABASE_URL:
    from app.aws.secrets import get_secret

    _db_secret = get_secret("vetlink-backend/db", region_name=settings.AWS_REGION)
    settings.DB_HOST = _db_secret["host"]
    settings.DB_PORT = int(_db_secret.get("port", 5432))
    settings.DB_NAME = _db_secret["database"]
    settings.DB_USER = _db_secret["username"]
    settings.DB_PASS = _db_secret["password"]

    _cognito_secret = get_secret("vetlink-backend/cognito", region_name=settings.COGNITO_REGION)
    settings.COGNITO_USER_POOL_ID = _cognito_secret["user_pool_id"]
    settings.COGNITO_CLIENT_ID = _cognito_secret["client_id"]
    settings.COGNITO_CLIENT_SECRET = _cognito_secret.get("client_secret")
