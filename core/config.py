"""
Core configuration using Pydantic Settings.
Loads from environment variables.
"""

from typing import Literal
from pydantic import Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # App
    app_name: str = Field(default="hirehub", alias="APP_NAME")
    app_env: Literal["development", "staging", "production", "test"] = Field(
        default="development", alias="APP_ENV"
    )
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", alias="LOG_LEVEL"
    )

    # API
    api_v1_prefix: str = "/api/v1"
    allowed_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8000"],
        alias="ALLOWED_ORIGINS",
    )

    # Database
    database_url: str = Field(..., alias="DATABASE_URL")
    database_pool_size: int = Field(default=20, alias="DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(default=10, alias="DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # Redis
    redis_url: RedisDsn = Field(..., alias="REDIS_URL")

    # Identity provider (verifies the ID tokens presented at register/login)
    identity_issuer: str | None = Field(default=None, alias="IDENTITY_ISSUER")
    identity_audience: str | None = Field(default=None, alias="IDENTITY_AUDIENCE")
    identity_jwks_url: str | None = Field(default=None, alias="IDENTITY_JWKS_URL")
    identity_shared_secret: str | None = Field(
        default=None, alias="IDENTITY_SHARED_SECRET"
    )
    identity_algorithm: Literal["RS256", "HS256"] = Field(
        default="RS256", alias="IDENTITY_ALGORITHM"
    )

    # App-issued access tokens
    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24, alias="ACCESS_TOKEN_EXPIRE_MINUTES"
    )

    # Master key wrapping the per-chat message keys (32 bytes, raw or urlsafe b64)
    server_secret: str = Field(..., alias="SERVER_SECRET")

    # Super admin bootstrap
    super_admin_emails: list[str] = Field(default=[], alias="SUPER_ADMIN_EMAILS")

    # S3
    aws_access_key_id: str = Field(..., alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str = Field(..., alias="AWS_SECRET_ACCESS_KEY")
    aws_region: str = Field(default="us-east-1", alias="AWS_REGION")
    aws_s3_bucket: str = Field(..., alias="AWS_S3_BUCKET")
    storage_public_base_url: str | None = Field(
        default=None, alias="STORAGE_PUBLIC_BASE_URL"
    )
    max_upload_size: int = Field(default=5 * 1024 * 1024, alias="MAX_UPLOAD_SIZE")

    # Google Gemini
    google_api_key: str = Field(..., alias="GOOGLE_API_KEY")
    google_model: str = Field(default="gemini-2.0-flash", alias="GOOGLE_MODEL")

    # Permission cache
    permission_cache_ttl: int = Field(default=3600, alias="PERMISSION_CACHE_TTL")

    # Notifications
    notification_batch_size: int = Field(default=100, alias="NOTIFICATION_BATCH_SIZE")

    # Logging
    log_request_body: bool = Field(default=False, alias="LOG_REQUEST_BODY")
    log_max_body_size: int = Field(default=1024, alias="LOG_MAX_BODY_SIZE")
    json_logs: bool = Field(default=True, alias="JSON_LOGS")

    # Rate Limiting
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")
    rate_limit_general_requests: int = Field(
        default=100, alias="RATE_LIMIT_GENERAL_REQUESTS"
    )
    rate_limit_general_window: int = Field(
        default=10 * 60, alias="RATE_LIMIT_GENERAL_WINDOW"
    )
    rate_limit_ai_requests: int = Field(default=10, alias="RATE_LIMIT_AI_REQUESTS")
    rate_limit_ai_window: int = Field(default=15 * 60, alias="RATE_LIMIT_AI_WINDOW")


# Global settings instance
settings = Settings()
