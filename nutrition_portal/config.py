"""
Nutrition Portal - Configuration Management

Centralized configuration using Pydantic Settings.
All secrets and connection strings are loaded from environment variables.

Security: Secrets have development defaults only. Use .env for local development
and real values in every deployed environment.
"""

import logging
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        DATABASE_URL: SQLAlchemy URL (PostgreSQL/MySQL in production, SQLite for development)
        SECRET_KEY: JWT signing key for bearer tokens
        ACCESS_TOKEN_EXPIRE_MINUTES: Optional bearer token lifetime; None issues non-expiring tokens
        CSRF_SECRET_KEY: HMAC key for anti-forgery tokens (kept apart from SECRET_KEY)
        CSRF_ENFORCEMENT: "strict" rejects forged requests, "advisory" only warns
        ALLOWED_ORIGINS: CORS allowed origins for the dashboard frontend
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite:///./nutrition_portal.db"

    # Bearer tokens
    SECRET_KEY: str = "dev-secret-change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: Optional[int] = None

    # Anti-forgery (double-submit cookie)
    CSRF_SECRET_KEY: str = "dev-csrf-secret-change-me"
    CSRF_ENFORCEMENT: Literal["strict", "advisory"] = "advisory"
    CSRF_COOKIE_NAME: str = "csrf_token"
    CSRF_HEADER_NAME: str = "X-CSRF-Token"
    CSRF_COOKIE_SECURE: bool = False

    # Password hashing
    BCRYPT_WORK_FACTOR: int = 12

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    # Logging
    LOG_LEVEL: str = "INFO"


settings = Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for the API process and scripts."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
