"""
Service configuration (pydantic-settings).

Values come from environment variables first, then a .env file, then the
defaults below. SECRET_KEY and CARD_ENCRYPTION_KEY have no defaults: the
process fails at import time until both are set, rather than signing
tokens or encrypting card numbers with a placeholder.

    from app.config import settings
    settings.MAX_PAGE_SIZE
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the Bank Cards API.

    Required fields (no defaults) MUST be set in .env or environment:
      - SECRET_KEY: Used to sign JWT tokens
      - CARD_ENCRYPTION_KEY: AES-256-GCM key for encrypting card numbers at rest
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Bank Cards API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = None

    # --- Database ---
    # SQLite for local runs; swap to a postgresql+asyncpg URL for production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/cards.db"

    # --- Authentication ---
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # --- Card Encryption ---
    # REQUIRED: URL-safe base64 encoding of a 32-byte AES key
    # Generate with: python -c "from app.security import generate_key; print(generate_key())"
    CARD_ENCRYPTION_KEY: str

    # --- Expiry sweep ---
    # The sweep runs once a day at EXPIRY_SWEEP_HOUR:EXPIRY_SWEEP_MINUTE
    EXPIRY_SWEEP_ENABLED: bool = True
    EXPIRY_SWEEP_HOUR: int = 0
    EXPIRY_SWEEP_MINUTE: int = 0
    SCHEDULER_TIMEZONE: str = "UTC"

    # --- Pagination ---
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
