"""
Application Configuration — Environment & Settings
Centralizes all config from .env with Pydantic Settings for validation.
"""
from pathlib import Path
from functools import lru_cache
from pydantic_settings import BaseSettings

# Resolve paths relative to backend/ directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Core ---
    APP_NAME: str = "IMF Africa Pay API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    PORT: int = 3000
    CORS_ORIGINS: list[str] = ["*"]

    # --- Database ---
    # Empty string means no database: records go to process memory only.
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'data' / 'imf_payments.db'}"
    DATABASE_CONNECT_ATTEMPTS: int = 1
    DATABASE_CONNECT_TIMEOUT: int = 5

    # --- Email ---
    MAIL_TRANSPORT: str = "smtp"  # smtp | sendgrid | console | none
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_SSL: bool = False
    SENDGRID_API_KEY: str = ""
    SENDGRID_API_URL: str = "https://api.sendgrid.com/v3"
    EMAIL_FROM: str = '"IMF Africa Pay" <no-reply@imfafrica.org>'
    ADMIN_EMAIL: str = "admin@imfafrica.org"
    EMAIL_VERIFY_RETRIES: int = 3
    EMAIL_VERIFY_BACKOFF_SECONDS: float = 3.0
    EMAIL_CONNECT_TIMEOUT: float = 10.0
    EMAIL_SOCKET_TIMEOUT: float = 60.0
    CURRENCY_SYMBOL: str = "$"

    # --- Receipts ---
    UPLOAD_DIR: str = str(BASE_DIR / "uploads")
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024
    ALLOWED_UPLOAD_TYPES: list[str] = ["image/jpeg", "image/png", "application/pdf"]
    RECEIPT_REQUIRED: bool = False

    # --- Frontend ---
    FRONTEND_DIR: str = str(BASE_DIR.parent / "frontend" / "dist")

    # --- Logging ---
    LOG_DIR: str = str(BASE_DIR / "logs")
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # text | json
    LOG_TO_FILE: bool = True

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
