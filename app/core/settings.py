"""
Core settings and environment variables for CivicEye.
Uses pydantic-settings for type-safe environment variable loading.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.
    """

    # Application
    APP_NAME: str = "CivicEye Backend"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - Frontend URLs allowed to access this API (comma-separated)
    CORS_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173"

    # Firebase/Firestore
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON

    # Email (Resend). Without an API key emails are simulated and only logged.
    RESEND_API_KEY: Optional[str] = None
    EMAIL_FROM: str = "CivicEye <onboarding@resend.dev>"
    ADMIN_EMAIL: str = "admin@example.com"
    EMAIL_TIMEOUT_SECONDS: float = 10.0

    # Push notifications (Firebase Cloud Messaging)
    PUSH_NOTIFICATIONS_ENABLED: bool = True

    # SLA breach monitor
    SLA_MONITOR_ENABLED: bool = True
    SLA_CHECK_INTERVAL_MINUTES: int = 30

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"  # Allow extra env vars to prevent crashes


# Global settings instance
settings = Settings()
