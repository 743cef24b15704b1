from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./studyhub.db"

    # JWT Authentication
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Application
    APP_ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = [
        "http://localhost:8081",
        "http://localhost:19006",
        "http://127.0.0.1:8081",
    ]

    # Sessions
    MEETING_CODE_LENGTH: int = 6
    MEETING_CODE_MAX_ATTEMPTS: int = 5
    REQUIRE_APPROVAL_TO_JOIN: bool = True

    # Email Configuration
    EMAIL_NOTIFICATIONS_ENABLED: bool = False
    SMTP_SERVER: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    EMAIL_FROM: Optional[str] = None
    EMAIL_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False
    SMTP_TIMEOUT_SECONDS: int = 8

    # Chatbot
    CHATBOT_API_KEY: Optional[str] = None
    CHATBOT_MODEL: str = "gemini-1.5-flash"
    CHATBOT_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    CHATBOT_TIMEOUT_SECONDS: float = 20.0
    CHATBOT_MAX_OUTPUT_TOKENS: int = 512

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )


settings = Settings()
