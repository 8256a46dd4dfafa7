"""
Application Configuration Settings
"""

from pydantic_settings import BaseSettings
from typing import List, ClassVar
import os


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Co-founder Expenses"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite:///./cofounder_expenses.db"
    DB_ECHO: bool = False
    # Seconds a SQLite unit of work waits for the write lock
    SQLITE_BUSY_TIMEOUT_SECONDS: float = 30.0

    # JWT
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # SMTP (notifications are skipped when username/password are empty)
    SMTP_SERVER: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    FROM_EMAIL: str = ""
    FROM_NAME: str = "Co-founder Expenses"
    APP_URL: str = "http://localhost:3000"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8000"  # Comma-separated string

    @property
    def cors_origins_list(self) -> List[str]:
        """Convert comma-separated string to list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_FILE: str = "logs/app.log"

    # Expense workflow
    DEFAULT_NUDGE_COOLDOWN_HOURS: int = 24
    MAX_NUDGE_COOLDOWN_HOURS: int = 168
    REJECTION_REASON_MAX_LENGTH: int = 500
    DEFAULT_CURRENCY: str = "USD"

    SUPPORTED_CURRENCIES: ClassVar[List[str]] = [
        "USD", "GBP", "EUR", "CAD", "AUD", "NZD",
        "JPY", "CHF", "SEK", "NOK", "INR", "ZAR",
    ]

    class Config:
        env_file = ".env"
        case_sensitive = True


# Create settings instance
settings = Settings()


# Ensure log directory exists
os.makedirs(settings.LOG_DIR, exist_ok=True)
