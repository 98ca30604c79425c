"""
ODR Lab – Application configuration.
Reads environment variables from a .env file via pydantic-settings.
"""

from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ── App ──
    APP_NAME: str = "ODR Lab"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # ── Database ──
    DATABASE_URL: str = "sqlite+aiosqlite:///./odrlab.db"

    # ── JWT ──
    # Left empty on purpose: token operations fail closed until it is set.
    SECRET_KEY: str = ""
    ALGORITHM: str = "HS256"
    TOKEN_ISSUER: str = "odrindia"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    SESSION_COOKIE_HOURS: int = 24

    # ── CORS ──
    CORS_ORIGINS: List[str] = ["https://www.odrlab.com"]

    # ── Logging ──
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None

    # ── Bootstrap admin ──
    ADMIN_EMAIL: str = ""
    ADMIN_PASSWORD: str = ""
    ADMIN_NAME: str = "ODR Lab Administrator"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


settings = Settings()
