# app/core/config.py
import os
from decimal import Decimal
from pydantic_settings import BaseSettings
from pydantic import validator
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from .env"""

    # === Database ===
    DATABASE_URL: str = "sqlite+aiosqlite:///./inventory.db"
    DATABASE_TEST_URL: Optional[str] = None
    DATABASE_ECHO: bool = False
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 30
    DATABASE_POOL_TIMEOUT: int = 60

    @validator("DATABASE_URL")
    def validate_database_url(cls, v):
        """Ensure database URL is safe for current environment"""
        env = os.getenv("ENVIRONMENT", "development").lower()
        if env == "production" and ("localhost" in v or v.startswith("sqlite")):
            raise ValueError("Production environment cannot use a local database!")
        return v

    # === Locking ===
    # Applied per transaction on PostgreSQL (SET LOCAL lock_timeout)
    LOCK_TIMEOUT_MS: int = 5000

    # === Inventory ===
    DEFAULT_CURRENCY: str = "USD"
    COST_DECIMAL_PLACES: int = 4
    EXPIRING_BATCH_DAYS: int = 30

    # === System ===
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = False

    @property
    def cost_quantum(self) -> Decimal:
        return Decimal(1).scaleb(-self.COST_DECIMAL_PLACES)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


# Create a global settings instance
settings = Settings()
