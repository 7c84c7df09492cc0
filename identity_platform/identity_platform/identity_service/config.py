"""
Configuration management for the Identity Service
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Identity Service configuration loaded from environment variables"""

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./identity.db"
    DB_ECHO: bool = False

    # Token signing. No default: the service refuses to start without a secret.
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(60, gt=0)

    # One-time tokens
    VERIFICATION_TOKEN_TTL_HOURS: int = Field(24, gt=0)
    RESET_TOKEN_TTL_MINUTES: int = Field(60, gt=0)

    # pbkdf2_sha256 work factor
    PASSWORD_HASH_ROUNDS: int = Field(29000, ge=29000)

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None

    # CORS Configuration
    CORS_ORIGINS: List[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("JWT_SECRET_KEY")
    @classmethod
    def validate_secret(cls, v: str) -> str:
        """Reject empty or trivially short signing secrets"""
        if len(v.strip()) < 16:
            raise ValueError("JWT_SECRET_KEY must be at least 16 characters")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
