from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Follows 12-factor app configuration principles.
    """

    # env_file is only used as fallback, env vars take precedence
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # Redis connection
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: str = ""
    REDIS_DB: int = 0
    REDIS_POOL_SIZE: int = Field(10, ge=1)

    # Redis timeouts, in seconds
    REDIS_CONNECT_TIMEOUT: float = Field(10.0, gt=0)
    REDIS_READ_TIMEOUT: float = Field(30.0, gt=0)
    REDIS_WRITE_TIMEOUT: float = Field(30.0, gt=0)
    REDIS_POOL_TIMEOUT: float = Field(30.0, gt=0)

    # Lifetime of both the historic and the latest key
    SMS_TTL_SECONDS: int = Field(120, ge=1)

    # Phrases that label the verification code inside a message.
    # Set as a JSON list, e.g. CODE_ANCHORS='["验证码", "code"]'
    CODE_ANCHORS: List[str] = ["验证码", "verification code", "code"]

    LOG_LEVEL: str = "INFO"

    SERVER_PORT: int = 8080


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every request.
    """
    return Settings()


# Global settings instance
settings = get_settings()
