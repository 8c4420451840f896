from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import List


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # App
    APP_NAME: str = "Miorah Collections"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    API_PREFIX: str = "/api"

    # Database - REQUIRED from environment
    DATABASE_URL: str = Field(
        ...,  # No default - must be provided via environment variable
        description="Database connection URL (REQUIRED)"
    )

    # Security - REQUIRED from environment
    SECRET_KEY: str = Field(
        ...,
        min_length=32,
        description="Secret key for JWT tokens (REQUIRED - minimum 32 characters)"
    )
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 24

    # Token blacklist fallback when Redis is down
    TOKEN_BLACKLIST_MAX_SIZE: int = 10000

    # CORS
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: [
        "https://miorah-collections.vercel.app",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ])

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: str = "100/minute"
    AUTH_RATE_LIMIT: str = "5/minute"
    REGISTRATION_RATE_LIMIT: str = "3/hour"

    # Redis (token blacklist)
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL"
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _assemble_cors_origins(cls, value):
        """Ensure CORS origins env value always becomes a list of strings."""
        if isinstance(value, str):
            # Support JSON-style lists or simple comma-separated strings
            value = value.strip()
            if value.startswith("[") and value.endswith("]"):
                import json
                return json.loads(value)
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        if isinstance(value, (list, tuple)):
            return list(value)
        return value


settings = Settings()
