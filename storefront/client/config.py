from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class ClientSettings(BaseSettings):
    """Settings of the storefront client, read from STOREFRONT_* variables"""
    model_config = SettingsConfigDict(
        env_prefix="STOREFRONT_", env_file=".env", case_sensitive=False, extra="ignore"
    )

    API_BASE_URL: str = "http://localhost:8000/api"
    REQUEST_TIMEOUT_SECONDS: float = 10.0

    # Token lifecycle
    TOKEN_LIFETIME_HOURS: int = 24
    TOKEN_WARNING_MINUTES: int = 30
    TOKEN_CHECK_INTERVAL_MINUTES: int = 5
    TOKEN_PROACTIVE_REFRESH_HOURS: int = 23

    # Persisted client state (guest cart, token, cached profile)
    STATE_FILE: str = Field(default=".storefront_state.json")

    CLEAR_GUEST_CART_ON_MERGE: bool = True
