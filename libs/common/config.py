from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global client settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production"] = "local"
    LOG_LEVEL: str = "INFO"

    # Storefront API
    API_BASE_URL: str = "http://localhost:7777"
    # Sent as X-Client; the API only returns refresh tokens to "mobile" clients
    CLIENT_TYPE: str = "mobile"
    REQUEST_TIMEOUT: float = 10.0

    # Checkout
    TAX_RATE: float = 0.085  # Display estimate only; the order endpoint is authoritative
    DEFAULT_COUNTRY: str = "US"
    COUPON_POLICY: Literal["trust_until_placement", "revalidate_on_change"] = (
        "trust_until_placement"
    )

    # Local persistence for tokens and guest session ids. In-memory when unset.
    STATE_FILE: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("API_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> str:
        if isinstance(v, str):
            return v.rstrip("/")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
