"""
Service configuration, loaded from LEDGER_* environment variables or a .env file.
"""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Enrollment Payment Ledger API"
    app_version: str = "1.0.0"

    # an empty URL selects the in-memory store (demo only)
    database_url: str = Field(default="sqlite:///./payments.db", description="SQLAlchemy database URL")
    store_timeout_seconds: float = Field(default=5.0, gt=0, description="Max wait for any store access")
    seed_demo_data: bool = True

    default_currency: str = "PHP"
    gateway_checkout_url: str = "https://gateway.payment.com/checkout"

    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
