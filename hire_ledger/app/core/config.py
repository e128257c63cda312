from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Hire Ledger API"
    database_url: str = "sqlite:///hire_ledger.db"
    log_level: str = "INFO"
    default_currency: str = Field(default="VND", min_length=3, max_length=3)
    recent_reviews_limit: int = Field(default=5, ge=0)
    statement_page_size: int = Field(default=50, ge=1, le=500)
    workers: int = Field(default=1, ge=1)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="HIRE_LEDGER_",
        extra="ignore",
    )

    @field_validator("log_level", "default_currency")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.upper()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
