from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Ignore unrelated env keys so local/dev .env can be shared with the web frontend.
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Construction Cash Flow Backend"
    environment: str = "development"
    api_prefix: str = "/api/v1"
    cors_allow_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    supabase_url: str = Field(..., alias="SUPABASE_URL")
    supabase_service_role_key: Optional[str] = Field(
        default=None, alias="SUPABASE_SERVICE_ROLE_KEY"
    )
    supabase_anon_key: Optional[str] = Field(default=None, alias="SUPABASE_ANON_KEY")
    store_row_limit: int = Field(default=5000, alias="STORE_ROW_LIMIT")

    forecast_default_horizon_months: int = Field(
        default=12, alias="FORECAST_DEFAULT_HORIZON_MONTHS"
    )
    forecast_max_horizon_months: int = Field(default=36, alias="FORECAST_MAX_HORIZON_MONTHS")
    forecast_low_balance_threshold: Decimal = Field(
        default=Decimal("1000000"), alias="FORECAST_LOW_BALANCE_THRESHOLD"
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()


def get_cors_origins() -> list[str]:
    settings = get_settings()
    return [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
