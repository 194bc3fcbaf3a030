from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    default_currency: str = Field("INR", alias="EVENUP_DEFAULT_CURRENCY")
    # fraction of a currency's minor unit tolerated as ledger drift
    ledger_tolerance: Decimal = Field(Decimal("1e-6"), alias="EVENUP_LEDGER_TOLERANCE", ge=0)
    database_url: Optional[str] = Field(None, alias="DATABASE_URL")
    log_level: str = Field("INFO", alias="LOG_LEVEL")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
