from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Fin Ledger API"
    database_url: str = "sqlite:///fin_ledger.db"
    database_echo: bool = False
    log_level: str = "INFO"

    default_currency: str = "SAR"
    default_page_size: int = 10
    max_page_size: int = 100
    history_default_period: str = "30d"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="FINLEDGER_",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
