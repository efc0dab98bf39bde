"""
Service configuration loaded from the environment (prefix `TIPS_`).
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TIPS_", env_file=".env", extra="ignore"
    )

    # Storage; the in-memory manager is used when no Mongo URI is set
    mongo_uri: str = ""
    mongo_db: str = "tips"

    # Asaas gateway
    asaas_api_url: str = "https://api.asaas.com/v3"
    asaas_api_key: str = ""
    pix_address_key: str = ""  # merchant receiving key for static QR codes
    pix_expiration_hours: int = 2
    gateway_timeout_seconds: float = 10.0

    # Entitlements
    plan_cache_ttl_seconds: int = 300
    max_write_retries: int = 5
    reuse_pending_charges: bool = False

    # Logging
    log_level: str = "INFO"
    ledger_log_path: Path = Path("logs/tip_ledger.log")


@lru_cache
def get_settings() -> Settings:
    return Settings()
