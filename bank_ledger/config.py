"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
Values here only seed the ledger at startup; the live rates are owned by the engine.
"""

from decimal import Decimal
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Ledger startup configuration"""

    # Business rules (percentages and amounts)
    interest_rate: Decimal = Decimal("1")
    tax_rate: Decimal = Decimal("2")
    existential_deposit: Decimal = Decimal("5")
    currency_precision: int = 2  # Decimal places of the smallest currency unit

    # Accounts created at startup, as "username:role" entries
    seed_accounts: List[str] = []

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        case_sensitive=False,
    )


# Global settings instance
settings = LedgerSettings()


def get_settings() -> LedgerSettings:
    """Get global settings instance"""
    return settings


def reload_settings() -> LedgerSettings:
    """Reload settings from environment"""
    global settings
    settings = LedgerSettings()
    return settings
