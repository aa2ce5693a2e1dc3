"""Configuration package."""

from fintra.config.settings import (
    AppSettings,
    ExchangeRateSettings,
    GeminiSettings,
    Settings,
    SupabaseSettings,
    SyncSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "ExchangeRateSettings",
    "GeminiSettings",
    "Settings",
    "SupabaseSettings",
    "SyncSettings",
    "get_settings",
    "validate_all_settings",
]
