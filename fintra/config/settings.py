"""
Configuration Management for Fintra

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Each external collaborator (Supabase, Gemini, the exchange-rate API) gets its
own settings class with its own env prefix, so a missing key for one service
never blocks the others from loading.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SupabaseSettings(BaseSettings):
    """Remote data service (Supabase / PostgREST) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SUPABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        ...,
        description="Project URL, e.g. https://xyz.supabase.co"
    )
    anon_key: str = Field(
        ...,
        description="Public anon API key"
    )
    access_token: Optional[str] = Field(
        default=None,
        description="Bearer token of the signed-in user (falls back to the anon key)"
    )
    user_id: Optional[str] = Field(
        default=None,
        description="Id of the signed-in user, as issued by the auth provider"
    )
    schema_name: str = Field(
        default="public",
        description="Database schema exposed through PostgREST"
    )

    @field_validator('url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class GeminiSettings(BaseSettings):
    """Gemini receipt extraction configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model to use"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class SyncSettings(BaseSettings):
    """
    Data synchronization layer configuration.

    Timeouts bound every remote call made by a page. There is no
    automatic retry: a timed-out fetch or mutation is reported and the
    user retries with the refresh button.
    """

    model_config = SettingsConfigDict(
        env_prefix="SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    cache_key_prefix: str = Field(
        default="fintra",
        min_length=1,
        description="Prefix for session cache keys"
    )
    fetch_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound for one page's batch of reads"
    )
    mutation_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound for one write call"
    )


class ExchangeRateSettings(BaseSettings):
    """Public exchange-rate API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EXCHANGE_RATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_url: str = Field(
        default="https://api.exchangerate-api.com/v4/latest/",
        description="Base URL; the base currency code is appended"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for the structured log"
    )

    # Receipt upload limits
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum receipt image size in MB"
    )
    supported_image_formats: str = Field(
        default="jpg,jpeg,png,webp",
        description="Comma-separated list of supported image formats"
    )

    @property
    def supported_formats_list(self) -> list[str]:
        """Get supported formats as a list."""
        return [fmt.strip().lower() for fmt in self.supported_image_formats.split(",")]

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so that a partially configured
    # environment (e.g. no Gemini key) still starts.

    @property
    def supabase(self) -> SupabaseSettings:
        return SupabaseSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def sync(self) -> SyncSettings:
        return SyncSettings()

    @property
    def exchange_rates(self) -> ExchangeRateSettings:
        return ExchangeRateSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    `<name>_error` entry for every section that failed.
    """
    results = {}
    settings = get_settings()

    for name in ("supabase", "gemini", "sync", "exchange_rates", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
