"""
Configuration Management for Verdant View

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what the application can be tuned on and
ensures all configuration is validated at startup.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Local database configuration."""

    model_config = SettingsConfigDict(
        env_prefix="VERDANT_DB_",
        extra="ignore"
    )

    path: Path = Field(
        default=Path.home() / ".verdant" / "verdant.db",
        description="Location of the local database file"
    )
    busy_timeout_seconds: float = Field(
        default=5.0,
        ge=0.0,
        le=60.0,
        description="How long to wait for a lock held by another context"
    )


class BudgetSettings(BaseSettings):
    """Budget and dashboard presentation settings."""

    model_config = SettingsConfigDict(
        env_prefix="VERDANT_BUDGET_",
        extra="ignore"
    )

    default_monthly_budget: Decimal = Field(
        default=Decimal("1000"),
        ge=0,
        description="Budget seeded into a fresh database"
    )
    currency_symbol: str = Field(
        default="₹",
        max_length=5,
        description="Symbol used when formatting amounts"
    )
    week_start: int = Field(
        default=0,
        ge=0,
        le=6,
        description="First day of the week (0 = Monday, 6 = Sunday)"
    )
    recent_expenses_count: int = Field(
        default=5,
        ge=3,
        le=5,
        description="Number of expenses shown as recent on the dashboard"
    )


class ReminderSettings(BaseSettings):
    """Notification scheduler configuration."""

    model_config = SettingsConfigDict(
        env_prefix="VERDANT_REMINDERS_",
        extra="ignore"
    )

    check_interval_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="Interval of the periodic wake when no host trigger exists"
    )
    timer_horizon_hours: float = Field(
        default=48.0,
        ge=0,
        description="Milestones closer than this get an in-process timer"
    )
    purge_past_on_start: bool = Field(
        default=False,
        description="Delete reminders whose due day has passed on startup"
    )


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=2048,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class ScannerSettings(BaseSettings):
    """Receipt scanner limits and fallbacks."""

    model_config = SettingsConfigDict(
        env_prefix="VERDANT_SCANNER_",
        extra="ignore"
    )

    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum upload file size in MB"
    )
    supported_formats: str = Field(
        default="image/jpeg,image/png,image/webp,application/pdf",
        description="Comma-separated list of accepted MIME types"
    )
    future_date_tolerance_days: int = Field(
        default=7,
        ge=0,
        description="How many days in the future a scanned date can be"
    )
    fallback_title: str = Field(
        default="Scanned Expense",
        min_length=1,
        description="Title used when no vendor could be read"
    )

    @field_validator('supported_formats')
    @classmethod
    def validate_formats(cls, v: str) -> str:
        """Require at least one MIME type."""
        if not any(part.strip() for part in v.split(",")):
            raise ValueError("At least one supported format is required")
        return v

    @property
    def supported_formats_list(self) -> list[str]:
        """Get supported formats as a list."""
        return [fmt.strip().lower() for fmt in self.supported_formats.split(",") if fmt.strip()]

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

    # Sub-settings are loaded lazily so a missing Gemini key
    # does not prevent the rest of the app from starting.

    @property
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()

    @property
    def budget(self) -> BudgetSettings:
        return BudgetSettings()

    @property
    def reminders(self) -> ReminderSettings:
        return ReminderSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def scanner(self) -> ScannerSettings:
        return ScannerSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    "<name>_error" entry for every group that failed.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("database", "budget", "reminders", "gemini", "scanner"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
