"""Configuration package."""

from verdant.config.settings import (
    BudgetSettings,
    DatabaseSettings,
    GeminiSettings,
    ReminderSettings,
    ScannerSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "BudgetSettings",
    "DatabaseSettings",
    "GeminiSettings",
    "ReminderSettings",
    "ScannerSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
