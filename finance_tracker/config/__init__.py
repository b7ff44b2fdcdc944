"""Configuration package."""

from finance_tracker.config.settings import (
    DEFAULT_IDEAL_PERCENTAGES,
    AnalysisSettings,
    AppSettings,
    GeminiSettings,
    GoogleSheetsSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "DEFAULT_IDEAL_PERCENTAGES",
    "AnalysisSettings",
    "AppSettings",
    "GeminiSettings",
    "GoogleSheetsSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
