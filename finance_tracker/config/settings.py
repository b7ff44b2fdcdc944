"""
Configuration Management for Finance Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here, including the
tunables of the aggregation engine (ideal-percentage lexicon, adherence
thresholds, margin tiers). Localizing the category lexicon or moving a
threshold is a configuration change, not a code change.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_IDEAL_PERCENTAGES: dict[str, float] = {
    "habitação": 30.0,
    "alimentação": 20.0,
    "utilities": 10.0,
    "transporte": 15.0,
    "reserva": 10.0,
    "investimento": 5.0,
    "dívida": 15.0,
    "lazer": 10.0,
    # English aliases
    "housing": 30.0,
    "food": 20.0,
    "transport": 15.0,
    "savings": 10.0,
    "investment": 5.0,
    "debt": 15.0,
    "leisure": 10.0,
}


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    storage_sheet_name: str = Field(
        default="Storage",
        description="Name of the key/value sheet holding all collections"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        min_length=1,
        description="Gemini API key"
    )
    flash_model: str = Field(
        default="gemini-1.5-flash",
        description="Model for receipt parsing, analysis and grounded search"
    )
    pro_model: str = Field(
        default="gemini-1.5-pro",
        description="Model for long, multi-step questions"
    )
    chat_model: str = Field(
        default="gemini-1.5-flash-8b",
        description="Low-latency model for the chat assistant"
    )
    max_tokens: int = Field(
        default=2048,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class AnalysisSettings(BaseSettings):
    """
    Aggregation engine tunables.

    The ideal-percentage lexicon is keyed by lower-cased category name.
    Override it with a JSON object in ANALYSIS_IDEAL_PERCENTAGES.
    """

    model_config = SettingsConfigDict(
        env_prefix="ANALYSIS_",
        extra="ignore"
    )

    ideal_percentages: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_IDEAL_PERCENTAGES),
        description="Built-in ideal share of total spend per category name"
    )
    fallback_ideal_percent: float = Field(
        default=10.0,
        gt=0.0,
        le=100.0,
        description="Ideal share used when neither user nor lexicon provides one"
    )

    # Budget adherence: ratio above at_risk -> at risk, above caution -> caution
    at_risk_ratio: float = Field(default=1.2, gt=0.0)
    caution_ratio: float = Field(default=0.9, gt=0.0)

    # Margin tiers: below healthy_margin -> alert, above excellent_margin -> excellent
    healthy_margin: float = Field(default=30.0)
    excellent_margin: float = Field(default=50.0)

    goal_categories: list[str] = Field(
        default_factory=lambda: ["Meta", "Reserva", "Investimento"],
        description="Expense categories that count as contributions to a goal"
    )
    saving_insight_rate: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Share of a category total suggested as a saving target"
    )
    display_currency: str = Field(
        default="USD",
        description="Currency all amounts are nominally summed in"
    )

    @field_validator('ideal_percentages')
    @classmethod
    def normalize_lexicon_keys(cls, v: dict[str, float]) -> dict[str, float]:
        """Lexicon lookups are case-insensitive on trimmed names."""
        return {key.strip().casefold(): value for key, value in v.items()}

    @model_validator(mode='after')
    def validate_ordering(self) -> 'AnalysisSettings':
        """Thresholds must describe non-overlapping bands."""
        if self.caution_ratio >= self.at_risk_ratio:
            raise ValueError("caution_ratio must be below at_risk_ratio")
        if self.healthy_margin > self.excellent_margin:
            raise ValueError("healthy_margin cannot exceed excellent_margin")
        return self


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

    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|sheets)$",
        description="Key/value backend: in-process memory or Google Sheets"
    )
    partition_exempt_keys: str = Field(
        default="users,ally-supports-cache",
        description="Comma-separated keys shared by every user"
    )

    # Entry limits
    max_entry_amount: float = Field(
        default=10000000.0,
        description="Largest single amount accepted without a warning"
    )
    future_date_tolerance_days: int = Field(
        default=31,
        description="How many days in the future an entry date can be"
    )

    @property
    def exempt_keys_list(self) -> list[str]:
        """Get partition-exempt keys as a list."""
        return [key.strip() for key in self.partition_exempt_keys.split(",") if key.strip()]


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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def analysis(self) -> AnalysisSettings:
        return AnalysisSettings()

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


def validate_all_settings(sections: Optional[list[str]] = None) -> dict[str, bool]:
    """
    Validate settings sections are properly configured.

    Returns a dict of {section: is_valid} plus {section}_error entries
    for the failing ones. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for section in sections or ["google_sheets", "gemini", "analysis", "app"]:
        try:
            getattr(settings, section)
            results[section] = True
        except Exception as e:
            results[section] = False
            results[f"{section}_error"] = str(e)

    return results
