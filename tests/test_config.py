"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from finance_tracker.config import (
    AnalysisSettings,
    AppSettings,
    GeminiSettings,
    validate_all_settings,
)


class TestAnalysisSettings:

    def test_defaults(self):
        settings = AnalysisSettings()
        assert settings.at_risk_ratio == 1.2
        assert settings.caution_ratio == 0.9
        assert settings.ideal_percentages["habitação"] == 30.0
        assert settings.fallback_ideal_percent == 10.0

    def test_lexicon_keys_are_normalized(self):
        settings = AnalysisSettings(ideal_percentages={"  Pets ": 5.0})
        assert settings.ideal_percentages == {"pets": 5.0}

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("ANALYSIS_HEALTHY_MARGIN", "20")
        assert AnalysisSettings().healthy_margin == 20.0

    def test_overlapping_bands_are_rejected(self):
        with pytest.raises(ValueError):
            AnalysisSettings(caution_ratio=1.5, at_risk_ratio=1.2)
        with pytest.raises(ValueError):
            AnalysisSettings(healthy_margin=60, excellent_margin=50)


class TestAppSettings:

    def test_exempt_keys_list(self):
        settings = AppSettings(partition_exempt_keys=" users , cache ,,")
        assert settings.exempt_keys_list == ["users", "cache"]

    def test_storage_backend_is_constrained(self):
        with pytest.raises(ValueError):
            AppSettings(storage_backend="postgres")


class TestValidateAllSettings:

    def test_reports_missing_sections(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        status = validate_all_settings(["gemini", "analysis"])
        assert status["analysis"] is True
        assert status["gemini"] is False
        assert "gemini_error" in status


class TestGeminiSettings:

    def test_key_from_env(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "abc123")
        assert GeminiSettings().api_key == "abc123"

    def test_empty_key_is_not_configured(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "")
        with pytest.raises(ValidationError):
            GeminiSettings()
