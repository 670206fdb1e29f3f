"""Tests for environment-driven configuration."""

from decimal import Decimal
from pathlib import Path

import pytest
from pydantic import ValidationError

from verdant.config import ScannerSettings, get_settings, validate_all_settings


class TestSettings:
    """Tests for the settings groups."""

    def test_defaults(self):
        """Test defaults without any environment overrides."""
        settings = get_settings()
        assert settings.budget.default_monthly_budget == Decimal("1000")
        assert settings.budget.week_start == 0
        assert settings.reminders.purge_past_on_start is False
        assert settings.scanner.fallback_title == "Scanned Expense"

    def test_database_path_from_env(self, tmp_path):
        """Test the isolated database path is picked up."""
        assert get_settings().database.path == Path(tmp_path / "default.db")

    def test_env_overrides(self, monkeypatch):
        """Test prefixed variables override the defaults."""
        monkeypatch.setenv("VERDANT_BUDGET_WEEK_START", "6")
        monkeypatch.setenv("VERDANT_REMINDERS_CHECK_INTERVAL_SECONDS", "900")
        settings = get_settings()
        assert settings.budget.week_start == 6
        assert settings.reminders.check_interval_seconds == 900.0

    def test_recent_count_is_bounded(self, monkeypatch):
        """Test the recent list size stays within 3 to 5."""
        monkeypatch.setenv("VERDANT_BUDGET_RECENT_EXPENSES_COUNT", "10")
        with pytest.raises(ValidationError):
            get_settings().budget

    def test_supported_formats_list(self):
        """Test formats are split, trimmed and lowercased."""
        scanner = ScannerSettings(supported_formats=" image/PNG , application/pdf ,")
        assert scanner.supported_formats_list == ["image/png", "application/pdf"]
        assert scanner.max_upload_size_bytes == 10 * 1024 * 1024

    def test_empty_supported_formats_rejected(self):
        """Test at least one format is required."""
        with pytest.raises(ValidationError):
            ScannerSettings(supported_formats=" , ")


class TestValidateAllSettings:
    """Tests for the startup configuration report."""

    def test_missing_gemini_key_reported(self):
        """Test only the Gemini group fails without a key."""
        results = validate_all_settings()
        assert results["database"] is True
        assert results["budget"] is True
        assert results["gemini"] is False
        assert "gemini_error" in results

    def test_all_valid_with_key(self, monkeypatch):
        """Test every group validates when Gemini is configured."""
        monkeypatch.setenv("GEMINI_API_KEY", "test-key")
        results = validate_all_settings()
        assert all(results[name] for name in ("database", "budget", "reminders", "gemini", "scanner"))
