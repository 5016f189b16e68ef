"""Tests for configuration loading."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from roomledger.config import (
    AppSettings,
    GoogleSheetsSettings,
    RosterSettings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)
from roomledger.errors import ConfigurationError


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestRosterSettings:
    def test_members_from_environment(self, monkeypatch):
        monkeypatch.setenv("ROSTER_MEMBERS", " Umakanta ,Vikram,, Somanath ")
        settings = RosterSettings()

        assert settings.members_list == ["Umakanta", "Vikram", "Somanath"]
        assert settings.roster.members == ("Umakanta", "Vikram", "Somanath")

    def test_missing_roster_is_a_configuration_error(self, monkeypatch):
        monkeypatch.delenv("ROSTER_MEMBERS", raising=False)
        with pytest.raises(ConfigurationError):
            RosterSettings().roster


class TestStorageSettings:
    def test_defaults_to_memory(self, monkeypatch):
        monkeypatch.delenv("STORAGE_BACKEND", raising=False)
        assert StorageSettings().backend == "memory"

    def test_unknown_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "postgres")
        with pytest.raises(ValidationError):
            StorageSettings()


class TestAppSettings:
    def test_defaults(self, monkeypatch):
        for name in ("MAX_ITEM_LENGTH", "MAX_NOTE_LENGTH", "SETTLEMENT_TOLERANCE"):
            monkeypatch.delenv(name, raising=False)
        settings = AppSettings()

        assert settings.max_item_length == 100
        assert settings.max_note_length == 500
        assert settings.settlement_tolerance == Decimal("0.01")

    def test_tolerance_from_environment(self, monkeypatch):
        monkeypatch.setenv("SETTLEMENT_TOLERANCE", "0.05")
        assert AppSettings().settlement_tolerance == Decimal("0.05")

    def test_item_limit_cannot_exceed_stored_limit(self, monkeypatch):
        monkeypatch.setenv("MAX_ITEM_LENGTH", "500")
        with pytest.raises(ValidationError):
            AppSettings()


class TestValidateAllSettings:
    def test_reports_each_section(self, monkeypatch):
        monkeypatch.setenv("ROSTER_MEMBERS", "A,B")
        monkeypatch.setenv("STORAGE_BACKEND", "memory")

        results = validate_all_settings()

        assert results["roster"] is True
        assert results["storage"] is True
        assert results["app"] is True
        assert "google_sheets" not in results

    def test_reports_bad_roster(self, monkeypatch):
        monkeypatch.setenv("ROSTER_MEMBERS", "A,A")

        results = validate_all_settings()

        assert results["roster"] is False
        assert "duplicate" in results["roster_error"]

    def test_sheets_section_checked_for_sheets_backend(self, monkeypatch):
        monkeypatch.setenv("ROSTER_MEMBERS", "A,B")
        monkeypatch.setenv("STORAGE_BACKEND", "google_sheets")
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        results = validate_all_settings()

        assert results["storage"] is True
        assert results["google_sheets"] is False
        assert "spreadsheet_id" in results["google_sheets_error"]

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestGoogleSheetsSettings:
    def test_missing_key_file_only_warns(self, monkeypatch, tmp_path):
        missing = tmp_path / "service-account.json"
        monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(missing))
        monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "sheet-123")

        with pytest.warns(UserWarning, match="service-account.json"):
            settings = GoogleSheetsSettings()

        assert settings.expenses_sheet_name == "Expenses"
        assert settings.audit_sheet_name == "AuditLog"
