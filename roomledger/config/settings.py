"""
Configuration Management for Room Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here, including the
roster. The roster is deployment configuration, never inferred from the
expenses already stored.
"""

import warnings
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Callable

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from roomledger.models.expense import Roster


class RosterSettings(BaseSettings):
    """Who shares the flat."""

    model_config = SettingsConfigDict(
        env_prefix="ROSTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    members: str = Field(
        default="",
        description="Comma-separated roster, e.g. 'Umakanta,Vikram,Somanath'"
    )

    @property
    def members_list(self) -> list[str]:
        return [name.strip() for name in self.members.split(",") if name.strip()]

    @property
    def roster(self) -> Roster:
        """
        The configured roster.

        Raises ConfigurationError if it is empty or has duplicates.
        """
        return Roster.from_members(self.members_list)


class StorageSettings(BaseSettings):
    """Which expense store to use."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Storage backend: 'memory' or 'google_sheets'"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
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
    expenses_sheet_name: str = Field(
        default="Expenses",
        description="Name of the sheet for expenses"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator("credentials_path")
    @classmethod
    def check_credentials_file(cls, path: str) -> str:
        # The key file is often mounted after the settings are first read
        if not Path(path).is_file():
            warnings.warn(f"Service account key {path} is missing; Sheets calls will fail")
        return path


class AppSettings(BaseSettings):
    """Input limits, settlement tolerance and the HTTP server. Unprefixed env vars."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="development, staging or production"
    )
    debug_mode: bool = Field(
        default=False,
        description="Reload the API on code changes"
    )

    # Input limits
    max_item_length: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Maximum length of an expense item name"
    )
    max_note_length: int = Field(
        default=500,
        ge=0,
        le=500,
        description="Maximum length of an expense note"
    )
    max_expense_amount: Decimal = Field(
        default=Decimal("100000"),
        gt=0,
        description="Prices above this are accepted but flagged"
    )
    future_date_tolerance_days: int = Field(
        default=7,
        ge=0,
        description="How many days in the future an expense date can be before we warn"
    )

    # Settlement
    settlement_tolerance: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        le=1,
        description=(
            "Largest gap allowed between the per-person sums and the total, "
            "and between a remaining balance and zero in Settlement.is_settled"
        )
    )

    # HTTP server
    api_host: str = Field(
        default="0.0.0.0",
        description="Interface the API binds to"
    )
    api_port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port the API listens on"
    )
    rate_limit: str = Field(
        default="100/15minutes",
        description="Requests each client may make to /api routes, e.g. '100/15minutes'"
    )
    max_body_bytes: int = Field(
        default=10 * 1024,
        ge=1,
        description="Larger request bodies are refused with 413"
    )


class Settings(BaseSettings):
    """Entry point to every settings section."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so a missing Google Sheets section
    # does not stop an in-memory deployment

    @property
    def roster(self) -> RosterSettings:
        return RosterSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings. Tests reset them with get_settings.cache_clear()."""
    return Settings()


def _load_section(results: dict, section: str, load: Callable[[], object]):
    """Record whether one section loads; returns it, or None on failure."""
    try:
        value = load()
    except Exception as e:
        results[section] = False
        results[f"{section}_error"] = str(e)
        return None
    results[section] = True
    return value


def validate_all_settings() -> dict[str, bool]:
    """
    Load every section the configured deployment needs.

    Returns {section: loaded_ok}; a failed section also gets a
    "<section>_error" entry with the reason. The Google Sheets section
    is only checked when it is the configured backend.
    """
    settings = get_settings()
    results: dict = {}

    _load_section(results, "roster", lambda: settings.roster.roster)
    storage = _load_section(results, "storage", lambda: settings.storage)
    if storage is not None and storage.backend == "google_sheets":
        _load_section(results, "google_sheets", lambda: settings.google_sheets)
    _load_section(results, "app", lambda: settings.app)

    return results
