"""Configuration package."""

from roomledger.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    RosterSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "RosterSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
