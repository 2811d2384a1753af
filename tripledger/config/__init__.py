"""Configuration package."""

from tripledger.config.settings import (
    AdminSettings,
    AppSettings,
    GeminiSettings,
    GoogleSheetsSettings,
    Settings,
    StoreSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AdminSettings",
    "AppSettings",
    "GeminiSettings",
    "GoogleSheetsSettings",
    "Settings",
    "StoreSettings",
    "get_settings",
    "validate_all_settings",
]
