"""
Configuration Management for Trip Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here and injected at
process start. Credentials never live in source code: the admin password
hash and API keys come from the environment (or a secret store that
populates it).
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Document store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        extra="ignore"
    )

    backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Which document store backend to use"
    )
    app_namespace: str = Field(
        default="trip-ledger",
        min_length=1,
        description="Root namespace of every collection path"
    )
    poll_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How often polling subscriptions re-read their query"
    )


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
    documents_sheet_name: str = Field(
        default="Documents",
        description="Name of the sheet holding every stored document"
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
    """Gemini receipt-scanning configuration."""

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
        default=1024,
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


class AdminSettings(BaseSettings):
    """
    Admin surface configuration.

    The admin credential is a SHA-256 hex digest supplied through the
    environment. There is deliberately no default: when it is missing,
    every admin login is refused.
    """

    model_config = SettingsConfigDict(
        env_prefix="ADMIN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    password_hash: Optional[SecretStr] = Field(
        default=None,
        description="SHA-256 hex digest of the admin password"
    )

    @property
    def is_configured(self) -> bool:
        return self.password_hash is not None and bool(
            self.password_hash.get_secret_value().strip()
        )


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

    # Receipt images staged for scanning
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum receipt image size in MB"
    )
    supported_image_types: str = Field(
        default="image/jpeg,image/png,image/webp",
        description="Comma-separated list of accepted receipt MIME types"
    )

    @property
    def supported_types_list(self) -> list[str]:
        """Get supported MIME types as a list."""
        return [t.strip().lower() for t in self.supported_image_types.split(",")]

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

    # Sub-settings are loaded lazily so a partially configured
    # environment (e.g. no Gemini key) still starts.

    @property
    def store(self) -> StoreSettings:
        return StoreSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def admin(self) -> AdminSettings:
        return AdminSettings()

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


def validate_all_settings(settings: Optional[Settings] = None) -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}
    settings = settings or get_settings()

    for name in ("store", "google_sheets", "gemini", "admin", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    if results.get("admin"):
        results["admin_configured"] = settings.admin.is_configured

    return results
