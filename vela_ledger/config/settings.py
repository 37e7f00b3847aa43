"""
Configuration Management for Vela Ledger

Everything tunable comes from environment variables (or .env) through
pydantic-settings: the two hosted backends and the bookkeeping defaults.

DESIGN DECISION: The backend sections are loaded lazily. A missing
Cloudinary or Google Sheets section only disables persistence; the app
still starts on in-memory storage (see orchestrator.create_app_components).
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CloudinarySettings(BaseSettings):
    """Cloudinary object storage configuration (receipts, invoices, CFDI XML)."""

    model_config = SettingsConfigDict(
        env_prefix="CLOUDINARY_",
        extra="ignore"
    )

    cloud_name: str = Field(
        ...,
        description="Cloudinary cloud that holds receipts and CFDI XML"
    )
    api_key: str = Field(
        ...,
        description="Cloudinary API key"
    )
    api_secret: str = Field(
        ...,
        description="Cloudinary API secret"
    )
    bucket: str = Field(
        default="receipts",
        description="Top-level folder that plays the role of the storage bucket"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets table storage configuration."""

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
        description="Spreadsheet holding one worksheet per ledger table"
    )

    # One worksheet per table
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Worksheet the audit trail is appended to"
    )
    default_sheet_rows: int = Field(
        default=1000,
        ge=100,
        description="Rows allocated when a table worksheet is created"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn early about a missing key file; connecting is what fails."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Service account key not found at {v}; the ledger will "
                "fall back to in-memory storage until it is provided."
            )
        return v


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

    # Money
    currency: str = Field(
        default="MXN",
        description="ISO currency code used for display"
    )
    default_vat_rate: Decimal = Field(
        default=Decimal("0.16"),
        ge=0,
        le=1,
        description="VAT rate preselected for new transactions"
    )

    # File uploads
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum upload file size in MB"
    )
    supported_receipt_formats: str = Field(
        default="pdf,xml,jpg,jpeg,png",
        description="Comma-separated list of accepted receipt file extensions"
    )
    signed_url_ttl_seconds: int = Field(
        default=60 * 60 * 24 * 30,
        ge=60,
        description="Lifetime of signed receipt URLs (30 days)"
    )

    # Recurring billing
    due_soon_window_days: int = Field(
        default=7,
        ge=0,
        le=31,
        description="Clients due within this many days are flagged"
    )
    recurring_category: str = Field(
        default="Mensualidades del sistema",
        description="Category assigned to membership charges"
    )

    # Appearance
    default_theme: str = Field(
        default="system",
        description="Theme used when a user has not chosen one"
    )

    @property
    def supported_formats_list(self) -> list[str]:
        """Get supported formats as a list."""
        return [fmt.strip().lower() for fmt in self.supported_receipt_formats.split(",")]

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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def cloudinary(self) -> CloudinarySettings:
        return CloudinarySettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

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


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with an extra
    "<name>_error" entry for each section that failed to load.
    """
    results = {}
    settings = get_settings()

    for name in ("cloudinary", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
