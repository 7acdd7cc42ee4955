"""
Configuration Management for Expense Assistant

Environment-driven settings, validated by pydantic-settings.

Every tunable lives in this module.
Settings objects are handed to the completion client and the ledger
constructors explicitly; the orchestration loop never reads the
environment itself.
"""

import warnings
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CompletionSettings(BaseSettings):
    """Chat-completions gateway configuration."""

    model_config = SettingsConfigDict(
        env_prefix="COMPLETION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="API key for the completion gateway"
    )
    base_url: str = Field(
        default="https://ai.gateway.lovable.dev/v1",
        description="Base URL of an OpenAI-compatible chat-completions API"
    )
    model_name: str = Field(
        default="google/gemini-2.5-flash",
        description="Model identifier sent with every request"
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Upper bound on tokens generated per round"
    )
    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Sampling temperature; keep low so tool arguments stay stable"
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Per-request timeout enforced by the HTTP client"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets ledger storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Service account key file used to authorize gspread"
    )
    spreadsheet_id: str = Field(
        ...,
        description="Key of the spreadsheet holding the ledger"
    )

    expenses_sheet_name: str = Field(
        default="Expenses",
        description="Worksheet with one row per expense"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Worksheet the audit trail is appended to"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """A missing key file only warns; secrets may be mounted after startup."""
        if not Path(v).exists():
            warnings.warn(f"Service account key file {v} does not exist yet")
        return v


class AppSettings(BaseSettings):
    """Runtime behaviour of the app itself (no prefix)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Deployment name, e.g. development or production"
    )
    debug_mode: bool = Field(
        default=False,
        description="Show extra diagnostics in the UI"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for structured logs"
    )

    # Storage
    use_sheets_storage: bool = Field(
        default=False,
        description="Persist the ledger in Google Sheets instead of memory"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """Groups the sections; each is read from the environment on access."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def completion(self) -> CompletionSettings:
        return CompletionSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """Process-wide Settings. Tests call get_settings.cache_clear() after patching env."""
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Try to load every section.

    Returns {section: ok} plus {section_error: message} for each failure;
    the settings page renders this directly.
    """
    results = {}

    settings = get_settings()

    sections = {
        "completion": lambda: settings.completion,
        "google_sheets": lambda: settings.google_sheets,
        "app": lambda: settings.app,
    }

    for name, load in sections.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
