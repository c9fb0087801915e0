"""
Configuration Management for Invoice Pro

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here. Each concern has
its own settings class and env prefix, and every field has a default so
the app starts with no .env at all.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Local invoice persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="INVOICE_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: str = Field(
        default="disk",
        pattern="^(memory|disk)$",
        description="Key-value store backend"
    )
    directory: str = Field(
        default=".invoice_pro/store",
        description="Directory for the on-disk store"
    )
    key: str = Field(
        default="invoices",
        min_length=1,
        description="Well-known key the invoice collection is stored under"
    )
    quota_bytes: int = Field(
        default=5 * 1024 * 1024,
        ge=0,
        description="Maximum size of a stored value (0 disables the check)"
    )
    lock_timeout_seconds: float = Field(
        default=1.0,
        gt=0,
        description="How long a disk write waits for the store lock"
    )

    @property
    def path(self) -> Path:
        return Path(self.directory).expanduser()


class AssetCacheSettings(BaseSettings):
    """Offline shell-asset cache configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ASSET_CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    name_prefix: str = Field(
        default="invoice-pro-cache-",
        description="Prefix shared by every cache namespace of this app"
    )
    version: str = Field(
        default="v2",
        min_length=1,
        description="Current cache version; bump to evict old shells"
    )
    manifest: str = Field(
        default="/,/index.html,/index.tsx,/manifest.json",
        description="Comma-separated shell asset paths to pre-cache"
    )
    origin: str = Field(
        default="http://localhost:8501",
        description="Origin the shell is served from"
    )
    directory: str = Field(
        default=".invoice_pro/asset-cache",
        description="Directory holding on-disk cache namespaces"
    )
    fetch_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per asset when a transport error occurs during install"
    )

    @field_validator("origin")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def cache_name(self) -> str:
        return f"{self.name_prefix}{self.version}"

    @property
    def manifest_list(self) -> list[str]:
        """Get manifest paths as a list."""
        return [path.strip() for path in self.manifest.split(",") if path.strip()]

    @property
    def path(self) -> Path:
        return Path(self.directory).expanduser()


class ExportSettings(BaseSettings):
    """PDF export configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EXPORT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    page_width_px: int = Field(
        default=1024,
        ge=320,
        le=4096,
        description="Fixed layout width the invoice is rendered at"
    )
    scale: float = Field(
        default=2.0,
        ge=1.0,
        le=4.0,
        description="Rasterisation scale factor"
    )
    background_color: str = Field(
        default="#111827",
        description="Page background colour"
    )
    text_color: str = Field(
        default="#ffffff",
        description="Primary text colour"
    )
    muted_color: str = Field(
        default="#9ca3af",
        description="Secondary text and rule colour"
    )
    filename_placeholder: str = Field(
        default="new",
        min_length=1,
        description="Used in the file name when the invoice has no reference"
    )


class CompanySettings(BaseSettings):
    """Letterhead printed at the top of every invoice."""

    model_config = SettingsConfigDict(
        env_prefix="COMPANY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    name: str = Field(default="RIZWAN ENGINEERING WORKS")
    subtitle: str = Field(default="All Kinds of Machineries Parts Manufacturers.")
    address: str = Field(default="Plot # L-3, 48/B, Korangi 2½ Karachi.")
    contact: str = Field(default="0312-2528003")
    email: str = Field(default="kqureshi12@gmail.com")


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

    app_title: str = Field(
        default="Invoice Pro",
        description="Title shown in the navigation bar"
    )
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level written to the log"
    )
    audit_history_size: int = Field(
        default=200,
        ge=10,
        le=10000,
        description="How many audit events are kept in memory for notifications"
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v


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

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def asset_cache(self) -> AssetCacheSettings:
        return AssetCacheSettings()

    @property
    def export(self) -> ExportSettings:
        return ExportSettings()

    @property
    def company(self) -> CompanySettings:
        return CompanySettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    "<name>_error" entry for every section that failed.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    sections = {
        "storage": lambda: settings.storage,
        "asset_cache": lambda: settings.asset_cache,
        "export": lambda: settings.export,
        "company": lambda: settings.company,
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
