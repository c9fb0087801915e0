"""Configuration package."""

from src.config.settings import (
    AppSettings,
    AssetCacheSettings,
    CompanySettings,
    ExportSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "AssetCacheSettings",
    "CompanySettings",
    "ExportSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
