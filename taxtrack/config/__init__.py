"""Configuration package."""

from taxtrack.config.settings import (
    AppSettings,
    EncryptionSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "EncryptionSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
