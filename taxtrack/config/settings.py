"""
Configuration Management for Tax Track

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external inputs exist and
ensures all required configuration is validated at startup.

The encryption key is read here but its shape is checked by
EncryptionKey, so a bad key always surfaces as ConfigurationError
rather than a pydantic ValidationError.
"""

from functools import lru_cache
from typing import TYPE_CHECKING, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from taxtrack.security.keys import EncryptionKey


class EncryptionSettings(BaseSettings):
    """Field encryption configuration."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    encryption_key: Optional[str] = Field(
        default=None,
        description="AES-256 key as 64 hex characters (ENCRYPTION_KEY)",
        repr=False,
    )
    
    def get_key(self) -> "EncryptionKey":
        """Validate and return the configured key."""
        # security imports config, so resolve the key type at call time
        from taxtrack.security.keys import ENCRYPTION_KEY_VARIABLE, EncryptionKey

        return EncryptionKey.from_hex(
            self.encryption_key,
            variable=ENCRYPTION_KEY_VARIABLE,
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
    
    # Logging
    log_level: str = Field(
        default="INFO",
        description="Minimum log level"
    )
    log_format: str = Field(
        default="json",
        pattern="^(json|console)$",
        description="Log renderer: json for deployments, console for local use"
    )
    
    # CSV import
    provider_match_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Minimum similarity for fuzzy provider matching"
    )
    client_match_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Minimum similarity for fuzzy client matching (income import)"
    )
    
    # Reporting
    default_accounting_basis: str = Field(
        default="ACCRUAL",
        description="Accounting basis used when a BAS request does not name one"
    )
    
    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level
    
    @field_validator('default_accounting_basis')
    @classmethod
    def normalize_basis(cls, v: str) -> str:
        basis = v.strip().upper()
        if basis not in {"CASH", "ACCRUAL"}:
            raise ValueError(f"Unknown accounting basis: {v}. Must be CASH or ACCRUAL")
        return basis


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
    
    # Loaded lazily so a missing key only fails code that needs it
    
    @property
    def encryption(self) -> EncryptionSettings:
        return EncryptionSettings()
    
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


def validate_all_settings() -> dict[str, object]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus `<name>_error` entries
    for the failures. Useful for startup checks.
    """
    results: dict[str, object] = {}

    settings = get_settings()

    try:
        settings.encryption.get_key()
        results["encryption"] = True
    except Exception as e:
        results["encryption"] = False
        results["encryption_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
