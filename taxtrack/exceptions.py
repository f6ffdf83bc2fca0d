"""Custom exceptions for the Tax Track application."""

from typing import Optional


class TaxTrackError(Exception):
    """Base exception for all Tax Track errors."""

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(TaxTrackError):
    """
    Raised when required configuration is missing or malformed.

    This is a deployment problem. It is never retried.
    """
    pass


class DecryptionError(TaxTrackError):
    """
    Raised when an encrypted field fails authentication.

    Covers tampered ciphertext, a wrong key and corrupted nonce/tag values.
    """
    pass


class InvalidPeriodError(TaxTrackError, ValueError):
    """Raised for an unknown quarter label or accounting basis."""
    pass


class CsvImportError(TaxTrackError):
    """Raised when a CSV file cannot be imported as a whole."""
    pass
