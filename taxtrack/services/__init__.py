"""Services package."""

from taxtrack.services.storage import (
    ENCRYPTED_COLUMNS,
    AuditStorageInterface,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryTaxRecordStorage,
    NotFoundError,
    StorageError,
    TaxRecordStorageInterface,
)

__all__ = [
    "ENCRYPTED_COLUMNS",
    "AuditStorageInterface",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryTaxRecordStorage",
    "NotFoundError",
    "StorageError",
    "TaxRecordStorageInterface",
]
