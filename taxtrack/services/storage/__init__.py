"""
Storage Services Package

Provides abstract interfaces and concrete implementations for record storage.
Currently implements an in-memory backend with encrypted PII columns,
but designed to be swappable.
"""

from taxtrack.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    StorageError,
    TaxRecordStorageInterface,
)
from taxtrack.services.storage.memory import (
    ENCRYPTED_COLUMNS,
    InMemoryAuditStorage,
    InMemoryTaxRecordStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "TaxRecordStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "ENCRYPTED_COLUMNS",
    "InMemoryAuditStorage",
    "InMemoryTaxRecordStorage",
]
