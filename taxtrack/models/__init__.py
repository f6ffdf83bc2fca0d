"""
Data Models Package

This package contains the Pydantic models used in the Tax Track system.
All records flowing through the system must conform to these schemas.
"""

from taxtrack.models.records import (
    AccountingBasis,
    BasLabel,
    Category,
    Client,
    Expense,
    ImportJob,
    ImportStatus,
    Income,
    Provider,
    ValidationIssue,
)
from taxtrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "AccountingBasis",
    "BasLabel",
    "Category",
    "Client",
    "Expense",
    "ImportJob",
    "ImportStatus",
    "Income",
    "Provider",
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
