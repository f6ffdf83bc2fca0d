"""
Audit Models for Tax Track

Significant actions on tax records are logged for audit purposes.
This provides:
1. Traceability of what was recorded and reported
2. Debugging information when imports go wrong
3. Evidence for the figures lodged on a BAS

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
Audit details carry IDs, counts and totals. They never carry PII
(client names, ABNs, descriptions).
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Records
    CLIENT_SAVED = "client_saved"
    PROVIDER_SAVED = "provider_saved"
    CATEGORY_SAVED = "category_saved"
    EXPENSE_SAVED = "expense_saved"
    INCOME_SAVED = "income_saved"

    # Reporting
    BAS_SUMMARY_GENERATED = "bas_summary_generated"

    # CSV import
    CSV_IMPORT_COMPLETED = "csv_import_completed"
    CSV_IMPORT_PREVIEWED = "csv_import_previewed"
    CSV_IMPORT_FAILED = "csv_import_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'bas_summary', 'import_job')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all rows of one import)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_saved("expense", expense.id)
        event = AuditEventBuilder.bas_summary_generated(summary)
    """

    _RECORD_EVENT_TYPES = {
        "client": AuditEventType.CLIENT_SAVED,
        "provider": AuditEventType.PROVIDER_SAVED,
        "category": AuditEventType.CATEGORY_SAVED,
        "expense": AuditEventType.EXPENSE_SAVED,
        "income": AuditEventType.INCOME_SAVED,
    }

    @staticmethod
    def record_saved(
        entity_type: str,
        entity_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventBuilder._RECORD_EVENT_TYPES[entity_type],
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} saved",
        )

    @staticmethod
    def bas_summary_generated(
        quarter: str,
        financial_year: int,
        basis: str,
        net_gst_payable_cents: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BAS_SUMMARY_GENERATED,
            entity_type="bas_summary",
            correlation_id=correlation_id,
            description=f"BAS summary generated for {quarter} FY{financial_year} ({basis})",
            details={
                "quarter": quarter,
                "financial_year": financial_year,
                "basis": basis,
                "net_gst_payable_cents": net_gst_payable_cents,
            },
        )

    @staticmethod
    def csv_import_finished(
        import_job_id: UUID,
        dry_run: bool,
        total_rows: int,
        success_count: int,
        failed_count: int,
        duplicate_count: int,
        record_type: str = "expense",
    ) -> AuditEvent:
        if dry_run:
            event_type = AuditEventType.CSV_IMPORT_PREVIEWED
        else:
            event_type = AuditEventType.CSV_IMPORT_COMPLETED
        severity = AuditSeverity.WARNING if failed_count else AuditSeverity.INFO
        return AuditEvent(
            event_type=event_type,
            severity=severity,
            entity_type="import_job",
            entity_id=import_job_id,
            correlation_id=import_job_id,
            description=(
                f"CSV import {'previewed' if dry_run else 'completed'}: "
                f"{success_count} of {total_rows} rows succeeded"
            ),
            details={
                "record_type": record_type,
                "total_rows": total_rows,
                "success_count": success_count,
                "failed_count": failed_count,
                "duplicate_count": duplicate_count,
            },
        )

    @staticmethod
    def csv_import_failed(
        import_job_id: UUID,
        error_message: str,
        record_type: str = "expense",
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CSV_IMPORT_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="import_job",
            entity_id=import_job_id,
            correlation_id=import_job_id,
            description="CSV import failed",
            details={"record_type": record_type},
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
