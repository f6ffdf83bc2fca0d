"""
Logging Setup and Audit Logger

DESIGN DECISION: Every significant action on tax records is logged.
This provides:
1. Traceability from a lodged BAS figure back to its inputs
2. Debugging capability for imports
3. Compliance readiness

The audit logger:
- Is async to match the storage interface
- Gracefully handles storage failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events

Nothing logged here carries PII. Events hold IDs, counts and cent totals.
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from taxtrack.config import get_settings
from taxtrack.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from taxtrack.services.storage import AuditStorageInterface


def configure_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Call once at process start. Defaults come from AppSettings
    (LOG_LEVEL, LOG_FORMAT).
    """
    app_settings = get_settings().app
    level = (level or app_settings.log_level).upper()
    log_format = log_format or app_settings.log_format

    logging.basicConfig(format="%(message)s", level=getattr(logging, level))

    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (append-only, when configured)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_record_saved(
        self,
        entity_type: str,
        entity_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a client/provider/category/expense/income save."""
        event = AuditEventBuilder.record_saved(
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_bas_summary(
        self,
        quarter: str,
        financial_year: int,
        basis: str,
        net_gst_payable_cents: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log BAS summary generation."""
        event = AuditEventBuilder.bas_summary_generated(
            quarter=quarter,
            financial_year=financial_year,
            basis=basis,
            net_gst_payable_cents=net_gst_payable_cents,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_csv_import_finished(
        self,
        import_job_id: UUID,
        dry_run: bool,
        total_rows: int,
        success_count: int,
        failed_count: int,
        duplicate_count: int,
        record_type: str = "expense",
    ) -> None:
        """Log the outcome of a CSV import or preview."""
        event = AuditEventBuilder.csv_import_finished(
            import_job_id=import_job_id,
            dry_run=dry_run,
            total_rows=total_rows,
            success_count=success_count,
            failed_count=failed_count,
            duplicate_count=duplicate_count,
            record_type=record_type,
        )
        await self.log(event)

    async def log_csv_import_failed(
        self,
        import_job_id: UUID,
        error_message: str,
        record_type: str = "expense",
    ) -> None:
        """Log a CSV import that failed as a whole."""
        event = AuditEventBuilder.csv_import_failed(
            import_job_id=import_job_id,
            error_message=error_message,
            record_type=record_type,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a CSV import).
    Pass it through all subsequent operations.
    """
    return uuid4()
