"""
CSV Income Import Service

Imports invoices from a spreadsheet export (Client, Invoice #, Subtotal,
GST, Total, Date, Description).

Differences from the expense import:
- Rows are matched to CLIENTS (names encrypted at rest, matched in memory)
- Total is recalculated as Subtotal + GST; a different file total is a
  warning on the row, not a failure
- No business-use percentage (income is 100% business)
- Duplicates: same client and invoice number, or same date, total and client

Successful rows are saved in one all-or-nothing batch and tracked by an
ImportJob, like expense imports.
"""

import time
from datetime import date
from typing import Optional
from uuid import UUID, uuid4

import structlog
from pydantic import BaseModel, Field, ValidationError

from taxtrack import money
from taxtrack.audit import AuditLogger
from taxtrack.config import get_settings
from taxtrack.exceptions import CsvImportError
from taxtrack.imports.client_matcher import ClientMatch, ClientMatcher
from taxtrack.imports.csv_parser import (
    INCOME_CSV_COLUMN_MAPPINGS,
    CsvParser,
    IncomeCsvColumnMapping,
    ParsedIncomeCsvRow,
)
from taxtrack.imports.jobs import ImportJobTracker
from taxtrack.models.records import Client, Income, ValidationIssue
from taxtrack.services.storage import TaxRecordStorageInterface


logger = structlog.get_logger(__name__)


class IncomeCsvImportOptions(BaseModel):
    """How to read and apply an income CSV file."""

    source: Optional[str] = Field(
        default=None,
        description="Known export format; unknown or missing means custom"
    )
    mapping: Optional[IncomeCsvColumnMapping] = None
    match_threshold: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Client match threshold; defaults to CLIENT_MATCH_THRESHOLD"
    )
    skip_duplicates: bool = True
    dry_run: bool = False
    default_date: Optional[date] = Field(
        default=None,
        description="Date for rows without one; defaults to today"
    )
    mark_as_paid: bool = False


class IncomeCsvRowResult(BaseModel):
    """Outcome of one parsed income row."""

    row_number: int
    success: bool
    error: Optional[str] = None
    warning: Optional[str] = None
    is_duplicate: bool = False
    client_match: Optional[ClientMatch] = None
    income: Optional[Income] = None
    issues: list[ValidationIssue] = Field(default_factory=list)


class IncomeCsvImportResult(BaseModel):
    """Summary of an income import or preview."""

    import_job_id: UUID
    total_rows: int
    success_count: int
    failed_count: int
    duplicate_count: int
    warning_count: int
    total_subtotal_cents: int
    total_gst_cents: int
    total_amount_cents: int
    processing_time_ms: int
    rows: list[IncomeCsvRowResult]


class IncomeCsvImportService:
    """
    Imports incomes from CSV exports.

    Usage:
        service = IncomeCsvImportService(storage)
        result = await service.import_from_string(content, IncomeCsvImportOptions())
    """

    def __init__(
        self,
        storage: TaxRecordStorageInterface,
        parser: Optional[CsvParser] = None,
        matcher: Optional[ClientMatcher] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._parser = parser or CsvParser()
        self._matcher = matcher or ClientMatcher()
        self._audit = audit_logger
        self._jobs = ImportJobTracker(storage)

    async def import_from_bytes(
        self,
        data: bytes,
        options: IncomeCsvImportOptions,
    ) -> IncomeCsvImportResult:
        """Import from raw file bytes (UTF-8, BOM tolerated)."""
        return await self.import_from_string(data.decode("utf-8-sig"), options)

    async def import_from_string(
        self,
        content: str,
        options: IncomeCsvImportOptions,
    ) -> IncomeCsvImportResult:
        """
        Import incomes from CSV text.

        Raises:
            CsvImportError: If the file has no rows with a client
            StorageError: If saving the incomes fails (nothing is saved)
        """
        mapping = self.resolve_mapping(options)
        rows = self._parser.parse_income_string(content, mapping, options.default_date)

        if not rows:
            failed_id = uuid4()
            logger.warning("income_csv_empty", import_job_id=str(failed_id))
            if self._audit:
                await self._audit.log_csv_import_failed(
                    failed_id, "CSV file contains no valid data rows", record_type="income",
                )
            raise CsvImportError("CSV file contains no valid data rows")

        import_job_id = await self._jobs.start(
            "income", options.source, len(rows), options.dry_run,
        )
        return await self._process_rows(rows, options, import_job_id)

    async def preview_import(
        self,
        content: str,
        options: IncomeCsvImportOptions,
    ) -> IncomeCsvImportResult:
        """Run an import without saving anything."""
        return await self.import_from_string(
            content,
            options.model_copy(update={"dry_run": True}),
        )

    def resolve_mapping(self, options: IncomeCsvImportOptions) -> IncomeCsvColumnMapping:
        """Explicit mapping, then the named source, then the custom layout."""
        if options.mapping:
            return options.mapping

        if options.source:
            predefined = self._parser.get_income_mapping(options.source)
            if predefined:
                return predefined

        return INCOME_CSV_COLUMN_MAPPINGS["custom"]

    async def _process_rows(
        self,
        rows: list[ParsedIncomeCsvRow],
        options: IncomeCsvImportOptions,
        import_job_id: UUID,
    ) -> IncomeCsvImportResult:
        started = time.monotonic()
        log = logger.bind(import_job_id=str(import_job_id), dry_run=options.dry_run)

        clients = await self._storage.list_clients()
        threshold = (
            options.match_threshold
            if options.match_threshold is not None
            else get_settings().app.client_match_threshold
        )

        results = [
            await self._process_row(row, clients, options, threshold)
            for row in rows
        ]
        imported = [r.income for r in results if r.success and r.income]

        if imported and not options.dry_run:
            try:
                await self._storage.save_incomes(imported)
            except Exception as e:
                log.error("income_import_save_failed", error=str(e))
                await self._jobs.fail(import_job_id, str(e))
                if self._audit:
                    await self._audit.log_csv_import_failed(
                        import_job_id, str(e), record_type="income",
                    )
                raise

            if self._audit:
                for income in imported:
                    await self._audit.log_record_saved(
                        "income", income.id, correlation_id=import_job_id,
                    )

        success_count = sum(1 for r in results if r.success)
        failed_count = len(results) - success_count
        duplicate_count = sum(1 for r in results if r.is_duplicate)
        warning_count = sum(1 for r in results if r.warning)
        total_amount_cents = sum(i.total_cents for i in imported)
        total_gst_cents = sum(i.gst_cents for i in imported)
        processing_time_ms = int((time.monotonic() - started) * 1000)

        if not options.dry_run:
            await self._jobs.complete(
                import_job_id,
                imported_count=success_count,
                failed_count=failed_count,
                duplicate_count=duplicate_count,
                total_amount_cents=total_amount_cents,
                total_gst_cents=total_gst_cents,
            )

        log.info(
            "income_import_finished",
            total_rows=len(rows),
            success_count=success_count,
            failed_count=failed_count,
            duplicate_count=duplicate_count,
            warning_count=warning_count,
            processing_time_ms=processing_time_ms,
        )
        if self._audit:
            await self._audit.log_csv_import_finished(
                import_job_id=import_job_id,
                dry_run=options.dry_run,
                total_rows=len(rows),
                success_count=success_count,
                failed_count=failed_count,
                duplicate_count=duplicate_count,
                record_type="income",
            )

        return IncomeCsvImportResult(
            import_job_id=import_job_id,
            total_rows=len(rows),
            success_count=success_count,
            failed_count=failed_count,
            duplicate_count=duplicate_count,
            warning_count=warning_count,
            total_subtotal_cents=sum(i.subtotal_cents for i in imported),
            total_gst_cents=total_gst_cents,
            total_amount_cents=total_amount_cents,
            processing_time_ms=processing_time_ms,
            rows=results,
        )

    async def _process_row(
        self,
        row: ParsedIncomeCsvRow,
        clients: list[Client],
        options: IncomeCsvImportOptions,
        threshold: float,
    ) -> IncomeCsvRowResult:
        client_match = self._matcher.find_best_match(row.client_name, clients, threshold)
        if client_match is None:
            issue = ValidationIssue(
                field="client",
                issue_type="no_match",
                message=f'No matching client found for "{row.client_name}"',
                severity="error",
                suggested_fix="Create the client first or check the name",
            )
            return IncomeCsvRowResult(
                row_number=row.row_number,
                success=False,
                error=issue.message,
                issues=[issue],
            )

        client = next(c for c in clients if c.id == client_match.client_id)

        if options.skip_duplicates and await self._storage.income_exists(
            row.date, row.calculated_total_cents, client.id, row.invoice_num,
        ):
            issue = ValidationIssue(
                field="row",
                issue_type="duplicate",
                message="Duplicate income detected (same date, amount, client, invoice)",
                severity="warning",
            )
            return IncomeCsvRowResult(
                row_number=row.row_number,
                success=False,
                error=issue.message,
                is_duplicate=True,
                client_match=client_match,
                issues=[issue],
            )

        issues: list[ValidationIssue] = []
        warning = None
        if not row.total_matches:
            warning = (
                f"Total mismatch: CSV shows {money.format_cents(row.total_cents_from_csv)} "
                f"but Subtotal + GST = {money.format_cents(row.calculated_total_cents)}. "
                "Using calculated value."
            )
            issues.append(ValidationIssue(
                field="total",
                issue_type="total_mismatch",
                message=warning,
                severity="warning",
                suggested_fix="Check the Subtotal, GST and Total columns",
            ))

        try:
            income = Income(
                date=row.date,
                client=client,
                invoice_num=row.invoice_num,
                description=row.description,
                subtotal_cents=row.subtotal_cents,
                gst_cents=row.gst_cents,
                total_cents=row.calculated_total_cents,
                is_paid=options.mark_as_paid,
            )
        except ValidationError as e:
            first = e.errors()[0]
            issue = ValidationIssue(
                field=".".join(str(part) for part in first["loc"]) or "row",
                issue_type="invalid_value",
                message=first["msg"],
                severity="error",
                suggested_fix="Amounts must not be negative",
            )
            return IncomeCsvRowResult(
                row_number=row.row_number,
                success=False,
                error=issue.message,
                client_match=client_match,
                issues=[issue, *issues],
            )

        return IncomeCsvRowResult(
            row_number=row.row_number,
            success=True,
            warning=warning,
            client_match=client_match,
            income=income,
            issues=issues,
        )
