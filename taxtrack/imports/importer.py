"""
CSV Expense Import Service

Flow for each import:
1. Resolve the column mapping (explicit > named source > header detection)
2. Parse rows (csv_parser skips unusable lines)
3. Per row: match provider -> pick category -> duplicate check -> GST
4. Persist successful rows in one all-or-nothing batch (unless dry run)
5. Record the outcome on the ImportJob and audit it

DESIGN DECISION: A bad row fails that row only. Each failure is reported
as a ValidationIssue so the caller can show what to fix. Only an
unresolvable mapping or a storage failure fails the whole import, and a
storage failure leaves no expense from the file behind.

Amounts are stored in FULL with biz_percent. The percentage is applied
when reporting (BAS 1B), never at import time.
"""

import time
from typing import Optional
from uuid import UUID, uuid4

import structlog
from pydantic import BaseModel, Field, ValidationError

from taxtrack import money
from taxtrack.audit import AuditLogger
from taxtrack.config import get_settings
from taxtrack.exceptions import CsvImportError
from taxtrack.imports.csv_parser import CsvColumnMapping, CsvParser, ParsedCsvRow
from taxtrack.imports.jobs import ImportJobTracker
from taxtrack.imports.provider_matcher import ProviderMatch, ProviderMatcher
from taxtrack.models.records import Category, Expense, Provider, ValidationIssue
from taxtrack.services.storage import TaxRecordStorageInterface


logger = structlog.get_logger(__name__)

FALLBACK_CATEGORY_NAME = "other"


class CsvImportOptions(BaseModel):
    """How to read and apply a CSV file."""

    source: Optional[str] = Field(
        default=None,
        description="Known export format: custom, commbank, amex"
    )
    mapping: Optional[CsvColumnMapping] = None
    match_threshold: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Provider match threshold; defaults to PROVIDER_MATCH_THRESHOLD"
    )
    skip_duplicates: bool = True
    dry_run: bool = False


class CsvRowResult(BaseModel):
    """Outcome of one parsed row."""

    row_number: int
    success: bool
    error: Optional[str] = None
    is_duplicate: bool = False
    provider_match: Optional[ProviderMatch] = None
    category_name: Optional[str] = None
    expense: Optional[Expense] = None
    issues: list[ValidationIssue] = Field(default_factory=list)


class CsvImportResult(BaseModel):
    """Summary of an import or preview."""

    import_job_id: UUID
    total_rows: int
    success_count: int
    failed_count: int
    duplicate_count: int
    total_amount_cents: int
    total_gst_cents: int
    processing_time_ms: int
    rows: list[CsvRowResult]


def _failed_row(
    row: ParsedCsvRow,
    issue: ValidationIssue,
    provider_match: Optional[ProviderMatch] = None,
    is_duplicate: bool = False,
) -> CsvRowResult:
    return CsvRowResult(
        row_number=row.row_number,
        success=False,
        error=issue.message,
        is_duplicate=is_duplicate,
        provider_match=provider_match,
        issues=[issue],
    )


class CsvImportService:
    """
    Imports expenses from CSV exports.

    Usage:
        service = CsvImportService(storage)
        result = await service.import_from_string(content, CsvImportOptions(source="commbank"))
    """

    def __init__(
        self,
        storage: TaxRecordStorageInterface,
        parser: Optional[CsvParser] = None,
        matcher: Optional[ProviderMatcher] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._parser = parser or CsvParser()
        self._matcher = matcher or ProviderMatcher()
        self._audit = audit_logger
        self._jobs = ImportJobTracker(storage)

    async def import_from_bytes(
        self,
        data: bytes,
        options: CsvImportOptions,
    ) -> CsvImportResult:
        """Import from raw file bytes (UTF-8, BOM tolerated)."""
        return await self.import_from_string(data.decode("utf-8-sig"), options)

    async def import_from_string(
        self,
        content: str,
        options: CsvImportOptions,
    ) -> CsvImportResult:
        """
        Import expenses from CSV text.

        Args:
            content: CSV content with a header line
            options: Source/mapping, threshold, duplicate and dry-run flags

        Returns:
            Per-row results and totals

        Raises:
            CsvImportError: If no column mapping can be resolved
            StorageError: If saving the imported expenses fails (nothing is saved)
        """
        try:
            mapping = self.resolve_mapping(content, options)
        except CsvImportError as e:
            # Nothing was read, so no job is stored; the ID only correlates events
            failed_id = uuid4()
            logger.warning(
                "csv_mapping_unresolved",
                import_job_id=str(failed_id),
                source=options.source,
            )
            if self._audit:
                await self._audit.log_csv_import_failed(failed_id, e.message)
            raise

        rows = self._parser.parse_string(content, mapping)
        import_job_id = await self._jobs.start(
            "expense", options.source, len(rows), options.dry_run,
        )
        return await self._process_rows(rows, options, import_job_id)

    async def preview_import(
        self,
        content: str,
        options: CsvImportOptions,
    ) -> CsvImportResult:
        """Run an import without saving anything."""
        return await self.import_from_string(
            content,
            options.model_copy(update={"dry_run": True}),
        )

    def resolve_mapping(
        self,
        content: str,
        options: CsvImportOptions,
    ) -> CsvColumnMapping:
        """Explicit mapping, then the named source, then header detection."""
        if options.mapping:
            return options.mapping

        if options.source:
            predefined = self._parser.get_mapping(options.source)
            if predefined:
                return predefined

        detected = self._parser.detect_mapping(self._parser.extract_headers(content))
        if detected:
            return detected

        raise CsvImportError(
            "No column mapping provided and the CSV headers could not be recognised",
            details={"source": options.source},
        )

    async def _process_rows(
        self,
        rows: list[ParsedCsvRow],
        options: CsvImportOptions,
        import_job_id: UUID,
    ) -> CsvImportResult:
        started = time.monotonic()
        log = logger.bind(import_job_id=str(import_job_id), dry_run=options.dry_run)

        providers = await self._storage.list_providers()
        categories = await self._storage.list_categories()
        threshold = (
            options.match_threshold
            if options.match_threshold is not None
            else get_settings().app.provider_match_threshold
        )

        results: list[CsvRowResult] = []
        for row in rows:
            results.append(await self._process_row(
                row, providers, categories, options, threshold, import_job_id,
            ))

        imported = [r.expense for r in results if r.success and r.expense]

        if imported and not options.dry_run:
            try:
                await self._storage.save_expenses(imported)
            except Exception as e:
                log.error("csv_import_save_failed", error=str(e))
                await self._jobs.fail(import_job_id, str(e))
                if self._audit:
                    await self._audit.log_csv_import_failed(import_job_id, str(e))
                raise

            if self._audit:
                for expense in imported:
                    await self._audit.log_record_saved(
                        "expense", expense.id, correlation_id=import_job_id,
                    )

        success_count = sum(1 for r in results if r.success)
        failed_count = len(results) - success_count
        duplicate_count = sum(1 for r in results if r.is_duplicate)
        total_amount_cents = sum(e.amount_cents for e in imported)
        total_gst_cents = sum(e.gst_cents for e in imported)
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
            "csv_import_finished",
            total_rows=len(rows),
            success_count=success_count,
            failed_count=failed_count,
            duplicate_count=duplicate_count,
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
            )

        return CsvImportResult(
            import_job_id=import_job_id,
            total_rows=len(rows),
            success_count=success_count,
            failed_count=failed_count,
            duplicate_count=duplicate_count,
            total_amount_cents=total_amount_cents,
            total_gst_cents=total_gst_cents,
            processing_time_ms=processing_time_ms,
            rows=results,
        )

    async def _process_row(
        self,
        row: ParsedCsvRow,
        providers: list[Provider],
        categories: list[Category],
        options: CsvImportOptions,
        threshold: float,
        import_job_id: UUID,
    ) -> CsvRowResult:
        # 1. Provider
        provider_match = self._matcher.find_best_match(
            row.item_name,
            [p.name for p in providers],
            threshold,
        )
        if provider_match is None:
            return _failed_row(row, ValidationIssue(
                field="item",
                issue_type="no_match",
                message=f'No matching provider found for "{row.item_name}"',
                severity="error",
                suggested_fix="Add the provider, or lower the match threshold",
            ))

        provider = next(p for p in providers if p.name == provider_match.provider_name)

        # 2. Category
        category = self._pick_category(row, provider, categories)
        if category is None:
            return _failed_row(row, ValidationIssue(
                field="category",
                issue_type="missing",
                message="No category found and no default category available",
                severity="error",
                suggested_fix="Create at least one category (e.g. 'Other')",
            ), provider_match=provider_match)

        # 3. Duplicates
        if options.skip_duplicates and await self._storage.expense_exists(
            row.date, row.total_cents, provider.id,
        ):
            return _failed_row(row, ValidationIssue(
                field="row",
                issue_type="duplicate",
                message="Duplicate expense detected (same date, amount, provider)",
                severity="warning",
            ), provider_match=provider_match, is_duplicate=True)

        # 4. GST
        if provider.is_international:
            gst_cents = 0
        elif row.gst_cents == 0:
            gst_cents = money.calc_gst_from_total(row.total_cents)
        else:
            gst_cents = row.gst_cents

        try:
            expense = Expense(
                date=row.date,
                description=row.description or row.item_name,
                amount_cents=row.total_cents,
                gst_cents=gst_cents,
                biz_percent=row.biz_percent,
                provider=provider,
                category=category,
                import_job_id=import_job_id,
            )
        except ValidationError as e:
            first = e.errors()[0]
            return _failed_row(row, ValidationIssue(
                field=".".join(str(part) for part in first["loc"]) or "row",
                issue_type="invalid_value",
                message=first["msg"],
                severity="error",
                suggested_fix="Check the amount and GST columns",
            ), provider_match=provider_match)

        return CsvRowResult(
            row_number=row.row_number,
            success=True,
            provider_match=provider_match,
            category_name=category.name,
            expense=expense,
        )

    def _pick_category(
        self,
        row: ParsedCsvRow,
        provider: Provider,
        categories: list[Category],
    ) -> Optional[Category]:
        """CSV name > provider default > keywords > 'Other' > first category."""
        if row.category_name:
            wanted = row.category_name.lower()
            for category in categories:
                if category.name.lower() == wanted:
                    return category

        if provider.default_category_id:
            for category in categories:
                if category.id == provider.default_category_id:
                    return category

        keywords = self._matcher.extract_keywords(row.item_name)
        for category in categories:
            name = category.name.lower()
            if any(keyword in name for keyword in keywords):
                return category

        for category in categories:
            if category.name.lower() == FALLBACK_CATEGORY_NAME:
                return category

        return categories[0] if categories else None
