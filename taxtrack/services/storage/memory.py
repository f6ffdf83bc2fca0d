"""
In-Memory Storage Implementation

Keeps records as flat rows (dicts of strings and scalars), the same shape a
SQL table or spreadsheet row would have. Sensitive columns go through the
FieldCipher on the way in and out, so rows only ever hold ciphertext for
PII. This is also what a database-backed implementation has to do.

TRADEOFFS:
- Not persistent (used for tests and single-process tools)
- Filtering happens in Python
- Joins (expense -> provider/category, income -> client) are done on read

ConfigurationError and DecryptionError from the cipher propagate unchanged.
A row that fails to decrypt is never skipped or defaulted.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

import structlog

from taxtrack.models.audit import AuditEvent
from taxtrack.models.records import (
    BasLabel,
    Category,
    Client,
    Expense,
    ImportJob,
    Income,
    Provider,
)
from taxtrack.security.field_cipher import FieldCipher
from taxtrack.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    TaxRecordStorageInterface,
)


logger = structlog.get_logger(__name__)

# Columns encrypted at rest, per table
ENCRYPTED_COLUMNS: dict[str, tuple[str, ...]] = {
    "clients": ("name", "abn"),
    "expenses": ("description",),
    "incomes": ("description",),
}


class InMemoryTaxRecordStorage(TaxRecordStorageInterface):
    """
    Tax record storage backed by in-process row tables.

    Args:
        cipher: Codec for the columns listed in ENCRYPTED_COLUMNS.
    """

    def __init__(self, cipher: FieldCipher):
        self._cipher = cipher
        self._tables: dict[str, dict[str, dict]] = {
            "clients": {},
            "providers": {},
            "categories": {},
            "expenses": {},
            "incomes": {},
            "import_jobs": {},
        }

    # -------------------------------------------------------------------------
    # Row helpers
    # -------------------------------------------------------------------------

    def _encrypt_row(self, table: str, row: dict) -> dict:
        for column in ENCRYPTED_COLUMNS.get(table, ()):
            row[column] = self._cipher.encrypt(row[column])
        return row

    def _decrypt_row(self, table: str, row: dict) -> dict:
        plain = dict(row)
        for column in ENCRYPTED_COLUMNS.get(table, ()):
            plain[column] = self._cipher.decrypt(plain[column])
        return plain

    def _insert(self, table: str, record_id: UUID, row: dict) -> None:
        key = str(record_id)
        if key in self._tables[table]:
            raise DuplicateError(f"{table} row already exists: {key}")
        self._tables[table][key] = self._encrypt_row(table, row)
        logger.debug("row_inserted", table=table, record_id=key)

    def _insert_many(self, table: str, rows: list[dict]) -> None:
        # Stage everything first so a rejected row leaves the table untouched
        staged: dict[str, dict] = {}
        for row in rows:
            key = row["id"]
            if key in self._tables[table] or key in staged:
                raise DuplicateError(f"{table} row already exists: {key}")
            staged[key] = self._encrypt_row(table, row)
        self._tables[table].update(staged)
        logger.debug("rows_inserted", table=table, row_count=len(staged))

    def _require(self, table: str, record_id: UUID) -> dict:
        row = self._tables[table].get(str(record_id))
        if row is None:
            raise NotFoundError(f"{table} row not found: {record_id}")
        return row

    def raw_row(self, table: str, record_id: UUID) -> Optional[dict]:
        """Stored row as-is (ciphertext for encrypted columns)."""
        row = self._tables[table].get(str(record_id))
        return dict(row) if row is not None else None

    def put_raw_row(self, table: str, row: dict) -> None:
        """
        Store a row without encrypting it.

        For loading rows written before encryption was enabled.
        """
        self._tables[table][row["id"]] = dict(row)

    # -------------------------------------------------------------------------
    # Row <-> model conversion
    # -------------------------------------------------------------------------

    @staticmethod
    def _client_to_row(client: Client) -> dict:
        return {
            "id": str(client.id),
            "name": client.name,
            "abn": client.abn,
            "is_psi_eligible": client.is_psi_eligible,
            "created_at": client.created_at.isoformat(),
        }

    def _row_to_client(self, row: dict) -> Client:
        plain = self._decrypt_row("clients", row)
        return Client(
            id=UUID(plain["id"]),
            name=plain["name"],
            abn=plain["abn"],
            is_psi_eligible=plain["is_psi_eligible"],
            created_at=datetime.fromisoformat(plain["created_at"]),
        )

    @staticmethod
    def _provider_to_row(provider: Provider) -> dict:
        return {
            "id": str(provider.id),
            "name": provider.name,
            "is_international": provider.is_international,
            "default_category_id": (
                str(provider.default_category_id) if provider.default_category_id else None
            ),
        }

    @staticmethod
    def _row_to_provider(row: dict) -> Provider:
        return Provider(
            id=UUID(row["id"]),
            name=row["name"],
            is_international=row["is_international"],
            default_category_id=(
                UUID(row["default_category_id"]) if row["default_category_id"] else None
            ),
        )

    @staticmethod
    def _category_to_row(category: Category) -> dict:
        return {
            "id": str(category.id),
            "name": category.name,
            "bas_label": category.bas_label.value,
            "is_deductible": category.is_deductible,
        }

    @staticmethod
    def _row_to_category(row: dict) -> Category:
        return Category(
            id=UUID(row["id"]),
            name=row["name"],
            bas_label=BasLabel(row["bas_label"]),
            is_deductible=row["is_deductible"],
        )

    @staticmethod
    def _expense_to_row(expense: Expense) -> dict:
        return {
            "id": str(expense.id),
            "date": expense.date.isoformat(),
            "description": expense.description,
            "amount_cents": expense.amount_cents,
            "gst_cents": expense.gst_cents,
            "biz_percent": expense.biz_percent,
            "currency": expense.currency,
            "provider_id": str(expense.provider.id),
            "category_id": str(expense.category.id),
            "import_job_id": str(expense.import_job_id) if expense.import_job_id else None,
            "created_at": expense.created_at.isoformat(),
        }

    def _row_to_expense(self, row: dict) -> Expense:
        plain = self._decrypt_row("expenses", row)
        provider = self._row_to_provider(self._require("providers", plain["provider_id"]))
        category = self._row_to_category(self._require("categories", plain["category_id"]))
        return Expense(
            id=UUID(plain["id"]),
            date=date.fromisoformat(plain["date"]),
            description=plain["description"],
            amount_cents=plain["amount_cents"],
            gst_cents=plain["gst_cents"],
            biz_percent=plain["biz_percent"],
            currency=plain["currency"],
            provider=provider,
            category=category,
            import_job_id=UUID(plain["import_job_id"]) if plain["import_job_id"] else None,
            created_at=datetime.fromisoformat(plain["created_at"]),
        )

    @staticmethod
    def _income_to_row(income: Income) -> dict:
        return {
            "id": str(income.id),
            "date": income.date.isoformat(),
            "client_id": str(income.client.id),
            "invoice_num": income.invoice_num,
            "description": income.description,
            "subtotal_cents": income.subtotal_cents,
            "gst_cents": income.gst_cents,
            "total_cents": income.total_cents,
            "is_paid": income.is_paid,
            "paid_date": income.paid_date.isoformat() if income.paid_date else None,
            "created_at": income.created_at.isoformat(),
        }

    def _row_to_income(self, row: dict) -> Income:
        plain = self._decrypt_row("incomes", row)
        client = self._row_to_client(self._require("clients", plain["client_id"]))
        return Income(
            id=UUID(plain["id"]),
            date=date.fromisoformat(plain["date"]),
            client=client,
            invoice_num=plain["invoice_num"],
            description=plain["description"],
            subtotal_cents=plain["subtotal_cents"],
            gst_cents=plain["gst_cents"],
            total_cents=plain["total_cents"],
            is_paid=plain["is_paid"],
            paid_date=date.fromisoformat(plain["paid_date"]) if plain["paid_date"] else None,
            created_at=datetime.fromisoformat(plain["created_at"]),
        )

    @staticmethod
    def _import_job_to_row(job: ImportJob) -> dict:
        return job.model_dump(mode="json")

    @staticmethod
    def _row_to_import_job(row: dict) -> ImportJob:
        return ImportJob.model_validate(row)

    @staticmethod
    def _in_range(
        row_date: str,
        date_from: Optional[date],
        date_to: Optional[date],
    ) -> bool:
        value = date.fromisoformat(row_date)
        if date_from and value < date_from:
            return False
        if date_to and value > date_to:
            return False
        return True

    # -------------------------------------------------------------------------
    # Clients
    # -------------------------------------------------------------------------

    async def save_client(self, client: Client) -> bool:
        self._insert("clients", client.id, self._client_to_row(client))
        return True

    async def get_client(self, client_id: UUID) -> Optional[Client]:
        row = self._tables["clients"].get(str(client_id))
        if row is None:
            return None
        return self._row_to_client(row)

    async def list_clients(self) -> list[Client]:
        return [self._row_to_client(row) for row in self._tables["clients"].values()]

    # -------------------------------------------------------------------------
    # Providers and categories
    # -------------------------------------------------------------------------

    async def save_provider(self, provider: Provider) -> bool:
        self._insert("providers", provider.id, self._provider_to_row(provider))
        return True

    async def list_providers(self) -> list[Provider]:
        return [self._row_to_provider(row) for row in self._tables["providers"].values()]

    async def save_category(self, category: Category) -> bool:
        self._insert("categories", category.id, self._category_to_row(category))
        return True

    async def list_categories(self) -> list[Category]:
        return [self._row_to_category(row) for row in self._tables["categories"].values()]

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    async def save_expense(self, expense: Expense) -> bool:
        self._require("providers", expense.provider.id)
        self._require("categories", expense.category.id)
        self._insert("expenses", expense.id, self._expense_to_row(expense))
        return True

    async def save_expenses(self, expenses: list[Expense]) -> int:
        for expense in expenses:
            self._require("providers", expense.provider.id)
            self._require("categories", expense.category.id)
        self._insert_many("expenses", [self._expense_to_row(e) for e in expenses])
        return len(expenses)

    async def list_expenses(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        provider_id: Optional[UUID] = None,
    ) -> list[Expense]:
        rows = [
            row for row in self._tables["expenses"].values()
            if self._in_range(row["date"], date_from, date_to)
            and (provider_id is None or row["provider_id"] == str(provider_id))
        ]
        rows.sort(key=lambda row: row["date"])
        return [self._row_to_expense(row) for row in rows]

    async def expense_exists(
        self,
        expense_date: date,
        amount_cents: int,
        provider_id: UUID,
    ) -> bool:
        # Compares plaintext columns only; no decryption needed
        day = expense_date.isoformat()
        return any(
            row["date"] == day
            and row["amount_cents"] == amount_cents
            and row["provider_id"] == str(provider_id)
            for row in self._tables["expenses"].values()
        )

    # -------------------------------------------------------------------------
    # Incomes
    # -------------------------------------------------------------------------

    async def save_income(self, income: Income) -> bool:
        self._require("clients", income.client.id)
        self._insert("incomes", income.id, self._income_to_row(income))
        return True

    async def save_incomes(self, incomes: list[Income]) -> int:
        for income in incomes:
            self._require("clients", income.client.id)
        self._insert_many("incomes", [self._income_to_row(i) for i in incomes])
        return len(incomes)

    async def list_incomes(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        paid_only: bool = False,
    ) -> list[Income]:
        rows = [
            row for row in self._tables["incomes"].values()
            if self._in_range(row["date"], date_from, date_to)
            and (row["is_paid"] or not paid_only)
        ]
        rows.sort(key=lambda row: row["date"])
        return [self._row_to_income(row) for row in rows]

    async def income_exists(
        self,
        income_date: date,
        total_cents: int,
        client_id: UUID,
        invoice_num: Optional[str] = None,
    ) -> bool:
        day = income_date.isoformat()
        client = str(client_id)
        for row in self._tables["incomes"].values():
            if row["client_id"] != client:
                continue
            if invoice_num and row["invoice_num"] == invoice_num:
                return True
            if row["date"] == day and row["total_cents"] == total_cents:
                return True
        return False

    # -------------------------------------------------------------------------
    # Import jobs
    # -------------------------------------------------------------------------

    async def save_import_job(self, job: ImportJob) -> bool:
        self._insert("import_jobs", job.id, self._import_job_to_row(job))
        return True

    async def update_import_job(self, job: ImportJob) -> bool:
        self._require("import_jobs", job.id)
        self._tables["import_jobs"][str(job.id)] = self._import_job_to_row(job)
        return True

    async def get_import_job(self, job_id: UUID) -> Optional[ImportJob]:
        row = self._tables["import_jobs"].get(str(job_id))
        if row is None:
            return None
        return self._row_to_import_job(row)

    async def list_import_jobs(self) -> list[ImportJob]:
        jobs = [self._row_to_import_job(row) for row in self._tables["import_jobs"].values()]
        return sorted(jobs, key=lambda job: job.created_at, reverse=True)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in memory."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
