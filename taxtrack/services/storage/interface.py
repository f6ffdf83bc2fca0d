"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the in-memory backend for a real database later
2. Use in-memory storage for testing
3. Keep business logic (BAS, CSV import) decoupled from storage

Implementations are responsible for encrypting sensitive columns on write
and decrypting them on read. Callers always see plaintext models.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional
from uuid import UUID

from taxtrack.exceptions import TaxTrackError
from taxtrack.models.audit import AuditEvent
from taxtrack.models.records import (
    Category,
    Client,
    Expense,
    ImportJob,
    Income,
    Provider,
)


class TaxRecordStorageInterface(ABC):
    """
    Abstract interface for tax record storage operations.

    Any storage implementation (in-memory, PostgreSQL, etc.)
    must implement these methods.
    """

    # -------------------------------------------------------------------------
    # Clients
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_client(self, client: Client) -> bool:
        """
        Save a client. Name and ABN are encrypted at rest.

        Raises:
            DuplicateError: If a client with this ID already exists
            ConfigurationError: If the encryption key is unusable
        """
        pass

    @abstractmethod
    async def get_client(self, client_id: UUID) -> Optional[Client]:
        """
        Retrieve a client by ID.

        Raises:
            DecryptionError: If a stored field fails authentication
        """
        pass

    @abstractmethod
    async def list_clients(self) -> list[Client]:
        """List all clients."""
        pass

    # -------------------------------------------------------------------------
    # Providers and categories
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_provider(self, provider: Provider) -> bool:
        pass

    @abstractmethod
    async def list_providers(self) -> list[Provider]:
        pass

    @abstractmethod
    async def save_category(self, category: Category) -> bool:
        pass

    @abstractmethod
    async def list_categories(self) -> list[Category]:
        pass

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_expense(self, expense: Expense) -> bool:
        """
        Save an expense. The description is encrypted at rest.

        The expense's provider and category must already be stored.

        Raises:
            NotFoundError: If the provider or category is unknown
            DuplicateError: If an expense with this ID already exists
        """
        pass

    @abstractmethod
    async def save_expenses(self, expenses: list[Expense]) -> int:
        """
        Save a batch of expenses, all or nothing.

        Every provider, category and ID is checked before anything is
        written. If any expense is rejected, none are stored.

        Returns:
            Number of expenses saved

        Raises:
            NotFoundError: If any provider or category is unknown
            DuplicateError: If any ID already exists or repeats in the batch
        """
        pass

    @abstractmethod
    async def list_expenses(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        provider_id: Optional[UUID] = None,
    ) -> list[Expense]:
        """
        List expenses with optional filters.

        Args:
            date_from: Expenses on or after this date
            date_to: Expenses on or before this date
            provider_id: Only expenses from this provider

        Returns:
            Matching expenses ordered by date
        """
        pass

    @abstractmethod
    async def expense_exists(
        self,
        expense_date: date,
        amount_cents: int,
        provider_id: UUID,
    ) -> bool:
        """
        Check if a matching expense already exists (duplicate detection).

        A duplicate has the same date, amount and provider.
        """
        pass

    # -------------------------------------------------------------------------
    # Incomes
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_income(self, income: Income) -> bool:
        """
        Save an income. The description is encrypted at rest.

        Raises:
            NotFoundError: If the client is unknown
        """
        pass

    @abstractmethod
    async def save_incomes(self, incomes: list[Income]) -> int:
        """
        Save a batch of incomes, all or nothing.

        Raises:
            NotFoundError: If any client is unknown
            DuplicateError: If any ID already exists or repeats in the batch
        """
        pass

    @abstractmethod
    async def list_incomes(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        paid_only: bool = False,
    ) -> list[Income]:
        """
        List incomes with optional filters.

        Args:
            date_from: Incomes on or after this date
            date_to: Incomes on or before this date
            paid_only: Only incomes marked as paid (cash basis)
        """
        pass

    @abstractmethod
    async def income_exists(
        self,
        income_date: date,
        total_cents: int,
        client_id: UUID,
        invoice_num: Optional[str] = None,
    ) -> bool:
        """
        Check if a matching income already exists (duplicate detection).

        A duplicate has the same client and invoice number, or the same
        date, total and client.
        """
        pass

    # -------------------------------------------------------------------------
    # Import jobs
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_import_job(self, job: ImportJob) -> bool:
        """
        Save a new import job.

        Raises:
            DuplicateError: If a job with this ID already exists
        """
        pass

    @abstractmethod
    async def update_import_job(self, job: ImportJob) -> bool:
        """
        Replace a stored import job (status, counts, error message).

        Raises:
            NotFoundError: If the job was never saved
        """
        pass

    @abstractmethod
    async def get_import_job(self, job_id: UUID) -> Optional[ImportJob]:
        pass

    @abstractmethod
    async def list_import_jobs(self) -> list[ImportJob]:
        """List import jobs, newest first."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event to the log."""
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(TaxTrackError):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass
