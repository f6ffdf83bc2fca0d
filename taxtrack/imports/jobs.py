"""
Import Job Tracking

Every CSV import that writes records gets an ImportJob: created PENDING
before the batch is saved, then marked COMPLETED or FAILED. Previews
(dry runs) get an ID for correlation but no stored job.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

import structlog

from taxtrack.models.records import ImportJob, ImportStatus
from taxtrack.services.storage import TaxRecordStorageInterface


logger = structlog.get_logger(__name__)


class ImportJobTracker:
    """Creates and updates ImportJob records for one storage backend."""

    def __init__(self, storage: TaxRecordStorageInterface):
        self._storage = storage

    async def start(
        self,
        record_type: str,
        source: Optional[str],
        total_rows: int,
        dry_run: bool,
    ) -> UUID:
        """Open a job and return its ID. Dry runs only get an ID."""
        if dry_run:
            return uuid4()

        job = ImportJob(
            record_type=record_type,
            source=(source or "custom").lower(),
            total_rows=total_rows,
        )
        await self._storage.save_import_job(job)
        logger.info("import_job_started", import_job_id=str(job.id), record_type=record_type)
        return job.id

    async def complete(
        self,
        job_id: UUID,
        imported_count: int,
        failed_count: int,
        duplicate_count: int,
        total_amount_cents: int,
        total_gst_cents: int,
    ) -> Optional[ImportJob]:
        """
        Record the final counts.

        The job is FAILED when rows were read but none imported,
        otherwise COMPLETED.
        """
        job = await self._storage.get_import_job(job_id)
        if job is None:
            return None

        if imported_count == 0 and failed_count > 0:
            status = ImportStatus.FAILED
        else:
            status = ImportStatus.COMPLETED

        updated = job.model_copy(update={
            "status": status,
            "imported_count": imported_count,
            "failed_count": failed_count,
            "duplicate_count": duplicate_count,
            "total_amount_cents": total_amount_cents,
            "total_gst_cents": total_gst_cents,
            "completed_at": datetime.utcnow(),
        })
        await self._storage.update_import_job(updated)
        return updated

    async def fail(self, job_id: UUID, error_message: str) -> Optional[ImportJob]:
        """Mark the job FAILED with the reason the batch was not saved."""
        job = await self._storage.get_import_job(job_id)
        if job is None:
            return None

        updated = job.model_copy(update={
            "status": ImportStatus.FAILED,
            "error_message": error_message,
            "completed_at": datetime.utcnow(),
        })
        await self._storage.update_import_job(updated)
        return updated
