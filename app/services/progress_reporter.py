"""
Read-only progress snapshots for import batches.
"""

from __future__ import annotations

import uuid

from sqlalchemy.orm import Session

from app.domain.batch_ledger import BatchLedger
from app.domain.content_import import ImportProgress
from app.repositories.import_batch_repository import ImportBatchRepository


class ProgressReporter:
    def __init__(self, *, error_window: int = 20) -> None:
        self._error_window = max(1, error_window)

    def get_progress(self, db: Session, batch_id: uuid.UUID) -> ImportProgress | None:
        ledger = ImportBatchRepository(db).get_ledger(batch_id)
        if ledger is None:
            return None
        return self.from_ledger(ledger)

    def from_ledger(self, ledger: BatchLedger) -> ImportProgress:
        return ImportProgress(
            batch_id=ledger.batch_id,
            status=ledger.status,
            progress_percentage=ledger.progress_percentage,
            processed_rows=ledger.processed_rows,
            total_rows=ledger.total_rows,
            successful=ledger.successful,
            failed=ledger.failed,
            skipped=ledger.skipped,
            errors=list(ledger.errors[-self._error_window :]),
            is_complete=ledger.is_complete,
        )
