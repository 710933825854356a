"""
Repository for import batch ledger persistence and lookup.

Ledger writes are whole-document: every counter and list of a BatchLedger
snapshot is written in one UPDATE guarded by the batch's expected status, so
a concurrent cancel is never silently overwritten by a processor save.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Select, select, update
from sqlalchemy.orm import Session

from app.domain.batch_ledger import BatchLedger
from app.domain.content_import import OperatorContext, RowMessage, SourceDescriptor, ValidationSummary
from db.models.import_batch import ImportBatch, ImportBatchStatus


def to_ledger(batch: ImportBatch) -> BatchLedger:
    return BatchLedger(
        batch_id=batch.id,
        actor_id=batch.actor_id,
        actor_name=batch.actor_name,
        file_name=batch.file_name,
        file_kind=batch.file_kind,
        status=batch.status,
        total_rows=batch.total_rows,
        processed_rows=batch.processed_rows,
        successful=batch.successful,
        failed=batch.failed,
        skipped=batch.skipped,
        validation_summary=(
            ValidationSummary.from_dict(batch.validation_summary)
            if batch.validation_summary is not None
            else None
        ),
        errors=tuple(RowMessage.from_dict(item) for item in batch.errors or []),
        warnings=tuple(RowMessage.from_dict(item) for item in batch.warnings or []),
        created_record_ids=tuple(str(item) for item in batch.created_record_ids or []),
        started_at=batch.started_at,
        completed_at=batch.completed_at,
        rolled_back_at=batch.rolled_back_at,
        rolled_back_by=batch.rolled_back_by,
        created_at=batch.created_at,
    )


def _ledger_values(ledger: BatchLedger) -> dict[str, Any]:
    return {
        "status": ledger.status,
        "processed_rows": ledger.processed_rows,
        "successful": ledger.successful,
        "failed": ledger.failed,
        "skipped": ledger.skipped,
        "validation_summary": (
            ledger.validation_summary.to_dict() if ledger.validation_summary is not None else None
        ),
        "errors": [item.to_dict() for item in ledger.errors],
        "warnings": [item.to_dict() for item in ledger.warnings],
        "created_record_ids": list(ledger.created_record_ids),
        "started_at": ledger.started_at,
        "completed_at": ledger.completed_at,
        "rolled_back_at": ledger.rolled_back_at,
        "rolled_back_by": ledger.rolled_back_by,
        "updated_at": datetime.now(timezone.utc),
    }


class ImportBatchRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_batch(
        self,
        *,
        operator: OperatorContext,
        source: SourceDescriptor,
        total_rows: int,
    ) -> ImportBatch:
        now = datetime.now(timezone.utc)
        batch = ImportBatch(
            id=uuid.uuid4(),
            actor_id=operator.actor_id,
            actor_name=operator.actor_name,
            file_name=source.file_name,
            file_kind=source.file_kind,
            status=ImportBatchStatus.PENDING,
            total_rows=max(0, total_rows),
            processed_rows=0,
            successful=0,
            failed=0,
            skipped=0,
            errors=[],
            warnings=[],
            created_record_ids=[],
            created_at=now,
            updated_at=now,
        )
        self._session.add(batch)
        self._session.flush()
        return batch

    def get_batch(self, batch_id: uuid.UUID) -> ImportBatch | None:
        return self._session.get(ImportBatch, batch_id, populate_existing=True)

    def get_ledger(self, batch_id: uuid.UUID) -> BatchLedger | None:
        batch = self.get_batch(batch_id)
        if batch is None:
            return None
        return to_ledger(batch)

    def get_status(self, batch_id: uuid.UUID) -> str | None:
        stmt = select(ImportBatch.status).where(ImportBatch.id == batch_id)
        return self._session.execute(stmt).scalar_one_or_none()

    def list_for_actor(self, *, actor_id: str, limit: int = 20) -> list[ImportBatch]:
        stmt: Select[tuple[ImportBatch]] = (
            select(ImportBatch)
            .where(ImportBatch.actor_id == actor_id)
            .order_by(ImportBatch.created_at.desc())
            .limit(max(1, limit))
        )
        return list(self._session.scalars(stmt).all())

    def list_by_status(self, statuses: Iterable[str], *, limit: int = 100) -> list[ImportBatch]:
        stmt: Select[tuple[ImportBatch]] = (
            select(ImportBatch)
            .where(ImportBatch.status.in_(list(statuses)))
            .order_by(ImportBatch.created_at.desc())
            .limit(max(1, limit))
        )
        return list(self._session.scalars(stmt).all())

    def find_stalled(self, *, updated_before: datetime) -> list[ImportBatch]:
        stmt: Select[tuple[ImportBatch]] = (
            select(ImportBatch)
            .where(
                ImportBatch.status == ImportBatchStatus.PROCESSING,
                ImportBatch.updated_at < updated_before,
            )
            .order_by(ImportBatch.updated_at.asc())
        )
        return list(self._session.scalars(stmt).all())

    def save_ledger(
        self,
        ledger: BatchLedger,
        *,
        expected_statuses: Iterable[str],
        require_not_rolled_back: bool = False,
    ) -> bool:
        """
        Persist the whole snapshot if the stored status is one of
        expected_statuses. Returns False when the guard refused the write.
        """

        conditions = [
            ImportBatch.id == ledger.batch_id,
            ImportBatch.status.in_(list(expected_statuses)),
        ]
        if require_not_rolled_back:
            conditions.append(ImportBatch.rolled_back_at.is_(None))
        stmt = (
            update(ImportBatch)
            .where(*conditions)
            .values(**_ledger_values(ledger))
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        return result.rowcount == 1
