"""
Chunked, failure-isolating commit loop for validated content records.

Each record is created and committed on its own so a failing row never takes
its neighbours down. Outcomes are folded into an in-memory BatchLedger
snapshot, and the snapshot is persisted after every chunk with a status guard.
The stored status is re-read before each chunk; a batch that has left
PROCESSING (cancelled) stops the loop, and so does a refused guarded write.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime, timezone

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.batch_ledger import (
    STARTABLE_STATUSES,
    BatchLedger,
    add_warning,
    finalize,
    mark_failed,
    mark_processing,
    record_failed,
    record_succeeded,
)
from app.domain.content_import import ContentRecordInput, OperatorContext
from app.repositories.content_record_repository import ContentRecordRepository
from app.repositories.errors import DuplicateIdentityCodeError, StoreUnavailableError
from app.repositories.import_batch_repository import ImportBatchRepository
from app.services.audit_recorder import AuditRecorder
from app.services.errors import ImportBatchNotFoundError, ImportStateError
from db.models.content_record import ContentLifecycleState
from db.models.import_batch import ImportBatchStatus

logger = logging.getLogger(__name__)

RecordStoreFactory = Callable[[Session], ContentRecordRepository]

_PROCESSING = (ImportBatchStatus.PROCESSING,)
_MAX_CODE_ATTEMPTS = 3
_MAX_ERROR_MESSAGE_LENGTH = 500


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _describe_error(exc: Exception) -> str:
    source = exc.orig if isinstance(exc, DBAPIError) and exc.orig is not None else exc
    message = str(source).strip() or type(exc).__name__
    return message[:_MAX_ERROR_MESSAGE_LENGTH]


class ChunkedProcessor:
    def __init__(
        self,
        *,
        audit_recorder: AuditRecorder | None = None,
        chunk_size: int = 50,
        chunk_pause_seconds: float = 0.1,
        record_timeout_ms: int | None = 5000,
        default_lifecycle_state: str = ContentLifecycleState.DRAFT,
        log_row_failures: bool = True,
        record_store_factory: RecordStoreFactory | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._audit_recorder = audit_recorder or AuditRecorder()
        self._chunk_size = max(1, chunk_size)
        self._chunk_pause_seconds = max(0.0, chunk_pause_seconds)
        self._default_lifecycle_state = default_lifecycle_state
        self._log_row_failures = log_row_failures
        self._sleep = sleep
        if record_store_factory is None:
            self._record_store_factory: RecordStoreFactory = lambda db: ContentRecordRepository(
                db, statement_timeout_ms=record_timeout_ms
            )
        else:
            self._record_store_factory = record_store_factory

    def run(
        self,
        db: Session,
        *,
        batch_id: uuid.UUID,
        records: Sequence[ContentRecordInput],
        operator: OperatorContext,
    ) -> BatchLedger:
        """
        Process records for a pending or validating batch and return the final
        ledger snapshot.

        Raises ImportStateError when the batch is not startable, which is also
        what a second concurrent invocation for the same batch gets. Any other
        failure ends the batch as FAILED and is not re-raised.
        """

        batches = ImportBatchRepository(db)
        ledger = self._claim_batch(db, batches, batch_id)
        logger.info("Import started batch_id=%s records=%s", batch_id, len(records))

        store = self._record_store_factory(db)
        total = len(records)
        try:
            for start in range(0, total, self._chunk_size):
                if start > 0:
                    self._sleep(self._chunk_pause_seconds)
                    # Cancellation is cooperative: checked before each new chunk.
                    if batches.get_status(batch_id) != ImportBatchStatus.PROCESSING:
                        db.rollback()
                        return self._stop_cancelled(db, batches, ledger, operator)

                for record in records[start : start + self._chunk_size]:
                    ledger = self._process_record(db, store, ledger, record, operator)

                if not batches.save_ledger(ledger, expected_statuses=_PROCESSING):
                    db.rollback()
                    return self._stop_cancelled(db, batches, ledger, operator)
                db.commit()
                logger.debug(
                    "Import chunk saved batch_id=%s processed=%s/%s",
                    batch_id,
                    ledger.processed_rows,
                    ledger.total_rows,
                )

            completed = finalize(ledger, now=_utcnow())
            if not batches.save_ledger(completed, expected_statuses=_PROCESSING):
                db.rollback()
                return self._stop_cancelled(db, batches, ledger, operator)
            db.commit()
        except Exception as exc:
            return self._fail(db, batches, ledger, exc, operator)

        logger.info(
            "Import finished batch_id=%s status=%s successful=%s failed=%s",
            batch_id,
            completed.status,
            completed.successful,
            completed.failed,
        )
        return completed

    def _claim_batch(
        self,
        db: Session,
        batches: ImportBatchRepository,
        batch_id: uuid.UUID,
    ) -> BatchLedger:
        ledger = batches.get_ledger(batch_id)
        if ledger is None:
            raise ImportBatchNotFoundError(batch_id)
        if ledger.status not in STARTABLE_STATUSES:
            raise ImportStateError(
                f"Batch {batch_id} cannot be processed from status '{ledger.status}'.",
                status=ledger.status,
            )

        processing = mark_processing(ledger, now=_utcnow())
        if not batches.save_ledger(processing, expected_statuses=STARTABLE_STATUSES):
            db.rollback()
            raise ImportStateError(f"Batch {batch_id} was claimed or cancelled concurrently.")
        db.commit()
        return processing

    def _process_record(
        self,
        db: Session,
        store: ContentRecordRepository,
        ledger: BatchLedger,
        record: ContentRecordInput,
        operator: OperatorContext,
    ) -> BatchLedger:
        warning: str | None = None
        try:
            identity_code = record.identity_code
            if identity_code is not None and store.code_exists(identity_code):
                warning = f"Question code {identity_code} already exists - generated a new code"
                identity_code = None

            for attempt in range(1, _MAX_CODE_ATTEMPTS + 1):
                code = identity_code or store.next_generated_code(record.module_id, record.micro_skill_id)
                try:
                    model = store.create(
                        record=record,
                        identity_code=code,
                        created_by=operator.actor_id,
                        default_lifecycle_state=self._default_lifecycle_state,
                    )
                    break
                except DuplicateIdentityCodeError:
                    db.rollback()
                    if attempt == _MAX_CODE_ATTEMPTS:
                        raise
                    if identity_code is not None:
                        warning = f"Question code {identity_code} already exists - generated a new code"
                        identity_code = None

            record_id = model.id
            db.commit()
        except StoreUnavailableError:
            db.rollback()
            raise
        except Exception as exc:
            db.rollback()
            if self._log_row_failures:
                logger.warning(
                    "Import row failed batch_id=%s row=%s error=%s",
                    ledger.batch_id,
                    record.row,
                    exc,
                )
            return record_failed(ledger, row=record.row, message=_describe_error(exc))

        if warning is not None:
            ledger = add_warning(ledger, row=record.row, message=warning)
        self._audit_recorder.record_created(
            db,
            record_id=record_id,
            record_code=code,
            operator=operator,
            batch_id=ledger.batch_id,
        )
        return record_succeeded(ledger, record_id=record_id)

    def _stop_cancelled(
        self,
        db: Session,
        batches: ImportBatchRepository,
        ledger: BatchLedger,
        operator: OperatorContext,
    ) -> BatchLedger:
        """
        The batch left PROCESSING underneath us. Fold the progress made since
        the last save into the stored ledger while keeping its status.

        If the batch was rolled back meanwhile, the stored ledger no longer
        accepts writes, so records created since the last save are deleted
        here instead of being left without a batch reference.
        """

        stored = batches.get_ledger(ledger.batch_id)
        if stored is None:
            raise ImportBatchNotFoundError(ledger.batch_id)
        if stored.is_rolled_back:
            self._delete_unsaved_records(db, ledger, stored, operator)
            return stored

        merged = replace(ledger, status=stored.status, completed_at=stored.completed_at)
        if batches.save_ledger(merged, expected_statuses=(stored.status,), require_not_rolled_back=True):
            db.commit()
        else:
            db.rollback()
            merged = batches.get_ledger(ledger.batch_id) or stored
            if merged.is_rolled_back:
                self._delete_unsaved_records(db, ledger, merged, operator)
                return merged
        logger.info(
            "Import stopped batch_id=%s status=%s processed=%s/%s",
            ledger.batch_id,
            merged.status,
            merged.processed_rows,
            merged.total_rows,
        )
        return merged

    def _fail(
        self,
        db: Session,
        batches: ImportBatchRepository,
        ledger: BatchLedger,
        exc: Exception,
        operator: OperatorContext,
    ) -> BatchLedger:
        logger.exception("Import failed batch_id=%s", ledger.batch_id)
        failed = mark_failed(ledger, message=f"Import failed: {_describe_error(exc)}", now=_utcnow())
        try:
            db.rollback()
            if batches.save_ledger(failed, expected_statuses=_PROCESSING):
                db.commit()
                return failed
            db.rollback()
            return self._stop_cancelled(db, batches, ledger, operator)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to persist failed import batch state batch_id=%s", ledger.batch_id)
            return failed

    def _delete_unsaved_records(
        self,
        db: Session,
        ledger: BatchLedger,
        stored: BatchLedger,
        operator: OperatorContext,
    ) -> None:
        saved = set(stored.created_record_ids)
        unsaved = [record_id for record_id in ledger.created_record_ids if record_id not in saved]
        if not unsaved:
            return

        deleted = self._record_store_factory(db).delete_by_ids(unsaved)
        db.commit()
        logger.warning(
            "Import batch rolled back while processing batch_id=%s deleted_unsaved=%s",
            ledger.batch_id,
            len(deleted),
        )
        self._audit_recorder.record_deleted_many(
            db,
            deleted=deleted,
            operator=operator,
            batch_id=ledger.batch_id,
        )
