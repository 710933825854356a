"""
Orchestrator service for bulk content imports: batch creation, validation,
background processing dispatch, cancellation, rollback and history.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Protocol

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session, sessionmaker

from app.config import ContentImportSettings, get_content_import_settings
from app.domain.batch_ledger import (
    ACTIVE_STATUSES,
    CANCELLABLE_STATUSES,
    BatchLedger,
    InvalidTransitionError,
    add_note,
    mark_cancelled,
    mark_failed,
    mark_validating,
    record_validation,
)
from app.domain.content_import import (
    ContentRecordInput,
    ImportProgress,
    ImportStartResult,
    OperatorContext,
    RollbackResult,
    SourceDescriptor,
    ValidationResult,
)
from app.repositories.content_record_repository import ContentRecordRepository
from app.repositories.import_batch_repository import ImportBatchRepository, to_ledger
from app.services.audit_recorder import AuditRecorder
from app.services.chunked_processor import ChunkedProcessor
from app.services.errors import (
    ContentImportError,
    ImportBatchNotFoundError,
    ImportPayloadError,
    ImportStateError,
)
from app.services.progress_reporter import ProgressReporter
from app.services.rollback_coordinator import RollbackCoordinator
from app.validators.record_validator import RecordValidator
from db.models.import_batch import ImportBatchStatus, ImportFileKind

logger = logging.getLogger(__name__)


class ImportTaskExecutor(Protocol):
    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        ...


class FastAPIBackgroundTaskExecutor:
    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        self._background_tasks.add_task(task, *args, **kwargs)


class InlineTaskExecutor:
    """
    Runs the task immediately in the caller's thread. Used by the CLI.
    """

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        task(*args, **kwargs)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def load_records_document(raw: bytes | str) -> list[Any]:
    """
    Parse an uploaded JSON document: either a list of records or an object
    with a `records` list.
    """

    try:
        document = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ImportPayloadError(f"Upload is not valid JSON: {exc}") from exc

    if isinstance(document, dict):
        document = document.get("records")
    if not isinstance(document, list):
        raise ImportPayloadError("Upload must be a JSON list of records or an object with a 'records' list.")
    return document


class ContentImportService:
    """
    Coordinates the import pipeline components around one batch ledger.
    """

    def __init__(
        self,
        *,
        session_factory: sessionmaker[Session] | None = None,
        settings: ContentImportSettings | None = None,
        validator: RecordValidator | None = None,
        processor: ChunkedProcessor | None = None,
        reporter: ProgressReporter | None = None,
        rollback_coordinator: RollbackCoordinator | None = None,
    ) -> None:
        if session_factory is None:
            from db.session import get_session_factory

            self._session_factory = get_session_factory()
        else:
            self._session_factory = session_factory

        self._settings = settings or get_content_import_settings()
        audit_recorder = AuditRecorder()
        self._validator = validator or RecordValidator(
            module_id_range=(self._settings.module_id_min, self._settings.module_id_max),
            micro_skill_id_range=(self._settings.micro_skill_id_min, self._settings.micro_skill_id_max),
        )
        self._processor = processor or ChunkedProcessor(
            audit_recorder=audit_recorder,
            chunk_size=self._settings.chunk_size,
            chunk_pause_seconds=self._settings.chunk_pause_seconds,
            record_timeout_ms=self._settings.record_timeout_ms,
            default_lifecycle_state=self._settings.default_lifecycle_state,
            log_row_failures=self._settings.log_row_failures,
        )
        self._reporter = reporter or ProgressReporter(error_window=self._settings.progress_error_window)
        self._rollback_coordinator = rollback_coordinator or RollbackCoordinator(audit_recorder=audit_recorder)

    @property
    def settings(self) -> ContentImportSettings:
        return self._settings

    def initialize_batch(
        self,
        db: Session,
        *,
        operator: OperatorContext,
        source: SourceDescriptor,
        total_rows: int,
    ) -> BatchLedger:
        batch = ImportBatchRepository(db).create_batch(
            operator=operator,
            source=source,
            total_rows=total_rows,
        )
        db.commit()
        logger.info(
            "Import batch created batch_id=%s actor_id=%s file=%s total_rows=%s",
            batch.id,
            operator.actor_id,
            source.file_name,
            total_rows,
        )
        return to_ledger(batch)

    def validate_batch(
        self,
        db: Session,
        *,
        batch_id: uuid.UUID,
        records: Sequence[Any],
    ) -> ValidationResult:
        """
        Validate records for a pending batch and record the outcome on its
        ledger. Records themselves are never written here.
        """

        batches = ImportBatchRepository(db)
        ledger = batches.get_ledger(batch_id)
        if ledger is None:
            raise ImportBatchNotFoundError(batch_id)
        try:
            validating = mark_validating(ledger)
        except InvalidTransitionError as exc:
            raise ImportStateError(
                f"Batch {batch_id} cannot be validated from status '{ledger.status}'.",
                status=ledger.status,
            ) from exc
        if not batches.save_ledger(validating, expected_statuses=(ImportBatchStatus.PENDING,)):
            db.rollback()
            raise ImportStateError(f"Batch {batch_id} changed before validation started.")
        db.commit()

        store = ContentRecordRepository(db)
        result = self._validator.validate_records(records, code_exists=store.code_exists)
        validated = record_validation(validating, result)
        if batches.save_ledger(validated, expected_statuses=(ImportBatchStatus.VALIDATING,)):
            db.commit()
        else:
            db.rollback()
            logger.warning("Validation results not saved, batch changed batch_id=%s", batch_id)

        summary = result.summary
        logger.info(
            "Validation complete batch_id=%s valid=%s invalid=%s warnings=%s",
            batch_id,
            summary.valid,
            summary.invalid,
            summary.warnings,
        )
        return result

    def start_import(
        self,
        db: Session,
        *,
        executor: ImportTaskExecutor,
        operator: OperatorContext,
        source: SourceDescriptor,
        records: Sequence[Any],
    ) -> ImportStartResult:
        """
        Create and validate a batch synchronously, then hand the valid records
        to the executor. When any row is invalid nothing is processed and the
        validation report is returned instead.
        """

        if source.file_kind != ImportFileKind.JSON:
            raise ImportPayloadError(
                "File upload not implemented yet. Use JSON format with records in body.",
                code="NOT_IMPLEMENTED",
            )
        if not records:
            raise ImportPayloadError("Import contains no records.", code="EMPTY_IMPORT")
        if len(records) > self._settings.max_records_per_import:
            raise ImportPayloadError(
                f"Import exceeds the limit of {self._settings.max_records_per_import} records.",
                code="TOO_MANY_RECORDS",
            )

        ledger = self.initialize_batch(db, operator=operator, source=source, total_rows=len(records))
        result = self.validate_batch(db, batch_id=ledger.batch_id, records=records)
        if result.has_errors:
            return ImportStartResult(
                batch_id=ledger.batch_id,
                status=ImportBatchStatus.VALIDATING,
                accepted=False,
                total=len(records),
                validation=result,
            )

        try:
            executor.submit(self.process_batch, ledger.batch_id, list(result.valid), operator)
        except Exception:
            self._abandon_batch(db, ledger.batch_id, "Failed to schedule import processing.")
            raise

        return ImportStartResult(
            batch_id=ledger.batch_id,
            status=ImportBatchStatus.VALIDATING,
            accepted=True,
            total=len(records),
            validation=result,
        )

    def process_batch(
        self,
        batch_id: uuid.UUID,
        records: Sequence[ContentRecordInput],
        operator: OperatorContext,
    ) -> BatchLedger | None:
        """
        Background entry point. Opens its own session and never raises.
        """

        with self._session_factory() as db:
            try:
                return self._processor.run(db, batch_id=batch_id, records=records, operator=operator)
            except ContentImportError as exc:
                logger.warning("Import not processed batch_id=%s reason=%s", batch_id, exc)
            except Exception as exc:
                self._mark_batch_failed(db, batch_id, exc)
        return None

    def cancel_import(self, db: Session, *, batch_id: uuid.UUID) -> BatchLedger:
        batches = ImportBatchRepository(db)
        ledger = batches.get_ledger(batch_id)
        if ledger is None:
            raise ImportBatchNotFoundError(batch_id)
        if ledger.status not in CANCELLABLE_STATUSES:
            raise ImportStateError(
                f"Cannot cancel import with status: {ledger.status}",
                code="CANNOT_CANCEL",
                status=ledger.status,
            )

        cancelled = mark_cancelled(ledger, now=_utcnow())
        if not batches.save_ledger(cancelled, expected_statuses=CANCELLABLE_STATUSES):
            db.rollback()
            current = batches.get_status(batch_id)
            raise ImportStateError(
                f"Cannot cancel import with status: {current}",
                code="CANNOT_CANCEL",
                status=current,
            )
        db.commit()
        logger.info("Import cancelled batch_id=%s previous_status=%s", batch_id, ledger.status)
        return cancelled

    def rollback_import(
        self,
        db: Session,
        *,
        batch_id: uuid.UUID,
        operator: OperatorContext,
    ) -> RollbackResult:
        return self._rollback_coordinator.rollback(db, batch_id=batch_id, operator=operator)

    def get_progress(self, db: Session, *, batch_id: uuid.UUID) -> ImportProgress | None:
        return self._reporter.get_progress(db, batch_id)

    def get_batch(self, db: Session, *, batch_id: uuid.UUID) -> BatchLedger | None:
        return ImportBatchRepository(db).get_ledger(batch_id)

    def list_history(self, db: Session, *, actor_id: str, limit: int | None = None) -> list[BatchLedger]:
        batches = ImportBatchRepository(db).list_for_actor(
            actor_id=actor_id,
            limit=limit or self._settings.history_limit,
        )
        return [to_ledger(batch) for batch in batches]

    def list_active(self, db: Session) -> list[BatchLedger]:
        batches = ImportBatchRepository(db).list_by_status(ACTIVE_STATUSES)
        return [to_ledger(batch) for batch in batches]

    def fail_stalled_imports(self, db: Session, *, now: datetime | None = None) -> int:
        """
        Mark batches stuck in PROCESSING past the stall threshold as FAILED.
        Returns the number of batches marked.
        """

        cutoff = (now or _utcnow()) - timedelta(minutes=self._settings.stalled_after_minutes)
        batches = ImportBatchRepository(db)
        marked = 0
        for batch in batches.find_stalled(updated_before=cutoff):
            ledger = to_ledger(batch)
            failed = mark_failed(
                ledger,
                message=f"Import failed: no progress for {self._settings.stalled_after_minutes} minutes",
                now=_utcnow(),
            )
            if batches.save_ledger(failed, expected_statuses=(ImportBatchStatus.PROCESSING,)):
                marked += 1
                logger.warning(
                    "Stalled import marked failed batch_id=%s processed=%s/%s",
                    ledger.batch_id,
                    ledger.processed_rows,
                    ledger.total_rows,
                )
        db.commit()
        return marked

    def _abandon_batch(self, db: Session, batch_id: uuid.UUID, message: str) -> None:
        batches = ImportBatchRepository(db)
        try:
            db.rollback()
            ledger = batches.get_ledger(batch_id)
            if ledger is None or ledger.status not in CANCELLABLE_STATUSES:
                return
            cancelled = mark_cancelled(add_note(ledger, message), now=_utcnow())
            batches.save_ledger(cancelled, expected_statuses=(ledger.status,))
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Failed to persist abandoned import batch state batch_id=%s", batch_id)

    def _mark_batch_failed(self, db: Session, batch_id: uuid.UUID, exc: Exception) -> None:
        error_message = f"{type(exc).__name__}: {exc}"
        logger.exception("Import job failed batch_id=%s error=%s", batch_id, error_message)
        batches = ImportBatchRepository(db)
        try:
            db.rollback()
            ledger = batches.get_ledger(batch_id)
            if ledger is None:
                logger.error("Unable to mark import batch as failed because it was not found batch_id=%s", batch_id)
                return
            if ledger.status != ImportBatchStatus.PROCESSING:
                return
            failed = mark_failed(ledger, message=f"Import failed: {error_message[:500]}", now=_utcnow())
            batches.save_ledger(failed, expected_statuses=(ImportBatchStatus.PROCESSING,))
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Failed to persist failed import batch state batch_id=%s", batch_id)


@lru_cache(maxsize=1)
def get_content_import_service() -> ContentImportService:
    return ContentImportService()
