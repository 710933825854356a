"""
tests/test_content_import_service.py

Pytest tests for ContentImportService: submission, validation reports,
cancellation, history, stalled batch sweep and upload parsing.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, sessionmaker

from app.config import ContentImportSettings
from app.domain.content_import import OperatorContext, SourceDescriptor
from app.services.content_import_service import (
    ContentImportService,
    InlineTaskExecutor,
    load_records_document,
)
from app.services.errors import ImportBatchNotFoundError, ImportPayloadError, ImportStateError
from db.models.content_record import ContentRecord
from db.models.import_batch import ImportBatch, ImportBatchStatus


class DeferredExecutor:
    """Collects submitted tasks so a test decides when they run."""

    def __init__(self) -> None:
        self.tasks: list[tuple[Callable[..., Any], tuple[Any, ...]]] = []

    def submit(self, task: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self.tasks.append((task, args))


class BrokenExecutor:
    def submit(self, task: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        raise RuntimeError("worker pool is shut down")


def _record_count(db: Session) -> int:
    return int(db.execute(select(func.count(ContentRecord.id))).scalar_one())


class TestStartImport:
    def test_valid_batch_is_accepted_and_processed(
        self,
        db: Session,
        service: ContentImportService,
        operator,
        source,
        record_factory,
    ) -> None:
        records = [record_factory(text=f"Question {index}") for index in range(5)]

        result = service.start_import(
            db,
            executor=InlineTaskExecutor(),
            operator=operator,
            source=source,
            records=records,
        )

        assert result.accepted
        assert result.total == 5
        assert len(result.validation.valid) == 5

        ledger = service.get_batch(db, batch_id=result.batch_id)
        assert ledger is not None
        assert ledger.status == ImportBatchStatus.COMPLETED
        assert ledger.successful == 5
        assert ledger.validation_summary is not None
        assert ledger.validation_summary.valid == 5
        assert _record_count(db) == 5

    def test_submission_returns_before_processing(
        self,
        db: Session,
        service: ContentImportService,
        operator,
        source,
        record_factory,
    ) -> None:
        executor = DeferredExecutor()

        result = service.start_import(
            db, executor=executor, operator=operator, source=source, records=[record_factory()]
        )

        assert result.accepted
        assert result.status == ImportBatchStatus.VALIDATING
        assert _record_count(db) == 0
        assert len(executor.tasks) == 1

        task, args = executor.tasks[0]
        task(*args)
        progress = service.get_progress(db, batch_id=result.batch_id)
        assert progress is not None
        assert progress.is_complete
        assert progress.progress_percentage == 100

    def test_invalid_rows_return_report_without_processing(
        self,
        db: Session,
        service: ContentImportService,
        operator,
        source,
        record_factory,
    ) -> None:
        records = [record_factory(), record_factory(module_id=42), record_factory(question_code="dup")]
        executor = DeferredExecutor()

        result = service.start_import(db, executor=executor, operator=operator, source=source, records=records)

        assert not result.accepted
        assert result.status == ImportBatchStatus.VALIDATING
        assert executor.tasks == []
        assert [issue.row for issue in result.validation.invalid] == [2]
        assert _record_count(db) == 0

        ledger = service.get_batch(db, batch_id=result.batch_id)
        assert ledger is not None
        assert ledger.status == ImportBatchStatus.VALIDATING
        assert ledger.validation_summary is not None
        assert ledger.validation_summary.invalid == 1
        assert ledger.errors[0].row == 2

    def test_non_json_kind_is_not_implemented(self, db: Session, service: ContentImportService, operator) -> None:
        with pytest.raises(ImportPayloadError) as exc_info:
            service.start_import(
                db,
                executor=InlineTaskExecutor(),
                operator=operator,
                source=SourceDescriptor(file_name="questions.csv", file_kind="csv"),
                records=[{"module_id": 1}],
            )
        assert exc_info.value.code == "NOT_IMPLEMENTED"

    def test_empty_import_is_rejected(self, db: Session, service: ContentImportService, operator, source) -> None:
        with pytest.raises(ImportPayloadError) as exc_info:
            service.start_import(db, executor=InlineTaskExecutor(), operator=operator, source=source, records=[])
        assert exc_info.value.code == "EMPTY_IMPORT"

    def test_record_limit_is_enforced(
        self,
        db: Session,
        session_factory: sessionmaker[Session],
        operator,
        source,
        record_factory,
    ) -> None:
        service = ContentImportService(
            session_factory=session_factory,
            settings=ContentImportSettings(max_records_per_import=2, chunk_pause_seconds=0.0),
        )

        with pytest.raises(ImportPayloadError) as exc_info:
            service.start_import(
                db,
                executor=InlineTaskExecutor(),
                operator=operator,
                source=source,
                records=[record_factory() for _ in range(3)],
            )
        assert exc_info.value.code == "TOO_MANY_RECORDS"
        assert db.execute(select(func.count(ImportBatch.id))).scalar_one() == 0

    def test_scheduling_failure_abandons_batch(
        self,
        db: Session,
        service: ContentImportService,
        operator,
        source,
        record_factory,
    ) -> None:
        with pytest.raises(RuntimeError):
            service.start_import(
                db, executor=BrokenExecutor(), operator=operator, source=source, records=[record_factory()]
            )

        batch_id = db.execute(select(ImportBatch.id)).scalar_one()
        ledger = service.get_batch(db, batch_id=batch_id)
        assert ledger is not None
        assert ledger.status == ImportBatchStatus.CANCELLED
        assert ledger.errors[-1].message == "Failed to schedule import processing."

    def test_process_batch_twice_is_a_no_op(
        self,
        db: Session,
        service: ContentImportService,
        operator,
        source,
        record_factory,
    ) -> None:
        executor = DeferredExecutor()
        service.start_import(db, executor=executor, operator=operator, source=source, records=[record_factory()])
        task, args = executor.tasks[0]

        assert task(*args) is not None
        assert task(*args) is None
        assert _record_count(db) == 1


class TestCancel:
    def test_pending_batch_can_be_cancelled(self, db: Session, service: ContentImportService, operator, source) -> None:
        ledger = service.initialize_batch(db, operator=operator, source=source, total_rows=3)

        cancelled = service.cancel_import(db, batch_id=ledger.batch_id)

        assert cancelled.status == ImportBatchStatus.CANCELLED
        assert cancelled.completed_at is not None

    def test_completed_batch_cannot_be_cancelled(
        self,
        db: Session,
        service: ContentImportService,
        operator,
        source,
        record_factory,
    ) -> None:
        result = service.start_import(
            db, executor=InlineTaskExecutor(), operator=operator, source=source, records=[record_factory()]
        )

        with pytest.raises(ImportStateError) as exc_info:
            service.cancel_import(db, batch_id=result.batch_id)
        assert exc_info.value.code == "CANNOT_CANCEL"
        assert exc_info.value.message == "Cannot cancel import with status: completed"

    def test_unknown_batch(self, db: Session, service: ContentImportService) -> None:
        with pytest.raises(ImportBatchNotFoundError):
            service.cancel_import(db, batch_id=uuid.uuid4())


class TestHistoryAndSweep:
    def test_history_is_scoped_to_actor_and_newest_first(
        self,
        db: Session,
        service: ContentImportService,
        operator,
    ) -> None:
        names = ["first.json", "second.json", "third.json"]
        for name in names:
            service.initialize_batch(
                db, operator=operator, source=SourceDescriptor(file_name=name, file_kind="json"), total_rows=1
            )
        service.initialize_batch(
            db,
            operator=OperatorContext(actor_id="someone-else", actor_name="Other"),
            source=SourceDescriptor(file_name="other.json", file_kind="json"),
            total_rows=1,
        )

        history = service.list_history(db, actor_id=operator.actor_id)
        assert [ledger.file_name for ledger in history] == list(reversed(names))

        limited = service.list_history(db, actor_id=operator.actor_id, limit=1)
        assert [ledger.file_name for ledger in limited] == ["third.json"]

    def test_list_active_excludes_finished_batches(
        self,
        db: Session,
        service: ContentImportService,
        operator,
        source,
    ) -> None:
        active = service.initialize_batch(db, operator=operator, source=source, total_rows=1)
        finished = service.initialize_batch(db, operator=operator, source=source, total_rows=1)
        service.cancel_import(db, batch_id=finished.batch_id)

        assert [ledger.batch_id for ledger in service.list_active(db)] == [active.batch_id]

    def test_stalled_processing_batches_are_failed(
        self,
        db: Session,
        service: ContentImportService,
        operator,
        source,
    ) -> None:
        stalled = service.initialize_batch(db, operator=operator, source=source, total_rows=10)
        fresh = service.initialize_batch(db, operator=operator, source=source, total_rows=10)
        now = datetime.now(timezone.utc)
        db.execute(
            update(ImportBatch)
            .where(ImportBatch.id == stalled.batch_id)
            .values(status=ImportBatchStatus.PROCESSING, updated_at=now - timedelta(hours=2))
        )
        db.execute(
            update(ImportBatch)
            .where(ImportBatch.id == fresh.batch_id)
            .values(status=ImportBatchStatus.PROCESSING, updated_at=now)
        )
        db.commit()

        assert service.fail_stalled_imports(db, now=now) == 1

        failed = service.get_batch(db, batch_id=stalled.batch_id)
        assert failed is not None
        assert failed.status == ImportBatchStatus.FAILED
        assert failed.errors[-1].message.startswith("Import failed: no progress for")
        still_running = service.get_batch(db, batch_id=fresh.batch_id)
        assert still_running is not None
        assert still_running.status == ImportBatchStatus.PROCESSING


class TestLoadRecordsDocument:
    def test_accepts_list_and_records_object(self) -> None:
        assert load_records_document('[{"module_id": 1}]') == [{"module_id": 1}]
        assert load_records_document(b'{"records": [{"module_id": 2}]}') == [{"module_id": 2}]

    @pytest.mark.parametrize("raw", ["not json", '{"items": []}', '"text"', b"\xff\xfe"])
    def test_rejects_other_documents(self, raw: str | bytes) -> None:
        with pytest.raises(ImportPayloadError):
            load_records_document(raw)
