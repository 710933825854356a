from __future__ import annotations

import unittest
import uuid
from datetime import datetime, timezone

from app.domain.batch_ledger import (
    BatchLedger,
    InvalidTransitionError,
    add_warning,
    finalize,
    is_transition_allowed,
    mark_cancelled,
    mark_failed,
    mark_processing,
    mark_rolled_back,
    mark_validating,
    record_failed,
    record_succeeded,
    record_validation,
)
from app.domain.content_import import (
    ContentRecordInput,
    RowIssues,
    RowMessage,
    ValidationResult,
    ValidationSummary,
)
from db.models.import_batch import ImportBatchStatus

NOW = datetime(2026, 10, 17, 9, 30, tzinfo=timezone.utc)


def _ledger(status: str = ImportBatchStatus.PENDING, total_rows: int = 4) -> BatchLedger:
    return BatchLedger(
        batch_id=uuid.uuid4(),
        actor_id="admin-1",
        actor_name="Ada Admin",
        file_name="questions.json",
        file_kind="json",
        status=status,
        total_rows=total_rows,
    )


class TestBatchLedgerReducers(unittest.TestCase):
    def test_counters_stay_consistent_across_outcomes(self) -> None:
        ledger = mark_processing(_ledger(), now=NOW)
        ledger = record_succeeded(ledger, record_id=uuid.uuid4())
        ledger = record_failed(ledger, row=2, message="boom")
        ledger = record_succeeded(ledger, record_id=uuid.uuid4())

        self.assertEqual(ledger.processed_rows, 3)
        self.assertEqual(ledger.processed_rows, ledger.successful + ledger.failed)
        self.assertEqual(ledger.successful, len(ledger.created_record_ids))
        self.assertEqual(ledger.errors, (RowMessage(row=2, message="boom"),))
        self.assertEqual(ledger.skipped, 0)

    def test_reducers_return_new_snapshots(self) -> None:
        original = mark_processing(_ledger(), now=NOW)
        updated = record_succeeded(original, record_id="abc")

        self.assertEqual(original.successful, 0)
        self.assertEqual(original.created_record_ids, ())
        self.assertEqual(updated.created_record_ids, ("abc",))

    def test_mark_processing_sets_started_at(self) -> None:
        ledger = mark_processing(mark_validating(_ledger()), now=NOW)
        self.assertEqual(ledger.status, ImportBatchStatus.PROCESSING)
        self.assertEqual(ledger.started_at, NOW)

    def test_finalize_picks_status_from_failures(self) -> None:
        clean = record_succeeded(mark_processing(_ledger(), now=NOW), record_id="a")
        self.assertEqual(finalize(clean, now=NOW).status, ImportBatchStatus.COMPLETED)

        dirty = record_failed(clean, row=2, message="nope")
        finished = finalize(dirty, now=NOW)
        self.assertEqual(finished.status, ImportBatchStatus.COMPLETED_WITH_ERRORS)
        self.assertEqual(finished.completed_at, NOW)
        self.assertTrue(finished.is_complete)

    def test_mark_failed_appends_batch_level_note(self) -> None:
        ledger = record_succeeded(mark_processing(_ledger(), now=NOW), record_id="a")
        failed = mark_failed(ledger, message="Import failed: connection lost", now=NOW)

        self.assertEqual(failed.status, ImportBatchStatus.FAILED)
        self.assertEqual(failed.errors[-1], RowMessage(row=0, message="Import failed: connection lost"))
        self.assertEqual(failed.successful, 1)

    def test_record_validation_stores_summary_and_messages(self) -> None:
        result = ValidationResult(
            valid=[ContentRecordInput(row=1, module_id=1, micro_skill_id=1, payload={})],
            invalid=[RowIssues(row=2, messages=("Invalid module_id", "Invalid micro_skill_id"))],
            warnings=[RowIssues(row=1, messages=("duplicate code",))],
        )
        ledger = record_validation(mark_validating(_ledger()), result)

        self.assertEqual(ledger.validation_summary, ValidationSummary(valid=1, invalid=1, warnings=1))
        self.assertEqual([item.row for item in ledger.errors], [2, 2])
        self.assertEqual(ledger.warnings, (RowMessage(row=1, message="duplicate code"),))

    def test_add_warning_does_not_touch_counters(self) -> None:
        ledger = add_warning(mark_processing(_ledger(), now=NOW), row=3, message="regenerated code")
        self.assertEqual(ledger.processed_rows, 0)
        self.assertEqual(ledger.warnings[0].row, 3)


class TestBatchLedgerTransitions(unittest.TestCase):
    def test_cancel_allowed_only_while_active(self) -> None:
        for status in (ImportBatchStatus.PENDING, ImportBatchStatus.VALIDATING, ImportBatchStatus.PROCESSING):
            self.assertEqual(mark_cancelled(_ledger(status), now=NOW).status, ImportBatchStatus.CANCELLED)

        completed = finalize(mark_processing(_ledger(), now=NOW), now=NOW)
        with self.assertRaises(InvalidTransitionError):
            mark_cancelled(completed, now=NOW)

    def test_finished_batches_cannot_be_cancelled(self) -> None:
        running = mark_processing(_ledger(), now=NOW)
        finished = (
            finalize(record_failed(running, row=1, message="bad"), now=NOW),
            mark_failed(running, message="Import failed: boom", now=NOW),
            mark_cancelled(running, now=NOW),
        )
        for ledger in finished:
            with self.subTest(status=ledger.status):
                self.assertFalse(is_transition_allowed(ledger.status, ImportBatchStatus.CANCELLED))
                with self.assertRaises(InvalidTransitionError):
                    mark_cancelled(ledger, now=NOW)

    def test_processing_cannot_restart(self) -> None:
        ledger = mark_processing(_ledger(), now=NOW)
        with self.assertRaises(InvalidTransitionError) as ctx:
            mark_processing(ledger, now=NOW)
        self.assertEqual(ctx.exception.current, ImportBatchStatus.PROCESSING)

    def test_terminal_states_do_not_reopen(self) -> None:
        self.assertFalse(is_transition_allowed(ImportBatchStatus.COMPLETED, ImportBatchStatus.PROCESSING))
        self.assertFalse(is_transition_allowed(ImportBatchStatus.CANCELLED, ImportBatchStatus.PENDING))
        self.assertFalse(is_transition_allowed(ImportBatchStatus.FAILED, ImportBatchStatus.COMPLETED))

    def test_rollback_marks_cancelled_and_records_actor(self) -> None:
        completed = finalize(record_succeeded(mark_processing(_ledger(), now=NOW), record_id="a"), now=NOW)
        rolled_back = mark_rolled_back(completed, actor_id="admin-2", actor_name="Bob", now=NOW)

        self.assertEqual(rolled_back.status, ImportBatchStatus.CANCELLED)
        self.assertTrue(rolled_back.is_rolled_back)
        self.assertEqual(rolled_back.rolled_back_by, "admin-2")
        self.assertEqual(rolled_back.errors[-1], RowMessage(row=0, message="Batch rolled back by Bob"))

    def test_rollback_is_rejected_twice_and_while_active(self) -> None:
        completed = finalize(mark_processing(_ledger(), now=NOW), now=NOW)
        rolled_back = mark_rolled_back(completed, actor_id="a", actor_name="A", now=NOW)
        with self.assertRaises(InvalidTransitionError):
            mark_rolled_back(rolled_back, actor_id="a", actor_name="A", now=NOW)
        with self.assertRaises(InvalidTransitionError):
            mark_rolled_back(_ledger(ImportBatchStatus.PROCESSING), actor_id="a", actor_name="A", now=NOW)


class TestProgressPercentage(unittest.TestCase):
    def test_zero_total_reports_zero(self) -> None:
        self.assertEqual(_ledger(total_rows=0).progress_percentage, 0)

    def test_rounds_half_up(self) -> None:
        ledger = _ledger(status=ImportBatchStatus.PROCESSING, total_rows=8)
        ledger = record_succeeded(ledger, record_id="a")
        # 1/8 = 12.5%
        self.assertEqual(ledger.progress_percentage, 13)

    def test_full_progress_is_one_hundred(self) -> None:
        ledger = _ledger(status=ImportBatchStatus.PROCESSING, total_rows=3)
        for index in range(3):
            ledger = record_succeeded(ledger, record_id=str(index))
        self.assertEqual(ledger.progress_percentage, 100)


if __name__ == "__main__":
    unittest.main()
