"""
app/domain/batch_ledger.py

Immutable snapshot of an import batch ledger and the reducers that advance it.

Every outcome (a record created, a record failed, a chunk finished, a fatal
error) is folded into a new BatchLedger by one of the functions below. The
resulting snapshot is what gets persisted, as a whole, by
ImportBatchRepository.save_ledger. Nothing here performs I/O.

Counter invariants maintained by the reducers:
    processed_rows == successful + failed
    successful == len(created_record_ids)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime

from app.domain.content_import import RowMessage, ValidationResult, ValidationSummary
from db.models.import_batch import ImportBatchStatus

ACTIVE_STATUSES = frozenset(
    {
        ImportBatchStatus.PENDING,
        ImportBatchStatus.VALIDATING,
        ImportBatchStatus.PROCESSING,
    }
)

TERMINAL_STATUSES = frozenset(
    {
        ImportBatchStatus.COMPLETED,
        ImportBatchStatus.COMPLETED_WITH_ERRORS,
        ImportBatchStatus.FAILED,
        ImportBatchStatus.CANCELLED,
    }
)

CANCELLABLE_STATUSES = ACTIVE_STATUSES

STARTABLE_STATUSES = frozenset({ImportBatchStatus.PENDING, ImportBatchStatus.VALIDATING})

# A batch cancelled mid-flight keeps the records it already created, so it may
# still be rolled back once.
ROLLBACK_STATUSES = frozenset(
    {
        ImportBatchStatus.COMPLETED,
        ImportBatchStatus.COMPLETED_WITH_ERRORS,
        ImportBatchStatus.FAILED,
        ImportBatchStatus.CANCELLED,
    }
)

_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    ImportBatchStatus.PENDING: frozenset(
        {ImportBatchStatus.VALIDATING, ImportBatchStatus.PROCESSING, ImportBatchStatus.CANCELLED}
    ),
    ImportBatchStatus.VALIDATING: frozenset(
        {ImportBatchStatus.PROCESSING, ImportBatchStatus.CANCELLED}
    ),
    ImportBatchStatus.PROCESSING: frozenset(
        {
            ImportBatchStatus.COMPLETED,
            ImportBatchStatus.COMPLETED_WITH_ERRORS,
            ImportBatchStatus.FAILED,
            ImportBatchStatus.CANCELLED,
        }
    ),
    # Terminal. Rollback moves a finished batch to CANCELLED through
    # mark_rolled_back, which has its own precondition.
    ImportBatchStatus.COMPLETED: frozenset(),
    ImportBatchStatus.COMPLETED_WITH_ERRORS: frozenset(),
    ImportBatchStatus.FAILED: frozenset(),
    ImportBatchStatus.CANCELLED: frozenset(),
}


class InvalidTransitionError(ValueError):
    """
    Raised when a reducer is asked to move a ledger along an edge the state
    machine does not have.
    """

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Illegal import batch transition {current!r} -> {target!r}.")
        self.current = current
        self.target = target


def is_transition_allowed(current: str, target: str) -> bool:
    return target in _ALLOWED_TRANSITIONS.get(current, frozenset())


@dataclass(frozen=True)
class BatchLedger:
    batch_id: uuid.UUID
    actor_id: str
    actor_name: str
    file_name: str
    file_kind: str
    status: str
    total_rows: int
    processed_rows: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    validation_summary: ValidationSummary | None = None
    errors: tuple[RowMessage, ...] = ()
    warnings: tuple[RowMessage, ...] = ()
    created_record_ids: tuple[str, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    rolled_back_at: datetime | None = None
    rolled_back_by: str | None = None
    created_at: datetime | None = None

    @property
    def is_complete(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_rolled_back(self) -> bool:
        return self.rolled_back_at is not None

    @property
    def progress_percentage(self) -> int:
        if self.total_rows <= 0:
            return 0
        # Integer half-up rounding of 100 * processed / total.
        return (200 * self.processed_rows + self.total_rows) // (2 * self.total_rows)


def _transition(ledger: BatchLedger, target: str) -> BatchLedger:
    if not is_transition_allowed(ledger.status, target):
        raise InvalidTransitionError(ledger.status, target)
    return replace(ledger, status=target)


def mark_validating(ledger: BatchLedger) -> BatchLedger:
    return _transition(ledger, ImportBatchStatus.VALIDATING)


def record_validation(ledger: BatchLedger, result: ValidationResult) -> BatchLedger:
    """
    Store the validation summary and append every collected error and warning.
    """

    return replace(
        ledger,
        validation_summary=result.summary,
        errors=ledger.errors + tuple(result.error_messages()),
        warnings=ledger.warnings + tuple(result.warning_messages()),
    )


def mark_processing(ledger: BatchLedger, *, now: datetime) -> BatchLedger:
    return replace(_transition(ledger, ImportBatchStatus.PROCESSING), started_at=now)


def record_succeeded(ledger: BatchLedger, *, record_id: uuid.UUID | str) -> BatchLedger:
    return replace(
        ledger,
        successful=ledger.successful + 1,
        processed_rows=ledger.processed_rows + 1,
        created_record_ids=ledger.created_record_ids + (str(record_id),),
    )


def record_failed(ledger: BatchLedger, *, row: int, message: str) -> BatchLedger:
    return replace(
        ledger,
        failed=ledger.failed + 1,
        processed_rows=ledger.processed_rows + 1,
        errors=ledger.errors + (RowMessage(row=row, message=message),),
    )


def add_warning(ledger: BatchLedger, *, row: int, message: str) -> BatchLedger:
    return replace(ledger, warnings=ledger.warnings + (RowMessage(row=row, message=message),))


def add_note(ledger: BatchLedger, message: str) -> BatchLedger:
    """Append a batch-level (row 0) entry to the error list."""
    return replace(ledger, errors=ledger.errors + (RowMessage(row=0, message=message),))


def finalize(ledger: BatchLedger, *, now: datetime) -> BatchLedger:
    target = (
        ImportBatchStatus.COMPLETED_WITH_ERRORS
        if ledger.failed > 0
        else ImportBatchStatus.COMPLETED
    )
    return replace(_transition(ledger, target), completed_at=now)


def mark_failed(ledger: BatchLedger, *, message: str, now: datetime) -> BatchLedger:
    failed = _transition(ledger, ImportBatchStatus.FAILED)
    return replace(add_note(failed, message), completed_at=now)


def mark_cancelled(ledger: BatchLedger, *, now: datetime) -> BatchLedger:
    return replace(_transition(ledger, ImportBatchStatus.CANCELLED), completed_at=now)


def mark_rolled_back(
    ledger: BatchLedger,
    *,
    actor_id: str,
    actor_name: str,
    now: datetime,
) -> BatchLedger:
    if ledger.status not in ROLLBACK_STATUSES or ledger.is_rolled_back:
        raise InvalidTransitionError(ledger.status, ImportBatchStatus.CANCELLED)
    noted = add_note(ledger, f"Batch rolled back by {actor_name}")
    return replace(
        noted,
        status=ImportBatchStatus.CANCELLED,
        completed_at=now,
        rolled_back_at=now,
        rolled_back_by=actor_id,
    )
