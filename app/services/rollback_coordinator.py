"""
Compensating rollback of everything an import batch created.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.domain.batch_ledger import add_note, mark_rolled_back
from app.domain.content_import import OperatorContext, RollbackResult
from app.repositories.content_record_repository import ContentRecordRepository
from app.repositories.import_batch_repository import ImportBatchRepository
from app.services.audit_recorder import AuditRecorder
from app.services.errors import ImportBatchNotFoundError, ImportStateError

logger = logging.getLogger(__name__)


class RollbackCoordinator:
    """
    Deletes a batch's created records and terminates the batch.

    The bulk delete and the ledger transition commit together. Compensating
    audit entries are then written only for rows the delete actually removed.
    """

    def __init__(self, *, audit_recorder: AuditRecorder | None = None) -> None:
        self._audit_recorder = audit_recorder or AuditRecorder()

    def rollback(
        self,
        db: Session,
        *,
        batch_id: uuid.UUID,
        operator: OperatorContext,
    ) -> RollbackResult:
        batches = ImportBatchRepository(db)
        ledger = batches.get_ledger(batch_id)
        if ledger is None:
            raise ImportBatchNotFoundError(batch_id)
        if ledger.is_active:
            raise ImportStateError(
                f"Cannot roll back batch {batch_id} while it is {ledger.status}.",
                code="CANNOT_ROLLBACK",
                status=ledger.status,
            )
        if ledger.is_rolled_back:
            raise ImportStateError(
                f"Batch {batch_id} was already rolled back.",
                code="ALREADY_ROLLED_BACK",
                status=ledger.status,
            )
        if not ledger.created_record_ids:
            logger.info("Rollback skipped, batch created no records batch_id=%s", batch_id)
            return RollbackResult(rolled_back_count=0)

        try:
            deleted = ContentRecordRepository(db).delete_by_ids(ledger.created_record_ids)
            deleted_ids = {str(record_id) for record_id, _ in deleted}
            missing = tuple(
                record_id for record_id in ledger.created_record_ids if record_id not in deleted_ids
            )

            rolled_back = mark_rolled_back(
                ledger,
                actor_id=operator.actor_id,
                actor_name=operator.actor_name,
                now=datetime.now(timezone.utc),
            )
            if missing:
                rolled_back = add_note(
                    rolled_back,
                    f"{len(missing)} created record(s) were already gone at rollback",
                )

            if not batches.save_ledger(
                rolled_back,
                expected_statuses=(ledger.status,),
                require_not_rolled_back=True,
            ):
                raise ImportStateError(
                    f"Batch {batch_id} changed while rolling back.",
                    code="CANNOT_ROLLBACK",
                )
            db.commit()
        except Exception:
            db.rollback()
            raise

        if missing:
            logger.warning(
                "Rollback found records already deleted batch_id=%s missing=%s",
                batch_id,
                ", ".join(missing),
            )
        self._audit_recorder.record_deleted_many(
            db,
            deleted=deleted,
            operator=operator,
            batch_id=batch_id,
        )
        logger.info(
            "Import batch rolled back batch_id=%s deleted=%s actor_id=%s",
            batch_id,
            len(deleted),
            operator.actor_id,
        )
        return RollbackResult(rolled_back_count=len(deleted), missing_record_ids=missing)
