"""
Audit trail writes for content records touched by the import pipeline.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.content_import import OperatorContext
from app.repositories.record_audit_repository import AuditEntryInput, RecordAuditRepository
from db.models.record_audit import AuditAction

logger = logging.getLogger(__name__)

ROLLBACK_REASON = "batch rollback"


class AuditRecorder:
    """
    Appends audit entries. Creation entries are best-effort: a failed write is
    logged and rolled back, never surfaced to the record that triggered it.
    """

    def record_created(
        self,
        db: Session,
        *,
        record_id: uuid.UUID,
        record_code: str,
        operator: OperatorContext,
        batch_id: uuid.UUID | None = None,
    ) -> bool:
        entry = AuditEntryInput(
            record_id=record_id,
            record_code=record_code,
            action=AuditAction.CREATED,
            actor_id=operator.actor_id,
            actor_name=operator.actor_name,
            batch_id=batch_id,
            context=operator.audit_context(),
        )
        try:
            RecordAuditRepository(db).append(entry)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.warning(
                "Audit write failed record_id=%s code=%s batch_id=%s",
                record_id,
                record_code,
                batch_id,
                exc_info=True,
            )
            return False
        return True

    def record_deleted_many(
        self,
        db: Session,
        *,
        deleted: Sequence[tuple[uuid.UUID, str]],
        operator: OperatorContext,
        batch_id: uuid.UUID,
        reason: str = ROLLBACK_REASON,
    ) -> int:
        """
        Write one `deleted` entry per record actually removed. Returns the
        number of entries written (0 when the write failed).
        """

        entries = [
            AuditEntryInput(
                record_id=record_id,
                record_code=record_code,
                action=AuditAction.DELETED,
                actor_id=operator.actor_id,
                actor_name=operator.actor_name,
                batch_id=batch_id,
                reason=reason,
                context=operator.audit_context(),
            )
            for record_id, record_code in deleted
        ]
        try:
            written = RecordAuditRepository(db).append_many(entries)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.warning(
                "Compensating audit write failed batch_id=%s entries=%s",
                batch_id,
                len(entries),
                exc_info=True,
            )
            return 0
        return written
