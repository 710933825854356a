"""
db/models/record_audit.py

Append-only audit trail for content record changes.

Kept in its own table (not embedded in records or batches) so large imports
never grow a single row without bound. record_id carries no foreign key:
entries must outlive the records they describe.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONDocument


class AuditAction:
    CREATED = "created"
    UPDATED = "updated"
    STATUS_CHANGED = "status_changed"
    DELETED = "deleted"
    RESTORED = "restored"
    BULK_IMPORTED = "bulk_imported"


ALL_AUDIT_ACTIONS = (
    AuditAction.CREATED,
    AuditAction.UPDATED,
    AuditAction.STATUS_CHANGED,
    AuditAction.DELETED,
    AuditAction.RESTORED,
    AuditAction.BULK_IMPORTED,
)


class RecordAuditEntry(Base):
    __tablename__ = "record_audit_entries"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    record_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    record_code: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(120), nullable=False)
    actor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    changes: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=list,
        comment="[{field, old_value, new_value}]; empty for bulk create",
    )
    batch_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    context: Mapped[dict[str, Any] | None] = mapped_column(
        JSONDocument,
        nullable=True,
        comment="Request context such as ip_address and user_agent",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_record_audit_entries_record_created", "record_id", "created_at"),
        Index("ix_record_audit_entries_actor_created", "actor_id", "created_at"),
        Index("ix_record_audit_entries_batch_id", "batch_id"),
        Index("ix_record_audit_entries_action", "action"),
    )
