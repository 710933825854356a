"""
db/models/import_batch.py

Import batch ledger: one row per bulk content import operation.

Counters, error/warning lists and created record ids live on the row and are
rewritten as a whole from a BatchLedger snapshot after every chunk. Audit
entries are stored separately (record_audit_entries) and joined by batch id.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONDocument, TimestampMixin


class ImportBatchStatus:
    PENDING = "pending"
    VALIDATING = "validating"
    PROCESSING = "processing"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ImportFileKind:
    CSV = "csv"
    EXCEL = "excel"
    JSON = "json"


class ImportBatch(Base, TimestampMixin):
    __tablename__ = "import_batches"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    actor_id: Mapped[str] = mapped_column(String(120), nullable=False)
    actor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    file_kind: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="csv, excel, json",
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ImportBatchStatus.PENDING,
    )
    total_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    successful: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skipped: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Reserved; no skip path exists yet",
    )
    validation_summary: Mapped[dict[str, int] | None] = mapped_column(
        JSONDocument,
        nullable=True,
        comment="{valid, invalid, warnings} counts written once after validation",
    )
    errors: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=list,
    )
    warnings: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=list,
    )
    created_record_ids: Mapped[list[str]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=list,
        comment="Ids of content records created by this batch, in creation order",
    )
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    rolled_back_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    rolled_back_by: Mapped[str | None] = mapped_column(String(120), nullable=True)

    __table_args__ = (
        Index("ix_import_batches_actor_created_at", "actor_id", "created_at"),
        Index("ix_import_batches_status_created_at", "status", "created_at"),
    )
