"""
db/base.py

Declarative base and column helpers shared by the import tables.
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL; plain JSON elsewhere (the test suite runs on SQLite).
JSONDocument = JSON().with_variant(JSONB(astext_type=Text()), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    """
    created_at / updated_at columns. Bulk UPDATEs issued through
    ImportBatchRepository.save_ledger set updated_at explicitly, since
    onupdate only fires for ORM-level updates that omit the column.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )
