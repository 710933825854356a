"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.content_record import ContentLifecycleState, ContentRecord
from db.models.import_batch import ImportBatch, ImportBatchStatus, ImportFileKind
from db.models.record_audit import AuditAction, RecordAuditEntry

__all__ = [
    "AuditAction",
    "ContentLifecycleState",
    "ContentRecord",
    "ImportBatch",
    "ImportBatchStatus",
    "ImportFileKind",
    "RecordAuditEntry",
]
