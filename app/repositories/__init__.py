"""
app/repositories package marker.
"""

from app.repositories.content_record_repository import ContentRecordRepository, format_identity_code
from app.repositories.errors import DuplicateIdentityCodeError, RecordStoreError, StoreUnavailableError
from app.repositories.import_batch_repository import ImportBatchRepository, to_ledger
from app.repositories.record_audit_repository import AuditEntryInput, RecordAuditRepository

__all__ = [
    "AuditEntryInput",
    "ContentRecordRepository",
    "DuplicateIdentityCodeError",
    "ImportBatchRepository",
    "RecordAuditRepository",
    "RecordStoreError",
    "StoreUnavailableError",
    "format_identity_code",
    "to_ledger",
]
