"""
app/services package marker.
"""

from app.services.audit_recorder import AuditRecorder
from app.services.chunked_processor import ChunkedProcessor
from app.services.content_import_service import (
    ContentImportService,
    FastAPIBackgroundTaskExecutor,
    ImportTaskExecutor,
    InlineTaskExecutor,
    get_content_import_service,
)
from app.services.errors import (
    ContentImportError,
    ImportBatchNotFoundError,
    ImportPayloadError,
    ImportStateError,
)
from app.services.progress_reporter import ProgressReporter
from app.services.record_audit_service import RecordAuditService, get_record_audit_service
from app.services.rollback_coordinator import RollbackCoordinator

__all__ = [
    "AuditRecorder",
    "ChunkedProcessor",
    "ContentImportError",
    "ContentImportService",
    "FastAPIBackgroundTaskExecutor",
    "ImportBatchNotFoundError",
    "ImportPayloadError",
    "ImportStateError",
    "ImportTaskExecutor",
    "InlineTaskExecutor",
    "ProgressReporter",
    "RecordAuditService",
    "RollbackCoordinator",
    "get_content_import_service",
    "get_record_audit_service",
]
