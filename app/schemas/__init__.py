"""
app/schemas package marker.
"""

from app.schemas.content_import import (
    ContentImportRequest,
    ImportAcceptedResponse,
    ImportActiveResponse,
    ImportBatchResponse,
    ImportCancelResponse,
    ImportHistoryResponse,
    ImportProgressResponse,
    ImportRollbackResponse,
    ImportValidationReportResponse,
)
from app.schemas.content_record import ContentRecordSchema, PydanticRecordSchemaValidator, RecordSchemaValidator
from app.schemas.record_audit import AuditEntryListResponse, AuditEntryResponse, AuditSummaryResponse

__all__ = [
    "AuditEntryListResponse",
    "AuditEntryResponse",
    "AuditSummaryResponse",
    "ContentImportRequest",
    "ContentRecordSchema",
    "ImportAcceptedResponse",
    "ImportActiveResponse",
    "ImportBatchResponse",
    "ImportCancelResponse",
    "ImportHistoryResponse",
    "ImportProgressResponse",
    "ImportRollbackResponse",
    "ImportValidationReportResponse",
    "PydanticRecordSchemaValidator",
    "RecordSchemaValidator",
]
