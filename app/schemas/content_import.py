"""
Schemas for bulk content import endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class ContentImportRequest(BaseModel):
    """
    Body of POST /admin/import. Records are validated row by row by the
    import pipeline, not here, so malformed rows are reported per row.
    """

    file_type: str = Field(default="json", description="Source kind: json, csv or excel")
    file_name: str | None = Field(default=None, max_length=255)
    records: list[Any] = Field(default_factory=list)


class RowIssuesResponse(BaseModel):
    row: int = Field(..., ge=1)
    messages: list[str] = Field(default_factory=list)


class RowMessageResponse(BaseModel):
    row: int = Field(..., ge=0)
    message: str


class ValidationSummaryResponse(BaseModel):
    valid: int = Field(..., ge=0)
    invalid: int = Field(..., ge=0)
    warnings: int = Field(..., ge=0)


class ImportValidationReportResponse(BaseModel):
    batch_id: UUID
    status: str
    message: str = "Validation completed with errors"
    validation_summary: ValidationSummaryResponse
    errors: list[RowIssuesResponse] = Field(default_factory=list)
    warnings: list[RowIssuesResponse] = Field(default_factory=list)


class ImportAcceptedResponse(BaseModel):
    batch_id: UUID
    status: str
    message: str = "Import started"
    total: int = Field(..., ge=0)
    valid_count: int = Field(..., ge=0)
    warnings: list[RowIssuesResponse] = Field(default_factory=list)


class ImportProgressResponse(BaseModel):
    batch_id: UUID
    status: str
    progress_percentage: int = Field(..., ge=0, le=100)
    processed_rows: int = Field(..., ge=0)
    total_rows: int = Field(..., ge=0)
    successful: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    skipped: int = Field(..., ge=0)
    errors: list[RowMessageResponse] = Field(default_factory=list)
    is_complete: bool


class ImportBatchResponse(BaseModel):
    batch_id: UUID
    actor_id: str
    actor_name: str
    file_name: str
    file_kind: str
    status: str
    total_rows: int
    processed_rows: int
    successful: int
    failed: int
    skipped: int
    validation_summary: ValidationSummaryResponse | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    rolled_back_at: datetime | None = None
    rolled_back_by: str | None = None


class ImportActiveResponse(BaseModel):
    imports: list[ImportBatchResponse] = Field(default_factory=list)


class ImportHistoryResponse(BaseModel):
    imports: list[ImportBatchResponse] = Field(default_factory=list)


class ImportCancelResponse(BaseModel):
    batch_id: UUID
    status: str
    message: str = "Import cancelled successfully"


class ImportRollbackResponse(BaseModel):
    batch_id: UUID
    rolled_back_count: int = Field(..., ge=0)
    missing_record_ids: list[str] = Field(default_factory=list)
    message: str
