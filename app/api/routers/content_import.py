"""
Bulk content import endpoints.
"""

from __future__ import annotations

from typing import Any, NoReturn
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response, UploadFile, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_json_upload, get_operator_context
from app.domain.batch_ledger import BatchLedger
from app.domain.content_import import (
    ImportStartResult,
    OperatorContext,
    RowIssues,
    SourceDescriptor,
)
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
    RowIssuesResponse,
    RowMessageResponse,
    ValidationSummaryResponse,
)
from app.services.content_import_service import (
    ContentImportService,
    FastAPIBackgroundTaskExecutor,
    get_content_import_service,
    load_records_document,
)
from app.services.errors import (
    ContentImportError,
    ImportBatchNotFoundError,
    ImportPayloadError,
    ImportStateError,
)
from db.models.import_batch import ImportFileKind
from db.session import get_db

router = APIRouter(prefix="/admin", tags=["content-import"])

_DEFAULT_FILE_NAME = "json_import.json"


@router.post(
    "/import",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ImportAcceptedResponse | ImportValidationReportResponse,
)
def start_import(
    payload: ContentImportRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    operator: OperatorContext = Depends(get_operator_context),
    db: Session = Depends(get_db),
    service: ContentImportService = Depends(get_content_import_service),
) -> ImportAcceptedResponse | ImportValidationReportResponse:
    file_kind = payload.file_type.strip().lower()
    source = SourceDescriptor(
        file_name=payload.file_name or _DEFAULT_FILE_NAME,
        file_kind=file_kind,
    )
    return _start(
        response=response,
        background_tasks=background_tasks,
        operator=operator,
        db=db,
        service=service,
        source=source,
        records=payload.records,
    )


@router.post(
    "/import/upload",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ImportAcceptedResponse | ImportValidationReportResponse,
)
def upload_import(
    response: Response,
    background_tasks: BackgroundTasks,
    file: UploadFile = Depends(get_json_upload),
    operator: OperatorContext = Depends(get_operator_context),
    db: Session = Depends(get_db),
    service: ContentImportService = Depends(get_content_import_service),
) -> ImportAcceptedResponse | ImportValidationReportResponse:
    try:
        raw = file.file.read()
    finally:
        file.file.close()

    try:
        records = load_records_document(raw)
    except ImportPayloadError as exc:
        _raise_http(exc)

    source = SourceDescriptor(file_name=file.filename or "upload.json", file_kind=ImportFileKind.JSON)
    return _start(
        response=response,
        background_tasks=background_tasks,
        operator=operator,
        db=db,
        service=service,
        source=source,
        records=records,
    )


@router.get("/import/history", response_model=ImportHistoryResponse)
def get_import_history(
    limit: int | None = Query(default=None, ge=1, le=100, description="Max batches returned"),
    operator: OperatorContext = Depends(get_operator_context),
    db: Session = Depends(get_db),
    service: ContentImportService = Depends(get_content_import_service),
) -> ImportHistoryResponse:
    ledgers = service.list_history(db, actor_id=operator.actor_id, limit=limit)
    return ImportHistoryResponse(imports=[_to_batch_response(ledger) for ledger in ledgers])


@router.get("/import/active", response_model=ImportActiveResponse)
def get_active_imports(
    operator: OperatorContext = Depends(get_operator_context),
    db: Session = Depends(get_db),
    service: ContentImportService = Depends(get_content_import_service),
) -> ImportActiveResponse:
    ledgers = service.list_active(db)
    return ImportActiveResponse(imports=[_to_batch_response(ledger) for ledger in ledgers])


@router.get("/import/{batch_id}/progress", response_model=ImportProgressResponse)
def get_import_progress(
    batch_id: UUID,
    operator: OperatorContext = Depends(get_operator_context),
    db: Session = Depends(get_db),
    service: ContentImportService = Depends(get_content_import_service),
) -> ImportProgressResponse:
    progress = service.get_progress(db, batch_id=batch_id)
    if progress is None:
        _raise_http(ImportBatchNotFoundError(batch_id))

    return ImportProgressResponse(
        batch_id=progress.batch_id,
        status=progress.status,
        progress_percentage=progress.progress_percentage,
        processed_rows=progress.processed_rows,
        total_rows=progress.total_rows,
        successful=progress.successful,
        failed=progress.failed,
        skipped=progress.skipped,
        errors=[RowMessageResponse(row=item.row, message=item.message) for item in progress.errors],
        is_complete=progress.is_complete,
    )


@router.post("/import/{batch_id}/cancel", response_model=ImportCancelResponse)
def cancel_import(
    batch_id: UUID,
    operator: OperatorContext = Depends(get_operator_context),
    db: Session = Depends(get_db),
    service: ContentImportService = Depends(get_content_import_service),
) -> ImportCancelResponse:
    try:
        ledger = service.cancel_import(db, batch_id=batch_id)
    except ContentImportError as exc:
        _raise_http(exc)
    return ImportCancelResponse(batch_id=ledger.batch_id, status=ledger.status)


@router.post("/import/{batch_id}/rollback", response_model=ImportRollbackResponse)
def rollback_import(
    batch_id: UUID,
    operator: OperatorContext = Depends(get_operator_context),
    db: Session = Depends(get_db),
    service: ContentImportService = Depends(get_content_import_service),
) -> ImportRollbackResponse:
    try:
        result = service.rollback_import(db, batch_id=batch_id, operator=operator)
    except ContentImportError as exc:
        _raise_http(exc)
    return ImportRollbackResponse(
        batch_id=batch_id,
        rolled_back_count=result.rolled_back_count,
        missing_record_ids=list(result.missing_record_ids),
        message=f"Import rolled back. {result.rolled_back_count} records deleted.",
    )


def _start(
    *,
    response: Response,
    background_tasks: BackgroundTasks,
    operator: OperatorContext,
    db: Session,
    service: ContentImportService,
    source: SourceDescriptor,
    records: list[Any],
) -> ImportAcceptedResponse | ImportValidationReportResponse:
    try:
        result = service.start_import(
            db,
            executor=FastAPIBackgroundTaskExecutor(background_tasks),
            operator=operator,
            source=source,
            records=records,
        )
    except ContentImportError as exc:
        _raise_http(exc)

    if not result.accepted:
        response.status_code = status.HTTP_200_OK
        return _to_validation_report(result)

    return ImportAcceptedResponse(
        batch_id=result.batch_id,
        status=result.status,
        total=result.total,
        valid_count=len(result.validation.valid),
        warnings=_to_row_issues(result.validation.warnings),
    )


def _to_validation_report(result: ImportStartResult) -> ImportValidationReportResponse:
    summary = result.validation.summary
    return ImportValidationReportResponse(
        batch_id=result.batch_id,
        status=result.status,
        validation_summary=ValidationSummaryResponse(
            valid=summary.valid,
            invalid=summary.invalid,
            warnings=summary.warnings,
        ),
        errors=_to_row_issues(result.validation.invalid),
        warnings=_to_row_issues(result.validation.warnings),
    )


def _to_row_issues(issues: list[RowIssues]) -> list[RowIssuesResponse]:
    return [RowIssuesResponse(row=issue.row, messages=list(issue.messages)) for issue in issues]


def _to_batch_response(ledger: BatchLedger) -> ImportBatchResponse:
    summary = ledger.validation_summary
    return ImportBatchResponse(
        batch_id=ledger.batch_id,
        actor_id=ledger.actor_id,
        actor_name=ledger.actor_name,
        file_name=ledger.file_name,
        file_kind=ledger.file_kind,
        status=ledger.status,
        total_rows=ledger.total_rows,
        processed_rows=ledger.processed_rows,
        successful=ledger.successful,
        failed=ledger.failed,
        skipped=ledger.skipped,
        validation_summary=(
            ValidationSummaryResponse(valid=summary.valid, invalid=summary.invalid, warnings=summary.warnings)
            if summary is not None
            else None
        ),
        created_at=ledger.created_at,
        started_at=ledger.started_at,
        completed_at=ledger.completed_at,
        rolled_back_at=ledger.rolled_back_at,
        rolled_back_by=ledger.rolled_back_by,
    )


def _raise_http(exc: ContentImportError) -> NoReturn:
    if isinstance(exc, ImportBatchNotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ImportStateError):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, ImportPayloadError) and exc.code == "TOO_MANY_RECORDS":
        status_code = 413
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    raise HTTPException(status_code=status_code, detail=exc.to_dict()) from exc
