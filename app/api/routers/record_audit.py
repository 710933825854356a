"""
Content record audit trail endpoints.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.dependencies import get_operator_context
from app.domain.content_import import OperatorContext
from app.schemas.record_audit import (
    ActorActivityResponse,
    AuditEntryListResponse,
    AuditEntryResponse,
    AuditSummaryResponse,
)
from app.services.record_audit_service import RecordAuditService, get_record_audit_service
from db.models.record_audit import RecordAuditEntry
from db.session import get_db

router = APIRouter(prefix="/admin/audit", tags=["record-audit"])


@router.get("", response_model=AuditEntryListResponse)
def search_audit_entries(
    actor_id: str | None = Query(default=None, description="Filter by actor"),
    action: str | None = Query(default=None, description="Filter by audit action"),
    start: datetime | None = Query(default=None, description="Earliest entry timestamp"),
    end: datetime | None = Query(default=None, description="Latest entry timestamp"),
    limit: int = Query(default=100, ge=1, le=500),
    operator: OperatorContext = Depends(get_operator_context),
    db: Session = Depends(get_db),
    service: RecordAuditService = Depends(get_record_audit_service),
) -> AuditEntryListResponse:
    entries = service.search(db, actor_id=actor_id, action=action, start=start, end=end, limit=limit)
    return _to_list_response(entries)


@router.get("/summary", response_model=AuditSummaryResponse)
def get_audit_summary(
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    operator: OperatorContext = Depends(get_operator_context),
    db: Session = Depends(get_db),
    service: RecordAuditService = Depends(get_record_audit_service),
) -> AuditSummaryResponse:
    summary = service.summary(db, start=start, end=end)
    return AuditSummaryResponse(
        total_actions=summary.total_actions,
        by_action=summary.by_action,
        by_actor=[
            ActorActivityResponse(actor_id=item.actor_id, actor_name=item.actor_name, count=item.count)
            for item in summary.by_actor
        ],
        recent_activity=[AuditEntryResponse.model_validate(entry) for entry in summary.recent_activity],
    )


@router.get("/records/{record_id}", response_model=AuditEntryListResponse)
def get_record_history(
    record_id: UUID,
    limit: int = Query(default=50, ge=1, le=100),
    operator: OperatorContext = Depends(get_operator_context),
    db: Session = Depends(get_db),
    service: RecordAuditService = Depends(get_record_audit_service),
) -> AuditEntryListResponse:
    return _to_list_response(service.record_history(db, record_id=record_id, limit=limit))


@router.get("/actors/{actor_id}", response_model=AuditEntryListResponse)
def get_actor_activity(
    actor_id: str,
    limit: int = Query(default=100, ge=1, le=500),
    operator: OperatorContext = Depends(get_operator_context),
    db: Session = Depends(get_db),
    service: RecordAuditService = Depends(get_record_audit_service),
) -> AuditEntryListResponse:
    return _to_list_response(service.actor_activity(db, actor_id=actor_id, limit=limit))


@router.get("/batches/{batch_id}", response_model=AuditEntryListResponse)
def get_batch_activity(
    batch_id: UUID,
    operator: OperatorContext = Depends(get_operator_context),
    db: Session = Depends(get_db),
    service: RecordAuditService = Depends(get_record_audit_service),
) -> AuditEntryListResponse:
    return _to_list_response(service.batch_activity(db, batch_id=batch_id))


def _to_list_response(entries: list[RecordAuditEntry]) -> AuditEntryListResponse:
    return AuditEntryListResponse(entries=[AuditEntryResponse.model_validate(entry) for entry in entries])
