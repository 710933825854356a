"""
Schemas for content record audit trail endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    record_id: UUID
    record_code: str
    action: str
    actor_id: str
    actor_name: str
    changes: list[dict[str, Any]] = Field(default_factory=list)
    batch_id: UUID | None = None
    reason: str | None = None
    context: dict[str, Any] | None = None
    created_at: datetime


class AuditEntryListResponse(BaseModel):
    entries: list[AuditEntryResponse] = Field(default_factory=list)


class ActorActivityResponse(BaseModel):
    actor_id: str
    actor_name: str
    count: int = Field(..., ge=0)


class AuditSummaryResponse(BaseModel):
    total_actions: int = Field(..., ge=0)
    by_action: dict[str, int] = Field(default_factory=dict)
    by_actor: list[ActorActivityResponse] = Field(default_factory=list)
    recent_activity: list[AuditEntryResponse] = Field(default_factory=list)
