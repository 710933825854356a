"""
app/repositories/record_audit_repository.py

Append-only persistence and queries for the content record audit trail.
There is intentionally no update or delete here.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from db.models.record_audit import RecordAuditEntry


@dataclass(frozen=True)
class AuditEntryInput:
    record_id: uuid.UUID
    record_code: str
    action: str
    actor_id: str
    actor_name: str
    batch_id: uuid.UUID | None = None
    reason: str | None = None
    changes: tuple[dict[str, Any], ...] = ()
    context: dict[str, Any] | None = None


class RecordAuditRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def append(self, entry: AuditEntryInput) -> RecordAuditEntry:
        model = self._to_model(entry)
        self._session.add(model)
        self._session.flush()
        return model

    def append_many(self, entries: Sequence[AuditEntryInput]) -> int:
        if not entries:
            return 0
        self._session.add_all([self._to_model(entry) for entry in entries])
        self._session.flush()
        return len(entries)

    def list_for_record(self, record_id: uuid.UUID, *, limit: int = 50) -> list[RecordAuditEntry]:
        stmt = select(RecordAuditEntry).where(RecordAuditEntry.record_id == record_id)
        return self._fetch(stmt, limit=limit)

    def list_for_actor(self, actor_id: str, *, limit: int = 100) -> list[RecordAuditEntry]:
        stmt = select(RecordAuditEntry).where(RecordAuditEntry.actor_id == actor_id)
        return self._fetch(stmt, limit=limit)

    def list_for_batch(self, batch_id: uuid.UUID, *, limit: int | None = None) -> list[RecordAuditEntry]:
        stmt = select(RecordAuditEntry).where(RecordAuditEntry.batch_id == batch_id)
        return self._fetch(stmt, limit=limit)

    def search(
        self,
        *,
        actor_id: str | None = None,
        action: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 100,
    ) -> list[RecordAuditEntry]:
        stmt = self._filtered(select(RecordAuditEntry), actor_id=actor_id, action=action, start=start, end=end)
        return self._fetch(stmt, limit=limit)

    def count_by_action(
        self,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> dict[str, int]:
        stmt = self._filtered(
            select(RecordAuditEntry.action, func.count(RecordAuditEntry.id)),
            start=start,
            end=end,
        ).group_by(RecordAuditEntry.action)
        return {action: int(count) for action, count in self._session.execute(stmt).all()}

    def count_by_actor(
        self,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 10,
    ) -> list[tuple[str, str, int]]:
        total = func.count(RecordAuditEntry.id)
        stmt = (
            self._filtered(
                select(RecordAuditEntry.actor_id, RecordAuditEntry.actor_name, total),
                start=start,
                end=end,
            )
            .group_by(RecordAuditEntry.actor_id, RecordAuditEntry.actor_name)
            .order_by(total.desc())
            .limit(max(1, limit))
        )
        return [(actor_id, actor_name, int(count)) for actor_id, actor_name, count in self._session.execute(stmt).all()]

    def _filtered(
        self,
        stmt: Select[Any],
        *,
        actor_id: str | None = None,
        action: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> Select[Any]:
        if actor_id:
            stmt = stmt.where(RecordAuditEntry.actor_id == actor_id)
        if action:
            stmt = stmt.where(RecordAuditEntry.action == action)
        if start is not None:
            stmt = stmt.where(RecordAuditEntry.created_at >= start)
        if end is not None:
            stmt = stmt.where(RecordAuditEntry.created_at <= end)
        return stmt

    def _fetch(self, stmt: Select[tuple[RecordAuditEntry]], *, limit: int | None) -> list[RecordAuditEntry]:
        stmt = stmt.order_by(RecordAuditEntry.created_at.desc())
        if limit is not None:
            stmt = stmt.limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def _to_model(self, entry: AuditEntryInput) -> RecordAuditEntry:
        return RecordAuditEntry(
            id=uuid.uuid4(),
            record_id=entry.record_id,
            record_code=entry.record_code,
            action=entry.action,
            actor_id=entry.actor_id,
            actor_name=entry.actor_name,
            changes=list(entry.changes),
            batch_id=entry.batch_id,
            reason=entry.reason,
            context=entry.context,
        )
