"""
Read side of the content record audit trail.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache

from sqlalchemy.orm import Session

from app.repositories.record_audit_repository import RecordAuditRepository
from db.models.record_audit import RecordAuditEntry


@dataclass(frozen=True)
class ActorActivity:
    actor_id: str
    actor_name: str
    count: int


@dataclass(frozen=True)
class AuditSummary:
    total_actions: int
    by_action: dict[str, int]
    by_actor: list[ActorActivity]
    recent_activity: list[RecordAuditEntry]


class RecordAuditService:
    def __init__(self, *, recent_limit: int = 20, top_actor_limit: int = 10) -> None:
        self._recent_limit = recent_limit
        self._top_actor_limit = top_actor_limit

    def record_history(self, db: Session, *, record_id: uuid.UUID, limit: int = 50) -> list[RecordAuditEntry]:
        return RecordAuditRepository(db).list_for_record(record_id, limit=limit)

    def actor_activity(self, db: Session, *, actor_id: str, limit: int = 100) -> list[RecordAuditEntry]:
        return RecordAuditRepository(db).list_for_actor(actor_id, limit=limit)

    def batch_activity(self, db: Session, *, batch_id: uuid.UUID) -> list[RecordAuditEntry]:
        return RecordAuditRepository(db).list_for_batch(batch_id)

    def search(
        self,
        db: Session,
        *,
        actor_id: str | None = None,
        action: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 100,
    ) -> list[RecordAuditEntry]:
        return RecordAuditRepository(db).search(
            actor_id=actor_id,
            action=action,
            start=start,
            end=end,
            limit=limit,
        )

    def summary(
        self,
        db: Session,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> AuditSummary:
        """
        Counts by action and by most active actor, plus the latest entries,
        for the given date range.
        """

        repository = RecordAuditRepository(db)
        by_action = repository.count_by_action(start=start, end=end)
        by_actor = [
            ActorActivity(actor_id=actor_id, actor_name=actor_name, count=count)
            for actor_id, actor_name, count in repository.count_by_actor(
                start=start,
                end=end,
                limit=self._top_actor_limit,
            )
        ]
        return AuditSummary(
            total_actions=sum(by_action.values()),
            by_action=by_action,
            by_actor=by_actor,
            recent_activity=repository.search(start=start, end=end, limit=self._recent_limit),
        )


@lru_cache(maxsize=1)
def get_record_audit_service() -> RecordAuditService:
    return RecordAuditService()
