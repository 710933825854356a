"""
app/repositories/content_record_repository.py

Record store for question-bank content: create, delete-by-id and
count-by-classification, the three capabilities the import pipeline needs.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager

from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError
from sqlalchemy.orm import Session

from app.domain.content_import import ContentRecordInput
from app.repositories.errors import DuplicateIdentityCodeError, StoreUnavailableError
from db.models.content_record import ContentLifecycleState, ContentRecord


def format_identity_code(module_id: int, micro_skill_id: int, number: int) -> str:
    return f"{module_id}_{micro_skill_id}_{number}"


@contextmanager
def _translate_disconnects() -> Iterator[None]:
    try:
        yield
    except InterfaceError as exc:
        raise StoreUnavailableError(f"Record store unreachable: {exc.orig}") from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            raise StoreUnavailableError(f"Record store connection lost: {exc.orig}") from exc
        raise


class ContentRecordRepository:
    """
    Persistence for content records.

    statement_timeout_ms bounds every write on PostgreSQL so an unresponsive
    server surfaces as a failed record instead of stalling a batch.
    """

    def __init__(self, session: Session, *, statement_timeout_ms: int | None = None) -> None:
        self._session = session
        self._statement_timeout_ms = statement_timeout_ms

    def get(self, record_id: uuid.UUID) -> ContentRecord | None:
        return self._session.get(ContentRecord, record_id)

    def code_exists(self, identity_code: str) -> bool:
        stmt = select(ContentRecord.id).where(ContentRecord.identity_code == identity_code).limit(1)
        with _translate_disconnects():
            return self._session.execute(stmt).first() is not None

    def count_by_classification(self, module_id: int, micro_skill_id: int) -> int:
        stmt = select(func.count(ContentRecord.id)).where(
            ContentRecord.module_id == module_id,
            ContentRecord.micro_skill_id == micro_skill_id,
        )
        with _translate_disconnects():
            return int(self._session.execute(stmt).scalar_one())

    def next_generated_code(self, module_id: int, micro_skill_id: int) -> str:
        """
        Return "{module}_{skill}_{N}" with N = 1 + records in the classification.

        Deletions can leave the count behind the highest number in use, so N is
        advanced until the candidate is free.
        """

        number = self.count_by_classification(module_id, micro_skill_id) + 1
        candidate = format_identity_code(module_id, micro_skill_id, number)
        while self.code_exists(candidate):
            number += 1
            candidate = format_identity_code(module_id, micro_skill_id, number)
        return candidate

    def create(
        self,
        *,
        record: ContentRecordInput,
        identity_code: str,
        created_by: str | None = None,
        default_lifecycle_state: str = ContentLifecycleState.DRAFT,
    ) -> ContentRecord:
        model = ContentRecord(
            id=uuid.uuid4(),
            identity_code=identity_code,
            module_id=record.module_id,
            micro_skill_id=record.micro_skill_id,
            payload=dict(record.payload),
            attributes=dict(record.attributes),
            lifecycle_state=record.lifecycle_state or default_lifecycle_state,
            created_by=created_by,
        )
        with _translate_disconnects():
            self._apply_statement_timeout()
            self._session.add(model)
            try:
                self._session.flush()
            except IntegrityError as exc:
                if "identity_code" in str(exc.orig):
                    raise DuplicateIdentityCodeError(identity_code) from exc
                raise
        return model

    def delete_by_ids(self, record_ids: Sequence[uuid.UUID | str]) -> list[tuple[uuid.UUID, str]]:
        """
        Delete all listed records in one statement.

        Returns (id, identity_code) for the rows actually removed; ids that no
        longer exist are simply absent from the result.
        """

        ids = [item if isinstance(item, uuid.UUID) else uuid.UUID(str(item)) for item in record_ids]
        if not ids:
            return []

        stmt = (
            delete(ContentRecord)
            .where(ContentRecord.id.in_(ids))
            .returning(ContentRecord.id, ContentRecord.identity_code)
            .execution_options(synchronize_session=False)
        )
        with _translate_disconnects():
            rows = self._session.execute(stmt).all()
        return [(row[0], row[1]) for row in rows]

    def _apply_statement_timeout(self) -> None:
        if not self._statement_timeout_ms:
            return
        if self._session.get_bind().dialect.name != "postgresql":
            return
        # SET does not accept bind parameters; the value is a validated int.
        timeout_ms = int(self._statement_timeout_ms)
        self._session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))
