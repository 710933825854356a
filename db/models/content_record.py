"""
db/models/content_record.py

Question-bank content records created by bulk imports.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Index, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONDocument, TimestampMixin


class ContentLifecycleState:
    DRAFT = "draft"
    REVIEW = "review"
    ACTIVE = "active"
    PUBLISHED = "published"
    ARCHIVED = "archived"


ALL_LIFECYCLE_STATES = (
    ContentLifecycleState.DRAFT,
    ContentLifecycleState.REVIEW,
    ContentLifecycleState.ACTIVE,
    ContentLifecycleState.PUBLISHED,
    ContentLifecycleState.ARCHIVED,
)


class ContentRecord(Base, TimestampMixin):
    __tablename__ = "content_records"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    identity_code: Mapped[str] = mapped_column(String(64), nullable=False)
    module_id: Mapped[int] = mapped_column(Integer, nullable=False)
    micro_skill_id: Mapped[int] = mapped_column(Integer, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSONDocument,
        nullable=False,
        comment="Question text, type, options, answer, solution steps, hints",
    )
    attributes: Mapped[dict[str, Any]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=dict,
        comment="Difficulty, timing, points, tags and other metadata",
    )
    lifecycle_state: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ContentLifecycleState.DRAFT,
    )
    created_by: Mapped[str | None] = mapped_column(String(120), nullable=True)

    __table_args__ = (
        UniqueConstraint("identity_code", name="uq_content_records_identity_code"),
        Index("ix_content_records_classification", "module_id", "micro_skill_id"),
        Index("ix_content_records_lifecycle_state", "lifecycle_state"),
    )
