"""
app/domain/content_import.py

Value objects shared by the bulk content import pipeline.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class OperatorContext:
    """
    Who is performing an import operation, plus request context for auditing.
    """

    actor_id: str
    actor_name: str
    ip_address: str | None = None
    user_agent: str | None = None

    def audit_context(self) -> dict[str, str] | None:
        context = {
            key: value
            for key, value in (("ip_address", self.ip_address), ("user_agent", self.user_agent))
            if value
        }
        return context or None


@dataclass(frozen=True)
class SourceDescriptor:
    """
    Descriptive origin of a batch. Never interpreted by the pipeline.
    """

    file_name: str
    file_kind: str


@dataclass(frozen=True)
class RowMessage:
    """
    One `{row, message}` ledger entry. Row 0 is reserved for batch-level notes.
    """

    row: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "message": self.message}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RowMessage:
        return cls(row=int(data.get("row", 0)), message=str(data.get("message", "")))


@dataclass(frozen=True)
class RowIssues:
    """
    All validation errors (or warnings) collected for one input row.
    """

    row: int
    messages: tuple[str, ...]


@dataclass(frozen=True)
class ContentRecordInput:
    """
    A validated content record ready for the chunked processor.

    `row` is the 1-indexed position of the record in the submitted batch and
    is what processing errors are reported against.
    """

    row: int
    module_id: int
    micro_skill_id: int
    payload: dict[str, Any]
    attributes: dict[str, Any] = field(default_factory=dict)
    identity_code: str | None = None
    lifecycle_state: str | None = None


@dataclass(frozen=True)
class ValidationSummary:
    valid: int
    invalid: int
    warnings: int

    def to_dict(self) -> dict[str, int]:
        return {"valid": self.valid, "invalid": self.invalid, "warnings": self.warnings}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ValidationSummary:
        return cls(
            valid=int(data.get("valid", 0)),
            invalid=int(data.get("invalid", 0)),
            warnings=int(data.get("warnings", 0)),
        )


@dataclass(frozen=True)
class ValidationResult:
    """
    Partition of a submitted batch into valid records, invalid rows and warned rows.
    """

    valid: list[ContentRecordInput] = field(default_factory=list)
    invalid: list[RowIssues] = field(default_factory=list)
    warnings: list[RowIssues] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.invalid)

    @property
    def summary(self) -> ValidationSummary:
        return ValidationSummary(
            valid=len(self.valid),
            invalid=len(self.invalid),
            warnings=len(self.warnings),
        )

    def error_messages(self) -> list[RowMessage]:
        return [RowMessage(row=issue.row, message=m) for issue in self.invalid for m in issue.messages]

    def warning_messages(self) -> list[RowMessage]:
        return [RowMessage(row=issue.row, message=m) for issue in self.warnings for m in issue.messages]


@dataclass(frozen=True)
class ImportProgress:
    """
    Pollable progress snapshot of one batch.
    """

    batch_id: uuid.UUID
    status: str
    progress_percentage: int
    processed_rows: int
    total_rows: int
    successful: int
    failed: int
    skipped: int
    errors: list[RowMessage]
    is_complete: bool


@dataclass(frozen=True)
class RollbackResult:
    rolled_back_count: int
    missing_record_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class ImportStartResult:
    """
    Outcome of submitting a batch: either accepted for processing or stopped
    after validation because some rows are invalid.
    """

    batch_id: uuid.UUID
    status: str
    accepted: bool
    total: int
    validation: ValidationResult
