"""
app/domain package marker.
"""

from app.domain.batch_ledger import BatchLedger, InvalidTransitionError
from app.domain.content_import import (
    ContentRecordInput,
    ImportProgress,
    ImportStartResult,
    OperatorContext,
    RollbackResult,
    RowIssues,
    RowMessage,
    SourceDescriptor,
    ValidationResult,
    ValidationSummary,
)

__all__ = [
    "BatchLedger",
    "ContentRecordInput",
    "ImportProgress",
    "ImportStartResult",
    "InvalidTransitionError",
    "OperatorContext",
    "RollbackResult",
    "RowIssues",
    "RowMessage",
    "SourceDescriptor",
    "ValidationResult",
    "ValidationSummary",
]
