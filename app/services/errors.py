"""
app/services/errors.py

Service-level errors raised by the content import pipeline.
"""

from __future__ import annotations

import uuid
from typing import Any


class ContentImportError(Exception):
    """
    Base error for import operations that routers translate to HTTP responses.
    """

    code = "IMPORT_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message}


class ImportBatchNotFoundError(ContentImportError):
    code = "BATCH_NOT_FOUND"

    def __init__(self, batch_id: uuid.UUID) -> None:
        super().__init__(f"Import batch not found: {batch_id}")
        self.batch_id = batch_id


class ImportStateError(ContentImportError):
    """
    Raised when an operation is not allowed from the batch's current status.
    """

    def __init__(self, message: str, *, code: str = "INVALID_STATE", status: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.status = status


class ImportPayloadError(ContentImportError):
    """
    Raised when the submitted batch cannot be imported at all (wrong file kind,
    empty, too large, unparsable upload).
    """

    def __init__(self, message: str, *, code: str = "INVALID_PAYLOAD") -> None:
        super().__init__(message)
        self.code = code
