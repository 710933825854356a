"""
Repository-layer exceptions for the content record store.
"""

from __future__ import annotations


class RecordStoreError(Exception):
    """Base exception for content record store failures."""


class StoreUnavailableError(RecordStoreError):
    """
    Raised when the store cannot be reached at all (connection lost or
    invalidated). Unlike a rejected write, this aborts the whole batch.
    """


class DuplicateIdentityCodeError(RecordStoreError):
    """Raised when a record's identity code is already taken."""

    def __init__(self, identity_code: str) -> None:
        super().__init__(f"Identity code {identity_code!r} already exists.")
        self.identity_code = identity_code
