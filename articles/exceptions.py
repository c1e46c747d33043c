"""
Error taxonomy for the duplicate detection and merge engine.

ValidationError and NotFoundError are surfaced verbatim to the caller,
StorageError is logged and never blocks metadata removal, and
TransactionError means nothing was applied.
"""

from typing import Iterable, Optional


class DeskError(Exception):
    """Base class for all engine errors."""
    pass


class ValidationError(DeskError):
    """Raised for a malformed merge request."""
    pass


class NotFoundError(DeskError):
    """Raised when one or more referenced rows do not exist."""

    def __init__(self, ids: Iterable, kind: str = "article"):
        self.ids = [str(i) for i in ids]
        self.kind = kind
        noun = kind if len(self.ids) == 1 else f"{kind}s"
        super().__init__(f"{noun.capitalize()} not found: {', '.join(self.ids)}")


class StorageError(DeskError):
    """Raised when the blob store fails to operate on a file."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class TransactionError(DeskError):
    """Raised when the store rejects or aborts a transaction. No changes were applied."""
    pass
