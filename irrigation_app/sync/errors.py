"""Error kinds raised by the synchronization layer."""

from __future__ import annotations

from typing import Iterable, Optional


class SyncError(Exception):
    """Base for every error the mirror, coordinator or subscription manager reports."""

    def __init__(self, message: str, entity: Optional[str] = None):
        super().__init__(message)
        self.entity = entity


class FetchError(SyncError):
    """A full load failed; the mirror keeps its previous snapshot."""


class WriteError(SyncError):
    """A create/update/delete failed or was rejected before reaching the store."""

    def __init__(
        self,
        message: str,
        entity: Optional[str] = None,
        operation: Optional[str] = None,
        missing_fields: Iterable[str] = (),
        unknown_fields: Iterable[str] = (),
    ):
        super().__init__(message, entity)
        self.operation = operation
        self.missing_fields = tuple(missing_fields)
        self.unknown_fields = tuple(unknown_fields)

    @property
    def validation(self) -> bool:
        """True when the payload was rejected locally, without a remote call"""
        return bool(self.missing_fields or self.unknown_fields)


class SubscriptionError(SyncError):
    """The push channel could not be opened; the view falls back to fetch-on-mount."""


class StoreError(Exception):
    """Raised by a remote store implementation when a call fails."""
