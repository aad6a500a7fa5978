"""Exception hierarchy for the storage layers."""

from __future__ import annotations


class DungymError(Exception):
    """Base exception for all dungym errors."""


class StorageUnavailableError(DungymError):
    """The local database could not be read or written."""


class RemoteStoreError(DungymError):
    """A request to the remote session table failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteAuthError(RemoteStoreError):
    """The remote rejected the credentials (HTTP 401/403)."""
