"""Application-level exception types.

Convention:
- ``DocumentStoreError`` subclasses: raised by the sync engine and its
  collaborators. Each carries the operation name plus the store and file ids
  it concerns, so callers can log and decide whether to retry. Nothing is
  retried internally.
- ``InternalServerError``: for errors whose details must never reach clients.
  The global handler logs the full message at ERROR and returns a generic
  "Internal server error" (500) to the client.
- ``ValueError``: for *business logic* validation errors that are safe to
  forward to clients (unsafe file names, unknown loader names, etc.).  The
  global ``ValueError`` handler returns ``str(exc)`` as the 422 detail.
"""

from __future__ import annotations


class DocumentStoreError(Exception):
    """Base class for document store failures."""

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        store_id: str | None = None,
        file_id: str | None = None,
    ) -> None:
        self.message = message
        self.operation = operation
        self.store_id = store_id
        self.file_id = file_id
        super().__init__(f"{operation}: {message}")

    def context(self) -> dict[str, str | None]:
        """Return the identifying context of the failure."""
        return {
            "operation": self.operation,
            "store_id": self.store_id,
            "file_id": self.file_id,
        }


class NotFoundError(DocumentStoreError):
    """Raised when a store id or file id does not resolve."""


class StorageUnavailableError(DocumentStoreError):
    """Raised when a store's storage folder is missing."""


class ConflictError(DocumentStoreError):
    """Raised when the current store state makes an operation unprocessable.

    Examples: a duplicate store name, or a file that vanished from the
    manifest while it was being chunked.
    """


class UpstreamProcessingError(DocumentStoreError):
    """Raised when a loader or splitter invocation fails."""


class InternalServerError(Exception):
    """Raised for internal errors whose details must not be exposed to clients.

    The global handler in ``docstore/api/errors.py`` catches this, logs the
    full message server-side, and returns HTTP 500 with a generic
    ``"Internal server error"`` detail.
    """
