"""Normalized error hierarchy for szczk_store."""

from __future__ import annotations

from typing import Optional


class SzczkStoreError(Exception):
    """Base class for all szczk_store errors.

    :param message: Human-readable error description.
    :param path: The host path involved in the error, if any.
    :param item_id: The remote identifier involved in the error, if any.
    :param operation: The operation that failed (e.g. ``'rename'``), if known.
    """

    def __init__(
        self,
        message: str = "",
        *,
        path: Optional[str] = None,
        item_id: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> None:
        self.path = path
        self.item_id = item_id
        self.operation = operation
        super().__init__(message)

    def _context(self) -> list[str]:
        parts = []
        if self.operation is not None:
            parts.append(f"operation={self.operation!r}")
        if self.path is not None:
            parts.append(f"path={self.path!r}")
        if self.item_id is not None:
            parts.append(f"item_id={self.item_id!r}")
        return parts

    def __str__(self) -> str:
        return " | ".join([super().__str__(), *self._context()])

    def __repr__(self) -> str:
        cls = type(self).__name__
        args = [repr(self.args[0] if self.args else ""), *self._context()]
        return f"{cls}({', '.join(args)})"


class ResponseError(SzczkStoreError):
    """An error tied to an HTTP exchange with the remote service.

    :param status: HTTP status code, or ``None`` if no usable response exists.
    :param body: Response body text (possibly truncated).
    """

    def __init__(
        self,
        message: str = "",
        *,
        status: Optional[int] = None,
        body: str = "",
        path: Optional[str] = None,
        item_id: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> None:
        self.status = status
        self.body = body
        super().__init__(message, path=path, item_id=item_id, operation=operation)

    def _context(self) -> list[str]:
        parts = super()._context()
        if self.status is not None:
            parts.append(f"status={self.status}")
        return parts


class AuthError(ResponseError):
    """Raised when the initial credential exchange fails."""


class RefreshError(ResponseError):
    """Raised when renewing the access token with the refresh token fails."""


class AuthFailure(ResponseError):
    """Raised when a request is still rejected after one refresh-and-retry cycle."""


class RemoteError(ResponseError):
    """Raised for a non-2xx response that is not an authorization failure."""


class InvalidResponse(RemoteError):
    """Raised when a 2xx response body cannot be decoded."""


class TransportError(SzczkStoreError):
    """Raised when no response was received (connection, DNS, timeout...)."""


class NotFound(SzczkStoreError):
    """Raised when a path does not resolve to a remote object."""


class NotAFile(SzczkStoreError):
    """Raised when a file operation targets a folder."""


class NotAFolder(SzczkStoreError):
    """Raised when a folder is required but the path resolves to a file."""


class InvalidPath(SzczkStoreError):
    """Raised for malformed or unsafe paths."""


class NotSupported(SzczkStoreError):
    """Raised when an operation requires a capability the backend lacks.

    :param capability: The name of the unsupported capability.
    """

    def __init__(
        self,
        message: str = "",
        *,
        capability: str = "",
        path: Optional[str] = None,
        item_id: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> None:
        self.capability = capability
        super().__init__(message, path=path, item_id=item_id, operation=operation)

    def _context(self) -> list[str]:
        parts = super()._context()
        if self.capability:
            parts.append(f"capability={self.capability!r}")
        return parts


class InvalidContent(SzczkStoreError):
    """Raised when upload content cannot be read or its size cannot be determined."""


class Cancelled(SzczkStoreError):
    """Raised when an operation observes its cancellation signal."""


class BackendUnavailable(SzczkStoreError):
    """Raised when the backend is used before ``init()`` or after ``close()``."""
