"""
Transport error classes.

Errors raised by the transport collaborator. HTTP status codes and httpx
exceptions are mapped onto this small hierarchy so the retry classifier can
reason about them without knowing the underlying client.
"""
from __future__ import annotations

from typing import Optional


class TransportError(Exception):
    """Base class for all transport errors."""
    pass


class TransportConnectionError(TransportError):
    """
    Request never produced a response.

    Raised when:
    - connection could not be established
    - connect/read/write timed out
    """
    pass


class ServiceError(TransportError):
    """
    Service answered with a non-success status.

    ``code`` and ``error_type`` come from the JSON error body
    (``{"code": ..., "message": ..., "type": "Client" | "Server"}``) when present.
    """

    def __init__(
        self,
        status: int,
        code: Optional[str] = None,
        message: str = "",
        error_type: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        detail = f"{code}: {message}" if code else message or "no error body"
        prefix = f"{operation} failed" if operation else "Request failed"
        super().__init__(f"{prefix} with HTTP {status} ({detail})")
        self.status = status
        self.code = code
        self.message = message
        self.error_type = error_type
        self.operation = operation

    @property
    def is_not_found(self) -> bool:
        return self.status == 404 or self.code == "ResourceNotFoundException"


__all__ = ["TransportError", "TransportConnectionError", "ServiceError"]
