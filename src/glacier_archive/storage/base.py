"""
Transport interface for the archive client.

This protocol defines the boundary between the integrity/multipart core and
whatever actually moves bytes over the network, enabling clean dependency
injection and testing with fakes.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol, Union, runtime_checkable

__all__ = ["TransportResponse", "Transport", "Body"]

Body = Union[bytes, bytearray, memoryview, None]


@dataclass(frozen=True)
class TransportResponse:
    """
    Response returned by a transport.

    Invariants:
    - status: the HTTP status of a successful (2xx) response
    - headers: keys are lowercase
    - body: raw response bytes (empty when the service sent none)
    """
    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    def json(self) -> Dict[str, Any]:
        if not self.body:
            return {}
        return json.loads(self.body)


@runtime_checkable
class Transport(Protocol):
    """Protocol for sending one already-authenticated service operation."""

    def send(
        self,
        operation_name: str,
        path_params: Mapping[str, str],
        query_params: Mapping[str, str],
        headers: Mapping[str, str],
        body: Body,
    ) -> TransportResponse:
        """
        Send a service operation.

        Args:
            operation_name: Operation name from the operation table (e.g. "UploadMultipartPart")
            path_params: Values for the operation's URI template
            query_params: Query string parameters (None values are dropped by callers)
            headers: Request headers
            body: Request body bytes, or None

        Returns:
            Response for a successful call

        Raises:
            ServiceError: If the service answers with a non-success status
            TransportConnectionError: If no response was received
        """
        ...
