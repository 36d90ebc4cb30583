"""
HTTP transport for the archive service.

Sends operations from the operation table over httpx. Requests arrive
already shaped by the core (headers, body, hashes); this layer expands URI
templates, attaches the API version, and maps failures onto the transport
error taxonomy. Request signing is delegated to an ``httpx.Auth`` supplied
by the caller.
"""
from __future__ import annotations

import json
import logging
from typing import Mapping, Optional

import httpx

from ..settings import Settings
from .base import Body, Transport, TransportResponse
from .glacier_api import API_VERSION, OPERATIONS, RANGE_HEADER, VERSION_HEADER, expand_path
from .transport_errors import ServiceError, TransportConnectionError

__all__ = ["HttpTransport"]

logger = logging.getLogger(__name__)

USER_AGENT = "glacier-archive/0.1.0"


class HttpTransport(Transport):
    """
    httpx-backed transport.

    One ``httpx.Client`` is shared by all calls; httpx clients are safe to use
    from the worker threads of the streaming uploader.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        auth: Optional[httpx.Auth] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        """
        Initialize the HTTP transport.

        Args:
            settings: Settings providing endpoint and timeout
            auth: Request signer (signing is not implemented here)
            client: Pre-built httpx client (tests pass one with a MockTransport)
        """
        self.settings = settings
        self.base_url = settings.resolved_endpoint
        self.client = client or httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(settings.http_timeout_s, connect=10.0),
            auth=auth,
            headers={"User-Agent": USER_AGENT},
        )
        logger.debug(f"HTTP transport for {self.base_url}, timeout {settings.http_timeout_s}s")

    def send(
        self,
        operation_name: str,
        path_params: Mapping[str, str],
        query_params: Mapping[str, str],
        headers: Mapping[str, str],
        body: Body,
    ) -> TransportResponse:
        spec = OPERATIONS[operation_name]
        path = expand_path(operation_name, path_params)

        request_headers = {VERSION_HEADER: API_VERSION}
        request_headers.update(headers)

        try:
            response = self.client.request(
                spec.method,
                path,
                params={k: v for k, v in query_params.items() if v is not None},
                headers=request_headers,
                content=bytes(body) if body is not None else None,
            )
        except httpx.TimeoutException as e:
            raise TransportConnectionError(f"{operation_name} timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransportConnectionError(f"Network error during {operation_name}: {e}") from e

        if not response.is_success:
            raise self._service_error(operation_name, response)
        if not _expected_status(spec.success_status, response.status_code, request_headers):
            logger.warning(
                f"{operation_name} returned HTTP {response.status_code}, expected {spec.success_status}"
            )

        logger.debug(f"{operation_name} {spec.method} {path} -> {response.status_code}")
        return TransportResponse(
            status=response.status_code,
            headers={k.lower(): v for k, v in response.headers.items()},
            body=response.content,
        )

    def _service_error(self, operation_name: str, response: httpx.Response) -> ServiceError:
        """Build a ServiceError from the JSON error body, if any."""
        code = None
        message = response.reason_phrase or ""
        error_type = None
        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            payload = None
        if isinstance(payload, dict):
            code = payload.get("code")
            message = payload.get("message") or message
            error_type = payload.get("type")
        return ServiceError(
            response.status_code,
            code=code,
            message=message,
            error_type=error_type,
            operation=operation_name,
        )

    def close(self):
        """Close HTTP client."""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def _expected_status(success_status: int, status: int, request_headers: Mapping[str, str]) -> bool:
    """Ranged downloads answer 206 instead of the operation's usual status."""
    if status == success_status:
        return True
    return status == 206 and any(k.lower() == RANGE_HEADER for k in request_headers)
