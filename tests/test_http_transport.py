"""
Test the httpx transport using httpx.MockTransport.

No network access: every request is answered by a handler that records it.
"""
from __future__ import annotations

import json
import logging

import httpx
import pytest

from glacier_archive.client import GlacierClient
from glacier_archive.settings import Settings
from glacier_archive.storage.glacier_api import API_VERSION, VERSION_HEADER, expand_path
from glacier_archive.storage.glacier_http import HttpTransport
from glacier_archive.storage.transport_errors import ServiceError, TransportConnectionError

BASE_URL = "http://glacier.test"


def _transport(handler, settings=None) -> HttpTransport:
    settings = settings or Settings(endpoint_url=BASE_URL)
    client = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return HttpTransport(settings, client=client)


class TestRequests:
    """Requests are built from the operation table."""

    def setup_method(self):
        self.requests = []

    def _ok(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(
            204,
            headers={"X-Amz-SHA256-Tree-Hash": "abc123", "Location": "/-/vaults/photos"},
        )

    def test_method_path_and_version_header(self):
        transport = _transport(self._ok)
        transport.send("DeleteVault", {"account_id": "-", "vault_name": "photos"}, {}, {}, None)

        request = self.requests[0]
        assert request.method == "DELETE"
        assert request.url.path == "/-/vaults/photos"
        assert request.headers[VERSION_HEADER] == API_VERSION

    def test_query_params_and_none_dropped(self):
        transport = _transport(self._ok)
        transport.send(
            "ListVaults", {"account_id": "-"}, {"marker": "m1", "limit": "10", "skip": None}, {}, None
        )
        params = self.requests[0].url.params
        assert params["marker"] == "m1"
        assert params["limit"] == "10"
        assert "skip" not in params

    def test_body_and_headers_forwarded(self):
        transport = _transport(self._ok)
        transport.send(
            "UploadMultipartPart",
            {"account_id": "-", "vault_name": "photos", "upload_id": "u1"},
            {},
            {"content-range": "bytes 0-3/*"},
            memoryview(b"data"),
        )
        request = self.requests[0]
        assert request.method == "PUT"
        assert request.url.path == "/-/vaults/photos/multipart-uploads/u1"
        assert request.headers["content-range"] == "bytes 0-3/*"
        assert request.content == b"data"

    def test_response_headers_lowercased(self):
        transport = _transport(self._ok)
        response = transport.send("DeleteVault", {"account_id": "-", "vault_name": "v"}, {}, {}, None)
        assert response.status == 204
        assert response.headers["x-amz-sha256-tree-hash"] == "abc123"
        assert response.header("Location") == "/-/vaults/photos"


class TestErrorMapping:
    """Failures map onto the transport error taxonomy."""

    def test_json_error_body(self):
        def handler(request):
            return httpx.Response(
                404,
                json={"code": "ResourceNotFoundException", "message": "Vault not found", "type": "Client"},
            )

        transport = _transport(handler)
        with pytest.raises(ServiceError) as exc_info:
            transport.send("DescribeVault", {"account_id": "-", "vault_name": "gone"}, {}, {}, None)

        error = exc_info.value
        assert error.status == 404
        assert error.code == "ResourceNotFoundException"
        assert error.message == "Vault not found"
        assert error.error_type == "Client"
        assert error.operation == "DescribeVault"
        assert error.is_not_found

    def test_non_json_server_error(self):
        def handler(request):
            return httpx.Response(503, content=b"<html>busy</html>")

        transport = _transport(handler)
        with pytest.raises(ServiceError) as exc_info:
            transport.send("ListVaults", {"account_id": "-"}, {}, {}, None)
        assert exc_info.value.status == 503
        assert exc_info.value.code is None

    @pytest.mark.parametrize("exc", [
        httpx.ConnectError("refused"),
        httpx.ReadTimeout("slow"),
    ])
    def test_network_failures(self, exc):
        def handler(request):
            raise exc

        transport = _transport(handler)
        with pytest.raises(TransportConnectionError) as exc_info:
            transport.send("ListVaults", {"account_id": "-"}, {}, {}, None)
        assert exc_info.value.__cause__ is exc


class TestSuccessStatus:
    """2xx answers are checked against the operation's documented status."""

    def _send(self, status, operation, path_params, headers=None):
        transport = _transport(lambda request: httpx.Response(status))
        return transport.send(operation, path_params, {}, headers or {}, None)

    def test_expected_status_is_quiet(self, caplog):
        with caplog.at_level(logging.WARNING, logger="glacier_archive.storage.glacier_http"):
            self._send(204, "DeleteVault", {"account_id": "-", "vault_name": "v"})
        assert caplog.records == []

    def test_unexpected_success_status_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="glacier_archive.storage.glacier_http"):
            response = self._send(200, "DeleteVault", {"account_id": "-", "vault_name": "v"})
        assert response.status == 200
        assert "DeleteVault returned HTTP 200, expected 204" in caplog.text

    def test_ranged_download_may_answer_206(self, caplog):
        path_params = {"account_id": "-", "vault_name": "v", "job_id": "j1"}
        with caplog.at_level(logging.WARNING, logger="glacier_archive.storage.glacier_http"):
            self._send(206, "GetJobOutput", path_params, {"range": "bytes=0-9"})
        assert caplog.records == []

        with caplog.at_level(logging.WARNING, logger="glacier_archive.storage.glacier_http"):
            self._send(206, "GetJobOutput", path_params)
        assert "expected 200" in caplog.text


class TestExpandPath:

    def test_path_params_are_quoted(self):
        path = expand_path("DescribeVault", {"account_id": "-", "vault_name": "a b/c"})
        assert path == "/-/vaults/a%20b%2Fc"

    def test_missing_param(self):
        with pytest.raises(ValueError, match="vault_name"):
            expand_path("DescribeVault", {"account_id": "-"})


class TestClientOverHttp:
    """The client drives a real transport end to end."""

    def test_list_vaults_pages(self):
        seen = []

        def handler(request):
            seen.append(dict(request.url.params))
            if "marker" not in request.url.params:
                body = {
                    "VaultList": [{"VaultARN": "arn:vault/a", "VaultName": "a", "NumberOfArchives": 2}],
                    "Marker": "arn:vault/b",
                }
            else:
                body = {
                    "VaultList": [{"VaultARN": "arn:vault/b", "VaultName": "b", "SizeInBytes": 10}],
                    "Marker": None,
                }
            return httpx.Response(200, content=json.dumps(body).encode())

        settings = Settings(endpoint_url=BASE_URL)
        client = GlacierClient(_transport(handler, settings), settings)
        vaults = list(client.vaults(page_size=1))

        assert [v.vault_name for v in vaults] == ["a", "b"]
        assert vaults[0].number_of_archives == 2
        assert vaults[1].size_in_bytes == 10
        assert seen == [{"limit": "1"}, {"marker": "arn:vault/b", "limit": "1"}]
