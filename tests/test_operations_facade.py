"""
Test Operations facade wiring and integration.

Validates that the Operations facade applies configuration policies and
drives the client and uploader as expected.
"""
from __future__ import annotations

import hashlib
from unittest.mock import Mock, patch

import pytest

from glacier_archive.errors import PartUploadError
from glacier_archive.operations import Operations, OpsConfig
from glacier_archive.planner import ONE_MIB, ByteRange
from glacier_archive.storage.transport_errors import ServiceError
from glacier_archive.treehash import tree_hash
from tests.fakes.fake_glacier import DEFAULT_VAULT as VAULT
from tests.helpers.payloads import payload_of


class TestOperationsFacade:
    """Test Operations facade orchestration."""

    def test_facade_initialization(self, client):
        config = OpsConfig(verbose=True, page_size=10)
        ops = Operations(config=config, client=client)
        assert ops.cfg is config
        assert ops.client is client

    def test_tree_hash_needs_no_client(self, tmp_path):
        data = payload_of(ONE_MIB + 10)
        path = tmp_path / "data.bin"
        path.write_bytes(data)

        result = Operations(OpsConfig()).tree_hash(str(path))

        assert result.size == len(data)
        assert result.tree_hash == tree_hash(data).hex()
        assert result.sha256 == hashlib.sha256(data).hexdigest()

    def test_upload_reports_combined_hash(self, client, service, tmp_path):
        data = payload_of(2 * ONE_MIB + 3)
        path = tmp_path / "data.bin"
        path.write_bytes(data)

        result = Operations(OpsConfig(), client=client).upload(VAULT, str(path))

        assert service.archive(VAULT, result.archive_id) == data
        assert result.tree_hash == tree_hash(data).hex()
        assert result.size == len(data)
        assert result.parts == 3
        assert result.part_size == ONE_MIB

    def test_concurrency_override_passed_to_uploader(self, client, tmp_path):
        path = tmp_path / "data.bin"
        path.write_bytes(b"abc")
        ops = Operations(OpsConfig(max_concurrency=7, abort_on_failure=False), client=client)

        with patch("glacier_archive.operations.facade.upload_stream") as mock_upload:
            mock_upload.return_value = "archive-x"
            with patch("glacier_archive.operations.facade._upload_result") as mock_result:
                ops.upload(VAULT, str(path), description="custom")

        kwargs = mock_upload.call_args.kwargs
        assert kwargs["max_concurrency"] == 7
        assert kwargs["abort_on_failure"] is False
        assert kwargs["description"] == "custom"
        assert kwargs["total_size"] == 3
        mock_result.assert_called_once()

    def test_concurrency_defaults_to_settings(self, client):
        ops = Operations(OpsConfig(), client=client)
        assert ops._concurrency == client.settings.max_concurrency

    def test_resume_finishes_kept_upload(self, client, service, tmp_path):
        data = payload_of(3 * ONE_MIB)
        path = tmp_path / "data.bin"
        path.write_bytes(data)
        service.fail(
            "UploadMultipartPart", ServiceError(500), times=3,
            match=lambda p, h: h["content-range"].startswith(f"bytes {2 * ONE_MIB}-"),
        )
        ops = Operations(OpsConfig(abort_on_failure=False), client=client)

        with pytest.raises(PartUploadError):
            ops.upload(VAULT, str(path))
        upload_id = service.upload_ids()[0]

        result = ops.resume(VAULT, upload_id, str(path))

        assert result.upload_id == upload_id
        assert service.archive(VAULT, result.archive_id) == data

    def test_abort_goes_through_retrying_call(self, client, service):
        upload_id = client.initiate_multipart_upload(VAULT, ONE_MIB)
        service.fail("AbortMultipartUpload", ServiceError(503))

        Operations(OpsConfig(), client=client).abort(VAULT, upload_id)

        assert service.count("AbortMultipartUpload") == 2
        assert service.upload_ids() == []

    def test_listings_use_config_page_size(self):
        client = Mock()
        ops = Operations(OpsConfig(page_size=25), client=client)

        ops.vaults()
        ops.uploads(VAULT)
        ops.parts(VAULT, "u1")
        ops.jobs(VAULT, completed=True)

        client.vaults.assert_called_once_with(page_size=25)
        client.multipart_uploads.assert_called_once_with(VAULT, page_size=25)
        client.parts.assert_called_once_with(VAULT, "u1", page_size=25)
        client.jobs.assert_called_once_with(VAULT, page_size=25, completed=True)

    def test_job_output_written(self, client, service, tmp_path):
        data = payload_of(ONE_MIB)
        job_id = service.add_job(VAULT, data)
        dest = tmp_path / "restored.bin"

        output = Operations(OpsConfig(), client=client).job_output(VAULT, job_id, str(dest))

        assert output.verified
        assert dest.read_bytes() == data

    def test_job_output_range(self, client, service, tmp_path):
        data = payload_of(2 * ONE_MIB)
        job_id = service.add_job(VAULT, data)
        dest = tmp_path / "part.bin"

        Operations(OpsConfig(), client=client).job_output(VAULT, job_id, str(dest), ByteRange(0, 100))

        assert dest.read_bytes() == data[:100]
