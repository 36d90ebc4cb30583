"""
CLI smoke tests against the fake service.

Tests basic CLI functionality and command wiring without a real endpoint.
The CLI context is patched to hand out a client bound to the in-memory fake.
"""
from __future__ import annotations

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from glacier_archive.cli import app
from glacier_archive.cli_context import CLIContext
from glacier_archive.planner import ONE_MIB
from glacier_archive.treehash import tree_hash
from tests.fakes.fake_glacier import DEFAULT_VAULT as VAULT
from tests.helpers.payloads import payload_of


class TestCLISmokeTests:
    """Smoke tests for CLI commands with the fake service."""

    @pytest.fixture(autouse=True)
    def _context(self, settings, client):
        self.runner = CliRunner()
        with patch.object(CLIContext, "from_env", return_value=CLIContext(settings, _client=client)):
            yield

    def test_help_lists_commands(self):
        result = self.runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("tree-hash", "upload", "resume", "abort", "vaults", "jobs", "job-output"):
            assert command in result.output

    def test_tree_hash(self, tmp_path):
        data = payload_of(2 * ONE_MIB + 17)
        path = tmp_path / "payload.bin"
        path.write_bytes(data)

        result = self.runner.invoke(app, ["tree-hash", str(path)])

        assert result.exit_code == 0
        assert result.output.splitlines()[0] == tree_hash(data).hex()

    def test_tree_hash_verbose(self, tmp_path):
        path = tmp_path / "payload.bin"
        path.write_bytes(b"hello")

        result = self.runner.invoke(app, ["tree-hash", str(path), "--verbose"])

        assert result.exit_code == 0
        assert "SHA-256:" in result.output
        assert "5 bytes" in result.output

    def test_upload(self, tmp_path, service):
        data = payload_of(3 * ONE_MIB + 1)
        path = tmp_path / "photos.tar"
        path.write_bytes(data)

        result = self.runner.invoke(app, ["upload", VAULT, str(path), "--concurrency", "2", "--verbose"])

        assert result.exit_code == 0, result.output
        assert "Archive: archive-" in result.output
        assert tree_hash(data).hex() in result.output
        assert "Upload id: upload-0001" in result.output
        archive_id = result.output.split("Archive: ")[1].split()[0]
        assert service.archive(VAULT, archive_id) == data

        initiate_headers = [c for c in service.calls if c[0] == "InitiateMultipartUpload"][0][3]
        assert initiate_headers["x-amz-archive-description"] == "photos.tar"

    def test_upload_missing_file(self, tmp_path):
        result = self.runner.invoke(app, ["upload", VAULT, str(tmp_path / "nope.bin")])
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_upload_bad_part_size(self, tmp_path, service):
        path = tmp_path / "payload.bin"
        path.write_bytes(b"x" * 10)

        result = self.runner.invoke(app, ["upload", VAULT, str(path), "--part-size", "3000000"])

        assert result.exit_code == 2
        assert service.count("InitiateMultipartUpload") == 0

    def test_upload_to_unknown_vault(self, tmp_path):
        path = tmp_path / "payload.bin"
        path.write_bytes(b"x" * 10)

        result = self.runner.invoke(app, ["upload", "missing-vault", str(path)])

        assert result.exit_code == 3
        assert "ResourceNotFoundException" in result.output

    def test_vaults(self, service):
        service.add_vault("archive-2019")
        result = self.runner.invoke(app, ["vaults", "--page-size", "1"])
        assert result.exit_code == 0
        assert VAULT in result.output
        assert "archive-2019" in result.output
        assert service.count("ListVaults") == 2

    def test_uploads_and_parts(self, client):
        upload_id = client.initiate_multipart_upload(VAULT, ONE_MIB, "half done")

        result = self.runner.invoke(app, ["uploads", VAULT])
        assert result.exit_code == 0
        assert upload_id in result.output

        result = self.runner.invoke(app, ["parts", VAULT, upload_id])
        assert result.exit_code == 0
        assert "No parts uploaded" in result.output

    def test_abort(self, client, service):
        upload_id = client.initiate_multipart_upload(VAULT, ONE_MIB)
        result = self.runner.invoke(app, ["abort", VAULT, upload_id])
        assert result.exit_code == 0
        assert f"Aborted {upload_id}" in result.output
        assert service.upload_ids() == []

    def test_abort_unknown_upload(self):
        result = self.runner.invoke(app, ["abort", VAULT, "upload-9999"])
        assert result.exit_code == 3
        assert "Error:" in result.output

    def test_jobs(self, service):
        done = service.add_job(VAULT, b"inventory")
        pending = service.add_job(VAULT, b"", completed=False)

        result = self.runner.invoke(app, ["jobs", VAULT, "--completed"])

        assert result.exit_code == 0
        assert done in result.output
        assert pending not in result.output

    def test_job_output(self, tmp_path, service):
        data = payload_of(2 * ONE_MIB)
        job_id = service.add_job(VAULT, data)
        dest = tmp_path / "out.bin"

        result = self.runner.invoke(app, ["job-output", VAULT, job_id, str(dest), "--range", f"0-{ONE_MIB - 1}"])

        assert result.exit_code == 0, result.output
        assert f"Wrote {ONE_MIB} bytes" in result.output
        assert "(verified)" in result.output
        assert dest.read_bytes() == data[:ONE_MIB]

    def test_job_output_bad_range(self, tmp_path, service):
        job_id = service.add_job(VAULT, b"data")
        result = self.runner.invoke(app, ["job-output", VAULT, job_id, str(tmp_path / "o"), "--range", "ten-20"])
        assert result.exit_code == 2

    def test_log_level_option(self, tmp_path):
        path = tmp_path / "payload.bin"
        path.write_bytes(b"abc")
        result = self.runner.invoke(app, ["--log-level", "DEBUG", "tree-hash", str(path)])
        assert result.exit_code == 0
