"""
Operations Facade - Application service layer.

Provides a clean interface between the CLI and the client core, centralizing
command orchestration and configuration policy while keeping CLI commands
thin and testable.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from ..client import GlacierClient
from ..models import JobDescription, JobOutput, MultipartUploadDescription, PartListEntry, VaultDescription
from ..planner import ByteRange
from ..treehash import combine_ranges, tree_hash_stream
from ..uploader import resume_stream, upload_stream


@dataclass(frozen=True)
class TreeHashResult:
    path: str
    size: int
    tree_hash: str
    sha256: str


@dataclass(frozen=True)
class UploadResult:
    archive_id: str
    upload_id: str
    size: int
    tree_hash: str
    part_size: int
    parts: int


@dataclass(frozen=True)
class OpsConfig:
    """
    Configuration for Operations facade.

    Centralizes CLI policy so commands don't carry scattered options.
    """
    verbose: bool = False                   # Show detailed output
    max_concurrency: Optional[int] = None   # Override settings.max_concurrency
    page_size: Optional[int] = None         # Override settings.page_size
    abort_on_failure: bool = True           # Abort new uploads whose parts fail


class Operations:
    """
    Application service facade for CLI operations.

    One method per CLI verb. Exceptions bubble up unchanged for central
    mapping to exit codes. Local-only verbs (tree_hash) need no client.
    """

    def __init__(self, config: OpsConfig, client: Optional[GlacierClient] = None):
        self.cfg = config
        self.client = client

    @property
    def _concurrency(self) -> int:
        return self.cfg.max_concurrency or self.client.settings.max_concurrency

    def tree_hash(self, path: str) -> TreeHashResult:
        """Compute tree hash and linear SHA-256 of a local file."""
        with open(path, "rb") as f:
            digest, size = tree_hash_stream(f)
        sha = _file_sha256(path)
        return TreeHashResult(path=path, size=size, tree_hash=digest.hex(), sha256=sha)

    def upload(
        self,
        vault_name: str,
        path: str,
        *,
        part_size: Optional[int] = None,
        description: Optional[str] = None,
    ) -> UploadResult:
        """Upload a local file as a multipart archive."""
        size = Path(path).stat().st_size
        coordinator = self.client.multipart_upload()
        with open(path, "rb") as f:
            archive_id = upload_stream(
                coordinator,
                f,
                vault_name,
                total_size=size,
                part_size=part_size,
                description=description if description is not None else Path(path).name,
                max_concurrency=self._concurrency,
                abort_on_failure=self.cfg.abort_on_failure,
            )
        return _upload_result(coordinator, archive_id)

    def resume(self, vault_name: str, upload_id: str, path: str) -> UploadResult:
        """Finish an interrupted upload of a local file."""
        size = Path(path).stat().st_size
        coordinator = self.client.multipart_upload()
        with open(path, "rb") as f:
            archive_id = resume_stream(
                coordinator,
                f,
                vault_name,
                upload_id,
                total_size=size,
                max_concurrency=self._concurrency,
            )
        return _upload_result(coordinator, archive_id)

    def abort(self, vault_name: str, upload_id: str) -> None:
        self.client.call(
            lambda: self.client.abort_multipart_upload(vault_name, upload_id),
            "AbortMultipartUpload",
        )

    def vaults(self) -> Iterable[VaultDescription]:
        return self.client.vaults(page_size=self.cfg.page_size)

    def uploads(self, vault_name: str) -> Iterable[MultipartUploadDescription]:
        return self.client.multipart_uploads(vault_name, page_size=self.cfg.page_size)

    def parts(self, vault_name: str, upload_id: str) -> Iterable[PartListEntry]:
        return self.client.parts(vault_name, upload_id, page_size=self.cfg.page_size)

    def jobs(self, vault_name: str, *, completed: Optional[bool] = None) -> Iterable[JobDescription]:
        return self.client.jobs(vault_name, page_size=self.cfg.page_size, completed=completed)

    def job_output(
        self, vault_name: str, job_id: str, dest: str, byte_range: Optional[ByteRange] = None
    ) -> JobOutput:
        """Download (verified) job output to ``dest``."""
        output = self.client.call(
            lambda: self.client.get_job_output(vault_name, job_id, byte_range),
            "GetJobOutput",
        )
        Path(dest).write_bytes(output.body)
        return output


def _upload_result(coordinator, archive_id: str) -> UploadResult:
    session = coordinator.session
    records = session.acknowledged()
    return UploadResult(
        archive_id=archive_id,
        upload_id=session.upload_id,
        size=session.total_size or 0,
        tree_hash=_combined_hex(records),
        part_size=session.part_size,
        parts=len(records),
    )


def _combined_hex(records) -> str:
    return combine_ranges([(r.byte_range, r.tree_hash) for r in records]).hex()


def _file_sha256(path: str) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()
