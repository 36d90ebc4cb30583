"""
Archive service client.

An explicit operation table: one method per service operation, each a single
request through the transport collaborator. Methods do not retry on their
own; the multipart coordinator and paginated collections apply the shared
retry policy, and ``GlacierClient.call`` does the same for one-off calls.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Callable, Dict, Mapping, Optional, Tuple, TypeVar

from .errors import IntegrityMismatchError
from .models import (
    ArchiveCreated,
    JobDescription,
    JobOutput,
    JobParameters,
    MultipartUploadDescription,
    PartListEntry,
    PartListing,
    VaultDescription,
    VaultNotificationConfig,
)
from .multipart import MultipartUploadCoordinator
from .pagination import Page, PaginatedCollection
from .planner import ONE_MIB, ByteRange
from .retry import RetryClassifier, RetryPolicy, call_with_retry
from .settings import Settings
from .storage.base import Body, Transport, TransportResponse
from .storage.glacier_api import (
    ARCHIVE_DESCRIPTION_HEADER,
    ARCHIVE_ID_HEADER,
    ARCHIVE_SIZE_HEADER,
    CONTENT_RANGE_HEADER,
    CONTENT_SHA256_HEADER,
    JOB_ID_HEADER,
    PART_SIZE_HEADER,
    RANGE_HEADER,
    TREE_HASH_HEADER,
    UPLOAD_ID_HEADER,
)
from .treehash import linear_hash, tree_hash

__all__ = ["GlacierClient"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GlacierClient:
    """
    Operation table for one account scope.

    Example:
        client = GlacierClient(HttpTransport(settings), settings)
        for vault in client.vaults():
            ...
        upload = client.multipart_upload()
    """

    def __init__(
        self,
        transport: Transport,
        settings: Settings,
        *,
        classifier: Optional[RetryClassifier] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.transport = transport
        self.settings = settings
        self.classifier = classifier or RetryClassifier(RetryPolicy.from_settings(settings))
        self.sleep = sleep

    @property
    def account_id(self) -> str:
        return self.settings.account_id

    def with_account_id(self, account_id: str) -> GlacierClient:
        """New client over the same transport, scoped to ``account_id``."""
        return GlacierClient(
            self.transport,
            self.settings.with_account_id(account_id),
            classifier=self.classifier,
            sleep=self.sleep,
        )

    def call(self, func: Callable[[], T], description: str = "request") -> T:
        """Run a one-off operation under the shared retry policy."""
        return call_with_retry(func, self.classifier, description=description, sleep=self.sleep)

    def multipart_upload(self) -> MultipartUploadCoordinator:
        """Coordinator for a new (or resumed) multipart upload."""
        return MultipartUploadCoordinator(self)

    # -- vaults -----------------------------------------------------------

    def list_vaults_page(self, marker: Optional[str] = None, limit: Optional[int] = None) -> Page[VaultDescription]:
        data = self._send("ListVaults", query=_listing_query(marker, limit)).json()
        return Page(
            records=[VaultDescription.model_validate(v) for v in data.get("VaultList") or []],
            marker=data.get("Marker"),
        )

    def vaults(self, page_size: Optional[int] = None) -> PaginatedCollection[VaultDescription]:
        return self._collection(self.list_vaults_page, page_size, "ListVaults")

    def describe_vault(self, vault_name: str) -> VaultDescription:
        response = self._send("DescribeVault", vault_name=vault_name)
        return VaultDescription.model_validate(response.json())

    def create_vault(self, vault_name: str) -> Optional[str]:
        """Create a vault (idempotent on the service side). Returns its location."""
        return self._send("CreateVault", vault_name=vault_name).header("location")

    def delete_vault(self, vault_name: str) -> None:
        self._send("DeleteVault", vault_name=vault_name)

    def get_vault_notifications(self, vault_name: str) -> VaultNotificationConfig:
        """Raises ServiceError (404) when the vault has no notification configuration."""
        response = self._send("GetVaultNotifications", vault_name=vault_name)
        return VaultNotificationConfig.model_validate(response.json())

    def set_vault_notifications(self, vault_name: str, config: VaultNotificationConfig) -> None:
        body = json.dumps(config.model_dump(by_alias=True, mode="json")).encode()
        self._send("SetVaultNotifications", vault_name=vault_name, body=body)

    def delete_vault_notifications(self, vault_name: str) -> None:
        self._send("DeleteVaultNotifications", vault_name=vault_name)

    # -- multipart uploads ------------------------------------------------

    def initiate_multipart_upload(
        self, vault_name: str, part_size: int, description: Optional[str] = None
    ) -> str:
        headers = {PART_SIZE_HEADER: str(part_size)}
        if description is not None:
            headers[ARCHIVE_DESCRIPTION_HEADER] = description
        response = self._send("InitiateMultipartUpload", vault_name=vault_name, headers=headers)
        upload_id = response.header(UPLOAD_ID_HEADER)
        if not upload_id:
            raise ValueError(f"Service did not return {UPLOAD_ID_HEADER}")
        return upload_id

    def upload_multipart_part(
        self,
        vault_name: str,
        upload_id: str,
        byte_range: ByteRange,
        body: Body,
        *,
        tree_hash: str,
        content_sha256: str,
    ) -> Optional[str]:
        """Upload one part. Returns the tree hash the service computed, if sent."""
        headers = {
            TREE_HASH_HEADER: tree_hash,
            CONTENT_SHA256_HEADER: content_sha256,
            CONTENT_RANGE_HEADER: byte_range.content_range(),
        }
        response = self._send(
            "UploadMultipartPart", vault_name=vault_name, upload_id=upload_id, headers=headers, body=body
        )
        return response.header(TREE_HASH_HEADER)

    def complete_multipart_upload(
        self, vault_name: str, upload_id: str, archive_size: int, tree_hash: str
    ) -> ArchiveCreated:
        headers = {ARCHIVE_SIZE_HEADER: str(archive_size), TREE_HASH_HEADER: tree_hash}
        response = self._send(
            "CompleteMultipartUpload", vault_name=vault_name, upload_id=upload_id, headers=headers
        )
        return _archive_created(response, tree_hash)

    def abort_multipart_upload(self, vault_name: str, upload_id: str) -> None:
        self._send("AbortMultipartUpload", vault_name=vault_name, upload_id=upload_id)

    def list_parts_page(
        self,
        vault_name: str,
        upload_id: str,
        marker: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Tuple[PartListing, Page[PartListEntry]]:
        data = self._send(
            "ListParts", vault_name=vault_name, upload_id=upload_id, query=_listing_query(marker, limit)
        ).json()
        page = Page(
            records=[PartListEntry.model_validate(p) for p in data.get("Parts") or []],
            marker=data.get("Marker"),
        )
        return PartListing.model_validate(data), page

    def parts(
        self, vault_name: str, upload_id: str, page_size: Optional[int] = None
    ) -> PaginatedCollection[PartListEntry]:
        def _page(marker: Optional[str], limit: Optional[int]) -> Page[PartListEntry]:
            return self.list_parts_page(vault_name, upload_id, marker, limit)[1]
        return self._collection(_page, page_size, f"ListParts {upload_id}")

    def list_multipart_uploads_page(
        self, vault_name: str, marker: Optional[str] = None, limit: Optional[int] = None
    ) -> Page[MultipartUploadDescription]:
        data = self._send(
            "ListMultipartUploads", vault_name=vault_name, query=_listing_query(marker, limit)
        ).json()
        return Page(
            records=[MultipartUploadDescription.model_validate(u) for u in data.get("UploadsList") or []],
            marker=data.get("Marker"),
        )

    def multipart_uploads(
        self, vault_name: str, page_size: Optional[int] = None
    ) -> PaginatedCollection[MultipartUploadDescription]:
        def _page(marker: Optional[str], limit: Optional[int]) -> Page[MultipartUploadDescription]:
            return self.list_multipart_uploads_page(vault_name, marker, limit)
        return self._collection(_page, page_size, f"ListMultipartUploads {vault_name}")

    # -- archives ---------------------------------------------------------

    def upload_archive(
        self, vault_name: str, body: bytes, description: Optional[str] = None
    ) -> ArchiveCreated:
        """Upload a small archive in a single request."""
        digest = tree_hash(body).hex()
        headers = {
            TREE_HASH_HEADER: digest,
            CONTENT_SHA256_HEADER: linear_hash(body).hex(),
        }
        if description is not None:
            headers[ARCHIVE_DESCRIPTION_HEADER] = description
        response = self._send("UploadArchive", vault_name=vault_name, headers=headers, body=body)
        created = _archive_created(response, digest)
        if created.tree_hash.lower() != digest:
            raise IntegrityMismatchError(
                f"Archive {created.archive_id} stored with a different tree hash",
                expected=digest,
                actual=created.tree_hash,
            )
        return created

    def delete_archive(self, vault_name: str, archive_id: str) -> None:
        self._send("DeleteArchive", vault_name=vault_name, archive_id=archive_id)

    # -- jobs -------------------------------------------------------------

    def initiate_job(self, vault_name: str, parameters: JobParameters) -> str:
        body = json.dumps(parameters.model_dump(by_alias=True, exclude_none=True, mode="json")).encode()
        response = self._send("InitiateJob", vault_name=vault_name, body=body)
        job_id = response.header(JOB_ID_HEADER)
        if not job_id:
            raise ValueError(f"Service did not return {JOB_ID_HEADER}")
        return job_id

    def describe_job(self, vault_name: str, job_id: str) -> JobDescription:
        response = self._send("DescribeJob", vault_name=vault_name, job_id=job_id)
        return JobDescription.model_validate(response.json())

    def list_jobs_page(
        self,
        vault_name: str,
        marker: Optional[str] = None,
        limit: Optional[int] = None,
        *,
        completed: Optional[bool] = None,
        status_code: Optional[str] = None,
    ) -> Page[JobDescription]:
        query = _listing_query(marker, limit)
        if completed is not None:
            query["completed"] = "true" if completed else "false"
        if status_code is not None:
            query["statuscode"] = status_code
        data = self._send("ListJobs", vault_name=vault_name, query=query).json()
        return Page(
            records=[JobDescription.model_validate(j) for j in data.get("JobList") or []],
            marker=data.get("Marker"),
        )

    def jobs(
        self,
        vault_name: str,
        page_size: Optional[int] = None,
        *,
        completed: Optional[bool] = None,
        status_code: Optional[str] = None,
    ) -> PaginatedCollection[JobDescription]:
        def _page(marker: Optional[str], limit: Optional[int]) -> Page[JobDescription]:
            return self.list_jobs_page(
                vault_name, marker, limit, completed=completed, status_code=status_code
            )
        return self._collection(_page, page_size, f"ListJobs {vault_name}")

    def get_job_output(
        self, vault_name: str, job_id: str, byte_range: Optional[ByteRange] = None
    ) -> JobOutput:
        """
        Download job output, verifying it against the service's tree hash.

        The service only sends a tree hash for whole outputs and for ranges
        aligned on 1 MiB boundaries; output without one is returned unverified.

        Raises:
            IntegrityMismatchError: If the received bytes do not match the tree hash
        """
        headers = {RANGE_HEADER: byte_range.range_header()} if byte_range is not None else {}
        response = self._send("GetJobOutput", vault_name=vault_name, job_id=job_id, headers=headers)
        expected = response.header(TREE_HASH_HEADER)
        verified = False
        if expected:
            actual = tree_hash(response.body).hex()
            if actual != expected.lower():
                raise IntegrityMismatchError(
                    f"Job {job_id} output does not match its tree hash",
                    expected=expected,
                    actual=actual,
                )
            verified = True
        elif byte_range is not None and byte_range.start % ONE_MIB == 0:
            logger.debug(f"Job {job_id} output range {byte_range} returned without a tree hash")
        return JobOutput(
            body=response.body,
            tree_hash=expected,
            content_range=response.header(CONTENT_RANGE_HEADER),
            verified=verified,
        )

    # -- plumbing ---------------------------------------------------------

    def _collection(self, operation, page_size: Optional[int], description: str) -> PaginatedCollection:
        return PaginatedCollection(
            operation,
            page_size=page_size if page_size is not None else self.settings.page_size,
            classifier=self.classifier,
            description=description,
            sleep=self.sleep,
        )

    def _send(
        self,
        operation_name: str,
        *,
        query: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        body: Body = None,
        **path_params: str,
    ) -> TransportResponse:
        params: Dict[str, str] = {"account_id": self.account_id}
        params.update(path_params)
        return self.transport.send(operation_name, params, dict(query or {}), dict(headers or {}), body)


def _listing_query(marker: Optional[str], limit: Optional[int]) -> Dict[str, str]:
    query: Dict[str, str] = {}
    if marker is not None:
        query["marker"] = marker
    if limit is not None:
        query["limit"] = str(limit)
    return query


def _archive_created(response: TransportResponse, sent_hash: str) -> ArchiveCreated:
    archive_id = response.header(ARCHIVE_ID_HEADER)
    if not archive_id:
        raise ValueError(f"Service did not return {ARCHIVE_ID_HEADER}")
    return ArchiveCreated(
        archive_id=archive_id,
        tree_hash=response.header(TREE_HASH_HEADER) or sent_hash,
        location=response.header("location"),
    )
