"""
Data models for archive service records.

These Pydantic models give type safety and validation to the JSON documents
the service returns from listing and describe calls. Field aliases match the
service's wire names; Python names are snake_case.
"""
from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .planner import ByteRange


class _ServiceRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class JobAction(str, Enum):
    """Retrieval job types."""
    ARCHIVE_RETRIEVAL = "ArchiveRetrieval"
    INVENTORY_RETRIEVAL = "InventoryRetrieval"


class JobStatus(str, Enum):
    IN_PROGRESS = "InProgress"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class VaultDescription(_ServiceRecord):
    """One entry of ListVaults, or the DescribeVault document."""
    vault_arn: str = Field(..., alias="VaultARN")
    vault_name: str = Field(..., alias="VaultName")
    creation_date: Optional[str] = Field(default=None, alias="CreationDate")
    last_inventory_date: Optional[str] = Field(default=None, alias="LastInventoryDate")
    number_of_archives: int = Field(default=0, alias="NumberOfArchives")
    size_in_bytes: int = Field(default=0, alias="SizeInBytes")


# Events a vault can publish to its notification topic
NOTIFICATION_EVENTS = ("ArchiveRetrievalCompleted", "InventoryRetrievalCompleted")


class VaultNotificationConfig(_ServiceRecord):
    """Body of SetVaultNotifications, or the GetVaultNotifications document."""
    sns_topic: str = Field(..., alias="SNSTopic")
    events: List[str] = Field(default_factory=list, alias="Events")

    @field_validator("events")
    @classmethod
    def validate_events(cls, v):
        unknown = [e for e in v if e not in NOTIFICATION_EVENTS]
        if unknown:
            raise ValueError(f"Unknown notification event(s): {', '.join(unknown)}")
        return v


class MultipartUploadDescription(_ServiceRecord):
    """One entry of ListMultipartUploads."""
    upload_id: str = Field(..., alias="MultipartUploadId")
    vault_arn: Optional[str] = Field(default=None, alias="VaultARN")
    archive_description: Optional[str] = Field(default=None, alias="ArchiveDescription")
    part_size: int = Field(..., alias="PartSizeInBytes")
    creation_date: Optional[str] = Field(default=None, alias="CreationDate")


class PartListEntry(_ServiceRecord):
    """One acknowledged part from ListParts."""
    range_in_bytes: str = Field(..., alias="RangeInBytes", description="Inclusive range, e.g. '0-1048575'")
    tree_hash: str = Field(..., alias="SHA256TreeHash")

    @field_validator("tree_hash")
    @classmethod
    def validate_tree_hash(cls, v):
        if len(v) != 64 or any(c not in "0123456789abcdef" for c in v.lower()):
            raise ValueError(f"SHA256TreeHash must be 64 hex chars, got {v!r}")
        return v.lower()

    @property
    def byte_range(self) -> ByteRange:
        return ByteRange.parse_inclusive(self.range_in_bytes)


class PartListing(_ServiceRecord):
    """Upload-level fields of a ListParts page (parts are paged separately)."""
    upload_id: str = Field(..., alias="MultipartUploadId")
    vault_arn: Optional[str] = Field(default=None, alias="VaultARN")
    archive_description: Optional[str] = Field(default=None, alias="ArchiveDescription")
    part_size: int = Field(..., alias="PartSizeInBytes")
    creation_date: Optional[str] = Field(default=None, alias="CreationDate")


class JobParameters(_ServiceRecord):
    """Body of an InitiateJob request."""
    type: JobAction = Field(..., alias="Type")
    archive_id: Optional[str] = Field(default=None, alias="ArchiveId")
    description: Optional[str] = Field(default=None, alias="Description")
    sns_topic: Optional[str] = Field(default=None, alias="SNSTopic")
    format: Optional[str] = Field(default=None, alias="Format")

    @model_validator(mode="after")
    def validate_archive_id(self):
        if self.type == JobAction.ARCHIVE_RETRIEVAL and not self.archive_id:
            raise ValueError("ArchiveRetrieval jobs require archive_id")
        return self


class JobDescription(_ServiceRecord):
    """One entry of ListJobs, or the DescribeJob document."""
    job_id: str = Field(..., alias="JobId")
    action: JobAction = Field(..., alias="Action")
    status_code: JobStatus = Field(..., alias="StatusCode")
    completed: bool = Field(default=False, alias="Completed")
    job_description: Optional[str] = Field(default=None, alias="JobDescription")
    archive_id: Optional[str] = Field(default=None, alias="ArchiveId")
    vault_arn: Optional[str] = Field(default=None, alias="VaultARN")
    creation_date: Optional[str] = Field(default=None, alias="CreationDate")
    completion_date: Optional[str] = Field(default=None, alias="CompletionDate")
    status_message: Optional[str] = Field(default=None, alias="StatusMessage")
    archive_size: Optional[int] = Field(default=None, alias="ArchiveSizeInBytes")
    inventory_size: Optional[int] = Field(default=None, alias="InventorySizeInBytes")
    sns_topic: Optional[str] = Field(default=None, alias="SNSTopic")
    tree_hash: Optional[str] = Field(default=None, alias="SHA256TreeHash")


class ArchiveCreated(_ServiceRecord):
    """Result of UploadArchive or CompleteMultipartUpload."""
    archive_id: str
    tree_hash: str
    location: Optional[str] = None


class JobOutput(_ServiceRecord):
    """Bytes of a GetJobOutput call plus the hash the service sent with them."""
    body: bytes
    tree_hash: Optional[str] = None
    content_range: Optional[str] = None
    verified: bool = False


__all__ = [
    "JobAction",
    "JobStatus",
    "VaultDescription",
    "VaultNotificationConfig",
    "NOTIFICATION_EVENTS",
    "MultipartUploadDescription",
    "PartListEntry",
    "PartListing",
    "JobParameters",
    "JobDescription",
    "ArchiveCreated",
    "JobOutput",
]
