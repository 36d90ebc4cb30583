"""
Archive service operation table.

One entry per service operation of API version 2012-06-01: HTTP method, URI
template, and the status the service returns on success. Transports expand
these; nothing is generated at runtime.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping
from urllib.parse import quote

__all__ = [
    "API_VERSION",
    "OperationSpec",
    "OPERATIONS",
    "expand_path",
    "TREE_HASH_HEADER",
    "CONTENT_SHA256_HEADER",
    "CONTENT_RANGE_HEADER",
    "RANGE_HEADER",
    "PART_SIZE_HEADER",
    "ARCHIVE_SIZE_HEADER",
    "ARCHIVE_DESCRIPTION_HEADER",
    "UPLOAD_ID_HEADER",
    "ARCHIVE_ID_HEADER",
    "JOB_ID_HEADER",
    "VERSION_HEADER",
]

API_VERSION = "2012-06-01"

TREE_HASH_HEADER = "x-amz-sha256-tree-hash"
CONTENT_SHA256_HEADER = "x-amz-content-sha256"
CONTENT_RANGE_HEADER = "content-range"
RANGE_HEADER = "range"
PART_SIZE_HEADER = "x-amz-part-size"
ARCHIVE_SIZE_HEADER = "x-amz-archive-size"
ARCHIVE_DESCRIPTION_HEADER = "x-amz-archive-description"
UPLOAD_ID_HEADER = "x-amz-multipart-upload-id"
ARCHIVE_ID_HEADER = "x-amz-archive-id"
JOB_ID_HEADER = "x-amz-job-id"
VERSION_HEADER = "x-amz-glacier-version"


@dataclass(frozen=True)
class OperationSpec:
    method: str
    uri: str
    success_status: int


_VAULT = "/{account_id}/vaults/{vault_name}"
_UPLOAD = _VAULT + "/multipart-uploads/{upload_id}"

OPERATIONS: Dict[str, OperationSpec] = {
    "ListVaults": OperationSpec("GET", "/{account_id}/vaults", 200),
    "DescribeVault": OperationSpec("GET", _VAULT, 200),
    "CreateVault": OperationSpec("PUT", _VAULT, 201),
    "DeleteVault": OperationSpec("DELETE", _VAULT, 204),
    "GetVaultNotifications": OperationSpec("GET", _VAULT + "/notification-configuration", 200),
    "SetVaultNotifications": OperationSpec("PUT", _VAULT + "/notification-configuration", 204),
    "DeleteVaultNotifications": OperationSpec("DELETE", _VAULT + "/notification-configuration", 204),
    "InitiateMultipartUpload": OperationSpec("POST", _VAULT + "/multipart-uploads", 201),
    "UploadMultipartPart": OperationSpec("PUT", _UPLOAD, 204),
    "CompleteMultipartUpload": OperationSpec("POST", _UPLOAD, 201),
    "AbortMultipartUpload": OperationSpec("DELETE", _UPLOAD, 204),
    "ListParts": OperationSpec("GET", _UPLOAD, 200),
    "ListMultipartUploads": OperationSpec("GET", _VAULT + "/multipart-uploads", 200),
    "UploadArchive": OperationSpec("POST", _VAULT + "/archives", 201),
    "DeleteArchive": OperationSpec("DELETE", _VAULT + "/archives/{archive_id}", 204),
    "InitiateJob": OperationSpec("POST", _VAULT + "/jobs", 202),
    "DescribeJob": OperationSpec("GET", _VAULT + "/jobs/{job_id}", 200),
    "ListJobs": OperationSpec("GET", _VAULT + "/jobs", 200),
    "GetJobOutput": OperationSpec("GET", _VAULT + "/jobs/{job_id}/output", 200),
}


def expand_path(operation_name: str, path_params: Mapping[str, str]) -> str:
    """
    Expand an operation's URI template with URL-quoted path parameters.

    Raises:
        KeyError: If the operation is unknown
        ValueError: If a template parameter is missing
    """
    spec = OPERATIONS[operation_name]
    try:
        return spec.uri.format(**{k: quote(str(v), safe="") for k, v in path_params.items()})
    except KeyError as e:
        raise ValueError(f"{operation_name} requires path parameter {e.args[0]}") from e
