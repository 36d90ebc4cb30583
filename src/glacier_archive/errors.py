"""
Archive client error classes.

Provides the taxonomy of errors raised by the integrity and multipart-upload
core. Transport-level failures live in ``storage.transport_errors`` and pass
through unchanged unless an operation wraps them with more context.
"""
from __future__ import annotations

from typing import List, Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from .planner import ByteRange


class GlacierArchiveError(Exception):
    """Base class for all archive client errors."""
    pass


class ChecksumInputError(GlacierArchiveError, ValueError):
    """
    Tree hash input is malformed.

    Raised when:
    - a leaf chunk is larger than the configured chunk size
    - a digest is not 32 bytes
    - per-part digests are combined out of order or with gaps
    """
    pass


class InvalidPartSizeError(GlacierArchiveError, ValueError):
    """Part size is not a power of two between 1 MiB and 4 GiB."""

    def __init__(self, part_size: int):
        super().__init__(
            f"Invalid part size {part_size}: must be a power of two between 1 MiB and 4 GiB"
        )
        self.part_size = part_size


class PartRangeConflictError(GlacierArchiveError):
    """
    Part range does not fit the session plan.

    Raised when:
    - the range is not aligned with the session's part plan
    - the range is already in flight
    - an acknowledged range is re-submitted with different bytes
    """

    def __init__(self, message: str, byte_range: Optional["ByteRange"] = None):
        super().__init__(message)
        self.byte_range = byte_range


class IncompletePartsError(GlacierArchiveError):
    """Completion was requested while planned parts are not acknowledged."""

    def __init__(self, missing: Sequence["ByteRange"]):
        self.missing: List["ByteRange"] = list(missing)
        listed = ", ".join(str(r) for r in self.missing)
        super().__init__(f"{len(self.missing)} part(s) not acknowledged: {listed}")


class IntegrityMismatchError(GlacierArchiveError):
    """
    Tree hash or size disagreement between client and service.

    Raised when:
    - the service rejects a completion call over its own hash/size
    - the service hashed an uploaded part differently (byte_range names the part)
    - downloaded job output does not match the tree hash the service sent
    """

    def __init__(
        self,
        message: str,
        expected: str | None = None,
        actual: str | None = None,
        byte_range: Optional["ByteRange"] = None,
    ):
        super().__init__(message)
        self.expected = expected
        self.actual = actual
        self.byte_range = byte_range


class SessionStateError(GlacierArchiveError):
    """Operation is not valid in the session's current state."""
    pass


class SessionBusyError(SessionStateError):
    """Completion was requested while part submissions are still outstanding."""
    pass


class SessionAbortedError(SessionStateError):
    """The session was aborted; the part result was discarded."""
    pass


class PartUploadError(GlacierArchiveError):
    """A part failed after retries were exhausted or on a non-retryable error."""

    def __init__(self, message: str, byte_range: "ByteRange"):
        super().__init__(message)
        self.byte_range = byte_range


class PageFetchError(GlacierArchiveError):
    """
    A listing page could not be fetched.

    ``marker`` is the last marker successfully observed before the failure
    (None when the first page failed); pass it to
    ``PaginatedCollection.resume_from`` to continue.
    """

    def __init__(self, message: str, marker: Optional[str] = None, pages_fetched: int = 0):
        super().__init__(message)
        self.marker = marker
        self.pages_fetched = pages_fetched


__all__ = [
    "GlacierArchiveError",
    "ChecksumInputError",
    "InvalidPartSizeError",
    "PartRangeConflictError",
    "IncompletePartsError",
    "IntegrityMismatchError",
    "SessionStateError",
    "SessionBusyError",
    "SessionAbortedError",
    "PartUploadError",
    "PageFetchError",
]
