"""
Multipart upload session state.

These types hold what one multipart upload has done so far. They carry no
locking of their own; the coordinator owns the session and serializes access.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .planner import ByteRange, is_aligned, plan_parts, validate_part_size

__all__ = ["SessionState", "PartState", "PartRecord", "UploadSession"]


class SessionState(str, Enum):
    INITIATED = "initiated"
    PARTS_IN_FLIGHT = "parts_in_flight"
    COMPLETING = "completing"
    COMPLETED = "completed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.ABORTED)


class PartState(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    ACKNOWLEDGED = "acknowledged"
    FAILED = "failed"


@dataclass
class PartRecord:
    """One part of the session: its range, tree hash, and submission state."""
    byte_range: ByteRange
    tree_hash: Optional[bytes] = None
    state: PartState = PartState.PENDING
    attempts: int = 0
    error: Optional[str] = None

    @property
    def tree_hash_hex(self) -> Optional[str]:
        return self.tree_hash.hex() if self.tree_hash is not None else None


@dataclass
class UploadSession:
    """
    One multipart upload.

    Invariants:
    - part_size: power of two in [1 MiB, 4 GiB], fixed for the session
    - parts: keyed by range start; every key's range is aligned with part_size
    - total_size: None until known; once set, every part lies inside the plan
    """
    upload_id: str
    vault_name: str
    account_id: str
    part_size: int
    total_size: Optional[int] = None
    description: Optional[str] = None
    state: SessionState = SessionState.INITIATED
    parts: Dict[int, PartRecord] = field(default_factory=dict)
    archive_id: Optional[str] = None
    released: bool = False  # upload id freed on the service

    def __post_init__(self) -> None:
        validate_part_size(self.part_size)
        if self.total_size is not None and self.total_size < 0:
            raise ValueError(f"total_size must be non-negative, got {self.total_size}")

    def planned_ranges(self) -> Optional[List[ByteRange]]:
        """Ranges the session must acknowledge, or None while total size is unknown."""
        if self.total_size is None:
            return None
        return plan_parts(self.total_size, self.part_size)

    def is_aligned(self, byte_range: ByteRange) -> bool:
        return is_aligned(byte_range, self.part_size, self.total_size)

    def acknowledged(self) -> List[PartRecord]:
        """Acknowledged records in ascending offset order."""
        return [
            record for _, record in sorted(self.parts.items())
            if record.state == PartState.ACKNOWLEDGED
        ]

    def missing_ranges(self) -> List[ByteRange]:
        planned = self.planned_ranges() or []
        return [
            r for r in planned
            if r.start not in self.parts
            or self.parts[r.start].state != PartState.ACKNOWLEDGED
            or self.parts[r.start].byte_range != r
        ]

    def in_flight(self) -> int:
        return sum(1 for record in self.parts.values() if record.state == PartState.SUBMITTED)
