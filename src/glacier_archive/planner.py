"""
Part planning for multipart uploads.

Divides a payload size into fixed-size, power-of-two parts and computes the
byte ranges each part covers. Pure and deterministic: the same inputs always
produce the same plan.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

from .errors import InvalidPartSizeError

__all__ = [
    "ONE_MIB",
    "MIN_PART_SIZE",
    "MAX_PART_SIZE",
    "MAX_PARTS",
    "ByteRange",
    "validate_part_size",
    "plan_parts",
    "choose_part_size",
    "is_aligned",
]

ONE_MIB = 1024 * 1024
MIN_PART_SIZE = ONE_MIB
MAX_PART_SIZE = 4 * 1024 * ONE_MIB  # 4 GiB
MAX_PARTS = 10_000

_INCLUSIVE_RANGE_RE = re.compile(r"^(?:bytes[ =])?(\d+)-(\d+)(?:/\*)?$")


@dataclass(frozen=True, order=True)
class ByteRange:
    """
    Half-open byte range ``[start, end)``.

    Wire formats express ranges inclusively; ``content_range()`` and
    ``parse_inclusive()`` convert at the boundary.
    """
    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid byte range [{self.start}, {self.end})")

    @property
    def length(self) -> int:
        return self.end - self.start

    def content_range(self) -> str:
        """Content-Range header value for a part upload (``bytes a-b/*``)."""
        last = max(self.end - 1, self.start)
        return f"bytes {self.start}-{last}/*"

    def range_header(self) -> str:
        """Range header value for a ranged download (``bytes=a-b``)."""
        return f"bytes={self.start}-{self.end - 1}"

    @classmethod
    def parse_inclusive(cls, value: str) -> ByteRange:
        """
        Parse an inclusive range such as ``"0-1048575"`` or ``"bytes 0-1048575/*"``.

        Raises:
            ValueError: If the value is not an inclusive byte range
        """
        match = _INCLUSIVE_RANGE_RE.match(value.strip())
        if not match:
            raise ValueError(f"Invalid inclusive byte range: {value!r}")
        first, last = int(match.group(1)), int(match.group(2))
        return cls(first, last + 1)

    def __str__(self) -> str:
        return f"[{self.start}, {self.end})"


def _is_power_of_two(value: int) -> bool:
    return value > 0 and (value & (value - 1)) == 0


def validate_part_size(part_size: int) -> int:
    """
    Check a part size against the service constraints.

    Returns:
        The part size, unchanged

    Raises:
        InvalidPartSizeError: If not a power of two within [1 MiB, 4 GiB]
    """
    if (
        not isinstance(part_size, int)
        or isinstance(part_size, bool)
        or not _is_power_of_two(part_size)
        or part_size < MIN_PART_SIZE
        or part_size > MAX_PART_SIZE
    ):
        raise InvalidPartSizeError(part_size)
    return part_size


def plan_parts(total_size: int, part_size: int) -> List[ByteRange]:
    """
    Split ``total_size`` bytes into part ranges.

    All parts but the last are exactly ``part_size`` long; the last carries the
    remainder. A zero-byte payload plans a single empty part ``[0, 0)``.

    Args:
        total_size: Payload size in bytes
        part_size: Validated power-of-two part size

    Returns:
        Ranges in ascending offset order

    Raises:
        InvalidPartSizeError: If part_size is invalid
        ValueError: If total_size is negative
    """
    validate_part_size(part_size)
    if total_size < 0:
        raise ValueError(f"total_size must be non-negative, got {total_size}")

    if total_size == 0:
        return [ByteRange(0, 0)]

    return [
        ByteRange(start, min(start + part_size, total_size))
        for start in range(0, total_size, part_size)
    ]


def choose_part_size(total_size: int, max_parts: int = MAX_PARTS) -> int:
    """
    Pick the smallest valid part size that keeps the part count within ``max_parts``.

    Raises:
        ValueError: If the payload cannot fit even with the largest part size
    """
    if total_size < 0:
        raise ValueError(f"total_size must be non-negative, got {total_size}")

    part_size = MIN_PART_SIZE
    while part_size * max_parts < total_size:
        part_size *= 2
        if part_size > MAX_PART_SIZE:
            raise ValueError(
                f"Payload of {total_size} bytes exceeds {max_parts} parts of {MAX_PART_SIZE} bytes"
            )
    return part_size


def is_aligned(byte_range: ByteRange, part_size: int, total_size: Optional[int] = None) -> bool:
    """
    Whether ``byte_range`` is one of the ranges a plan could produce.

    With an unknown ``total_size`` a short range is accepted as a candidate
    final part.
    """
    if byte_range.start % part_size != 0:
        return False

    if total_size is None:
        if byte_range.length == part_size:
            return True
        # empty payload or short final part
        return byte_range.length < part_size and (byte_range.length > 0 or byte_range.start == 0)

    if total_size == 0:
        return byte_range == ByteRange(0, 0)
    if byte_range.start >= total_size:
        return False
    return byte_range.end == min(byte_range.start + part_size, total_size)
