"""
SHA-256 tree hashing.

Implements the hierarchical checksum the archive service uses to verify
payloads: 1 MiB leaves are hashed with SHA-256, then adjacent digests are
paired and hashed level by level until one root digest remains. An unpaired
digest at the end of a level is carried up unchanged.

Because parts are power-of-two multiples of 1 MiB, each part's tree hash is
the root of a complete subtree, so combining per-part hashes in offset order
yields the same root as hashing the whole payload.
"""
from __future__ import annotations

import hashlib
from typing import BinaryIO, Iterable, List, Sequence, Tuple, Union

from .errors import ChecksumInputError
from .planner import ONE_MIB, ByteRange

__all__ = [
    "DIGEST_SIZE",
    "leaf_hash",
    "combine",
    "tree_hash",
    "combine_ordered_leaves",
    "combine_ranges",
    "TreeHasher",
    "tree_hash_stream",
    "linear_hash",
    "to_hex",
    "from_hex",
]

DIGEST_SIZE = 32

Buffer = Union[bytes, bytearray, memoryview]


def leaf_hash(chunk: Buffer, max_chunk_size: int = ONE_MIB) -> bytes:
    """
    Digest a single leaf chunk.

    Raises:
        ChecksumInputError: If the chunk is larger than ``max_chunk_size``
    """
    if len(chunk) > max_chunk_size:
        raise ChecksumInputError(
            f"Leaf chunk of {len(chunk)} bytes exceeds maximum of {max_chunk_size}"
        )
    return hashlib.sha256(chunk).digest()


def combine(left: bytes, right: bytes) -> bytes:
    """Digest of the concatenation of two child digests."""
    if len(left) != DIGEST_SIZE or len(right) != DIGEST_SIZE:
        raise ChecksumInputError(
            f"Digests must be {DIGEST_SIZE} bytes, got {len(left)} and {len(right)}"
        )
    return hashlib.sha256(left + right).digest()


def combine_ordered_leaves(digests: Iterable[bytes]) -> bytes:
    """
    Reduce ordered digests pairwise until a single root remains.

    Args:
        digests: Leaf digests, or per-part tree hashes, in byte-offset order

    Raises:
        ChecksumInputError: If no digests are given or one has the wrong width
    """
    level: List[bytes] = list(digests)
    if not level:
        raise ChecksumInputError("Cannot combine an empty sequence of digests")
    for digest in level:
        if len(digest) != DIGEST_SIZE:
            raise ChecksumInputError(f"Digests must be {DIGEST_SIZE} bytes, got {len(digest)}")

    while len(level) > 1:
        paired = [combine(level[i], level[i + 1]) for i in range(0, len(level) - 1, 2)]
        if len(level) % 2:
            paired.append(level[-1])
        level = paired
    return level[0]


def tree_hash(payload: Buffer, chunk_size: int = ONE_MIB) -> bytes:
    """
    Compute the tree hash of an in-memory payload.

    Args:
        payload: Bytes to hash (may be a window of a larger payload)
        chunk_size: Leaf size, at most 1 MiB

    Returns:
        32-byte root digest; ``sha256(b"")`` for an empty payload
    """
    _check_chunk_size(chunk_size)
    view = memoryview(payload)
    if len(view) == 0:
        return hashlib.sha256(b"").digest()
    leaves = [
        leaf_hash(view[offset:offset + chunk_size], chunk_size)
        for offset in range(0, len(view), chunk_size)
    ]
    return combine_ordered_leaves(leaves)


def combine_ranges(parts: Sequence[Tuple[ByteRange, bytes]]) -> bytes:
    """
    Combine per-part tree hashes after checking they tile the payload.

    Parts must be sorted by offset, start at 0, and be contiguous.

    Raises:
        ChecksumInputError: On gaps, overlaps, or out-of-order parts
    """
    expected_start = 0
    for byte_range, _ in parts:
        if byte_range.start != expected_start:
            raise ChecksumInputError(
                f"Part {byte_range} out of order: expected a part starting at {expected_start}"
            )
        expected_start = byte_range.end
    return combine_ordered_leaves(digest for _, digest in parts)


class TreeHasher:
    """
    Incremental tree hasher.

    Buffers at most one chunk; only the 32-byte leaf digests are retained, so
    arbitrarily large streams can be hashed through a bounded window.
    """

    def __init__(self, chunk_size: int = ONE_MIB) -> None:
        _check_chunk_size(chunk_size)
        self._chunk_size = chunk_size
        self._buffer = bytearray()
        self._leaves: List[bytes] = []
        self._length = 0

    @property
    def length(self) -> int:
        return self._length

    def update(self, data: Buffer) -> None:
        view = memoryview(data)
        self._length += len(view)
        offset = 0
        if self._buffer:
            take = min(self._chunk_size - len(self._buffer), len(view))
            self._buffer += view[:take]
            offset = take
            if len(self._buffer) == self._chunk_size:
                self._leaves.append(hashlib.sha256(self._buffer).digest())
                self._buffer.clear()
        while len(view) - offset >= self._chunk_size:
            self._leaves.append(hashlib.sha256(view[offset:offset + self._chunk_size]).digest())
            offset += self._chunk_size
        if offset < len(view):
            self._buffer += view[offset:]

    def digest(self) -> bytes:
        leaves = list(self._leaves)
        if self._buffer or not leaves:
            leaves.append(hashlib.sha256(self._buffer).digest())
        return combine_ordered_leaves(leaves)

    def hexdigest(self) -> str:
        return self.digest().hex()


def tree_hash_stream(stream: BinaryIO, chunk_size: int = ONE_MIB) -> Tuple[bytes, int]:
    """
    Tree hash a binary stream read one chunk at a time.

    Returns:
        (root digest, bytes read)
    """
    hasher = TreeHasher(chunk_size)
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        hasher.update(chunk)
    return hasher.digest(), hasher.length


def linear_hash(payload: Buffer) -> bytes:
    """Plain SHA-256 of the payload (``x-amz-content-sha256``)."""
    return hashlib.sha256(payload).digest()


def to_hex(digest: bytes) -> str:
    return digest.hex()


def from_hex(value: str) -> bytes:
    """
    Parse a hex-encoded digest.

    Raises:
        ChecksumInputError: If the value is not 64 hex characters
    """
    try:
        digest = bytes.fromhex(value)
    except ValueError as e:
        raise ChecksumInputError(f"Invalid hex digest {value!r}: {e}") from e
    if len(digest) != DIGEST_SIZE:
        raise ChecksumInputError(f"Hex digest must encode {DIGEST_SIZE} bytes: {value!r}")
    return digest


def _check_chunk_size(chunk_size: int) -> None:
    if chunk_size <= 0 or chunk_size > ONE_MIB:
        raise ChecksumInputError(f"Chunk size must be in (0, {ONE_MIB}], got {chunk_size}")
