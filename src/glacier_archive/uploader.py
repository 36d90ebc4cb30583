"""
Streaming multipart uploads.

Reads a binary stream one part at a time and feeds the parts to a
MultipartUploadCoordinator through a bounded thread pool. At most
``max_concurrency`` parts are held in memory at once.
"""
from __future__ import annotations

import logging
from concurrent.futures import ALL_COMPLETED, FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import BinaryIO, Dict, Optional

from .multipart import MultipartUploadCoordinator
from .planner import ByteRange

__all__ = ["upload_stream", "resume_stream"]

logger = logging.getLogger(__name__)


def upload_stream(
    coordinator: MultipartUploadCoordinator,
    stream: BinaryIO,
    vault_name: str,
    *,
    total_size: Optional[int] = None,
    part_size: Optional[int] = None,
    description: Optional[str] = None,
    max_concurrency: int = 4,
    abort_on_failure: bool = True,
) -> str:
    """
    Upload a stream as a new multipart archive.

    Args:
        coordinator: Fresh coordinator (no session yet)
        stream: Binary stream positioned at the start of the payload
        vault_name: Target vault
        total_size: Payload size if known (used to pick a part size)
        part_size: Explicit part size
        description: Archive description
        max_concurrency: Parts uploaded at once
        abort_on_failure: Abort the upload if any part fails

    Returns:
        Archive id

    Raises:
        PartUploadError: A part failed after retries (carries the range)
        IntegrityMismatchError: The service rejected the final hash or size
    """
    _check_concurrency(max_concurrency)
    coordinator.initiate(vault_name, total_size_hint=total_size, part_size=part_size, description=description)
    return _send_stream(coordinator, stream, max_concurrency, abort_on_failure)


def resume_stream(
    coordinator: MultipartUploadCoordinator,
    stream: BinaryIO,
    vault_name: str,
    upload_id: str,
    *,
    total_size: Optional[int] = None,
    max_concurrency: int = 4,
    abort_on_failure: bool = False,
) -> str:
    """
    Finish an interrupted upload from the same payload.

    Parts the service already acknowledged are re-hashed locally and skipped
    when their bytes match; the rest are uploaded.

    Returns:
        Archive id
    """
    _check_concurrency(max_concurrency)
    session = coordinator.resume(vault_name, upload_id, total_size_hint=total_size)
    logger.info(f"Resuming upload {upload_id}: {len(session.acknowledged())} part(s) already stored")
    return _send_stream(coordinator, stream, max_concurrency, abort_on_failure)


def _send_stream(
    coordinator: MultipartUploadCoordinator,
    stream: BinaryIO,
    max_concurrency: int,
    abort_on_failure: bool,
) -> str:
    part_size = coordinator.session.part_size
    offset = 0
    try:
        with ThreadPoolExecutor(max_workers=max_concurrency, thread_name_prefix="glacier-part") as pool:
            pending: Dict[Future, ByteRange] = {}
            while True:
                if len(pending) >= max_concurrency:
                    _drain(pending, return_when=FIRST_COMPLETED)
                data = _read_part(stream, part_size)
                if not data and offset > 0:
                    break
                byte_range = ByteRange(offset, offset + len(data))
                pending[pool.submit(coordinator.submit_part, byte_range, data)] = byte_range
                offset += len(data)
                if len(data) < part_size:
                    break
            _drain(pending)

        coordinator.declare_total_size(offset)
        return coordinator.complete()
    except Exception:
        if abort_on_failure and coordinator.state is not None and not coordinator.state.is_terminal:
            logger.warning(f"Aborting upload {coordinator.session.upload_id} after failure")
            coordinator.abort()
        raise


def _check_concurrency(max_concurrency: int) -> None:
    if max_concurrency < 1:
        raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")


def _drain(pending: Dict[Future, ByteRange], return_when: str = ALL_COMPLETED) -> None:
    """Wait for submitted parts and re-raise the first failure."""
    done, _ = wait(list(pending), return_when=return_when)
    first_error: Optional[BaseException] = None
    for future in done:
        byte_range = pending.pop(future)
        error = future.exception()
        if error is not None and first_error is None:
            first_error = error
        elif error is None:
            logger.debug(f"Part {byte_range} done")
    if first_error is not None:
        # let the remaining in-flight parts settle before surfacing the error
        wait(list(pending))
        raise first_error


def _read_part(stream: BinaryIO, part_size: int) -> bytes:
    """Read up to ``part_size`` bytes, tolerating short reads."""
    chunks = []
    remaining = part_size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)
