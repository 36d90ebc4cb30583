"""
Multipart upload coordination.

Owns the lifecycle of one multipart upload session:

    INITIATED -> PARTS_IN_FLIGHT -> COMPLETING -> COMPLETED
    (any non-terminal state) -> ABORTED

Parts may be submitted from several threads at once. The session's part
records are guarded by one lock; network calls are always made outside it, so
an abort never waits on in-flight parts. The whole-archive tree hash is built
by combining per-part tree hashes in byte-offset order, never by re-reading
earlier parts.
"""
from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable, Dict, Optional, TypeVar

from .errors import (
    IncompletePartsError,
    IntegrityMismatchError,
    PartRangeConflictError,
    PartUploadError,
    SessionAbortedError,
    SessionBusyError,
    SessionStateError,
)
from .models import PartListing
from .pagination import Page, PaginatedCollection
from .planner import MAX_PARTS, ByteRange, choose_part_size, plan_parts, validate_part_size
from .retry import RetryClassifier, call_with_retry
from .session import PartRecord, PartState, SessionState, UploadSession
from .storage.transport_errors import ServiceError, TransportError
from .treehash import combine_ranges, from_hex, linear_hash, tree_hash

if TYPE_CHECKING:
    from .client import GlacierClient

__all__ = ["MultipartUploadCoordinator", "INTEGRITY_ERROR_CODE"]

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Code the service uses when its own hash or size disagrees with the request
INTEGRITY_ERROR_CODE = "InvalidParameterValueException"


class MultipartUploadCoordinator:
    """
    Drive one multipart upload from initiation to completion or abort.

    A coordinator manages exactly one session; create a new coordinator for
    each upload (``GlacierClient.multipart_upload()``).
    """

    def __init__(
        self,
        client: "GlacierClient",
        *,
        classifier: Optional[RetryClassifier] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self._client = client
        self._classifier = classifier or client.classifier
        self._sleep = sleep or client.sleep
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._session: Optional[UploadSession] = None

    @property
    def session(self) -> UploadSession:
        if self._session is None:
            raise SessionStateError("No upload session: call initiate() or resume() first")
        return self._session

    @property
    def state(self) -> Optional[SessionState]:
        return self._session.state if self._session is not None else None

    def initiate(
        self,
        vault_name: str,
        total_size_hint: Optional[int] = None,
        part_size: Optional[int] = None,
        description: Optional[str] = None,
    ) -> UploadSession:
        """
        Start a new multipart upload.

        Args:
            vault_name: Target vault
            total_size_hint: Payload size if known up front
            part_size: Power-of-two part size; defaults to settings, raised if
                needed to keep the part count within the service limit
            description: Archive description stored with the archive

        Raises:
            InvalidPartSizeError: If part_size is invalid
            SessionStateError: If this coordinator already has a session
        """
        if self._session is not None:
            raise SessionStateError(f"Session already {self._session.state.value}")

        if part_size is None:
            part_size = self._client.settings.part_size
            if total_size_hint is not None:
                part_size = max(part_size, choose_part_size(total_size_hint))
        validate_part_size(part_size)
        if total_size_hint is not None:
            planned = len(plan_parts(total_size_hint, part_size))
            if planned > MAX_PARTS:
                raise ValueError(f"{planned} parts of {part_size} bytes exceeds the {MAX_PARTS} part limit")

        upload_id = self._retry(
            lambda: self._client.initiate_multipart_upload(vault_name, part_size, description),
            "InitiateMultipartUpload",
        )
        session = UploadSession(
            upload_id=upload_id,
            vault_name=vault_name,
            account_id=self._client.account_id,
            part_size=part_size,
            total_size=total_size_hint,
            description=description,
        )
        session.state = SessionState.PARTS_IN_FLIGHT
        self._session = session
        logger.info(f"Initiated upload {upload_id} to vault {vault_name} with {part_size}-byte parts")
        return session

    def resume(
        self,
        vault_name: str,
        upload_id: str,
        total_size_hint: Optional[int] = None,
    ) -> UploadSession:
        """
        Rebuild a session for an existing upload from the service's part listing.

        Listed parts become acknowledged records, so re-submitting them with
        identical bytes is a no-op.

        Raises:
            PageFetchError: If the part listing cannot be fetched
            PartRangeConflictError: If a listed part is not aligned with the upload's part size
        """
        if self._session is not None:
            raise SessionStateError(f"Session already {self._session.state.value}")

        listing: Dict[str, PartListing] = {}

        def _list_parts(marker: Optional[str], limit: Optional[int]) -> Page:
            meta, page = self._client.list_parts_page(vault_name, upload_id, marker=marker, limit=limit)
            listing.setdefault("meta", meta)
            return page

        collection = PaginatedCollection(
            _list_parts,
            page_size=self._client.settings.page_size,
            classifier=self._classifier,
            description=f"ListParts {upload_id}",
            sleep=self._sleep,
        )
        parts = {
            entry.byte_range.start: PartRecord(
                byte_range=entry.byte_range,
                tree_hash=from_hex(entry.tree_hash),
                state=PartState.ACKNOWLEDGED,
            )
            for entry in collection
        }
        meta = listing["meta"]

        session = UploadSession(
            upload_id=upload_id,
            vault_name=vault_name,
            account_id=self._client.account_id,
            part_size=meta.part_size,
            total_size=total_size_hint,
            description=meta.archive_description,
            state=SessionState.PARTS_IN_FLIGHT,
            parts=parts,
        )
        for record in parts.values():
            if not session.is_aligned(record.byte_range):
                raise PartRangeConflictError(
                    f"Listed part {record.byte_range} does not fit {meta.part_size}-byte parts",
                    record.byte_range,
                )
        self._session = session
        logger.info(f"Resumed upload {upload_id} in vault {vault_name}: {len(parts)} part(s) already acknowledged")
        return session

    def declare_total_size(self, total_size: int) -> None:
        """
        Fix the payload size once it is known (e.g. at end of a stream).

        Raises:
            SessionStateError: If the session is terminal or a different size was declared
            PartRangeConflictError: If recorded parts do not fit the plan for this size
        """
        with self._lock:
            session = self._require_active()
            if session.total_size is not None:
                if session.total_size != total_size:
                    raise SessionStateError(
                        f"Total size already declared as {session.total_size}, got {total_size}"
                    )
                return
            if total_size < 0:
                raise ValueError(f"total_size must be non-negative, got {total_size}")
            planned = set(plan_parts(total_size, session.part_size))
            for record in session.parts.values():
                if record.byte_range not in planned:
                    raise PartRangeConflictError(
                        f"Recorded part {record.byte_range} is outside the plan for {total_size} bytes",
                        record.byte_range,
                    )
            session.total_size = total_size

    def submit_part(self, byte_range: ByteRange, data: bytes) -> PartRecord:
        """
        Hash and upload one part.

        Safe to call concurrently for distinct ranges. Re-submitting an
        acknowledged part with identical bytes returns the existing record
        without a network call.

        Raises:
            PartRangeConflictError: Misaligned range, part in flight, or different bytes
            PartUploadError: Transport failure after retries (part marked failed)
            IntegrityMismatchError: Service computed a different part hash
            SessionAbortedError: Session aborted before or during the upload
        """
        if len(data) != byte_range.length:
            raise PartRangeConflictError(
                f"Part {byte_range} expects {byte_range.length} bytes, got {len(data)}",
                byte_range,
            )
        digest = tree_hash(data)
        content_sha = linear_hash(data)

        with self._lock:
            session = self._require_active()
            if session.state == SessionState.COMPLETING:
                raise SessionBusyError(f"Upload {session.upload_id} is completing; no more parts accepted")
            if not session.is_aligned(byte_range):
                raise PartRangeConflictError(
                    f"Part {byte_range} is not aligned with {session.part_size}-byte parts", byte_range
                )
            record = session.parts.get(byte_range.start)
            if record is not None:
                if record.byte_range != byte_range:
                    raise PartRangeConflictError(
                        f"Part {byte_range} overlaps recorded part {record.byte_range}", byte_range
                    )
                if record.state == PartState.ACKNOWLEDGED:
                    if record.tree_hash == digest:
                        logger.debug(f"Part {byte_range} already acknowledged with identical content")
                        return record
                    raise PartRangeConflictError(
                        f"Part {byte_range} already acknowledged with different content", byte_range
                    )
                if record.state == PartState.SUBMITTED:
                    raise PartRangeConflictError(f"Part {byte_range} is already in flight", byte_range)
            else:
                record = PartRecord(byte_range=byte_range)
                session.parts[byte_range.start] = record
            record.state = PartState.SUBMITTED
            record.tree_hash = digest
            record.error = None

        def _upload() -> Optional[str]:
            record.attempts += 1
            return self._client.upload_multipart_part(
                session.vault_name,
                session.upload_id,
                byte_range,
                data,
                tree_hash=digest.hex(),
                content_sha256=content_sha.hex(),
            )

        try:
            returned_hash = self._retry(_upload, f"UploadMultipartPart {byte_range}")
            if returned_hash is not None and returned_hash.lower() != digest.hex():
                raise IntegrityMismatchError(
                    f"Service computed a different tree hash for part {byte_range}",
                    expected=digest.hex(),
                    actual=returned_hash,
                    byte_range=byte_range,
                )
        except Exception as e:
            with self._lock:
                aborted = self._discard_if_aborted(session, byte_range)
                if not aborted:
                    record.state = PartState.FAILED
                    record.error = str(e)
                self._idle.notify_all()
            if aborted:
                raise SessionAbortedError(f"Upload {session.upload_id} was aborted") from e
            logger.error(f"Part {byte_range} of upload {session.upload_id} failed after {record.attempts} attempt(s): {e}")
            if isinstance(e, TransportError):
                raise PartUploadError(f"Part {byte_range} failed: {e}", byte_range) from e
            raise

        with self._lock:
            aborted = self._discard_if_aborted(session, byte_range)
            if not aborted:
                record.state = PartState.ACKNOWLEDGED
            self._idle.notify_all()
        if aborted:
            raise SessionAbortedError(f"Upload {session.upload_id} was aborted; part {byte_range} discarded")

        logger.debug(f"Part {byte_range} acknowledged ({digest.hex()})")
        return record

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no part submission is outstanding. Returns False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: self.session.in_flight() == 0, timeout)

    def complete(self) -> str:
        """
        Finish the upload and return the archive id.

        Raises:
            SessionBusyError: Parts still in flight or completion already running
            IncompletePartsError: Planned parts missing or failed (lists them)
            IntegrityMismatchError: Service rejected the final hash or size; session aborted
            SessionStateError: Total size unknown, or session already terminal
        """
        with self._lock:
            session = self._require_active()
            if session.state == SessionState.COMPLETING:
                raise SessionBusyError(f"Upload {session.upload_id} is already completing")
            in_flight = session.in_flight()
            if in_flight:
                raise SessionBusyError(f"{in_flight} part(s) of upload {session.upload_id} still in flight")
            if session.total_size is None:
                raise SessionStateError("Total size unknown: call declare_total_size() first")
            missing = session.missing_ranges()
            if missing:
                raise IncompletePartsError(missing)

            planned = session.planned_ranges()
            records = [session.parts[r.start] for r in planned]
            final_hash = combine_ranges([(r.byte_range, r.tree_hash) for r in records]).hex()
            archive_size = sum(r.byte_range.length for r in records)
            session.state = SessionState.COMPLETING

        try:
            created = self._retry(
                lambda: self._client.complete_multipart_upload(
                    session.vault_name, session.upload_id, archive_size, final_hash
                ),
                "CompleteMultipartUpload",
            )
        except ServiceError as e:
            if e.code == INTEGRITY_ERROR_CODE:
                with self._lock:
                    session.state = SessionState.ABORTED
                self._release_quietly(session)
                raise IntegrityMismatchError(
                    f"Service rejected upload {session.upload_id}: {e.message}",
                    expected=final_hash,
                ) from e
            self._reopen(session)
            raise
        except Exception:
            self._reopen(session)
            raise

        with self._lock:
            if session.state == SessionState.ABORTED:
                raise SessionAbortedError(f"Upload {session.upload_id} was aborted during completion")
            if created.tree_hash and created.tree_hash.lower() != final_hash:
                # Completion consumed the upload id
                session.state = SessionState.ABORTED
                session.released = True
                raise IntegrityMismatchError(
                    f"Archive {created.archive_id} stored with a different tree hash",
                    expected=final_hash,
                    actual=created.tree_hash,
                )
            session.state = SessionState.COMPLETED
            session.archive_id = created.archive_id

        logger.info(
            f"Completed upload {session.upload_id}: archive {created.archive_id}, "
            f"{archive_size} bytes, tree hash {final_hash}"
        )
        return created.archive_id

    def abort(self) -> None:
        """
        Abort the upload and release its id. Idempotent.

        In-flight parts that finish afterwards are discarded. If releasing the
        id failed earlier, calling abort() again retries the release.

        Raises:
            SessionStateError: If the upload already completed
            TransportError: Release still failing after retries (session stays aborted)
        """
        with self._lock:
            session = self.session
            if session.state == SessionState.ABORTED:
                if session.released:
                    return
                logger.info(f"Retrying release of aborted upload {session.upload_id}")
            else:
                if session.state == SessionState.COMPLETED:
                    raise SessionStateError(f"Upload {session.upload_id} already completed")
                in_flight = session.in_flight()
                session.state = SessionState.ABORTED
                self._idle.notify_all()
                logger.info(f"Aborting upload {session.upload_id} ({in_flight} part(s) in flight)")

        self._release(session)

    def _release(self, session: UploadSession) -> None:
        try:
            self._retry(
                lambda: self._client.abort_multipart_upload(session.vault_name, session.upload_id),
                "AbortMultipartUpload",
            )
        except ServiceError as e:
            if not e.is_not_found:
                raise
            logger.debug(f"Upload {session.upload_id} already released")
        with self._lock:
            session.released = True

    def _release_quietly(self, session: UploadSession) -> None:
        try:
            self._release(session)
        except TransportError as e:
            logger.warning(f"Could not release upload {session.upload_id}: {e}")

    def _reopen(self, session: UploadSession) -> None:
        with self._lock:
            if session.state == SessionState.COMPLETING:
                session.state = SessionState.PARTS_IN_FLIGHT

    def _discard_if_aborted(self, session: UploadSession, byte_range: ByteRange) -> bool:
        """Drop the part's record if the session was aborted meanwhile. Caller holds the lock."""
        if session.state != SessionState.ABORTED:
            return False
        session.parts.pop(byte_range.start, None)
        logger.warning(f"Discarding part {byte_range} of aborted upload {session.upload_id}")
        return True

    def _require_active(self) -> UploadSession:
        """Caller holds the lock."""
        session = self.session
        if session.state == SessionState.ABORTED:
            raise SessionAbortedError(f"Upload {session.upload_id} was aborted")
        if session.state == SessionState.COMPLETED:
            raise SessionStateError(f"Upload {session.upload_id} already completed")
        return session

    def _retry(self, func: Callable[[], T], description: str) -> T:
        return call_with_retry(func, self._classifier, description=description, sleep=self._sleep)
