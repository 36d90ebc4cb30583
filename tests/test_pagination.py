"""
Test lazy paginated collections.

Uses a scripted list operation so marker handling, laziness and failure
reporting can be observed call by call.
"""
from __future__ import annotations

from typing import List, Optional

import pytest

from glacier_archive.errors import PageFetchError
from glacier_archive.pagination import Page, PaginatedCollection
from glacier_archive.retry import RetryClassifier, RetryPolicy
from glacier_archive.storage.transport_errors import ServiceError


class ScriptedListing:
    """List operation over ``items`` with opaque markers and optional failures."""

    def __init__(self, items: List[str], page_size: int = 2, empty_pages_at=()):
        self.items = items
        self.page_size = page_size
        self.empty_pages_at = set(empty_pages_at)
        self.requests: List[tuple] = []
        self.failures = {}  # request index -> exception

    def __call__(self, marker: Optional[str], limit: Optional[int]) -> Page:
        index = len(self.requests)
        self.requests.append((marker, limit))
        if index in self.failures:
            raise self.failures[index]
        start = int(marker.split(":")[1]) if marker else 0
        if start in self.empty_pages_at:
            self.empty_pages_at.discard(start)
            return Page(records=[], marker=f"opaque:{start}")
        size = limit or self.page_size
        records = self.items[start:start + size]
        end = start + size
        return Page(records=records, marker=f"opaque:{end}" if end < len(self.items) else None)


def _collection(listing, **kwargs) -> PaginatedCollection:
    kwargs.setdefault("classifier", RetryClassifier(RetryPolicy(max_attempts=2, base_delay_s=0)))
    kwargs.setdefault("sleep", lambda _: None)
    return PaginatedCollection(listing, **kwargs)


class TestIteration:
    """Iteration yields each record once, in order."""

    def test_yields_all_records_across_pages(self):
        listing = ScriptedListing([f"v{i}" for i in range(5)])
        assert list(_collection(listing)) == ["v0", "v1", "v2", "v3", "v4"]
        assert [m for m, _ in listing.requests] == [None, "opaque:2", "opaque:4"]

    def test_markers_round_tripped_verbatim(self):
        seen = []

        def op(marker, limit):
            seen.append(marker)
            if marker is None:
                return Page(records=[1], marker="Zm9vIGJhcg==/+ weird")
            return Page(records=[2], marker=None)

        assert list(_collection(op)) == [1, 2]
        assert seen == [None, "Zm9vIGJhcg==/+ weird"]

    def test_page_size_hint_sent_with_every_request(self):
        listing = ScriptedListing([f"v{i}" for i in range(5)])
        list(_collection(listing, page_size=3))
        assert [limit for _, limit in listing.requests] == [3, 3]

    def test_empty_listing(self):
        listing = ScriptedListing([])
        collection = _collection(listing)
        assert list(collection) == []
        assert collection.first() is None

    def test_empty_intermediate_page_continues(self):
        listing = ScriptedListing(["a", "b", "c", "d"], empty_pages_at={2})
        assert list(_collection(listing)) == ["a", "b", "c", "d"]
        assert len(listing.requests) == 3

    def test_pages_exposes_markers(self):
        listing = ScriptedListing(["a", "b", "c"])
        pages = list(_collection(listing).pages())
        assert [p.records for p in pages] == [["a", "b"], ["c"]]
        assert [p.is_last for p in pages] == [False, True]


class TestLaziness:
    """Pages are fetched on demand, and each iteration restarts."""

    def test_first_record_fetches_one_page(self):
        listing = ScriptedListing([f"v{i}" for i in range(10)])
        assert _collection(listing).first() == "v0"
        assert len(listing.requests) == 1

    def test_no_request_until_iterated(self):
        listing = ScriptedListing(["a"])
        iterator = iter(_collection(listing))
        assert listing.requests == []
        assert next(iterator) == "a"

    def test_restartable(self):
        listing = ScriptedListing([f"v{i}" for i in range(3)])
        collection = _collection(listing)
        assert list(collection) == list(collection)
        assert [m for m, _ in listing.requests] == [None, "opaque:2", None, "opaque:2"]

    def test_concurrent_iterators_are_independent(self):
        listing = ScriptedListing([f"v{i}" for i in range(4)])
        collection = _collection(listing)
        first, second = iter(collection), iter(collection)
        assert [next(first), next(first), next(first)] == ["v0", "v1", "v2"]
        assert next(second) == "v0"
        assert list(first) == ["v3"]


class TestFailures:
    """Fetch failures after retries surface the resumable marker."""

    def test_transient_failure_retried(self):
        listing = ScriptedListing(["a", "b", "c"])
        listing.failures[1] = ServiceError(503)
        assert list(_collection(listing)) == ["a", "b", "c"]
        assert [m for m, _ in listing.requests] == [None, "opaque:2", "opaque:2"]

    def test_exhausted_retries_raise_with_last_marker(self):
        listing = ScriptedListing([f"v{i}" for i in range(6)])
        listing.failures[2] = ServiceError(503)
        listing.failures[3] = ServiceError(503)
        collection = _collection(listing)
        received = []
        with pytest.raises(PageFetchError) as exc_info:
            for record in collection:
                received.append(record)
        assert received == ["v0", "v1", "v2", "v3"]
        assert exc_info.value.marker == "opaque:4"
        assert exc_info.value.pages_fetched == 2
        assert isinstance(exc_info.value.__cause__, ServiceError)

        # Continue from where the failure left off
        assert list(collection.resume_from(exc_info.value.marker)) == ["v4", "v5"]

    def test_first_page_failure_has_no_marker(self):
        listing = ScriptedListing(["a"])
        listing.failures[0] = ServiceError(404, code="ResourceNotFoundException")
        with pytest.raises(PageFetchError) as exc_info:
            list(_collection(listing))
        assert exc_info.value.marker is None
        assert exc_info.value.pages_fetched == 0
        assert len(listing.requests) == 1

    def test_invalid_page_size(self):
        with pytest.raises(ValueError):
            PaginatedCollection(ScriptedListing([]), page_size=0)
