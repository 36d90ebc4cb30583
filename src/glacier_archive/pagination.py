"""
Lazy paginated listings.

Wraps any marker-based listing call in a forward-only, restartable sequence.
Only the current page is held in memory; each new iteration starts its own
cursor from the beginning, so one collection can be traversed many times.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Generic, Iterator, List, Optional, TypeVar

from .errors import PageFetchError
from .retry import RetryClassifier, call_with_retry

__all__ = ["Page", "Cursor", "ListOperation", "PaginatedCollection"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    """One fetched batch. A missing marker means this is the final page."""
    records: List[T] = field(default_factory=list)
    marker: Optional[str] = None

    @property
    def is_last(self) -> bool:
        return self.marker is None


# (marker, page_size_hint) -> Page
ListOperation = Callable[[Optional[str], Optional[int]], Page]


@dataclass
class Cursor:
    """
    Traversal state owned by a single iteration.

    ``marker`` is the continuation marker for the next request; it only
    advances after a page was fetched successfully.
    """
    operation: ListOperation
    page_size: Optional[int] = None
    marker: Optional[str] = None
    pages_fetched: int = 0
    exhausted: bool = False


class PaginatedCollection(Generic[T]):
    """
    Restartable lazy sequence over a listing endpoint.

    Example:
        for vault in client.vaults():
            print(vault.vault_name)
    """

    def __init__(
        self,
        operation: ListOperation,
        *,
        page_size: Optional[int] = None,
        classifier: Optional[RetryClassifier] = None,
        start_marker: Optional[str] = None,
        description: str = "list",
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Args:
            operation: Callable fetching one page for (marker, page_size)
            page_size: Optional hint passed to every request
            classifier: Retry policy for page fetches
            start_marker: Marker to start from (None = beginning)
            description: Label used in logs and errors
            sleep: Sleep function used between retries
        """
        if page_size is not None and page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self._operation = operation
        self._page_size = page_size
        self._classifier = classifier or RetryClassifier()
        self._start_marker = start_marker
        self._description = description
        self._sleep = sleep

    def resume_from(self, marker: Optional[str]) -> PaginatedCollection[T]:
        """Return a collection with the same operation that starts at ``marker``."""
        return PaginatedCollection(
            self._operation,
            page_size=self._page_size,
            classifier=self._classifier,
            start_marker=marker,
            description=self._description,
            sleep=self._sleep,
        )

    def pages(self) -> Iterator[Page[T]]:
        """Yield pages lazily, including logically empty intermediate pages."""
        cursor = Cursor(operation=self._operation, page_size=self._page_size, marker=self._start_marker)
        while not cursor.exhausted:
            page = self._fetch(cursor)
            yield page

    def __iter__(self) -> Iterator[T]:
        for page in self.pages():
            yield from page.records

    def first(self) -> Optional[T]:
        """First record, or None for an empty listing."""
        return next(iter(self), None)

    def _fetch(self, cursor: Cursor) -> Page[T]:
        marker = cursor.marker

        def _call() -> Page[T]:
            return cursor.operation(marker, cursor.page_size)

        try:
            page = call_with_retry(
                _call,
                self._classifier,
                description=f"{self._description} page {cursor.pages_fetched + 1}",
                sleep=self._sleep,
            )
        except Exception as e:
            raise PageFetchError(
                f"Failed to fetch {self._description} page {cursor.pages_fetched + 1}: {e}",
                marker=marker,
                pages_fetched=cursor.pages_fetched,
            ) from e

        cursor.pages_fetched += 1
        cursor.marker = page.marker
        cursor.exhausted = page.is_last
        logger.debug(
            f"{self._description}: page {cursor.pages_fetched} with {len(page.records)} record(s), "
            f"{'last page' if page.is_last else 'more pages'}"
        )
        return page
