"""
Listing state for a user's food entries: search, pagination and optimistic
delete with rollback.

The HTTP list endpoint and the Python client share the filtering and paging
helpers so both sides agree on what a page contains.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Generic, Optional, Protocol, Sequence, TypeVar

logger = logging.getLogger(__name__)

PAGE_SIZES = (10, 20, 50)
DEFAULT_PAGE_SIZE = PAGE_SIZES[0]

T = TypeVar("T")


def filter_by_name(rows: Sequence[T], query: str, name_of: Callable[[T], str]) -> list[T]:
    needle = (query or "").strip().lower()
    if not needle:
        return list(rows)
    return [row for row in rows if needle in (name_of(row) or "").lower()]


def count_pages(total: int, page_size: int) -> int:
    return max(1, math.ceil(total / page_size))


def page_slice(rows: Sequence[T], page: int, page_size: int) -> list[T]:
    start = (page - 1) * page_size
    return list(rows[start:start + page_size])


class ListingEntry(Protocol):
    id: str
    name: str


class ListingBackend(Protocol):
    """Remote operations the listing needs."""

    def fetch_entries(self) -> list:
        ...

    def delete_entry(self, entry_id: str) -> None:
        ...


E = TypeVar("E", bound=ListingEntry)


class FoodListing(Generic[E]):
    """
    All rows loaded for the signed-in user plus the current view over them.

    ``visible``, ``total`` and ``total_pages`` are derived from the rows, the
    search query, the page and the page size.
    """

    def __init__(self, backend: ListingBackend, page_size: int = DEFAULT_PAGE_SIZE):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.backend = backend
        self.rows: list[E] = []
        self.search = ""
        self.page = 1
        self.page_size = page_size
        self.loading = False

    def load(self) -> None:
        self.loading = True
        try:
            self.rows = list(self.backend.fetch_entries())
        finally:
            self.loading = False

    def _filtered(self) -> list[E]:
        return filter_by_name(self.rows, self.search, lambda row: row.name)

    @property
    def total(self) -> int:
        return len(self._filtered())

    @property
    def total_pages(self) -> int:
        return count_pages(self.total, self.page_size)

    @property
    def visible(self) -> list[E]:
        return page_slice(self._filtered(), self.page, self.page_size)

    def set_search(self, query: str) -> None:
        self.search = query
        self.page = 1

    def set_page_size(self, page_size: int) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.page_size = page_size
        self.page = 1

    def next_page(self) -> None:
        self.page = min(self.total_pages, self.page + 1)

    def previous_page(self) -> None:
        self.page = max(1, self.page - 1)

    def find(self, entry_id: str) -> Optional[E]:
        for row in self.rows:
            if row.id == entry_id:
                return row
        return None

    def delete(self, entry_id: str) -> E:
        """
        Remove ``entry_id`` from the view before the remote delete resolves.

        If the remote call raises, rows and page are put back exactly as they
        were and the exception propagates.
        """
        index = next(
            (i for i, row in enumerate(self.rows) if row.id == entry_id), None
        )
        if index is None:
            raise KeyError(entry_id)

        previous_page = self.page
        empties_page = len(self.visible) == 1 and self.visible[0].id == entry_id
        removed = self.rows.pop(index)
        if empties_page and self.page > 1:
            self.page -= 1

        try:
            self.backend.delete_entry(entry_id)
        except Exception:
            logger.exception("Delete of %s failed; restoring listing", entry_id)
            self.rows.insert(index, removed)
            self.page = previous_page
            raise
        return removed
