from __future__ import annotations
"""Drains every page of a bucket listing."""
import logging
from typing import Iterable, Protocol

from .models import ListingPage, ObjectMetadata
from .services import StorageError

LOGGER = logging.getLogger(__name__)


class PagedStore(Protocol):
    def list_page(self, continuation_token: str | None = None) -> ListingPage:
        ...


class ListingAggregator:
    """Concatenates listing pages in the order the backend returns them."""

    def __init__(self, store: PagedStore):
        self._store = store

    def list_all(self) -> list[ObjectMetadata]:
        """Return every object in the bucket.

        Entries keep their intra-page order and pages are appended as they
        arrive; nothing is re-sorted.

        Raises:
            StorageError: when any page request fails.
        """

        entries: list[ObjectMetadata] = []
        page = self._store.list_page(None)
        entries.extend(page.entries)
        page_count = 1
        while page.truncated:
            if not page.next_token:
                raise StorageError("Listing was truncated without a continuation token")
            page = self._store.list_page(page.next_token)
            entries.extend(page.entries)
            page_count += 1
        LOGGER.debug("Listed %d object(s) across %d page(s)", len(entries), page_count)
        return entries

    def list_keys(self) -> list[str]:
        return [entry.key for entry in self.list_all()]


def keys_under_prefix(keys: Iterable[str], prefix: str) -> list[str]:
    """Keys starting with ``prefix`` that are strictly longer than it."""

    return [key for key in keys if key.startswith(prefix) and len(key) != len(prefix)]
