"""Cursor-paged listing cache with background prefetch.

The remote listing is a one-way cursor chain. ``PageStore`` turns it into
a random-access view: every fetched page is kept, so moving back and forth
over already visited pages never touches the network. A ``PrefetchCrawler``
walks the rest of the chain in the background so search can cover the whole
prefix and the total page count becomes known.

Each ``reset`` bumps ``PageStore.generation``. Background work captures the
generation it was started for and drops its results once the live value
moved on; there is no forced interruption of an in-flight request.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from .errors import CrawlAbandoned, ListingError
from .s3 import Entry, Page

log = logging.getLogger(__name__)

Observer = Callable[["PageStore"], None]


class PageStore:
    def __init__(self, client, prefix: str = "", page_size: int = 50) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self.client = client
        self.prefix = prefix
        self.page_size = page_size
        self.pages: list[Page] = []
        self.current_index = 0
        self.frontier_cursor: Optional[str] = None
        self.generation = 0
        self.crawl_task: Optional[asyncio.Task] = None
        self._crawl_generation: Optional[int] = None
        self._total_pages: Optional[int] = None
        self._observers: list[Observer] = []

    def subscribe(self, callback: Observer) -> None:
        self._observers.append(callback)

    def _notify(self) -> None:
        for callback in list(self._observers):
            callback(self)

    def reset(
        self, prefix: Optional[str] = None, page_size: Optional[int] = None
    ) -> None:
        if page_size is not None:
            if page_size < 1:
                raise ValueError("page_size must be >= 1")
            self.page_size = page_size
        if prefix is not None:
            self.prefix = prefix
        self.pages = []
        self.current_index = 0
        self.frontier_cursor = None
        self._total_pages = None
        self._crawl_generation = None
        self.generation += 1
        self._notify()

    async def load_first(self) -> Optional[Page]:
        if self.pages:
            self.reset()
        generation = self.generation
        page = await self.client.list_page(self.prefix, None, self.page_size)
        if generation != self.generation:
            log.debug("discarding first page for stale generation %d", generation)
            return None
        self.pages = [page]
        self.current_index = 0
        self.frontier_cursor = page.next_cursor
        self._total_pages = None if page.truncated else 1
        self._notify()
        if page.truncated:
            self._start_crawl()
        return page

    async def go_next(self) -> Optional[Page]:
        if self.current_index + 1 < len(self.pages):
            return self._advance()
        cursor = self.frontier_cursor
        if cursor is None:
            return None
        generation = self.generation
        page = await self.client.list_page(self.prefix, cursor, self.page_size)
        if generation != self.generation:
            return None
        self._accept(cursor, page, generation)
        # The crawler may have appended the same page while we were waiting.
        if self.current_index + 1 < len(self.pages):
            return self._advance()
        return None

    def go_prev(self) -> Optional[Page]:
        if self.current_index <= 0:
            return None
        self.current_index -= 1
        self._notify()
        return self.pages[self.current_index]

    def _advance(self) -> Page:
        self.current_index += 1
        self._notify()
        return self.pages[self.current_index]

    def _accept(self, cursor: str, page: Page, generation: int) -> bool:
        if generation != self.generation:
            return False
        if cursor != self.frontier_cursor:
            return False
        self.pages.append(page)
        self.frontier_cursor = page.next_cursor
        if not page.truncated:
            self._total_pages = len(self.pages)
        self._notify()
        return True

    def total_pages(self) -> Optional[int]:
        return self._total_pages

    def current_page(self) -> Optional[Page]:
        if not self.pages:
            return None
        return self.pages[self.current_index]

    def has_prev(self) -> bool:
        return self.current_index > 0

    def has_next(self) -> bool:
        return self.current_index + 1 < len(self.pages) or bool(self.frontier_cursor)

    def all_entries(self) -> list[Entry]:
        merged: dict[str, Entry] = {}
        for page in self.pages:
            for entry in page.entries:
                merged[entry.key] = entry
        return list(merged.values())

    def search(self, query: str) -> list[Entry]:
        needle = query.strip().lower()
        if not needle:
            page = self.current_page()
            return list(page.entries) if page else []
        return [
            entry
            for entry in self.all_entries()
            if needle in entry.name.lower() or needle in entry.key.lower()
        ]

    def crawl_active(self) -> bool:
        return (
            self.crawl_task is not None
            and not self.crawl_task.done()
            and self._crawl_generation == self.generation
        )

    def ensure_crawl(self) -> bool:
        if not self.pages or not self.frontier_cursor or self.crawl_active():
            return False
        self._start_crawl()
        return True

    def _start_crawl(self) -> None:
        crawler = PrefetchCrawler(self, self.generation)
        self._crawl_generation = self.generation
        self.crawl_task = asyncio.create_task(crawler.run())

    async def wait_for_crawl(self) -> None:
        task = self.crawl_task
        if task is not None:
            await task


class PrefetchCrawler:
    def __init__(self, store: PageStore, generation: int) -> None:
        self.store = store
        self.generation = generation
        self.pages_fetched = 0

    def _check(self) -> None:
        if self.store.generation != self.generation:
            raise CrawlAbandoned(
                f"generation {self.generation} superseded by {self.store.generation}"
            )

    async def run(self) -> Optional[int]:
        """Walk the cursor chain; return the final page count when exhausted."""
        store = self.store
        try:
            while True:
                self._check()
                cursor = store.frontier_cursor
                if cursor is None:
                    break
                page = await store.client.list_page(
                    store.prefix, cursor, store.page_size
                )
                self._check()
                if store._accept(cursor, page, self.generation):
                    self.pages_fetched += 1
        except CrawlAbandoned as exc:
            log.debug("prefetch crawl stopped: %s", exc)
            return None
        except ListingError as exc:
            log.debug("prefetch crawl for %r ended early: %s", store.prefix, exc)
            return None
        log.debug(
            "prefetch crawl for %r complete: %s pages",
            store.prefix,
            store.total_pages(),
        )
        return store.total_pages()
