from __future__ import annotations

import logging
from typing import Iterator, Optional

from .bulk import (
    BULK_CONCURRENCY,
    RECURSIVE_CONCURRENCY,
    BulkDeleteExecutor,
    BulkResult,
    ProgressCallback,
    RecursiveDeleteOrchestrator,
    TotalCallback,
)
from .config import DEFAULT_PAGE_SIZE
from .errors import ListingError
from .paging import PageStore
from .s3 import ENTRY_FILE, Entry, Page, normalize_prefix, parent_prefix

log = logging.getLogger(__name__)


class SelectionSet:
    def __init__(self) -> None:
        self._keys: dict[str, None] = {}

    def add(self, key: str) -> None:
        self._keys[key] = None

    def discard(self, key: str) -> None:
        self._keys.pop(key, None)

    def toggle(self, key: str) -> bool:
        if key in self._keys:
            del self._keys[key]
            return False
        self._keys[key] = None
        return True

    def clear(self) -> None:
        self._keys.clear()

    def keys(self) -> list[str]:
        return list(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._keys))


class PrefixView:
    """Browsing state for one bucket: the listing cache plus the selection.

    Both are owned by the current prefix; moving to another prefix discards
    them instead of reconciling.
    """

    def __init__(
        self,
        client,
        prefix: str = "",
        page_size: int = DEFAULT_PAGE_SIZE,
        bulk_concurrency: int = BULK_CONCURRENCY,
        recursive_concurrency: int = RECURSIVE_CONCURRENCY,
    ) -> None:
        self.client = client
        self.store = PageStore(client, normalize_prefix(prefix), page_size)
        self.selection = SelectionSet()
        self.bulk_concurrency = bulk_concurrency
        self.recursive_concurrency = recursive_concurrency
        self.search_query = ""
        self.error: Optional[str] = None
        self.loading = False

    @property
    def prefix(self) -> str:
        return self.store.prefix

    @property
    def page_size(self) -> int:
        return self.store.page_size

    async def open(self, prefix: str) -> bool:
        self.selection.clear()
        self.search_query = ""
        self.store.reset(prefix=normalize_prefix(prefix))
        return await self._load_first()

    async def enter(self, entry: Entry) -> bool:
        if not entry.is_directory:
            raise ValueError(f"not a directory: {entry.key}")
        return await self.open(entry.key)

    async def up(self) -> bool:
        return await self.open(parent_prefix(self.prefix))

    async def refresh(self) -> bool:
        self.store.reset()
        return await self._load_first()

    async def set_page_size(self, page_size: int) -> bool:
        self.store.reset(page_size=page_size)
        return await self._load_first()

    async def _load_first(self) -> bool:
        self.error = None
        self.loading = True
        try:
            await self.store.load_first()
        except ListingError as exc:
            self.error = f"{exc}"
            log.info("listing %r failed: %s", self.prefix, exc)
            return False
        finally:
            self.loading = False
        return True

    async def next_page(self) -> Optional[Page]:
        self.loading = True
        try:
            return await self.store.go_next()
        finally:
            self.loading = False

    def prev_page(self) -> Optional[Page]:
        return self.store.go_prev()

    def set_search(self, query: str) -> None:
        self.search_query = query
        if query.strip():
            self.store.ensure_crawl()

    def is_searching(self) -> bool:
        return bool(self.search_query.strip())

    def visible_entries(self) -> list[Entry]:
        return self.store.search(self.search_query)

    def toggle_selected(self, key: str) -> bool:
        return self.selection.toggle(key)

    def visible_files(self) -> list[Entry]:
        return [entry for entry in self.visible_entries() if entry.kind == ENTRY_FILE]

    def select_all_files(self) -> int:
        files = self.visible_files()
        for entry in files:
            self.selection.add(entry.key)
        return len(files)

    def clear_selection(self) -> None:
        self.selection.clear()

    def breadcrumbs(self) -> list[tuple[str, str]]:
        crumbs = [("root", "")]
        path = ""
        for part in self.prefix.rstrip("/").split("/"):
            if not part:
                continue
            path = f"{path}{part}/"
            crumbs.append((part, path))
        return crumbs

    async def delete_selected(
        self, on_progress: Optional[ProgressCallback] = None
    ) -> BulkResult:
        keys = self.selection.keys()
        if not keys:
            return BulkResult(total=0)
        executor = BulkDeleteExecutor(self.client)
        result = await executor.run(
            keys, self.bulk_concurrency, on_progress=on_progress
        )
        self.selection.clear()
        await self.refresh()
        return result

    async def delete_entry(
        self,
        entry: Entry,
        recursive: bool = False,
        on_total: Optional[TotalCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BulkResult:
        """Delete one row.

        Directories are emptied only with ``recursive``; otherwise the store
        rejects a non-empty directory with ``DeleteError``, which is raised.
        """
        if entry.is_directory and recursive:
            orchestrator = RecursiveDeleteOrchestrator(
                self.client, concurrency_limit=self.recursive_concurrency
            )
            result = await orchestrator.run(
                entry.key, on_total=on_total, on_progress=on_progress
            )
            for key in self.selection.keys():
                if key.startswith(entry.key):
                    self.selection.discard(key)
        else:
            await self.client.delete(entry.key, recursive=False)
            self.selection.discard(entry.key)
            result = BulkResult(total=1, succeeded=(entry.key,))
        await self.refresh()
        return result
