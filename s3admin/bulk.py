from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from .errors import ListingError

log = logging.getLogger(__name__)

BULK_CONCURRENCY = 6
RECURSIVE_CONCURRENCY = 20
MAX_RECURSIVE_CONCURRENCY = 100

PHASE_IDLE = "idle"
PHASE_ENUMERATE = "enumerate"
PHASE_DELETE = "delete"
PHASE_DONE = "done"

ProgressCallback = Callable[[int, int], None]  # (done, total)
TotalCallback = Callable[[int], None]


@dataclass
class BulkJob:
    keys: list[str]
    concurrency_limit: int
    total_count: int = 0
    done_count: int = 0
    in_flight: int = 0
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    def settle(self, key: str, error: Optional[str] = None) -> None:
        if self.done_count >= self.total_count:
            raise RuntimeError("bulk job already settled")
        if error is None:
            self.succeeded.append(key)
        else:
            self.failed[key] = error
        self.done_count += 1


@dataclass(frozen=True)
class BulkResult:
    total: int
    succeeded: tuple[str, ...] = ()
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def failed_count(self) -> int:
        return self.total - self.succeeded_count

    def summary(self) -> str:
        if not self.failed_count:
            return f"Deleted {self.succeeded_count} of {self.total}"
        return (
            f"Deleted {self.succeeded_count} of {self.total} "
            f"({self.failed_count} failed)"
        )


class BulkDeleteExecutor:
    """Deletes keys in rounds of at most ``concurrency_limit`` calls.

    Round N+1 starts only after every call of round N settled. A failed
    call counts as done exactly like a successful one; failures are
    collected on the job and returned, never raised.
    """

    def __init__(self, client) -> None:
        self.client = client
        self.job: Optional[BulkJob] = None

    async def run(
        self,
        keys: Iterable[str],
        concurrency_limit: int,
        on_progress: Optional[ProgressCallback] = None,
        recursive: bool = False,
    ) -> BulkResult:
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be >= 1")
        ordered = list(keys)
        job = BulkJob(
            keys=ordered,
            concurrency_limit=concurrency_limit,
            total_count=len(ordered),
        )
        self.job = job
        index = 0
        while index < len(ordered):
            batch = ordered[index : index + concurrency_limit]
            index += len(batch)
            await asyncio.gather(
                *(
                    self._delete_one(job, key, recursive, on_progress)
                    for key in batch
                )
            )
        self.job = None
        result = BulkResult(
            total=job.total_count,
            succeeded=tuple(job.succeeded),
            failed=dict(job.failed),
        )
        log.info("bulk delete finished: %s", result.summary())
        return result

    async def _delete_one(
        self,
        job: BulkJob,
        key: str,
        recursive: bool,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        error: Optional[str] = None
        job.in_flight += 1
        try:
            await self.client.delete(key, recursive=recursive)
        except Exception as exc:
            error = f"{exc}" or type(exc).__name__
            log.warning("delete failed for %s: %s", key, error)
        finally:
            job.in_flight -= 1
        job.settle(key, error)
        if on_progress is not None:
            on_progress(job.done_count, job.total_count)


class RecursiveDeleteOrchestrator:
    """Empties a directory-shaped key: enumerate every key, then delete them.

    The store has no recursive delete, so the flat listing is walked to the
    end first. The total is published only once enumeration finished.
    """

    def __init__(
        self,
        client,
        executor: Optional[BulkDeleteExecutor] = None,
        concurrency_limit: int = RECURSIVE_CONCURRENCY,
    ) -> None:
        self.client = client
        self.executor = executor or BulkDeleteExecutor(client)
        self.concurrency_limit = max(
            1, min(MAX_RECURSIVE_CONCURRENCY, int(concurrency_limit))
        )
        self.phase = PHASE_IDLE
        self.total_count: Optional[int] = None

    async def enumerate(self, directory_key: str) -> list[str]:
        keys: dict[str, None] = {}
        cursor: Optional[str] = None
        while True:
            page = await self.client.list_flat_page(directory_key, cursor)
            for key in page.keys:
                keys[key] = None
            if not page.truncated:
                break
            cursor = page.next_cursor
        return list(keys)

    async def run(
        self,
        directory_key: str,
        on_total: Optional[TotalCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BulkResult:
        if not directory_key or not directory_key.endswith("/"):
            raise ValueError(f"not a directory key: {directory_key!r}")
        self.phase = PHASE_ENUMERATE
        self.total_count = None
        try:
            keys = await self.enumerate(directory_key)
        except ListingError:
            self.phase = PHASE_IDLE
            raise
        self.total_count = len(keys)
        log.info("deleting %d keys under %s", len(keys), directory_key)
        if on_total is not None:
            on_total(len(keys))
        self.phase = PHASE_DELETE
        # Markers are deleted alongside their children, so skip the
        # emptiness probe.
        result = await self.executor.run(
            keys,
            self.concurrency_limit,
            on_progress=on_progress,
            recursive=True,
        )
        self.phase = PHASE_DONE
        return result
