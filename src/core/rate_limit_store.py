"""
Storage for fixed-window rate limit counters.

RateLimiter only talks to the RateLimitStore interface. The in-memory store is
process-local; running several instances behind a load balancer needs a shared
implementation of the same interface.
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Hashable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class RateLimitRecord:
    """Request count for one client inside one window."""

    count: int
    window_reset_at: float  # Unix timestamp (seconds) when the window ends


RecordUpdate = Callable[[RateLimitRecord | None], RateLimitRecord]


class RateLimitStore(ABC):
    """Keyed storage of rate limit records."""

    @abstractmethod
    async def get(self, key: Hashable) -> RateLimitRecord | None:
        """Return the record for key, or None."""

    @abstractmethod
    async def set(self, key: Hashable, record: RateLimitRecord) -> None:
        """Store the record for key."""

    @abstractmethod
    async def delete(self, key: Hashable) -> None:
        """Remove the record for key if present."""

    @abstractmethod
    async def update(self, key: Hashable, apply: RecordUpdate) -> RateLimitRecord:
        """
        Atomically read, transform and write back the record for key.

        `apply` receives the current record (or None) and returns the record to
        store. No other operation on the store may interleave with it.
        """

    @abstractmethod
    async def sweep(self, now: float) -> int:
        """Delete every record whose window ended at or before now. Returns the count."""


class InMemoryRateLimitStore(RateLimitStore):
    """Dict-backed store guarded by a single asyncio lock."""

    def __init__(self) -> None:
        self._records: dict[Hashable, RateLimitRecord] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    async def get(self, key: Hashable) -> RateLimitRecord | None:
        async with self._lock:
            record = self._records.get(key)
            if record is None:
                return None
            return RateLimitRecord(record.count, record.window_reset_at)

    async def set(self, key: Hashable, record: RateLimitRecord) -> None:
        async with self._lock:
            self._records[key] = RateLimitRecord(record.count, record.window_reset_at)

    async def delete(self, key: Hashable) -> None:
        async with self._lock:
            self._records.pop(key, None)

    async def update(self, key: Hashable, apply: RecordUpdate) -> RateLimitRecord:
        async with self._lock:
            current = self._records.get(key)
            if current is not None:
                current = RateLimitRecord(current.count, current.window_reset_at)
            record = apply(current)
            self._records[key] = record
            return RateLimitRecord(record.count, record.window_reset_at)

    async def sweep(self, now: float) -> int:
        async with self._lock:
            expired = [
                key for key, record in self._records.items()
                if now >= record.window_reset_at
            ]
            for key in expired:
                del self._records[key]
            return len(expired)


class RateLimitSweeper:
    """
    Background task that periodically removes elapsed windows from a store.

    Owned by the application lifespan: start() on startup, stop() on shutdown.
    """

    def __init__(
        self,
        store: RateLimitStore,
        interval_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._interval = interval_seconds
        self._clock = clock
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        """Whether the sweep task is active."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the sweep loop on the running event loop."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="rate-limit-sweeper")
        logger.info("Rate limit sweeper started (interval=%ss)", self._interval)

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Rate limit sweeper stopped")

    async def sweep_once(self) -> int:
        """Run a single sweep now."""
        removed = await self._store.sweep(self._clock())
        if removed:
            logger.debug("rate_limit_sweep", extra={"removed": removed})
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.sweep_once()
            except Exception:
                logger.exception("Rate limit sweep failed")
