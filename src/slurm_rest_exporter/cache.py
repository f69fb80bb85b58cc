"""Thread-safe, per-endpoint snapshot cache with throttling.

Several collectors read the same REST endpoints (the job listing feeds five
of them). The cache keys snapshots by endpoint so that one poll window
costs a single request per endpoint, however many collectors ask for it.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass
class _Entry:
    lock: Lock = field(default_factory=Lock)
    data: Any = None
    last_fetch: float | None = None


class AtomicThrottledCache:
    """Keyed cache that rate-limits how often each key is refreshed.

    Each key has its own lock, so fetches for different endpoints can run
    concurrently while concurrent requests for the same endpoint share one
    fetch.
    """

    def __init__(self, limit: float):
        """Initialize the cache.

        Args:
            limit: Minimum seconds between refreshes of the same key.
        """
        self._limit = limit
        self._entries: dict[str, _Entry] = {}
        self._entries_lock = Lock()

    def _entry(self, key: str) -> _Entry:
        with self._entries_lock:
            return self._entries.setdefault(key, _Entry())

    def fetch_or_throttle(
        self,
        key: str,
        fetch_func: Callable[[], T],
    ) -> tuple[T, float | None]:
        """Fetch data for ``key`` or return the cached copy if still fresh.

        Args:
            key: Cache key, typically the endpoint name.
            fetch_func: Function to fetch fresh data.

        Returns:
            Tuple of (data, fetch_duration) where:
            - data: Cached or fresh data of type T
            - fetch_duration: Duration in seconds if fetched, None if cache hit
        """
        entry = self._entry(key)
        with entry.lock:
            elapsed: float | None = (
                time.time() - entry.last_fetch
                if entry.last_fetch is not None
                else None
            )
            if (
                entry.data is not None
                and elapsed is not None
                and elapsed < self._limit
            ):
                logger.debug(
                    "Using cached data",
                    key=key,
                    age_seconds=round(elapsed, 2),
                )
                return entry.data, None

            start = time.time()
            data = fetch_func()
            duration = time.time() - start
            entry.data = data
            entry.last_fetch = time.time()
            logger.debug("Fetched fresh data", key=key, duration_seconds=duration)
            return data, duration
