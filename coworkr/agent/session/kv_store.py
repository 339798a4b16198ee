from __future__ import annotations

import threading
import time
from typing import Any, Callable

from coworkr.config.settings import get_state_ttl_seconds


class InMemoryKeyValueStore:
    """Process-wide key-value store with time-based eviction.

    Entries untouched for longer than `ttl_seconds` are dropped on the next
    access. Values are stored as given; callers own their copies.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = ttl_seconds if ttl_seconds is not None else get_state_ttl_seconds()
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            self._evict_expired()
            entry = self._entries.get(key)
            if entry is None:
                return None
            self._entries[key] = (self._clock(), entry[1])
            return entry[1]

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._evict_expired()
            self._entries[key] = (self._clock(), value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            self._evict_expired()
            return len(self._entries)

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [
            key
            for key, (touched_at, _) in self._entries.items()
            if now - touched_at > self._ttl_seconds
        ]
        for key in expired:
            del self._entries[key]
