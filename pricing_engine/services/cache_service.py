"""TTL-bounded memoization shared by availability queries."""

from __future__ import annotations

import time
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Optional

from pricing_engine.utils.config import Settings, get_settings
from pricing_engine.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    created_at: float


def build_cache_key(namespace: str, **params: Any) -> str:
    """Serialize every query parameter in sorted order so distinct queries never collide."""
    parts = [namespace]
    for name in sorted(params):
        value = params[name]
        if isinstance(value, (list, tuple, set, frozenset)):
            value = ",".join(str(item) for item in sorted(value))
        parts.append(f"{name}={value}")
    return "|".join(parts)


class ResultCache:
    """Lock-guarded key/value map with lazy expiry on lookup."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings or get_settings()
        self._ttl_seconds = self._settings.cache_ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = RLock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.created_at >= self._ttl_seconds:
                del self._entries[key]
                logger.debug("Cache entry expired | key=%s", key)
                return None
            return entry.value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(key=key, value=value, created_at=self._clock())

    def clear_all(self) -> None:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("Cache cleared | entries=%s", count)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
