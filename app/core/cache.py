"""
TTL Cache

A small async-aware cache for read-mostly lookups on the redirect path
(currently the blocked IP list).

Design:
- Owned by the application lifecycle (stored on app.state), never a module global
- TTL is injected at construction time
- Explicit invalidation when the underlying data changes
- Refills are serialized with an asyncio.Lock so a burst of requests after
  expiry triggers a single store query
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple


class TTLCache:
    """
    Keyed cache whose entries expire after a fixed time-to-live.

    The clock is injectable so expiry can be tested without sleeping.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._lock = asyncio.Lock()

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = (value, self._clock())

    async def get_or_load(self, key: str, loader: Callable[[], Awaitable[Any]]) -> Any:
        """
        Return the cached value, loading it with `loader` on a miss.

        Loader exceptions propagate and nothing is cached.
        """
        value = self.get(key)
        if value is not None:
            return value

        async with self._lock:
            # Another coroutine may have refilled while we waited
            value = self.get(key)
            if value is not None:
                return value
            value = await loader()
            self.set(key, value)
            return value

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one key, or every key when none is given."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)
