"""Short-lived cache for user lookups.

Several requests in quick succession (a page load fans out to multiple API
calls) resolve the same bearer token. Results are cached for a few seconds
per token; signing out drops the entry immediately.
"""

import threading
import time
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar


T = TypeVar("T")

DEFAULT_TTL_SECONDS = 5.0


class CachedUserLookup(Generic[T]):
    """Memoize ``fetch(token)`` for ``ttl_seconds``.

    Lookups that raise are not cached; a failing token is retried on the
    next call.
    """

    def __init__(self, fetch: Callable[[str], Optional[T]],
                 ttl_seconds: float = DEFAULT_TTL_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.fetch = fetch
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[str, Tuple[float, Optional[T]]] = {}
        self._lock = threading.Lock()

    def get(self, token: str) -> Optional[T]:
        now = self.clock()
        with self._lock:
            entry = self._entries.get(token)
            if entry is not None and now - entry[0] < self.ttl_seconds:
                return entry[1]

        user = self.fetch(token)

        with self._lock:
            self._entries[token] = (now, user)
            # Expired entries are dropped whenever a new one is stored
            for key in [k for k, (ts, _) in self._entries.items() if now - ts >= self.ttl_seconds]:
                del self._entries[key]
        return user

    def invalidate(self, token: Optional[str] = None) -> None:
        """Drop one token (sign-out) or the whole cache."""
        with self._lock:
            if token is None:
                self._entries.clear()
            else:
                self._entries.pop(token, None)

    def __contains__(self, token: Any) -> bool:
        with self._lock:
            entry = self._entries.get(token)
            return entry is not None and self.clock() - entry[0] < self.ttl_seconds
