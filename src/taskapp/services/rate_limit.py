"""Simple in-memory sliding-window rate limiter.

Suitable for a single process. State is not shared between workers, so a
multi-instance deployment gets one budget per instance.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional


@dataclass
class RateLimitResult:
    """Outcome of a rate limit check."""
    allowed: bool
    remaining: int
    reset_at: float  # clock value when the oldest request leaves the window

    def retry_after(self, now: float) -> int:
        """Whole seconds until another request would be accepted."""
        return max(1, int(self.reset_at - now + 0.999))


class SlidingWindowRateLimiter:
    """Allow at most ``max_requests`` per key within ``window_seconds``."""

    # Prune idle keys at most this often
    CLEANUP_INTERVAL = 300.0

    def __init__(self, max_requests: int = 60, window_seconds: float = 60.0,
                 clock: Callable[[], float] = time.monotonic):
        if max_requests <= 0 or window_seconds <= 0:
            raise ValueError("max_requests and window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._store: Dict[str, List[float]] = {}
        self._lock = threading.Lock()
        self._last_cleanup = clock()

    def check(self, key: str) -> RateLimitResult:
        """Check and consume one request for the given key."""
        with self._lock:
            now = self.clock()
            self._cleanup(now)

            window_start = now - self.window_seconds
            timestamps = [ts for ts in self._store.get(key, []) if ts > window_start]

            if len(timestamps) >= self.max_requests:
                self._store[key] = timestamps
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_at=timestamps[0] + self.window_seconds,
                )

            timestamps.append(now)
            self._store[key] = timestamps
            return RateLimitResult(
                allowed=True,
                remaining=self.max_requests - len(timestamps),
                reset_at=timestamps[0] + self.window_seconds,
            )

    def reset(self, key: Optional[str] = None) -> None:
        """Forget one key, or everything."""
        with self._lock:
            if key is None:
                self._store.clear()
            else:
                self._store.pop(key, None)

    def __len__(self) -> int:
        return len(self._store)

    def _cleanup(self, now: float) -> None:
        if now - self._last_cleanup < self.CLEANUP_INTERVAL:
            return
        self._last_cleanup = now
        stale_before = now - self.window_seconds * 2
        for key in [k for k, ts in self._store.items() if not ts or ts[-1] < stale_before]:
            del self._store[key]


def get_client_ip(headers: Mapping[str, str], fallback: Optional[str] = None) -> str:
    """Client identifier for rate limiting.

    Uses the first hop of X-Forwarded-For, then X-Real-IP, then the
    socket peer address.
    """
    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    return fallback or "unknown"
