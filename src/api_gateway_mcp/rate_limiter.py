"""Per-client request rate limiting for the HTTP surface."""

import time
from collections import deque
from typing import Callable, Deque, Dict


class SlidingWindowRateLimiter:
    """Allow at most ``max_requests`` per client within ``window_seconds``.

    Clients with no hits left in the window are dropped once per window, so
    memory follows the number of recently active clients.
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 15 * 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()

    @property
    def tracked_clients(self) -> int:
        return len(self._hits)

    def check(self, client_id: str) -> bool:
        """Record a request from *client_id*; False if it is over the limit."""
        now = self._clock()
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(now)

        hits = self._hits.setdefault(client_id, deque())
        self._prune(hits, now)

        if len(hits) >= self.max_requests:
            return False
        hits.append(now)
        return True

    def remaining(self, client_id: str) -> int:
        hits = self._hits.get(client_id)
        if not hits:
            return self.max_requests
        cutoff = self._clock() - self.window_seconds
        used = sum(1 for t in hits if t > cutoff)
        return max(self.max_requests - used, 0)

    def _prune(self, hits: Deque[float], now: float) -> None:
        cutoff = now - self.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()

    def _sweep(self, now: float) -> None:
        for client_id in list(self._hits):
            hits = self._hits[client_id]
            self._prune(hits, now)
            if not hits:
                del self._hits[client_id]
        self._last_sweep = now
