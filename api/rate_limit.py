import math
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional


class SlidingWindowRateLimiter:
    """
    At most ``max_requests`` hits per key within the last ``window_s``
    seconds. A hit only evicts its own key's stale timestamps; keys left
    idle are dropped by a sweep that runs at most once per
    ``sweep_interval_s`` (the window length by default).
    """

    def __init__(
        self,
        max_requests: int,
        window_s: float,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval_s: Optional[float] = None,
    ):
        if max_requests <= 0 or window_s <= 0:
            raise ValueError("max_requests and window_s must be positive")
        self.max_requests = max_requests
        self.window_s = window_s
        self.sweep_interval_s = sweep_interval_s if sweep_interval_s is not None else window_s
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()

    def hit(self, key: str) -> Optional[int]:
        """
        Count a request for ``key``. Returns None when allowed, otherwise the
        number of seconds until the oldest hit leaves the window.
        """
        now = self._clock()
        if now - self._last_sweep >= self.sweep_interval_s:
            self._sweep(now)

        hits = self._hits.setdefault(key, deque())
        self._evict(hits, now)
        if len(hits) >= self.max_requests:
            return max(1, math.ceil(self.window_s - (now - hits[0])))

        hits.append(now)
        return None

    def _evict(self, hits: Deque[float], now: float) -> None:
        cutoff = now - self.window_s
        while hits and hits[0] <= cutoff:
            hits.popleft()

    def _sweep(self, now: float) -> None:
        for key in list(self._hits):
            hits = self._hits[key]
            self._evict(hits, now)
            if not hits:
                del self._hits[key]
        self._last_sweep = now

    def __len__(self) -> int:
        return len(self._hits)
