import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

from .errors import RateLimitExceeded


class RateLimiter:
    """
    Sliding-window limit on research sessions, per client and process-wide.

    The thresholds are policy, not contract: tune them through configuration or
    switch the limiter off entirely with `enabled=False`.
    """

    def __init__(
        self,
        per_client: int = 10,
        global_limit: int = 100,
        window_seconds: float = 3600,
        enabled: bool = True,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.per_client = per_client
        self.global_limit = global_limit
        self.window_seconds = window_seconds
        self.enabled = enabled
        self._clock = clock or time.monotonic
        self._global: Deque[float] = deque()
        self._clients: Dict[str, Deque[float]] = {}

    def _prune(self, hits: Deque[float], now: float) -> None:
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()

    def _sweep(self, now: float) -> None:
        """Prune every window and forget clients with no hits left in theirs."""
        self._prune(self._global, now)
        for client_id in list(self._clients):
            hits = self._clients[client_id]
            self._prune(hits, now)
            if not hits:
                del self._clients[client_id]

    @property
    def tracked_clients(self) -> int:
        return len(self._clients)

    def check(self, client_id: str) -> None:
        """Record one session for `client_id`, or raise RateLimitExceeded."""
        if not self.enabled:
            return
        now = self._clock()
        self._sweep(now)
        client_hits = self._clients.get(client_id, deque())

        if len(client_hits) >= self.per_client:
            raise RateLimitExceeded("client", self.per_client, self._retry_after(client_hits, now))
        if len(self._global) >= self.global_limit:
            raise RateLimitExceeded("global", self.global_limit, self._retry_after(self._global, now))

        client_hits.append(now)
        self._clients[client_id] = client_hits
        self._global.append(now)

    def _retry_after(self, hits: Deque[float], now: float) -> float:
        if not hits:
            return float(self.window_seconds)
        return max(0.0, self.window_seconds - (now - hits[0]))

    def remaining(self, client_id: str) -> int:
        if not self.enabled:
            return self.per_client
        self._sweep(self._clock())
        client_hits = self._clients.get(client_id, deque())
        return max(0, min(self.per_client - len(client_hits), self.global_limit - len(self._global)))

    def reset(self) -> None:
        self._global.clear()
        self._clients.clear()
