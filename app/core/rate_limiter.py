from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from threading import Lock
from typing import Callable

from app.core.config import APP_PROXY_RATE_LIMIT, APP_PROXY_RATE_WINDOW_SECONDS
from utils.shop_domain import normalize_shop_domain


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int


class RateLimiterService(ABC):
    @abstractmethod
    def check(self, *, shop: str, endpoint: str) -> RateLimitDecision:
        """Decide whether a request from ``shop`` to ``endpoint`` may proceed."""


class InMemoryRateLimiterService(RateLimiterService):
    """Sliding-window limiter keyed by canonical shop domain + endpoint.

    Buckets of shops that stopped sending traffic are swept once per window.
    Kept behind an interface so a shared store (Redis) can replace it when the
    app runs on more than one process.
    """

    def __init__(
        self,
        *,
        limit: int = APP_PROXY_RATE_LIMIT,
        window_seconds: int = APP_PROXY_RATE_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._store: dict[tuple[str, str], deque[float]] = {}
        self._last_sweep = clock()
        self._lock = Lock()

    def tracked_shops(self) -> set[str]:
        with self._lock:
            return {shop for shop, _endpoint in self._store}

    def check(self, *, shop: str, endpoint: str) -> RateLimitDecision:
        now = self._clock()
        key = (normalize_shop_domain(shop) or shop, endpoint)

        with self._lock:
            self._sweep_idle(now)
            bucket = self._store.setdefault(key, deque())
            cutoff = now - self.window_seconds
            while bucket and bucket[0] <= cutoff:
                bucket.popleft()

            if len(bucket) >= self.limit:
                retry_after = max(1, int(self.window_seconds - (now - bucket[0])))
                return RateLimitDecision(
                    allowed=False,
                    limit=self.limit,
                    remaining=0,
                    retry_after_seconds=retry_after,
                )

            bucket.append(now)
            return RateLimitDecision(
                allowed=True,
                limit=self.limit,
                remaining=max(0, self.limit - len(bucket)),
                retry_after_seconds=0,
            )

    def _sweep_idle(self, now: float) -> None:
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        cutoff = now - self.window_seconds
        idle = [key for key, bucket in self._store.items() if not bucket or bucket[-1] <= cutoff]
        for key in idle:
            del self._store[key]
