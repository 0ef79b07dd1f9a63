"""In-memory fixed window rate limiter keyed by (client IP, path)."""

from __future__ import annotations

import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass

from src.config import RateLimitConfig
from src.models import RateLimitDecision


@dataclass
class RateLimitRecord:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """Fixed window counter per (ip, path).

    The first request for a key, or the first one after its window has
    elapsed, opens a new window. A request that finds the window full is
    rejected without touching the record. Bursts of up to twice the limit
    across a window boundary are possible.

    Records are kept in least-recently-touched order. Once more than
    ``max_tracked_keys`` are tracked, expired records are swept and, if still
    over capacity, the least recently touched ones are evicted. Evicting a
    record whose window is still open ends that window early: the key's next
    request starts from a fresh count, so a client touching enough distinct
    keys can reset its own counters. Size ``max_tracked_keys`` well above the
    expected number of live (ip, path) pairs.
    """

    def __init__(self, max_tracked_keys: int = 10_000) -> None:
        self._max_tracked_keys = max_tracked_keys
        self._records: OrderedDict[tuple[str, str], RateLimitRecord] = OrderedDict()
        self._lock = threading.Lock()

    def check_and_consume(
        self,
        ip: str,
        path: str,
        max_requests: int,
        window_seconds: float,
        now: float | None = None,
    ) -> RateLimitDecision:
        """Admit or reject one request for (ip, path), consuming quota if admitted."""
        if now is None:
            now = time.time()
        key = (ip, path)

        with self._lock:
            record = self._records.get(key)

            if record is None or now > record.reset_at:
                record = RateLimitRecord(count=1, reset_at=now + window_seconds)
                self._records[key] = record
                self._records.move_to_end(key)
                self._enforce_capacity(now)
                return _decision(True, record, max_requests, now)

            self._records.move_to_end(key)
            if record.count >= max_requests:
                return _decision(False, record, max_requests, now)

            record.count += 1
            return _decision(True, record, max_requests, now)

    def get(self, ip: str, path: str) -> RateLimitRecord | None:
        """Return a copy of the current record for (ip, path), if tracked."""
        with self._lock:
            record = self._records.get((ip, path))
            if record is None:
                return None
            return RateLimitRecord(count=record.count, reset_at=record.reset_at)

    def sweep(self, now: float | None = None) -> int:
        """Drop records whose window has elapsed. Returns the number removed."""
        if now is None:
            now = time.time()
        with self._lock:
            return self._sweep_locked(now)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _sweep_locked(self, now: float) -> int:
        expired = [key for key, rec in self._records.items() if now > rec.reset_at]
        for key in expired:
            del self._records[key]
        return len(expired)

    def _enforce_capacity(self, now: float) -> None:
        if len(self._records) <= self._max_tracked_keys:
            return
        self._sweep_locked(now)
        while len(self._records) > self._max_tracked_keys:
            self._records.popitem(last=False)


def _decision(
    admitted: bool, record: RateLimitRecord, max_requests: int, now: float,
) -> RateLimitDecision:
    remaining = max(0, max_requests - record.count) if admitted else 0
    return RateLimitDecision(
        admitted=admitted,
        limit=max_requests,
        remaining=remaining,
        reset_at=record.reset_at,
        retry_after=max(0, math.ceil(record.reset_at - now)),
    )


class RateLimitPolicy:
    """Chooses the strict or default threshold for a request path."""

    def __init__(self, config: RateLimitConfig) -> None:
        self._config = config

    @property
    def window_seconds(self) -> int:
        return self._config.window_seconds

    def applies_to(self, path: str) -> bool:
        return path.startswith(self._config.protected_prefix)

    def limit_for(self, path: str) -> int:
        if any(marker in path for marker in self._config.strict_path_markers):
            return self._config.strict_max_requests
        return self._config.max_requests

    def check(
        self,
        limiter: FixedWindowRateLimiter,
        ip: str,
        path: str,
        now: float | None = None,
    ) -> RateLimitDecision | None:
        """Apply the path's threshold. Returns None for unprotected paths."""
        if not self.applies_to(path):
            return None
        return limiter.check_and_consume(
            ip, path, self.limit_for(path), self._config.window_seconds, now=now,
        )
