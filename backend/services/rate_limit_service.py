from __future__ import annotations

import hashlib
import logging
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    endpoint: str
    limit: int
    window_seconds: int


class InMemoryRateLimiter:
    """Sliding-window hit counter keyed by an arbitrary string."""

    def __init__(self) -> None:
        self._hits: dict[str, deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def hit(self, key: str, rule: RateLimitRule) -> int:
        """Register one attempt. Returns 0 when allowed, otherwise seconds until the next slot frees up."""
        now = time.monotonic()
        window = max(rule.window_seconds, 1)
        with self._lock:
            hits = self._hits[key]
            while hits and now - hits[0] >= window:
                hits.popleft()
            if len(hits) >= max(rule.limit, 1):
                return max(int(hits[0] + window - now), 1)
            hits.append(now)
            return 0

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


_limiter = InMemoryRateLimiter()


def enforce_rate_limit(*, rule: RateLimitRule, scope_key: str, ip_address: str | None = None) -> tuple[bool, int]:
    retry_after = _limiter.hit(f"{rule.endpoint}:{scope_key}", rule)
    if retry_after:
        logger.warning(
            "Rate limit exceeded",
            extra={
                "endpoint": rule.endpoint,
                # Scope embeds the email; log a digest instead.
                "scope": hashlib.sha256(scope_key.encode("utf-8")).hexdigest()[:24],
                "ip_address": ip_address,
                "retry_after_seconds": retry_after,
            },
        )
    return retry_after == 0, retry_after


def reset_rate_limits() -> None:
    _limiter.reset()
