"""Rate limiting module using fixed-window counters.

Enforces per-client request limits keyed by client key. Each client owns
one window of `window_ms` milliseconds; every request in the window
increments its counter, and the request is admitted while the counter is
at or below the limit. A request arriving after the window's reset instant
opens a fresh window.

Rejected requests still count. The counter keeps growing past the limit so
abusive clients stay visible in the numbers.

Returns standard rate limit metadata for response headers:
- RateLimit-Limit
- RateLimit-Remaining
- RateLimit-Reset
- Retry-After (rejections only)
"""

import math
from dataclasses import dataclass

from admission_gate.store.counter_store import CounterStore
from admission_gate.store.models import WindowCounter


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset: int  # epoch seconds at which the window closes
    count: int
    retry_after: int | None = None

    @property
    def headers(self) -> dict[str, str]:
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset),
        }
        if self.retry_after is not None:
            headers["Retry-After"] = str(self.retry_after)
        return headers


def evaluate_window(
    entry: WindowCounter | None,
    now_ms: int,
    window_ms: int,
    max_requests: int,
) -> tuple[WindowCounter, RateLimitResult]:
    """Count one request against `entry` and decide whether it is admitted.

    Pure: the caller is responsible for persisting the returned counter.
    """
    if entry is None or entry.is_stale(now_ms):
        entry = WindowCounter(count=0, reset_at=now_ms + window_ms)

    counter = WindowCounter(count=entry.count + 1, reset_at=entry.reset_at)
    allowed = counter.count <= max_requests

    result = RateLimitResult(
        allowed=allowed,
        limit=max_requests,
        remaining=max(0, max_requests - counter.count),
        reset=math.ceil(counter.reset_at / 1000),
        count=counter.count,
        retry_after=None if allowed else math.ceil(window_ms / 1000),
    )
    return counter, result


def check_rate_limit(
    store: CounterStore,
    key: str,
    *,
    max_requests: int,
    window_ms: int,
    now_ms: int,
) -> RateLimitResult:
    """Account one request for `key` and return the admission decision.

    The read, increment and write happen inside one `store.update` call so
    concurrent requests for the same key never lose an increment.
    """
    outcome: list[RateLimitResult] = []

    def apply(current: WindowCounter | None) -> WindowCounter:
        counter, result = evaluate_window(current, now_ms, window_ms, max_requests)
        outcome.append(result)
        return counter

    store.update(key, apply)
    return outcome[0]


def reset_client(store: CounterStore, key: str) -> None:
    """Clear rate limit state for a client."""
    store.delete(key)
