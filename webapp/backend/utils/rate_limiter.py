"""
Per-client rate limiting for the reporting endpoints.

Each (client IP, operation) pair keeps a sliding window of request times in
process memory, so limits are per worker and reset on restart.
"""
import time
from collections import defaultdict, deque
from typing import Deque, Dict, NamedTuple

from fastapi import HTTPException, Request, status


class RateLimit(NamedTuple):
    limit: int
    window: int  # seconds


RATE_LIMITS: Dict[str, RateLimit] = {
    # Ad-hoc SQL is the most expensive path
    "reporting_query": RateLimit(10, 60),
    # Committed inserts, updates and deletes
    "reporting_write": RateLimit(30, 60),
    # Previews roll back, so they get more headroom
    "reporting_preview": RateLimit(60, 60),
    "default": RateLimit(100, 60),
}

# {"{client_ip}:{operation}": deque of request timestamps, oldest first}
_windows: Dict[str, Deque[float]] = defaultdict(deque)

# Idle windows are dropped at most this often (seconds)
SWEEP_INTERVAL = 300
_last_sweep = 0.0


def _longest_window() -> int:
    return max(rule.window for rule in RATE_LIMITS.values())


def drop_idle_windows(now: float) -> None:
    """Forget keys whose newest request is older than every window."""
    horizon = _longest_window()
    for key in [k for k, hits in _windows.items() if not hits or now - hits[-1] >= horizon]:
        del _windows[key]


def get_client_ip(request: Request) -> str:
    """First X-Forwarded-For hop when behind a proxy, else the socket peer."""
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def check_ip_rate_limit(request: Request, operation: str) -> None:
    """
    Record one request for the caller's IP, or reject it with 429.

    Raises:
        HTTPException: 429 with a Retry-After header once the operation's
                       limit is reached inside its window
    """
    global _last_sweep

    rule = RATE_LIMITS.get(operation, RATE_LIMITS["default"])
    now = time.monotonic()
    if now - _last_sweep >= SWEEP_INTERVAL:
        drop_idle_windows(now)
        _last_sweep = now

    hits = _windows[f"{get_client_ip(request)}:{operation}"]

    while hits and now - hits[0] >= rule.window:
        hits.popleft()

    if len(hits) >= rule.limit:
        retry_after = max(int(rule.window - (now - hits[0])), 1)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many {operation.replace('reporting_', '')} requests. Try again in {retry_after} seconds.",
            headers={"Retry-After": str(retry_after)},
        )

    hits.append(now)


def clear_rate_limits() -> None:
    """Forget every recorded request (used between tests)."""
    global _last_sweep
    _windows.clear()
    _last_sweep = 0.0
