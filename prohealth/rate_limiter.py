"""
In-memory rate limiting for expensive endpoints (AI insights)

Per-key list of admitted request timestamps, purged lazily on access.
State lives in the process only: it is not shared between workers and is
lost on restart, which is fine for an abuse guard.
"""

import logging
import math
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request

from .auth import get_current_user
from .models import User

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 5
DEFAULT_WINDOW_MS = 60_000


@dataclass(frozen=True)
class RateLimitInfo:
    limit: int
    remaining: int
    reset: int  # epoch milliseconds
    allowed: bool = True


class RateLimiter:
    """Sliding-window-by-purge limiter keyed by caller identity"""

    def __init__(
        self,
        default_limit: int = DEFAULT_LIMIT,
        default_window_ms: int = DEFAULT_WINDOW_MS,
        clock: Callable[[], float] = time.time,
    ):
        self.default_limit = default_limit
        self.default_window_ms = default_window_ms
        self._clock = clock
        # Format: {key: [admitted_timestamp_ms, ...]} oldest first
        self._store: dict[str, list[int]] = {}
        self._lock = Lock()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _purge(self, key: str, now: int, window_ms: int) -> list[int]:
        timestamps = [ts for ts in self._store.get(key, []) if now - ts < window_ms]
        if timestamps:
            self._store[key] = timestamps
        else:
            self._store.pop(key, None)
        return timestamps

    def limit(
        self, key: str, limit: Optional[int] = None, window_ms: Optional[int] = None
    ) -> RateLimitInfo:
        """Record a request for `key` if there is room in the window"""
        limit = self.default_limit if limit is None else limit
        window_ms = self.default_window_ms if window_ms is None else window_ms

        with self._lock:
            now = self._now_ms()
            timestamps = self._purge(key, now, window_ms)

            allowed = len(timestamps) < limit
            if allowed:
                timestamps.append(now)
                self._store[key] = timestamps

            reset = timestamps[0] + window_ms if timestamps else now + window_ms
            return RateLimitInfo(
                limit=limit,
                remaining=max(0, limit - len(timestamps)),
                reset=reset,
                allowed=allowed,
            )

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._store.clear()
            else:
                self._store.pop(key, None)

    def retry_after_seconds(self, info: RateLimitInfo) -> int:
        return max(0, math.ceil((info.reset - self._now_ms()) / 1000))

    @staticmethod
    def headers(info: RateLimitInfo) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(info.limit),
            "X-RateLimit-Remaining": str(info.remaining),
            "X-RateLimit-Reset": str(info.reset),
        }


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def create_rate_limiter(
    limit: Optional[int] = None,
    window_ms: Optional[int] = None,
    key_prefix: str = "rate_limit",
):
    """
    Create a per-user rate limiter dependency

    Example usage:
        ai_rate_limit = create_rate_limiter(limit=5, window_ms=60_000, key_prefix="ai_insights")

        @router.post("/symptom-insights")
        async def get_insights(info: RateLimitInfo = Depends(ai_rate_limit)):
            ...

    The dependency returns the RateLimitInfo so the endpoint can attach
    X-RateLimit-* headers to its response.
    """

    async def rate_limiter(
        request: Request,
        user: User = Depends(get_current_user),
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> RateLimitInfo:
        key = f"{key_prefix}:{user.id}"
        info = limiter.limit(key, limit, window_ms)

        if not info.allowed:
            retry_after = limiter.retry_after_seconds(info)
            logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {info.limit} requests per window")
            raise HTTPException(
                status_code=429,
                detail={
                    "error": {
                        "code": "RATE_LIMIT_EXCEEDED",
                        "message": "Too many requests. Please try again later.",
                        "retryAfter": info.reset,
                    }
                },
                headers={**limiter.headers(info), "Retry-After": str(retry_after)},
            )

        request.state.rate_limit = info
        return info

    return rate_limiter
