"""
Sliding-window request limiting keyed by client address.

Limiters are plain objects created once at application start and kept on
``app.state``; routes reach them through the dependencies below.
"""
import logging
import math
import threading
import time
from typing import Callable, Dict, List

from fastapi import Request

from .errors import RateLimited

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Allow at most ``max_requests`` hits per key within ``window`` seconds.

    Rejected hits are not recorded, so a blocked client regains access as
    soon as its oldest accepted hit leaves the window. Keys whose hits have
    all expired are swept at most once per window.
    """

    def __init__(
        self,
        max_requests: int,
        window: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._requests: Dict[str, List[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._requests)

    def _prune(self, identifier: str, now: float) -> List[float]:
        window_start = now - self.window
        hits = [t for t in self._requests.get(identifier, []) if t > window_start]
        if hits:
            self._requests[identifier] = hits
        else:
            self._requests.pop(identifier, None)
        return hits

    def _sweep(self, now: float) -> None:
        window_start = now - self.window
        # hit lists are in arrival order
        expired = [key for key, hits in self._requests.items() if hits[-1] <= window_start]
        for key in expired:
            del self._requests[key]
        self._last_sweep = now

    def is_rate_limited(self, identifier: str) -> bool:
        """Record a hit for ``identifier`` unless it is over the limit."""
        with self._lock:
            now = self._clock()
            if now - self._last_sweep >= self.window:
                self._sweep(now)
            hits = self._prune(identifier, now)

            if len(hits) >= self.max_requests:
                return True

            self._requests.setdefault(identifier, []).append(now)
            return False

    def retry_after(self, identifier: str) -> int:
        """Seconds until ``identifier`` may make another request."""
        with self._lock:
            now = self._clock()
            hits = self._prune(identifier, now)
            if len(hits) < self.max_requests:
                return 0
            return max(1, math.ceil(hits[0] + self.window - now))

    def reset(self) -> None:
        with self._lock:
            self._requests.clear()
            self._last_sweep = self._clock()


def client_address(request: Request) -> str:
    """Identify the caller by its network address."""
    return request.client.host if request.client else "unknown"


def _enforce(limiter: RateLimiter, request: Request, message: str) -> None:
    identifier = client_address(request)
    if limiter.is_rate_limited(identifier):
        logger.warning(f"Rate limit exceeded for {identifier} on {request.url.path}")
        raise RateLimited(
            message,
            headers={"Retry-After": str(limiter.retry_after(identifier))},
        )


async def limit_api(request: Request) -> None:
    """General limit applied to every API route."""
    _enforce(
        request.app.state.api_limiter,
        request,
        "Too many requests from this IP, please try again later.",
    )


async def limit_auth(request: Request) -> None:
    """Stricter limit for credential endpoints."""
    _enforce(
        request.app.state.auth_limiter,
        request,
        "Too many login attempts, please try again later.",
    )
