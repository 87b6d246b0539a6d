# contact_relay/core/ratelimit.py
import logging
import math
import time
from dataclasses import dataclass
from typing import Optional

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage, Storage, storage_from_string
from limits.strategies import FixedWindowRateLimiter
from redis.exceptions import RedisError

from contact_relay.core.settings import Settings

log = logging.getLogger("uvicorn.error")

RATE_LIMIT_MESSAGE = "Too many requests, please try again later."


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_after: float  # seconds until the current window closes

    @property
    def retry_after(self) -> int:
        return max(1, math.ceil(self.reset_after))


class ContactRateLimiter:
    """Fixed-window limit per client, counted in a `limits` storage (memory or redis)."""

    def __init__(self, limit: int, window_seconds: float, storage: Optional[Storage] = None,
                 namespace: str = "contact"):
        self.limit = limit
        # limits counts in whole seconds
        self.window_seconds = max(1, math.ceil(window_seconds))
        self.item = RateLimitItemPerSecond(limit, self.window_seconds)
        self.storage = storage if storage is not None else MemoryStorage()
        self.strategy = FixedWindowRateLimiter(self.storage)
        self.namespace = namespace

    def check(self, client_id: str) -> RateLimitResult:
        """Count one hit for client_id. Blocking when the storage is redis."""
        try:
            allowed = self.strategy.hit(self.item, self.namespace, client_id)
            stats = self.strategy.get_window_stats(self.item, self.namespace, client_id)
        except RedisError as exc:
            # Store unavailable: let the request through rather than reject everyone
            log.warning(f"[ratelimit] storage hit failed for {client_id}: {exc}")
            return RateLimitResult(True, self.limit, self.limit, float(self.window_seconds))
        return RateLimitResult(
            allowed=allowed,
            limit=self.limit,
            remaining=max(0, stats.remaining),
            reset_after=max(0.0, stats.reset_time - time.time()),
        )


def build_rate_limiter(settings: Settings) -> ContactRateLimiter:
    window_seconds = settings.rate_limit_window_ms / 1000.0
    storage = None
    if settings.redis_url:
        try:
            storage = storage_from_string(
                settings.redis_url,
                socket_timeout=settings.redis_timeout,
                socket_connect_timeout=settings.redis_timeout,
            )
        except Exception as exc:
            log.warning(f"[ratelimit] Redis init failed, using memory store: {exc}")
    return ContactRateLimiter(settings.rate_limit_max, window_seconds, storage)
