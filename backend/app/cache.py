"""
Caching layer for pricing plans.

Plans are cached per service type with a strictly bounded staleness window:
1. In-memory map (process level)
2. Redis (shared across processes, optional)
3. The wrapped plan store (source of truth)

Absent plans are never cached, so a newly activated plan is visible on the
next lookup. Writes through the API or CLI invalidate the affected entry.
"""

import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

import redis

from app.models import PricingPlan, ServiceType
from app.services.plan_store import PricingPlanStore

logger = logging.getLogger(__name__)


class CachedPlanStore:
    """PricingPlanStore wrapper that caches plans for at most `ttl` seconds."""

    KEY_PREFIX = "pricing_plan:"

    def __init__(
        self,
        store: PricingPlanStore,
        ttl: int = 30,
        redis_client: Optional["redis.Redis"] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize cache over an authoritative store.

        Args:
            store: Store that is consulted on a cache miss
            ttl: Maximum age of a cached plan in seconds
            redis_client: Optional shared cache level
            clock: Monotonic time source for the in-memory level
        """
        if ttl <= 0:
            raise ValueError("Plan cache TTL must be positive")
        self.store = store
        self.ttl = ttl
        self.redis_client = redis_client
        self._clock = clock
        self._lock = threading.Lock()
        self._memory_cache: Dict[ServiceType, Tuple[PricingPlan, float]] = {}

    def _make_key(self, service_type: ServiceType) -> str:
        return f"{self.KEY_PREFIX}{service_type.value}"

    def _memory_get(self, service_type: ServiceType) -> Optional[PricingPlan]:
        with self._lock:
            entry = self._memory_cache.get(service_type)
            if entry is None:
                return None
            plan, expires_at = entry
            if self._clock() >= expires_at:
                del self._memory_cache[service_type]
                return None
            return plan

    def _memory_set(self, plan: PricingPlan, lifetime: Optional[float] = None) -> None:
        """Cache a plan in process for `lifetime` seconds, capped at the TTL."""
        lifetime = self.ttl if lifetime is None else min(lifetime, self.ttl)
        with self._lock:
            self._memory_cache[plan.service_type] = (plan, self._clock() + lifetime)

    def _redis_get(self, service_type: ServiceType) -> Tuple[Optional[PricingPlan], float]:
        """
        Return the shared plan and its remaining lifetime in seconds.
        The remaining lifetime is read before the value, so it never
        overstates the age of what is returned.
        """
        if self.redis_client is None:
            return None, 0.0
        key = self._make_key(service_type)
        try:
            remaining_ms = self.redis_client.pttl(key)
            if remaining_ms is None or remaining_ms <= 0:
                # -2: no entry; -1: entry without expiry, which this cache never writes
                if remaining_ms == -1:
                    self._redis_delete(key)
                return None, 0.0
            cached_value = self.redis_client.get(key)
        except redis.RedisError as e:
            logger.warning("Redis get failed for %s: %s", key, e)
            return None, 0.0
        if not cached_value:
            return None, 0.0
        try:
            return PricingPlan.model_validate_json(cached_value), remaining_ms / 1000.0
        except ValueError as e:
            logger.warning("Discarding unreadable cached plan %s: %s", key, e)
            self._redis_delete(key)
            return None, 0.0

    def _redis_set(self, plan: PricingPlan) -> None:
        if self.redis_client is None:
            return
        key = self._make_key(plan.service_type)
        try:
            self.redis_client.setex(key, self.ttl, plan.model_dump_json())
        except redis.RedisError as e:
            logger.warning("Redis set failed for %s: %s", key, e)

    def _redis_delete(self, key: str) -> None:
        try:
            self.redis_client.delete(key)
        except redis.RedisError as e:
            logger.warning("Redis delete failed for %s: %s", key, e)

    def get(self, service_type: ServiceType) -> Optional[PricingPlan]:
        """Get a plan, consulting memory, then Redis, then the store."""
        service_type = ServiceType(service_type)

        plan = self._memory_get(service_type)
        if plan is not None:
            return plan

        plan, remaining = self._redis_get(service_type)
        if plan is not None:
            # Expire with the shared entry, not a fresh TTL
            self._memory_set(plan, remaining)
            return plan

        plan = self.store.get(service_type)
        if plan is not None:
            self._memory_set(plan)
            self._redis_set(plan)
        return plan

    def invalidate(self, service_type: Optional[ServiceType] = None) -> None:
        """
        Invalidate cache entries.
        If a service type is given, drop only its entry; otherwise drop all.
        """
        if service_type is not None:
            service_type = ServiceType(service_type)
            with self._lock:
                self._memory_cache.pop(service_type, None)
            if self.redis_client is not None:
                self._redis_delete(self._make_key(service_type))
            logger.debug("Invalidated cached plan for %s", service_type.value)
            return

        with self._lock:
            self._memory_cache.clear()
        if self.redis_client is not None:
            for member in ServiceType:
                self._redis_delete(self._make_key(member))
        logger.debug("Invalidated all cached plans")


# Global cache instance (singleton pattern)
_plan_cache: Optional[CachedPlanStore] = None


def _connect_redis(redis_url: str) -> Optional["redis.Redis"]:
    if not redis_url:
        return None
    try:
        client = redis.from_url(redis_url)
        client.ping()
    except redis.RedisError as e:
        logger.warning("Redis connection failed: %s. Using in-memory cache only.", e)
        return None
    logger.info("Redis plan cache initialized")
    return client


def get_plan_cache() -> CachedPlanStore:
    """Get singleton plan cache over the database store."""
    global _plan_cache
    if _plan_cache is None:
        from app.config import settings
        from app.services.plan_store import DatabasePlanStore

        _plan_cache = CachedPlanStore(
            DatabasePlanStore(),
            ttl=settings.PLAN_CACHE_TTL_SECONDS,
            redis_client=_connect_redis(settings.REDIS_URL),
        )
    return _plan_cache


def reset_plan_cache(cache: Optional[CachedPlanStore] = None) -> None:
    """Replace the singleton cache."""
    global _plan_cache
    _plan_cache = cache
