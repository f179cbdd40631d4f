"""Tests for the bounded-staleness plan cache."""

from unittest.mock import Mock

import pytest
import redis

from app.cache import CachedPlanStore
from app.models import ServiceType


class CountingStore:
    def __init__(self, plans=None):
        self.plans = dict(plans or {})
        self.calls = 0

    def get(self, service_type):
        self.calls += 1
        return self.plans.get(service_type)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(food_plan):
    return CountingStore({ServiceType.FOOD: food_plan})


class TestMemoryCache:

    def test_hit_within_ttl(self, store, clock, food_plan):
        cache = CachedPlanStore(store, ttl=30, clock=clock)
        assert cache.get(ServiceType.FOOD) == food_plan
        clock.now = 29.9
        assert cache.get("food") == food_plan
        assert store.calls == 1

    def test_refetch_after_ttl(self, store, clock, food_plan):
        cache = CachedPlanStore(store, ttl=30, clock=clock)
        cache.get(ServiceType.FOOD)
        updated = food_plan.model_copy(update={"base_fare": 70})
        store.plans[ServiceType.FOOD] = updated
        clock.now = 30
        assert cache.get(ServiceType.FOOD) == updated
        assert store.calls == 2

    def test_absent_plan_is_not_cached(self, store, clock, food_plan):
        cache = CachedPlanStore(store, ttl=30, clock=clock)
        assert cache.get(ServiceType.PARCEL) is None
        parcel = food_plan.model_copy(update={"service_type": ServiceType.PARCEL})
        store.plans[ServiceType.PARCEL] = parcel
        assert cache.get(ServiceType.PARCEL) == parcel

    def test_invalidate_one(self, store, clock):
        cache = CachedPlanStore(store, ttl=30, clock=clock)
        cache.get(ServiceType.FOOD)
        cache.invalidate(ServiceType.FOOD)
        cache.get(ServiceType.FOOD)
        assert store.calls == 2

    def test_invalidate_all(self, store, clock):
        cache = CachedPlanStore(store, ttl=30, clock=clock)
        cache.get(ServiceType.FOOD)
        cache.invalidate()
        cache.get(ServiceType.FOOD)
        assert store.calls == 2

    def test_ttl_must_be_positive(self, store):
        with pytest.raises(ValueError):
            CachedPlanStore(store, ttl=0)


class TestRedisLevel:

    def test_miss_populates_redis(self, store, clock, food_plan):
        client = Mock()
        client.pttl.return_value = -2
        cache = CachedPlanStore(store, ttl=30, redis_client=client, clock=clock)

        assert cache.get(ServiceType.FOOD) == food_plan
        client.get.assert_not_called()
        client.setex.assert_called_once_with(
            "pricing_plan:food", 30, food_plan.model_dump_json()
        )

    def test_redis_hit_skips_store(self, store, clock, food_plan):
        client = Mock()
        client.pttl.return_value = 30000
        client.get.return_value = food_plan.model_dump_json().encode()
        cache = CachedPlanStore(store, ttl=30, redis_client=client, clock=clock)

        assert cache.get(ServiceType.FOOD) == food_plan
        assert store.calls == 0

    def test_redis_hit_expires_with_shared_entry(self, store, clock, food_plan):
        client = Mock()
        # Shared entry written 29 s ago by another process
        client.pttl.return_value = 1000
        client.get.return_value = food_plan.model_dump_json().encode()
        cache = CachedPlanStore(store, ttl=30, redis_client=client, clock=clock)

        assert cache.get(ServiceType.FOOD) == food_plan
        assert store.calls == 0

        client.pttl.return_value = -2
        clock.now = 0.9
        assert cache.get(ServiceType.FOOD) == food_plan
        assert store.calls == 0

        clock.now = 1.0
        assert cache.get(ServiceType.FOOD) == food_plan
        assert store.calls == 1

    def test_redis_lifetime_never_exceeds_ttl(self, store, clock, food_plan):
        client = Mock()
        client.pttl.return_value = 3_600_000
        client.get.return_value = food_plan.model_dump_json().encode()
        cache = CachedPlanStore(store, ttl=30, redis_client=client, clock=clock)
        cache.get(ServiceType.FOOD)

        client.pttl.return_value = -2
        clock.now = 30
        cache.get(ServiceType.FOOD)
        assert store.calls == 1

    def test_redis_entry_without_expiry_is_discarded(self, store, clock, food_plan):
        client = Mock()
        client.pttl.return_value = -1
        cache = CachedPlanStore(store, ttl=30, redis_client=client, clock=clock)

        assert cache.get(ServiceType.FOOD) == food_plan
        client.delete.assert_called_with("pricing_plan:food")
        client.get.assert_not_called()
        assert store.calls == 1

    def test_unreadable_redis_value_is_discarded(self, store, clock, food_plan):
        client = Mock()
        client.pttl.return_value = 30000
        client.get.return_value = b'{"service_type": "food", "base_fare": -1}'
        cache = CachedPlanStore(store, ttl=30, redis_client=client, clock=clock)

        assert cache.get(ServiceType.FOOD) == food_plan
        client.delete.assert_called_with("pricing_plan:food")
        assert store.calls == 1

    def test_redis_errors_fall_back_to_store(self, store, clock, food_plan):
        client = Mock()
        client.pttl.side_effect = redis.ConnectionError("down")
        client.setex.side_effect = redis.ConnectionError("down")
        cache = CachedPlanStore(store, ttl=30, redis_client=client, clock=clock)

        assert cache.get(ServiceType.FOOD) == food_plan
        assert store.calls == 1

    def test_invalidate_deletes_redis_key(self, store, clock):
        client = Mock()
        cache = CachedPlanStore(store, ttl=30, redis_client=client, clock=clock)
        cache.invalidate(ServiceType.GROCERY)
        client.delete.assert_called_once_with("pricing_plan:grocery")
