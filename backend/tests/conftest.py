"""Shared fixtures for the fare service tests."""

import os
import tempfile

# Configure the environment before any app module reads settings
_test_db = tempfile.NamedTemporaryFile(suffix='.db', delete=False)
os.environ["DATABASE_URL"] = f"sqlite:///{_test_db.name}"
os.environ["QUOTE_SIGNING_SECRET"] = "test-signing-secret"
os.environ["REDIS_URL"] = ""

import pytest
from fastapi.testclient import TestClient

from app.cache import CachedPlanStore, reset_plan_cache
from app.database import DatabaseManager, reset_db_manager
from app.models import PricingPlan, ServiceType
from app.services.fare_calculator import DistanceBasedFareCalculator, reset_fare_calculator
from app.services.plan_store import DatabasePlanStore, InMemoryPlanStore
from app.services.quote_signing import reset_quote_signer


@pytest.fixture
def food_plan():
    """Plan used by the worked fare examples."""
    return PricingPlan(
        service_type=ServiceType.FOOD,
        base_fare=50,
        base_distance_km=2,
        per_km_rate=15,
        minimum_fare=80,
    )


@pytest.fixture
def plan_store(food_plan):
    return InMemoryPlanStore([food_plan])


@pytest.fixture
def calculator(plan_store):
    return DistanceBasedFareCalculator(plan_store)


@pytest.fixture
def db_manager(tmp_path):
    """Fresh SQLite datastore seeded with the default plans."""
    manager = DatabaseManager(f"sqlite:///{tmp_path / 'pricing.db'}")
    manager.init_default_pricing_plans()
    return manager


@pytest.fixture
def client(db_manager):
    """API client wired to a fresh datastore and cache."""
    reset_db_manager(db_manager)
    reset_plan_cache(CachedPlanStore(DatabasePlanStore(db_manager), ttl=30))
    reset_fare_calculator()
    reset_quote_signer()

    from app.main import app

    with TestClient(app) as test_client:
        yield test_client

    reset_db_manager()
    reset_plan_cache()
    reset_fare_calculator()
    reset_quote_signer()
