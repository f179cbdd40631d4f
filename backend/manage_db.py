#!/usr/bin/env python3
"""
Pricing datastore management utility.

Usage:
    python manage_db.py init                      - Seed default pricing plans
    python manage_db.py show                      - Show all pricing plans
    python manage_db.py update                    - Create or update a plan
    python manage_db.py deactivate <service_type> - Deactivate a plan
    python manage_db.py reset                     - Reset to default plans
    python manage_db.py simulate <service_type> [km ...]
                                                  - Print fares for distances
"""

import logging
import sys
import os
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from app.cache import get_plan_cache
from app.config import settings
from app.database import Base, DatabaseManager
from app.exceptions import MalformedPricingPlan
from app.logging_setup import setup_logging
from app.models import FareFailure, PricingPlanUpdate, ServiceType
from app.services.fare_calculator import DistanceBasedFareCalculator
from app.services.plan_store import DatabasePlanStore

logger = logging.getLogger(__name__)

DEFAULT_SIMULATION_DISTANCES = [0, 1, 2, 3, 5, 8, 12, 20]


def init_database():
    """Seed default pricing plans."""
    print("Initializing database...")
    db = DatabaseManager()
    added = db.init_default_pricing_plans()
    print(f"Database initialized ({added} plans added)")
    show_plans()


def show_plans():
    """Display all pricing plans."""
    db = DatabaseManager()
    try:
        plans = db.get_all_pricing_plans()
    except MalformedPricingPlan as e:
        logger.error("%s", e)
        return

    print("\n" + "=" * 78)
    print("PRICING PLANS")
    print("=" * 78)
    print(f"{'Service':<10} {'Base':>8} {'Base km':>8} {'Per km':>8} {'Per min':>8} {'Minimum':>8} {'Active':>8}")
    print("-" * 78)

    for service_type, plan in plans.items():
        print(
            f"{service_type:<10} {plan.base_fare:>8.2f} {plan.base_distance_km:>8.2f} "
            f"{plan.per_km_rate:>8.2f} {plan.per_min_rate:>8.2f} {plan.minimum_fare:>8.2f} "
            f"{'yes' if plan.is_active else 'no':>8}"
        )

    print("-" * 78)
    print(f"Total plans: {len(plans)}")
    print("=" * 78)


def _read_service_type(raw: str) -> ServiceType:
    try:
        return ServiceType(raw.strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in ServiceType)
        raise ValueError(f"Unknown service type {raw!r}; expected one of: {allowed}")


def update_plan():
    """Interactive pricing plan update."""
    print("\nUPDATE PRICING PLAN")
    print("-" * 30)

    try:
        service_type = _read_service_type(input("Service type (food/grocery/parcel): "))
        db = DatabaseManager()
        current = db.get_pricing_plan(service_type)
        if current:
            print(
                f"Current plan: base {current.base_fare} for {current.base_distance_km} km, "
                f"{current.per_km_rate}/km, minimum {current.minimum_fare}"
            )
        else:
            print("No active plan for this service type.")

        update = PricingPlanUpdate(
            base_fare=float(input("Base fare: ")),
            base_distance_km=float(input("Base distance (km): ")),
            per_km_rate=float(input("Rate per km: ")),
            minimum_fare=float(input("Minimum fare: ")),
        )
        db.upsert_pricing_plan(service_type, update)
        get_plan_cache().invalidate(service_type)
        print(f"✓ Updated pricing plan for {service_type.value}")

    except ValueError as e:
        print(f"Invalid input: {e}")
    except MalformedPricingPlan as e:
        logger.error("%s", e)


def deactivate_plan():
    """Deactivate the plan named on the command line."""
    if len(sys.argv) < 3:
        print("Usage: python manage_db.py deactivate <service_type>")
        return
    try:
        service_type = _read_service_type(sys.argv[2])
    except ValueError as e:
        print(e)
        return

    db = DatabaseManager()
    if db.deactivate_pricing_plan(service_type):
        get_plan_cache().invalidate(service_type)
        print(f"✓ Deactivated pricing plan for {service_type.value}")
    else:
        print(f"No pricing plan for {service_type.value}")


def reset_database():
    """Reset database to default plans."""
    confirm = input("Are you sure you want to reset all pricing plans to defaults? (yes/no): ")

    if confirm.lower() == 'yes':
        db = DatabaseManager()
        Base.metadata.drop_all(bind=db.engine)
        print("Pricing tables dropped.")
        get_plan_cache().invalidate()

        init_database()
        print("Database reset to defaults!")
    else:
        print("Reset cancelled.")


def simulate_fares():
    """Print the fare table for a service type across distances."""
    if len(sys.argv) < 3:
        print("Usage: python manage_db.py simulate <service_type> [km ...]")
        return
    try:
        service_type = _read_service_type(sys.argv[2])
        distances = [float(arg) for arg in sys.argv[3:]] or DEFAULT_SIMULATION_DISTANCES
    except ValueError as e:
        print(f"Invalid input: {e}")
        return

    calculator = DistanceBasedFareCalculator(DatabasePlanStore(DatabaseManager()))

    print(f"\nFARE SIMULATION: {service_type.value}")
    print("-" * 58)
    print(f"{'Distance km':>12} {'Distance chg':>14} {'Minimum':>9} {'Total fare':>12}")
    print("-" * 58)
    for distance_km in distances:
        result = calculator.compute_fare(distance_km, service_type)
        if isinstance(result, FareFailure):
            print(f"{distance_km:>12.2f}  {result.code.value}: {result.message}")
            continue
        print(
            f"{distance_km:>12.2f} {result.breakdown.distance_charge:>14.2f} "
            f"{'yes' if result.breakdown.minimum_applied else 'no':>9} {result.total_fare:>12.2f}"
        )
    print("-" * 58)


def main():
    """Main entry point."""
    setup_logging(settings.LOG_LEVEL)

    if len(sys.argv) < 2:
        print(__doc__)
        return

    command = sys.argv[1].lower()

    commands = {
        'init': init_database,
        'show': show_plans,
        'update': update_plan,
        'deactivate': deactivate_plan,
        'reset': reset_database,
        'simulate': simulate_fares
    }

    if command in commands:
        commands[command]()
    else:
        print(f"Unknown command: {command}")
        print(__doc__)


if __name__ == "__main__":
    main()
