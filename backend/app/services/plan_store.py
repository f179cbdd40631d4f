"""Pricing plan stores consumed by the fare calculator."""

from typing import Dict, Iterable, Optional, Protocol, runtime_checkable

from app.models import PricingPlan, ServiceType


@runtime_checkable
class PricingPlanStore(Protocol):
    """
    Lookup of the active pricing plan by service type.
    Implementations return None when no active plan exists; a zero-valued
    plan is a real plan, not an absent one.
    """

    def get(self, service_type: ServiceType) -> Optional[PricingPlan]:
        """Return the active plan for a service type, or None."""
        ...


class DatabasePlanStore:
    """Plan store backed by the relational datastore."""

    def __init__(self, db_manager=None):
        self._db_manager = db_manager

    @property
    def db_manager(self):
        if self._db_manager is None:
            from app.database import get_db_manager
            self._db_manager = get_db_manager()
        return self._db_manager

    def get(self, service_type: ServiceType) -> Optional[PricingPlan]:
        return self.db_manager.get_pricing_plan(service_type)


class InMemoryPlanStore:
    """Plan store holding plans in a dict. Used for simulation and tests."""

    def __init__(self, plans: Iterable[PricingPlan] = ()):
        self._plans: Dict[ServiceType, PricingPlan] = {}
        for plan in plans:
            self.put(plan)

    def put(self, plan: PricingPlan) -> None:
        self._plans[plan.service_type] = plan

    def remove(self, service_type: ServiceType) -> None:
        self._plans.pop(ServiceType(service_type), None)

    def get(self, service_type: ServiceType) -> Optional[PricingPlan]:
        plan = self._plans.get(ServiceType(service_type))
        if plan is None or not plan.is_active:
            return None
        return plan
