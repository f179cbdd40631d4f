"""Fare calculation service implementing the delivery pricing rules."""

import logging
import math
from abc import ABC, abstractmethod
from numbers import Real
from typing import Iterable, List, Optional, Protocol, Tuple, Union, runtime_checkable

from app.exceptions import MalformedPricingPlan
from app.models import (
    FailureCode,
    FareBreakdown,
    FareFailure,
    FareQuote,
    FareResult,
    PricingPlan,
    ServiceType,
)
from app.services.plan_store import PricingPlanStore

logger = logging.getLogger(__name__)

# Inert until a dynamic pricing policy exists; kept in the formula.
DEFAULT_SURGE_MULTIPLIER = 1.0

# Fares are rounded up to a multiple of this many currency units.
FARE_ROUNDING_UNIT = 10


@runtime_checkable
class FareCalculatorInterface(Protocol):
    """
    Interface for fare calculation.
    This protocol defines the contract that all fare calculators must follow.
    """

    def compute_fare(self, distance_km: float, service_type: Union[ServiceType, str]) -> FareResult:
        """Quote a single trip."""
        ...

    def compute_fares(self, trips: Iterable[Tuple[float, Union[ServiceType, str]]]) -> List[FareResult]:
        """Quote several trips."""
        ...


def round_up_fare(amount: float) -> float:
    """
    Round up to the next multiple of FARE_ROUNDING_UNIT.

    Raises:
        ValueError: if the amount is NaN or infinite
    """
    if not math.isfinite(amount):
        raise ValueError(f"Fare amount must be finite, got {amount!r}")
    return float(math.ceil(amount / FARE_ROUNDING_UNIT) * FARE_ROUNDING_UNIT)


def apply_pricing_plan(
    plan: PricingPlan,
    distance_km: float,
    surge_multiplier: float = DEFAULT_SURGE_MULTIPLIER,
) -> FareQuote:
    """
    Apply a plan to a trip distance.

    Steps run in a fixed order: distance charge, surge, minimum clamp,
    then a single round-up.
    """
    chargeable_km = max(0, distance_km - plan.base_distance_km)
    distance_charge = chargeable_km * plan.per_km_rate
    raw_total = plan.base_fare + distance_charge
    surged = raw_total * surge_multiplier

    minimum_applied = surged < plan.minimum_fare
    clamped = max(surged, plan.minimum_fare)
    total_fare = round_up_fare(clamped)

    return FareQuote(
        service_type=plan.service_type,
        distance_km=distance_km,
        base_fare=plan.base_fare,
        total_fare=total_fare,
        surge_multiplier=surge_multiplier,
        is_peak_hour=False,
        breakdown=FareBreakdown(
            base=plan.base_fare,
            distance_charge=distance_charge,
            minimum_applied=minimum_applied,
        ),
    )


class BaseFareCalculator(ABC):
    """Abstract base class for fare calculators."""

    @abstractmethod
    def compute_fare(self, distance_km: float, service_type: Union[ServiceType, str]) -> FareResult:
        """
        Quote a single trip.
        Must be implemented by subclasses.
        """
        pass

    def compute_fares(self, trips: Iterable[Tuple[float, Union[ServiceType, str]]]) -> List[FareResult]:
        """
        Quote several trips, one result per trip in order.
        A failure for one trip does not affect the others.
        """
        return [self.compute_fare(distance_km, service_type) for distance_km, service_type in trips]


class DistanceBasedFareCalculator(BaseFareCalculator):
    """
    Fare calculator driven by per-service-type distance plans.
    Stateless: every call reads the current plan from the store once, so
    calls may run concurrently without coordination.
    """

    def __init__(self, store: PricingPlanStore):
        self.store = store

    @staticmethod
    def _validate_input(distance_km, service_type) -> Tuple[Optional[ServiceType], Optional[FareFailure]]:
        if isinstance(distance_km, bool) or not isinstance(distance_km, Real):
            return None, FareFailure(
                code=FailureCode.INVALID_INPUT,
                message=f"Distance must be a number, got {distance_km!r}",
            )
        if not math.isfinite(distance_km) or distance_km < 0:
            return None, FareFailure(
                code=FailureCode.INVALID_INPUT,
                message=f"Distance must be a finite non-negative number, got {distance_km!r}",
            )
        try:
            return ServiceType(service_type), None
        except ValueError:
            allowed = ", ".join(member.value for member in ServiceType)
            return None, FareFailure(
                code=FailureCode.INVALID_INPUT,
                message=f"Unknown service type {service_type!r}; expected one of: {allowed}",
            )

    def compute_fare(self, distance_km: float, service_type: Union[ServiceType, str]) -> FareResult:
        """
        Quote a trip from the active plan for its service type.

        Args:
            distance_km: Trip distance in kilometres, >= 0
            service_type: food, grocery or parcel

        Returns:
            FareQuote, or FareFailure when the input is invalid or no usable
            plan exists. Never a default or zero fare.
        """
        service, failure = self._validate_input(distance_km, service_type)
        if failure is not None:
            logger.warning("Rejected fare request: %s", failure.message)
            return failure

        try:
            plan = self.store.get(service)
        except MalformedPricingPlan as e:
            logger.error("Cannot quote %s: %s", service.value, e)
            return FareFailure(code=FailureCode.MALFORMED_PLAN, message=str(e))

        if plan is None:
            logger.warning("No active pricing plan for %s", service.value)
            return FareFailure(
                code=FailureCode.PLAN_NOT_FOUND,
                message=f"No active pricing plan for service type '{service.value}'",
            )

        try:
            quote = apply_pricing_plan(plan, float(distance_km))
        except (ValueError, OverflowError) as e:
            logger.warning("Fare for %s %r km is out of range: %s", service.value, distance_km, e)
            return FareFailure(
                code=FailureCode.INVALID_INPUT,
                message=f"Distance {distance_km!r} km produces a fare out of range",
            )
        logger.debug(
            "Quoted %s %.3f km: total=%s minimum_applied=%s",
            service.value, quote.distance_km, quote.total_fare, quote.breakdown.minimum_applied,
        )
        return quote


# Singleton instance for default calculator
_default_calculator: Optional[FareCalculatorInterface] = None


def get_fare_calculator() -> FareCalculatorInterface:
    """
    Get the default fare calculator instance (Singleton pattern).
    Reads plans through the shared plan cache.

    Returns:
        Fare calculator instance implementing FareCalculatorInterface
    """
    global _default_calculator
    if _default_calculator is None:
        from app.cache import get_plan_cache
        _default_calculator = DistanceBasedFareCalculator(get_plan_cache())
    return _default_calculator


def reset_fare_calculator(calculator: Optional[FareCalculatorInterface] = None) -> None:
    """Replace the default calculator."""
    global _default_calculator
    _default_calculator = calculator
