"""Services package for the delivery fare service."""

from .fare_calculator import (
    get_fare_calculator,
    FareCalculatorInterface,
    DistanceBasedFareCalculator
)
from .plan_store import (
    PricingPlanStore,
    DatabasePlanStore,
    InMemoryPlanStore
)
from .quote_signing import (
    get_quote_signer,
    QuoteSigner
)

__all__ = [
    'get_fare_calculator',
    'FareCalculatorInterface',
    'DistanceBasedFareCalculator',
    'PricingPlanStore',
    'DatabasePlanStore',
    'InMemoryPlanStore',
    'get_quote_signer',
    'QuoteSigner'
]
