"""API endpoints for fare quotes and pricing plan administration."""

import logging
from typing import List

from fastapi import APIRouter, HTTPException, Depends

from app.cache import CachedPlanStore, get_plan_cache
from app.database import DatabaseManager, get_db_manager
from app.exceptions import MalformedPricingPlan
from app.models import (
    BatchQuoteEntry,
    FailureCode,
    FareFailure,
    FareQuoteBatchRequest,
    FareQuoteRequest,
    PricingPlan,
    PricingPlanUpdate,
    QuoteVerification,
    QuoteVerificationRequest,
    ServiceType,
    SignedQuote,
)
from app.services import get_fare_calculator, get_quote_signer
from app.services.fare_calculator import FareCalculatorInterface
from app.services.quote_signing import QuoteSigner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Fare Quotes"])

FAILURE_STATUS = {
    FailureCode.PLAN_NOT_FOUND: 404,
    FailureCode.INVALID_INPUT: 422,
    FailureCode.MALFORMED_PLAN: 500,
}


def get_calculator() -> FareCalculatorInterface:
    """
    Dependency injection for fare calculator.
    Returns any implementation of FareCalculatorInterface.
    """
    return get_fare_calculator()


def get_signer() -> QuoteSigner:
    """Dependency injection for the quote signer."""
    try:
        return get_quote_signer()
    except ValueError as e:
        logger.error("Quote signing is not configured: %s", e)
        raise HTTPException(status_code=503, detail="Quote signing is not configured")


def get_db() -> DatabaseManager:
    """Dependency injection for the pricing datastore."""
    return get_db_manager()


def get_cache() -> CachedPlanStore:
    """Dependency injection for the plan cache."""
    return get_plan_cache()


def _raise_for_failure(failure: FareFailure):
    raise HTTPException(
        status_code=FAILURE_STATUS[failure.code],
        detail={"code": failure.code.value, "message": failure.message},
    )


@router.post("/fare-quote", response_model=SignedQuote)
async def create_fare_quote(
    request: FareQuoteRequest,
    calculator: FareCalculatorInterface = Depends(get_calculator),
    signer: QuoteSigner = Depends(get_signer),
) -> SignedQuote:
    """
    Quote a delivery and sign the quote for later verification.

    Raises:
        HTTPException: 404 when no active plan exists, 422 on invalid input
    """
    result = calculator.compute_fare(request.distance_km, request.service_type)
    if isinstance(result, FareFailure):
        _raise_for_failure(result)
    return signer.sign(result)


@router.post("/fare-quotes", response_model=List[BatchQuoteEntry])
async def simulate_fare_quotes(
    request: FareQuoteBatchRequest,
    calculator: FareCalculatorInterface = Depends(get_calculator),
) -> List[BatchQuoteEntry]:
    """
    Quote several trips for the admin pricing simulator.
    Quotes are unsigned; failures are reported per entry.
    """
    results = calculator.compute_fares(
        (item.distance_km, item.service_type) for item in request.requests
    )
    return [
        BatchQuoteEntry(failure=result) if isinstance(result, FareFailure) else BatchQuoteEntry(quote=result)
        for result in results
    ]


@router.post("/quotes/verify", response_model=QuoteVerification)
async def verify_quote(
    request: QuoteVerificationRequest,
    signer: QuoteSigner = Depends(get_signer),
) -> QuoteVerification:
    """Verify a fare submitted at order creation against its quote token."""
    return signer.verify(request.quote_token, request.fare)


@router.get("/pricing-plans", response_model=List[PricingPlan])
async def list_pricing_plans(db: DatabaseManager = Depends(get_db)) -> List[PricingPlan]:
    """Get every stored pricing plan, including inactive ones."""
    try:
        return list(db.get_all_pricing_plans().values())
    except MalformedPricingPlan as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/pricing-plans/{service_type}", response_model=PricingPlan)
async def get_pricing_plan(service_type: ServiceType, db: DatabaseManager = Depends(get_db)) -> PricingPlan:
    """Get the active plan for one service type."""
    try:
        plan = db.get_pricing_plan(service_type)
    except MalformedPricingPlan as e:
        raise HTTPException(status_code=500, detail=str(e))
    if plan is None:
        raise HTTPException(
            status_code=404,
            detail=f"No active pricing plan for service type '{service_type.value}'",
        )
    return plan


@router.put("/pricing-plans/{service_type}", response_model=PricingPlan)
async def upsert_pricing_plan(
    service_type: ServiceType,
    update: PricingPlanUpdate,
    db: DatabaseManager = Depends(get_db),
    cache: CachedPlanStore = Depends(get_cache),
) -> PricingPlan:
    """Create or replace the plan for a service type."""
    plan = db.upsert_pricing_plan(service_type, update)
    cache.invalidate(service_type)
    return plan


@router.delete("/pricing-plans/{service_type}")
async def deactivate_pricing_plan(
    service_type: ServiceType,
    db: DatabaseManager = Depends(get_db),
    cache: CachedPlanStore = Depends(get_cache),
):
    """Deactivate a plan. Quotes for the service type fail until it is re-enabled."""
    if not db.deactivate_pricing_plan(service_type):
        raise HTTPException(
            status_code=404,
            detail=f"No pricing plan for service type '{service_type.value}'",
        )
    cache.invalidate(service_type)
    return {
        "service_type": service_type.value,
        "is_active": False,
        "message": "Pricing plan deactivated",
    }


@router.get("/health")
async def health_check(db: DatabaseManager = Depends(get_db)):
    """Health check endpoint including database status."""
    db_status = "healthy"
    try:
        active_plans = db.count_active_plans()
    except Exception as e:
        logger.exception("Datastore health check failed")
        db_status = f"unhealthy: {e}"
        active_plans = 0

    return {
        "status": "healthy",
        "service": "Delivery Fare Service",
        "datastore_status": db_status,
        "active_plan_count": active_plans,
    }
