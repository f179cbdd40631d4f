"""Models for the delivery fare calculation system."""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ServiceType(str, Enum):
    """Service categories that carry their own pricing plan."""
    FOOD = "food"
    GROCERY = "grocery"
    PARCEL = "parcel"


class FailureCode(str, Enum):
    """Reasons a fare cannot be quoted."""
    PLAN_NOT_FOUND = "plan_not_found"
    INVALID_INPUT = "invalid_input"
    MALFORMED_PLAN = "malformed_plan"


class PricingPlan(BaseModel):
    """
    Validated pricing configuration for one service type.
    Rows from the datastore are parsed into this model before they are
    handed to the calculator, so a negative rate or a null column never
    reaches the fare formula.
    """
    model_config = ConfigDict(frozen=True)

    service_type: ServiceType
    base_fare: float = Field(..., ge=0, allow_inf_nan=False, description="Flat fare covering the base distance")
    base_distance_km: float = Field(..., ge=0, allow_inf_nan=False, description="Distance included in the base fare")
    per_km_rate: float = Field(..., ge=0, allow_inf_nan=False, description="Charge per km beyond the base distance")
    minimum_fare: float = Field(..., ge=0, allow_inf_nan=False, description="Floor for the final fare")
    per_min_rate: float = Field(0.0, ge=0, allow_inf_nan=False, description="Stored, not used by the distance formula")
    is_active: bool = True
    updated_at: Optional[datetime] = None


class PricingPlanUpdate(BaseModel):
    """Request body for creating or replacing a pricing plan."""
    base_fare: float = Field(..., ge=0, allow_inf_nan=False)
    base_distance_km: float = Field(..., ge=0, allow_inf_nan=False)
    per_km_rate: float = Field(..., ge=0, allow_inf_nan=False)
    minimum_fare: float = Field(..., ge=0, allow_inf_nan=False)
    per_min_rate: float = Field(0.0, ge=0, allow_inf_nan=False)
    is_active: bool = True


class FareBreakdown(BaseModel):
    """Itemization of a fare for display and audit of the minimum clamp."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    base: float
    distance_charge: float = Field(..., alias="distanceCharge")
    minimum_applied: bool = Field(..., alias="minimumApplied")


class FareQuote(BaseModel):
    """Snapshot of a computed fare. Values are copied from the plan."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    service_type: ServiceType = Field(..., alias="serviceType")
    distance_km: float = Field(..., alias="distanceKm")
    base_fare: float = Field(..., alias="baseFare")
    total_fare: float = Field(..., alias="totalFare")
    surge_multiplier: float = Field(1.0, alias="surgeMultiplier")
    is_peak_hour: bool = Field(False, alias="isPeakHour")
    breakdown: FareBreakdown


class FareFailure(BaseModel):
    """Explicit 'cannot quote' result, distinct from a zero fare."""
    model_config = ConfigDict(frozen=True)

    code: FailureCode
    message: str


FareResult = Union[FareQuote, FareFailure]


class FareQuoteRequest(BaseModel):
    """Request model for a single fare quote."""
    distance_km: float = Field(..., description="Trip distance in kilometres")
    service_type: str = Field(..., description="food, grocery or parcel")


class FareQuoteBatchRequest(BaseModel):
    """Request model for quoting several trips at once (pricing simulator)."""
    requests: List[FareQuoteRequest] = Field(..., min_length=1)

    @field_validator('requests')
    @classmethod
    def validate_request_count(cls, v):
        from app.config import settings
        if len(v) > settings.MAX_QUOTES_PER_REQUEST:
            raise ValueError(
                f"Maximum {settings.MAX_QUOTES_PER_REQUEST} quotes allowed per request, got {len(v)}"
            )
        return v


class SignedQuote(BaseModel):
    """Quote together with the token that binds it to a later charge."""
    model_config = ConfigDict(populate_by_name=True)

    quote: FareQuote
    quote_id: str = Field(..., alias="quoteId")
    quote_token: str = Field(..., alias="quoteToken")
    expires_at: datetime = Field(..., alias="expiresAt")


class BatchQuoteEntry(BaseModel):
    """One entry of a batch quote response: either a quote or a failure."""
    quote: Optional[FareQuote] = None
    failure: Optional[FareFailure] = None


class QuoteVerificationRequest(BaseModel):
    """Request body for verifying a quoted fare at order creation."""
    quote_token: str
    fare: float


class QuoteVerification(BaseModel):
    """Outcome of verifying a submitted fare against its signed quote."""
    valid: bool
    reason: Optional[str] = None
    expected_fare: Optional[float] = None
