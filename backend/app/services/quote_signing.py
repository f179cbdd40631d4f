"""
Signed fare quotes.

A quote shown to a customer is only an estimate. To charge it, the order
flow submits the quote token and the fare; the token must carry a valid
HMAC-SHA256 signature, must not be expired, must name the same fare, and
the fare must still be what the authoritative plan produces for the same
trip.
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from app.models import FareFailure, FareQuote, QuoteVerification, SignedQuote
from app.services.fare_calculator import FareCalculatorInterface

logger = logging.getLogger(__name__)


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


class QuoteSigner:
    """Issues and verifies tamper-evident quote tokens."""

    def __init__(
        self,
        secret: str,
        calculator: FareCalculatorInterface,
        ttl_seconds: int = 600,
        clock: Callable[[], float] = time.time,
    ):
        if not secret:
            raise ValueError("QUOTE_SIGNING_SECRET must be set to issue fare quotes")
        if ttl_seconds <= 0:
            raise ValueError("Quote TTL must be positive")
        self._secret = secret.encode()
        self.calculator = calculator
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def _signature(self, payload: bytes) -> bytes:
        return hmac.new(self._secret, msg=payload, digestmod=hashlib.sha256).digest()

    def sign(self, quote: FareQuote) -> SignedQuote:
        """Bind a quote to a signed token that expires after the TTL."""
        quote_id = uuid.uuid4().hex
        expires = int(self._clock()) + self.ttl_seconds
        payload = json.dumps(
            {
                "qid": quote_id,
                "st": quote.service_type.value,
                "d": quote.distance_km,
                "f": quote.total_fare,
                "exp": expires,
            },
            sort_keys=True,
            separators=(",", ":"),
        ).encode()
        token = f"{_b64encode(payload)}.{_b64encode(self._signature(payload))}"
        return SignedQuote(
            quote=quote,
            quote_id=quote_id,
            quote_token=token,
            expires_at=datetime.fromtimestamp(expires, tz=timezone.utc),
        )

    def _decode(self, token: str) -> Optional[dict]:
        """Return the signed payload, or None if the token is not authentic."""
        parts = token.split(".") if isinstance(token, str) else []
        if len(parts) != 2:
            return None
        try:
            payload = _b64decode(parts[0])
            signature = _b64decode(parts[1])
        except (ValueError, binascii.Error):
            return None
        if not hmac.compare_digest(self._signature(payload), signature):
            return None
        try:
            claims = json.loads(payload)
        except ValueError:
            return None
        if not isinstance(claims, dict) or not {"qid", "st", "d", "f", "exp"} <= claims.keys():
            return None
        return claims

    def verify(self, token: str, fare: float) -> QuoteVerification:
        """
        Verify a submitted fare against its quote token.
        The fare is recomputed from the current plan, so a plan change after
        the quote was issued invalidates it.
        """
        claims = self._decode(token)
        if claims is None:
            logger.warning("Rejected quote token with invalid signature or format")
            return QuoteVerification(valid=False, reason="invalid_token")

        if self._clock() >= claims["exp"]:
            logger.info("Rejected expired quote %s", claims["qid"])
            return QuoteVerification(valid=False, reason="expired")

        signed_fare = float(claims["f"])
        if fare != signed_fare:
            logger.warning(
                "Fare mismatch for quote %s: submitted=%s signed=%s", claims["qid"], fare, signed_fare
            )
            return QuoteVerification(valid=False, reason="fare_mismatch", expected_fare=signed_fare)

        result = self.calculator.compute_fare(claims["d"], claims["st"])
        if isinstance(result, FareFailure):
            logger.warning("Cannot re-quote %s: %s", claims["qid"], result.message)
            return QuoteVerification(valid=False, reason=result.code.value)

        if result.total_fare != signed_fare:
            logger.warning(
                "Plan changed since quote %s: signed=%s current=%s",
                claims["qid"], signed_fare, result.total_fare,
            )
            return QuoteVerification(valid=False, reason="plan_changed", expected_fare=result.total_fare)

        return QuoteVerification(valid=True, expected_fare=signed_fare)

    def validate_quote(self, token: str, fare: float) -> bool:
        """True only when `verify` accepts the fare."""
        return self.verify(token, fare).valid


_default_signer: Optional[QuoteSigner] = None


def get_quote_signer() -> QuoteSigner:
    """
    Get the default signer.
    Verification recomputes against the database directly, never the cache.
    """
    global _default_signer
    if _default_signer is None:
        from app.config import settings
        from app.services.fare_calculator import DistanceBasedFareCalculator
        from app.services.plan_store import DatabasePlanStore

        _default_signer = QuoteSigner(
            secret=settings.QUOTE_SIGNING_SECRET,
            calculator=DistanceBasedFareCalculator(DatabasePlanStore()),
            ttl_seconds=settings.QUOTE_TTL_SECONDS,
        )
    return _default_signer


def reset_quote_signer(signer: Optional[QuoteSigner] = None) -> None:
    """Replace the default signer."""
    global _default_signer
    _default_signer = signer
