"""Fallback policy — simulated bookings for providers without a live credential or adapter."""

import logging
import secrets
import string
from decimal import Decimal

from app.config import settings
from app.schemas.booking import BookingRequest, BookingResult

logger = logging.getLogger(__name__)

_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


class FallbackPolicy:
    """Flat fare × passenger count, synthesized reference and ticket numbers.

    The result carries the provider the caller asked for and is marked
    simulated so finance and audit can tell it from a real reservation.
    """

    def __init__(self, fare: float | None = None, currency: str | None = None):
        self.fare = Decimal(str(fare if fare is not None else settings.fallback_fare))
        self.currency = currency or settings.fallback_currency

    @staticmethod
    def _reference() -> str:
        return "MK" + "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(6))

    @staticmethod
    def _ticket_number() -> str:
        return "016" + "".join(secrets.choice(string.digits) for _ in range(10))

    def book(self, request: BookingRequest, reason: str) -> BookingResult:
        logger.warning(f"Simulated booking for provider {request.provider}: {reason}")
        reference = self._reference()
        return BookingResult(
            success=True,
            booking_reference=reference,
            provider=request.provider,
            status="confirmed",
            total_price=float(self.fare * len(request.passengers)),
            currency=self.currency,
            ticket_numbers=[self._ticket_number() for _ in request.passengers],
            confirmation_url=f"https://example.com/confirmation/{reference}",
            simulated=True,
        )


fallback_policy = FallbackPolicy()
