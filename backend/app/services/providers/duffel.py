"""Duffel order adapter — bearer token, opaque offer id, provider-priced orders."""

import logging

from app.config import settings
from app.exceptions import ProviderError
from app.schemas.booking import BookingRequest, BookingResult
from app.services.credential_resolver import ResolvedCredential
from app.services.providers.base import ProviderAdapter, parse_amount

logger = logging.getLogger(__name__)

GENDER_CODES = {"male": "m", "female": "f"}
TITLES = {"male": "mr", "female": "ms"}


class DuffelAdapter(ProviderAdapter):
    name = "duffel"

    async def book(self, credential: ResolvedCredential, request: BookingRequest) -> BookingResult:
        if not request.booking_token:
            raise ProviderError(self.name, "Missing Duffel offer id")

        result = await self._send(
            "POST",
            f"{settings.duffel_base_url}/air/orders",
            "Failed to complete booking with Duffel",
            json=self._build_order(request),
            headers={
                "Authorization": f"Bearer {credential.api_key}",
                "Duffel-Version": settings.duffel_api_version,
                "Accept": "application/json",
            },
        )
        order = result.get("data") or {}
        reference = order.get("booking_reference") or order.get("id")
        if not reference:
            raise ProviderError(self.name, "Duffel order response has no booking reference")

        # Price is whatever Duffel charged; never computed locally
        return BookingResult(
            success=True,
            booking_reference=reference,
            provider=self.name,
            status=order.get("status") or "confirmed",
            total_price=parse_amount(order.get("total_amount"), self.name, reference),
            currency=order.get("total_currency") or "USD",
        )

    @staticmethod
    def _build_order(request: BookingRequest) -> dict:
        return {
            "data": {
                "selected_offers": [request.booking_token],
                "type": "instant",
                "passengers": [
                    {
                        "type": "adult",
                        "title": TITLES[p.gender],
                        "given_name": p.first_name,
                        "family_name": p.last_name,
                        "born_on": p.date_of_birth.isoformat(),
                        "gender": GENDER_CODES[p.gender],
                        "email": p.email or request.contact_email,
                        "phone_number": p.phone or request.contact_phone,
                    }
                    for p in request.passengers
                ],
                "payments": [
                    {"type": "balance", "currency": "USD", "amount": "0"},
                ],
            }
        }
