"""Amadeus flight-order adapter — OAuth2 client credentials, order from a priced offer."""

import json
import logging
import time
from datetime import datetime, timedelta, timezone

from app.config import settings
from app.exceptions import CredentialUnavailable, ProviderError
from app.schemas.booking import BookingRequest, BookingResult, Passenger
from app.services.credential_resolver import ResolvedCredential
from app.services.providers.base import ProviderAdapter, parse_amount

logger = logging.getLogger(__name__)


class AmadeusAdapter(ProviderAdapter):
    name = "amadeus"

    def __init__(self, transport=None):
        super().__init__(transport)
        # (base_url, api_key) -> (token, expires)
        self._tokens: dict[tuple[str, str], tuple[str, datetime]] = {}

    @staticmethod
    def base_url(environment: str) -> str:
        if environment == "production":
            return settings.amadeus_production_url
        return settings.amadeus_sandbox_url

    async def _ensure_token(self, credential: ResolvedCredential, base_url: str) -> str:
        """Get or refresh the OAuth2 bearer token for this credential."""
        key = (base_url, credential.api_key)
        cached = self._tokens.get(key)
        if cached and datetime.now(timezone.utc) < cached[1]:
            return cached[0]

        data = await self._send(
            "POST",
            f"{base_url}/v1/security/oauth2/token",
            "Failed to authenticate with Amadeus",
            data={
                "grant_type": "client_credentials",
                "client_id": credential.api_key,
                "client_secret": credential.api_secret,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        token = data.get("access_token")
        if not token:
            raise ProviderError(self.name, "Failed to authenticate with Amadeus")

        expires = datetime.now(timezone.utc) + timedelta(
            seconds=data.get("expires_in", 1799) - 60
        )
        self._tokens[key] = (token, expires)
        logger.info("Amadeus token refreshed")
        return token

    async def book(self, credential: ResolvedCredential, request: BookingRequest) -> BookingResult:
        if not credential.api_secret:
            raise CredentialUnavailable("Amadeus credential has no API secret")

        try:
            flight_offer = json.loads(request.booking_token or "")
        except ValueError:
            raise ProviderError(self.name, "Booking token is not a valid Amadeus flight offer")
        if not isinstance(flight_offer, dict):
            raise ProviderError(self.name, "Booking token is not a valid Amadeus flight offer")

        base_url = self.base_url(credential.environment)
        token = await self._ensure_token(credential, base_url)

        result = await self._send(
            "POST",
            f"{base_url}/v1/booking/flight-orders",
            "Failed to complete booking with Amadeus",
            json=self._build_order(request, flight_offer),
            headers={"Authorization": f"Bearer {token}"},
        )
        return self._parse_order(result.get("data") or {})

    @staticmethod
    def _traveler(index: int, passenger: Passenger, request: BookingRequest) -> dict:
        contact: dict = {"emailAddress": passenger.email or request.contact_email}
        if passenger.phone:
            contact["phones"] = [{"deviceType": "MOBILE", "number": passenger.phone}]
        return {
            "id": str(index),
            "dateOfBirth": passenger.date_of_birth.isoformat(),
            # Airline ticketing expects upper-case names
            "name": {
                "firstName": passenger.first_name.upper(),
                "lastName": passenger.last_name.upper(),
            },
            "gender": passenger.gender.upper(),
            "contact": contact,
            "documents": [],
        }

    def _build_order(self, request: BookingRequest, flight_offer: dict) -> dict:
        contact: dict = {
            "emailAddress": request.contact_email,
            "companyName": settings.booking_company_name,
            "purpose": "STANDARD",
        }
        if request.contact_phone:
            contact["phones"] = [{"deviceType": "MOBILE", "number": request.contact_phone}]

        return {
            "data": {
                "type": "flight-order",
                "flightOffers": [flight_offer],
                "travelers": [
                    self._traveler(i, p, request)
                    for i, p in enumerate(request.passengers, start=1)
                ],
                "remarks": {
                    "general": [{"subType": "GENERAL_MISCELLANEOUS", "text": "ONLINE BOOKING"}],
                },
                "contacts": [contact],
            }
        }

    def _parse_order(self, order: dict) -> BookingResult:
        records = order.get("associatedRecords") or [{}]
        reference = (
            order.get("id")
            or records[0].get("reference")
            or f"AMD-{int(time.time() * 1000)}"
        )

        offers = order.get("flightOffers") or [{}]
        price = offers[0].get("price") or {}

        tickets = []
        for traveler in order.get("travelers") or []:
            traveler_tickets = traveler.get("tickets") or []
            if traveler_tickets and traveler_tickets[0].get("number"):
                tickets.append(traveler_tickets[0]["number"])

        return BookingResult(
            success=True,
            booking_reference=reference,
            provider=self.name,
            status="confirmed",
            total_price=parse_amount(price.get("total"), self.name, reference),
            currency=price.get("currency") or "USD",
            ticket_numbers=tickets or None,
        )
