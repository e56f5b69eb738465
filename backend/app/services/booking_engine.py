"""Booking engine — turns a validated booking request into a recorded reservation.

Pipeline (strictly sequential, one request at a time):
    admit → sensitive-data guard → validate → resolve credential
    → provider adapter | fallback policy → record

Admission runs first so every authenticated attempt, malformed or not,
spends a slot of the caller's window. The guard runs before validation so
sensitive data is reported as such even when the request is also malformed.
"""

import logging
import secrets
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import CredentialUnavailable, ProviderError, RateLimited
from app.schemas.booking import BookingRequest, BookingResult
from app.services.booking_recorder import BookingRecorder, booking_recorder
from app.services.credential_resolver import CredentialResolver, credential_resolver
from app.services.fallback_policy import FallbackPolicy, fallback_policy
from app.services.providers.registry import ProviderRegistry, provider_registry
from app.services.rate_limiter import RateLimitDecision, RateLimiter, rate_limiter
from app.services.request_validator import RequestValidator, request_validator
from app.services.sensitive_data_guard import SensitiveDataGuard, sensitive_data_guard

logger = logging.getLogger(__name__)


@dataclass
class BookingOutcome:
    result: BookingResult
    booking_id: uuid.UUID | None  # None when the record could not be saved


class BookingEngine:
    def __init__(
        self,
        limiter: RateLimiter | None = None,
        validator: RequestValidator | None = None,
        guard: SensitiveDataGuard | None = None,
        resolver: CredentialResolver | None = None,
        registry: ProviderRegistry | None = None,
        fallback: FallbackPolicy | None = None,
        recorder: BookingRecorder | None = None,
        environment: str | None = None,
        fallback_on_provider_error: bool | None = None,
    ):
        self.limiter = limiter or rate_limiter
        self.validator = validator or request_validator
        self.guard = guard or sensitive_data_guard
        self.resolver = resolver or credential_resolver
        self.registry = registry or provider_registry
        self.fallback = fallback or fallback_policy
        self.recorder = recorder or booking_recorder
        self.environment = environment or settings.provider_environment
        if fallback_on_provider_error is None:
            fallback_on_provider_error = settings.fallback_on_provider_error
        self.fallback_on_provider_error = fallback_on_provider_error

    async def admit(self, user_id: str) -> RateLimitDecision:
        """Spend one slot of the caller's window; raise RateLimited when it is exhausted."""
        decision = await self.limiter.admit(user_id)
        if not decision.allowed:
            logger.info(f"Booking rate limit exceeded for user {user_id}")
            raise RateLimited(remaining=0, retry_after=decision.retry_after(self.limiter.now()))
        return decision

    async def execute(self, db: AsyncSession, user_id: str, payload: Any) -> BookingOutcome:
        """Validate, book and record. Call only after `admit` succeeded."""
        if isinstance(payload, dict):
            # Raw passenger payload, including fields the schema ignores
            self.guard.check(payload.get("passengers"))
        request = self.validator.validate(payload)

        logger.info(
            f"Booking flight: provider={request.provider} flight={request.flight_id} user={user_id}"
        )
        result = await self._dispatch(request)

        booking_id = None
        try:
            booking_id = await self.recorder.record(db, user_id, request, result)
        except Exception:
            # The provider-side outcome stands; the caller still gets it
            logger.exception(f"Error saving booking {result.booking_reference}")

        return BookingOutcome(result=result, booking_id=booking_id)

    async def _dispatch(self, request: BookingRequest) -> BookingResult:
        try:
            credential = await self.resolver.resolve(request.provider, self.environment)
        except Exception:
            logger.warning(
                f"Credential lookup for {request.provider}/{self.environment} failed",
                exc_info=True,
            )
            credential = None
        if credential is None:
            return self.fallback.book(
                request, f"no active {self.environment} credential"
            )

        adapter = self.registry.get(request.provider)
        if adapter is None:
            return self.fallback.book(request, "provider not implemented")

        try:
            return await adapter.book(credential, request)
        except CredentialUnavailable as e:
            return self.fallback.book(request, str(e))
        except ProviderError as e:
            logger.error(f"Provider {request.provider} booking failed: {e.detail}")
            if self.fallback_on_provider_error:
                return self.fallback.book(request, f"provider error: {e.detail}")
            return self._failed_result(request, e)

    def _failed_result(self, request: BookingRequest, error: ProviderError) -> BookingResult:
        return BookingResult(
            success=False,
            booking_reference=f"FAIL-{secrets.token_hex(4).upper()}",
            provider=request.provider,
            status="failed",
            total_price=0.0,
            currency=self.fallback.currency,
            error=error.detail,
        )


booking_engine = BookingEngine()


def get_booking_engine() -> BookingEngine:
    return booking_engine
