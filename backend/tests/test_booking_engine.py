"""Booking engine pipeline tests: admission, validation, guard, dispatch, recording."""

import re

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.exceptions import (
    CredentialUnavailable,
    PersistenceError,
    ProviderError,
    RateLimited,
    SensitiveDataRejected,
    ValidationError,
)
from app.models.booking import Booking
from app.services.booking_engine import BookingEngine
from app.services.booking_recorder import BookingRecorder
from app.services.credential_resolver import CredentialResolver
from conftest import SpyAdapter, make_payload


async def _count_bookings(db) -> int:
    return (await db.execute(select(func.count()).select_from(Booking))).scalar_one()


class FailingRecorder(BookingRecorder):
    async def record(self, db, user_id, request, result):
        raise PersistenceError("database is gone")


class TestAdmission:
    async def test_eleventh_attempt_rate_limited(self, booking_engine):
        for _ in range(10):
            await booking_engine.admit("user-1")

        with pytest.raises(RateLimited) as exc:
            await booking_engine.admit("user-1")

        assert exc.value.remaining == 0
        assert exc.value.retry_after == 60

    async def test_after_expiry_remaining_nine(self, booking_engine, clock):
        for _ in range(11):
            try:
                await booking_engine.admit("user-1")
            except RateLimited:
                pass

        clock.advance(61)
        decision = await booking_engine.admit("user-1")

        assert decision.allowed
        assert decision.remaining == 9


class TestRejections:
    async def test_missing_passenger_field_makes_no_provider_call(self, booking_engine, db, spy_adapter, add_credential):
        await add_credential("acme")
        passenger = {"firstName": "Jane", "lastName": "Doe", "gender": "female"}

        with pytest.raises(ValidationError):
            await booking_engine.execute(db, "user-1", make_payload(provider="acme", passengers=[passenger]))

        assert spy_adapter.calls == []
        assert await _count_bookings(db) == 0

    async def test_card_number_makes_no_provider_call(self, booking_engine, db, spy_adapter, add_credential):
        await add_credential("acme")
        passenger = dict(make_payload()["passengers"][0], lastName="Doe 4111 1111 1111 1111")

        with pytest.raises(SensitiveDataRejected):
            await booking_engine.execute(db, "user-1", make_payload(provider="acme", passengers=[passenger]))

        assert spy_adapter.calls == []
        assert await _count_bookings(db) == 0

    async def test_guard_scans_fields_outside_the_schema(self, booking_engine, db, spy_adapter, add_credential):
        await add_credential("acme")
        passenger = dict(make_payload()["passengers"][0], passport="123-45-6789")

        with pytest.raises(SensitiveDataRejected) as exc:
            await booking_engine.execute(db, "user-1", make_payload(provider="acme", passengers=[passenger]))

        assert exc.value.category == "social security number"
        assert spy_adapter.calls == []

    async def test_card_number_in_invalid_field_is_reported_as_sensitive(self, booking_engine, db, spy_adapter, add_credential):
        await add_credential("acme")
        passenger = dict(make_payload()["passengers"][0], dateOfBirth="4111 1111 1111 1111")

        with pytest.raises(SensitiveDataRejected) as exc:
            await booking_engine.execute(db, "user-1", make_payload(provider="acme", passengers=[passenger]))

        assert exc.value.category == "credit card number"
        assert spy_adapter.calls == []

    async def test_card_number_in_incomplete_passenger_is_reported_as_sensitive(self, booking_engine, db, add_credential):
        await add_credential("acme")
        passenger = {"firstName": "4111111111111111", "lastName": "Doe", "gender": "female"}

        with pytest.raises(SensitiveDataRejected):
            await booking_engine.execute(db, "user-1", make_payload(provider="acme", passengers=[passenger]))

        assert await _count_bookings(db) == 0


class TestDispatch:
    async def test_live_provider(self, booking_engine, db, spy_adapter, add_credential):
        await add_credential("acme", api_key="acme-live")

        outcome = await booking_engine.execute(db, "user-1", make_payload(provider="acme"))

        assert outcome.result.success
        assert outcome.result.provider == "acme"
        assert outcome.result.booking_reference == "ACME0001"
        assert not outcome.result.simulated
        credential, request = spy_adapter.calls[0]
        assert credential.api_key == "acme-live"
        assert request.flight_id == "F1"

    async def test_no_credential_falls_back(self, booking_engine, db, spy_adapter):
        outcome = await booking_engine.execute(db, "user-1", make_payload(provider="acme"))

        assert outcome.result.success
        assert outcome.result.simulated
        assert outcome.result.provider == "acme"
        assert re.match(r"^MK[A-Z0-9]{6}$", outcome.result.booking_reference)
        assert spy_adapter.calls == []

    async def test_credential_in_other_environment_falls_back(self, booking_engine, db, spy_adapter, add_credential):
        await add_credential("acme", environment="production")

        outcome = await booking_engine.execute(db, "user-1", make_payload(provider="acme"))

        assert outcome.result.simulated
        assert spy_adapter.calls == []

    async def test_credential_store_failure_falls_back(self, booking_engine, db, spy_adapter):
        class _UnreachableStore:
            async def resolve(self, provider, environment):
                raise OperationalError("SELECT flight_credentials", {}, Exception("connection refused"))

        booking_engine.resolver = _UnreachableStore()

        outcome = await booking_engine.execute(db, "user-1", make_payload(provider="acme"))

        assert outcome.result.success
        assert outcome.result.simulated
        assert outcome.result.provider == "acme"
        assert spy_adapter.calls == []
        assert outcome.booking_id is not None

    async def test_credential_without_adapter_falls_back(self, booking_engine, db, add_credential):
        await add_credential("sabre")

        outcome = await booking_engine.execute(db, "user-1", make_payload(provider="sabre"))

        assert outcome.result.simulated
        assert outcome.result.provider == "sabre"

    async def test_adapter_rejecting_credential_falls_back(self, limiter, session_factory, registry, db, add_credential):
        registry.register("acme", SpyAdapter(error=CredentialUnavailable("no secret")))
        engine = BookingEngine(limiter=limiter, resolver=CredentialResolver(session_factory), registry=registry)
        await add_credential("acme")

        outcome = await engine.execute(db, "user-1", make_payload(provider="acme"))

        assert outcome.result.success
        assert outcome.result.simulated

    async def test_provider_error_gives_failed_result(self, limiter, session_factory, registry, db, add_credential):
        registry.register("acme", SpyAdapter(error=ProviderError("acme", "Offer has expired")))
        engine = BookingEngine(
            limiter=limiter,
            resolver=CredentialResolver(session_factory),
            registry=registry,
            fallback_on_provider_error=False,
        )
        await add_credential("acme")

        outcome = await engine.execute(db, "user-1", make_payload(provider="acme"))

        assert not outcome.result.success
        assert outcome.result.status == "failed"
        assert outcome.result.error == "Offer has expired"
        assert outcome.result.provider == "acme"
        booking = await db.get(Booking, outcome.booking_id)
        assert booking.status == "failed"

    async def test_provider_error_can_fall_back(self, limiter, session_factory, registry, db, add_credential):
        registry.register("acme", SpyAdapter(error=ProviderError("acme", "timed out")))
        engine = BookingEngine(
            limiter=limiter,
            resolver=CredentialResolver(session_factory),
            registry=registry,
            fallback_on_provider_error=True,
        )
        await add_credential("acme")

        outcome = await engine.execute(db, "user-1", make_payload(provider="acme"))

        assert outcome.result.success
        assert outcome.result.simulated

    async def test_repeated_token_is_not_deduplicated(self, booking_engine, db, spy_adapter, add_credential):
        await add_credential("acme")
        payload = make_payload(provider="acme", bookingToken="off_same")

        first = await booking_engine.execute(db, "user-1", payload)
        second = await booking_engine.execute(db, "user-1", payload)

        assert len(spy_adapter.calls) == 2
        assert first.result.booking_reference != second.result.booking_reference
        assert first.booking_id != second.booking_id


class TestRecording:
    async def test_mock_scenario(self, booking_engine, db):
        outcome = await booking_engine.execute(db, "user-1", make_payload())

        assert outcome.result.success
        assert outcome.result.provider == "mock"
        assert outcome.result.total_price == 299.99
        assert len(outcome.result.ticket_numbers) == 1
        booking = await db.get(Booking, outcome.booking_id)
        assert booking.status == "confirmed"
        assert booking.simulated is True
        assert booking.user_id == "user-1"

    async def test_persistence_failure_keeps_provider_result(self, limiter, session_factory, registry, spy_adapter, db, add_credential):
        engine = BookingEngine(
            limiter=limiter,
            resolver=CredentialResolver(session_factory),
            registry=registry,
            recorder=FailingRecorder(),
        )
        await add_credential("acme")

        outcome = await engine.execute(db, "user-1", make_payload(provider="acme"))

        assert outcome.result.success
        assert outcome.result.booking_reference == "ACME0001"
        assert outcome.booking_id is None
        assert len(spy_adapter.calls) == 1

    async def test_driver_error_on_commit_keeps_provider_result(self, booking_engine, spy_adapter, db, add_credential, monkeypatch):
        await add_credential("acme")

        async def _reset_commit():
            raise ConnectionResetError("connection reset by peer")

        monkeypatch.setattr(db, "commit", _reset_commit)

        outcome = await booking_engine.execute(db, "user-1", make_payload(provider="acme"))

        assert outcome.result.success
        assert outcome.result.booking_reference == "ACME0001"
        assert outcome.booking_id is None
        assert len(spy_adapter.calls) == 1
