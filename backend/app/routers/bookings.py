"""Bookings router — flight booking execution and the caller's booking records."""

import json
import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user
from app.exceptions import RateLimited, SensitiveDataRejected, ValidationError
from app.models.booking import Booking
from app.schemas.booking import BookingRecordResponse
from app.services.booking_engine import BookingEngine, get_booking_engine

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/flights")
async def book_flight(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user),
    engine: BookingEngine = Depends(get_booking_engine),
):
    """Book a flight with the requested provider, falling back to a simulated booking."""
    try:
        decision = await engine.admit(user_id)
    except RateLimited as e:
        return JSONResponse(
            status_code=429,
            content={"detail": str(e)},
            headers={"X-RateLimit-Remaining": "0", "Retry-After": str(e.retry_after)},
        )
    headers = {"X-RateLimit-Remaining": str(decision.remaining)}

    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=400, detail="Request body must be valid JSON", headers=headers)

    try:
        outcome = await engine.execute(db, user_id, payload)
    except (ValidationError, SensitiveDataRejected) as e:
        raise HTTPException(status_code=400, detail=str(e), headers=headers)
    except Exception:
        logger.exception("Book flight error")
        raise HTTPException(status_code=500, detail="Internal server error")

    body = outcome.result.model_dump(by_alias=True, exclude_none=True)
    if outcome.booking_id is not None:
        body["bookingId"] = str(outcome.booking_id)
    return JSONResponse(content=body, headers=headers)


@router.get("", response_model=list[BookingRecordResponse])
async def list_bookings(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """The caller's booking records, newest first."""
    result = await db.execute(
        select(Booking)
        .where(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return [BookingRecordResponse.model_validate(b) for b in result.scalars().all()]


@router.get("/{booking_id}", response_model=BookingRecordResponse)
async def get_booking(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    result = await db.execute(
        select(Booking).where(Booking.id == booking_id, Booking.user_id == user_id)
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return BookingRecordResponse.model_validate(booking)
